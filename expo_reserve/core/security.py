"""Identity & role gate.

A request is authenticated once from its bearer token and authorized once
against the permitted-role set of the operation it asks for. Handlers receive
a resolved ``Principal`` and never re-check roles themselves.
"""
import enum
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import ValidationError

from expo_reserve.core.config import ACCESS_TOKEN_EXPIRE_MINUTES, get_jwt_settings
from expo_reserve.core.errors import Forbidden, Unauthenticated
from expo_reserve.schemas.token import TokenPayload


class Role(str, enum.Enum):
    ADMIN = "admin"
    ORGANIZER = "organizer"
    EXHIBITOR = "exhibitor"
    ATTENDEE = "attendee"


_ALL_ROLES = frozenset(Role)
_MANAGERS = frozenset({Role.ORGANIZER, Role.ADMIN})


class Operation(str, enum.Enum):
    CREATE_EXPO = "create_expo"
    MANAGE_EXPO = "manage_expo"
    CREATE_BOOTH = "create_booth"
    CREATE_SESSION = "create_session"
    MANAGE_RESOURCE = "manage_resource"
    BOOK_BOOTH = "book_booth"
    REGISTER_SESSION = "register_session"
    CANCEL_RESERVATION = "cancel_reservation"
    VIEW_RESERVATION = "view_reservation"
    VIEW_ANALYTICS = "view_analytics"
    APPLY_AS_EXHIBITOR = "apply_as_exhibitor"
    REVIEW_APPLICATION = "review_application"

    @property
    def permitted_roles(self) -> frozenset[Role]:
        return PERMITTED_ROLES[self]


PERMITTED_ROLES: dict[Operation, frozenset[Role]] = {
    Operation.CREATE_EXPO: _MANAGERS,
    Operation.MANAGE_EXPO: _MANAGERS,
    Operation.CREATE_BOOTH: _MANAGERS,
    Operation.CREATE_SESSION: _MANAGERS,
    Operation.MANAGE_RESOURCE: _MANAGERS,
    Operation.BOOK_BOOTH: frozenset({Role.EXHIBITOR}),
    Operation.REGISTER_SESSION: frozenset({Role.ATTENDEE, Role.EXHIBITOR}),
    Operation.CANCEL_RESERVATION: _ALL_ROLES,
    Operation.VIEW_RESERVATION: _ALL_ROLES,
    Operation.VIEW_ANALYTICS: _MANAGERS,
    Operation.APPLY_AS_EXHIBITOR: frozenset({Role.EXHIBITOR}),
    Operation.REVIEW_APPLICATION: _MANAGERS,
}


@dataclass(frozen=True)
class Principal:
    id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


# tokenUrl points at the external login collaborator; only used for OpenAPI docs.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token", auto_error=False)


def create_access_token(subject: str, role: Role | str, expires_delta: timedelta | None = None) -> str:
    secret, algorithm = get_jwt_settings()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    claims = {"sub": subject, "role": Role(role).value, "exp": int(expire.timestamp())}
    return jwt.encode(claims, secret, algorithm=algorithm)


def decode_principal(token: str | None) -> Principal:
    """Verify a bearer token and return the principal it asserts.

    Raises:
        Unauthenticated: token missing, badly signed, expired or carrying an
            unknown role.
    """
    if not token:
        raise Unauthenticated("Not authenticated")
    secret, algorithm = get_jwt_settings()
    try:
        # jose rejects an expired "exp" claim here
        payload = TokenPayload(**jwt.decode(token, secret, algorithms=[algorithm]))
        return Principal(id=payload.sub, role=Role(payload.role))
    except (JWTError, ValidationError, ValueError):
        raise Unauthenticated("Could not validate credentials")


def authorize(principal: Principal, operation: Operation) -> Principal:
    if principal.role not in operation.permitted_roles:
        raise Forbidden(f"Role '{principal.role.value}' may not {operation.value.replace('_', ' ')}")
    return principal


def get_current_principal(token: str | None = Depends(oauth2_scheme)) -> Principal:
    return decode_principal(token)


def require(operation: Operation):
    """Dependency factory: authenticate the caller and check ``operation``."""

    def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        return authorize(principal, operation)

    return dependency
