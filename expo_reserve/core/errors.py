"""Error taxonomy shared by the gate, the ledger and the state machines.

Every error carries a kind and, where one applies, the id of the resource it
concerns so callers can decide whether to retry, prompt or give up.
"""
import enum


class ErrorKind(str, enum.Enum):
    UNAUTHENTICATED = "Unauthenticated"
    FORBIDDEN = "Forbidden"
    NOT_FOUND = "NotFound"
    INVALID_TRANSITION = "InvalidTransition"
    ALREADY_RESERVED = "AlreadyReserved"
    CAPACITY_EXCEEDED = "CapacityExceeded"
    LIFECYCLE_CLOSED = "LifecycleClosed"
    NOT_OWNER = "NotOwner"
    DUPLICATE_APPLICATION = "DuplicateApplication"
    BOOTH_LIMIT_REACHED = "BoothLimitReached"
    RESOURCE_BUSY = "ResourceBusy"


class ExpoError(Exception):
    kind: ErrorKind
    status_code: int = 400

    def __init__(self, message: str, *, resource_id: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.resource_id = resource_id

    def to_dict(self) -> dict:
        return {"detail": self.message, "kind": self.kind.value, "resource_id": self.resource_id}


class Unauthenticated(ExpoError):
    kind = ErrorKind.UNAUTHENTICATED
    status_code = 401


class Forbidden(ExpoError):
    kind = ErrorKind.FORBIDDEN
    status_code = 403


class NotOwner(ExpoError):
    kind = ErrorKind.NOT_OWNER
    status_code = 403


class NotFound(ExpoError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404


class InvalidTransition(ExpoError):
    kind = ErrorKind.INVALID_TRANSITION
    status_code = 409


class AlreadyReserved(ExpoError):
    kind = ErrorKind.ALREADY_RESERVED
    status_code = 409


class CapacityExceeded(ExpoError):
    kind = ErrorKind.CAPACITY_EXCEEDED
    status_code = 409


class LifecycleClosed(ExpoError):
    kind = ErrorKind.LIFECYCLE_CLOSED
    status_code = 409


class DuplicateApplication(ExpoError):
    kind = ErrorKind.DUPLICATE_APPLICATION
    status_code = 409


class BoothLimitReached(ExpoError):
    """The exhibitor already holds as many booths in this expo as it allows."""

    kind = ErrorKind.BOOTH_LIMIT_REACHED
    status_code = 409


class ResourceBusy(ExpoError):
    """The per-resource lock could not be taken in time; nothing was changed."""

    kind = ErrorKind.RESOURCE_BUSY
    status_code = 503
