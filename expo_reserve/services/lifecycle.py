"""Expo and session lifecycle.

Expos move draft -> published -> completed (and back to draft via unpublish).
A resource accepts reservations only while its expo is published, the expo's
end date has not passed and, for sessions, the session has not ended and its
registration is still switched on. The end-date close is evaluated at read time, never stored.
"""
import enum
import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from expo_reserve.core.errors import Forbidden, InvalidTransition, LifecycleClosed, NotFound
from expo_reserve.core.security import Principal, Role
from expo_reserve.models.expos import Expo, ExpoStatus
from expo_reserve.models.reservations import Reservation, ReservationStatus, transition
from expo_reserve.models.resources import PriceTier, Resource, ResourceKind
from expo_reserve.services import ledger
from expo_reserve.tasks import enqueue_reservation_event

logger = logging.getLogger(__name__)


class UnpublishPolicy(str, enum.Enum):
    """What unpublishing does to confirmed reservations. Callers must choose."""

    BLOCK = "block"
    CASCADE_CANCEL = "cascade_cancel"
    RETAIN = "retain"


_EXPO_TRANSITIONS = {
    "publish": (ExpoStatus.DRAFT, ExpoStatus.PUBLISHED),
    "unpublish": (ExpoStatus.PUBLISHED, ExpoStatus.DRAFT),
    "complete": (ExpoStatus.PUBLISHED, ExpoStatus.COMPLETED),
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------- Expo ----------
def create_expo(
    db: Session,
    *,
    organizer: Principal,
    title: str,
    start_date: datetime,
    end_date: datetime,
    max_booths_per_exhibitor: int = 1,
    allow_booth_sharing: bool = False,
) -> Expo:
    expo = Expo(
        title=title,
        organizer_id=organizer.id,
        status=ExpoStatus.DRAFT.value,
        start_date=start_date,
        end_date=end_date,
        max_booths_per_exhibitor=max_booths_per_exhibitor,
        allow_booth_sharing=allow_booth_sharing,
    )
    db.add(expo)
    db.commit()
    db.refresh(expo)
    logger.info("Expo %s created by %s", expo.id, organizer.id)
    return expo


def get_expo(db: Session, expo_id: int) -> Expo:
    expo = db.get(Expo, expo_id)
    if expo is None or expo.is_deleted:
        raise NotFound("Expo not found", resource_id=expo_id)
    return expo


def list_expos(db: Session) -> list[Expo]:
    """Publicly visible expos: everything that is not a draft."""
    return list(
        db.scalars(
            select(Expo)
            .where(Expo.is_deleted.is_(False), Expo.status != ExpoStatus.DRAFT.value)
            .order_by(Expo.start_date)
        )
    )


def can_manage(expo: Expo, principal: Principal) -> bool:
    return principal.is_admin or (principal.role is Role.ORGANIZER and expo.organizer_id == principal.id)


def ensure_manager(expo: Expo, principal: Principal) -> None:
    if not can_manage(expo, principal):
        raise Forbidden("Not authorized for this expo", resource_id=expo.id)


def _transition(expo: Expo, action: str) -> None:
    source, target = _EXPO_TRANSITIONS[action]
    if expo.status != source.value:
        raise InvalidTransition(
            f"Cannot {action} an expo that is {expo.status}",
            resource_id=expo.id,
        )
    expo.status = target.value


def publish_expo(db: Session, *, expo_id: int, principal: Principal) -> Expo:
    expo = get_expo(db, expo_id)
    ensure_manager(expo, principal)
    _transition(expo, "publish")
    db.commit()
    db.refresh(expo)
    logger.info("Expo %s published by %s", expo_id, principal.id)
    return expo


def complete_expo(db: Session, *, expo_id: int, principal: Principal) -> Expo:
    expo = get_expo(db, expo_id)
    ensure_manager(expo, principal)
    resource_ids = _resource_ids(db, expo_id)
    db.rollback()

    # no booking may land after the expo is closed
    with ledger.hold_many(resource_ids):
        try:
            expo = get_expo(db, expo_id)
            _transition(expo, "complete")
            db.commit()
        except Exception:
            db.rollback()
            raise
    db.refresh(expo)
    logger.info("Expo %s completed by %s", expo_id, principal.id)
    return expo


def _resource_ids(db: Session, expo_id: int) -> list[int]:
    return list(db.scalars(select(Resource.id).where(Resource.expo_id == expo_id, Resource.is_deleted.is_(False))))


def _confirmed_reservations(db: Session, resource_ids: list[int]) -> list[Reservation]:
    if not resource_ids:
        return []
    return list(
        db.scalars(
            select(Reservation)
            .where(
                Reservation.resource_id.in_(resource_ids),
                Reservation.status == ReservationStatus.CONFIRMED.value,
            )
            .order_by(Reservation.id)
            .execution_options(populate_existing=True)
        )
    )


def unpublish_expo(
    db: Session, *, expo_id: int, principal: Principal, policy: UnpublishPolicy
) -> tuple[Expo, list[Reservation]]:
    """Move a published expo back to draft.

    Every resource lock of the expo is held while confirmed reservations are
    inspected and, under CASCADE_CANCEL, cancelled, so no booking can slip in
    between the check and the status change. Returns the expo and the
    reservations that were cancelled.
    """
    policy = UnpublishPolicy(policy)
    expo = get_expo(db, expo_id)
    ensure_manager(expo, principal)
    resource_ids = _resource_ids(db, expo_id)
    db.rollback()

    cancelled: list[Reservation] = []
    with ledger.hold_many(resource_ids):
        try:
            expo = get_expo(db, expo_id)
            _transition(expo, "unpublish")
            confirmed = _confirmed_reservations(db, resource_ids)
            if confirmed and policy is UnpublishPolicy.BLOCK:
                raise InvalidTransition(
                    f"Expo has {len(confirmed)} confirmed reservation(s)",
                    resource_id=expo_id,
                )
            if policy is UnpublishPolicy.CASCADE_CANCEL:
                for reservation in confirmed:
                    transition(reservation, ReservationStatus.CANCELLED)
                    db.flush()
                    ledger.release_slot(db, reservation.resource_id)
                    cancelled.append(reservation)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(expo)
        for reservation in cancelled:
            db.refresh(reservation)

    logger.info(
        "Expo %s unpublished by %s with policy %s (%d reservation(s) cancelled)",
        expo_id,
        principal.id,
        policy.value,
        len(cancelled),
    )
    for reservation in cancelled:
        enqueue_reservation_event(reservation, "cancelled")
    return expo, cancelled


def delete_expo(db: Session, *, expo_id: int, principal: Principal) -> None:
    """Soft-delete an expo and its resources. Refused while reservations are confirmed."""
    expo = get_expo(db, expo_id)
    ensure_manager(expo, principal)
    resource_ids = _resource_ids(db, expo_id)
    db.rollback()

    with ledger.hold_many(resource_ids):
        try:
            expo = get_expo(db, expo_id)
            if _confirmed_reservations(db, resource_ids):
                raise InvalidTransition("Cannot delete an expo with confirmed reservations", resource_id=expo_id)
            expo.is_deleted = True
            for resource in db.scalars(select(Resource).where(Resource.id.in_(resource_ids))):
                resource.is_deleted = True
            db.commit()
        except Exception:
            db.rollback()
            raise
    logger.info("Expo %s deleted by %s", expo_id, principal.id)


# ---------- Resources ----------
def _add_resource(db: Session, *, expo_id: int, principal: Principal, **fields) -> Resource:
    expo = get_expo(db, expo_id)
    ensure_manager(expo, principal)
    if expo.status == ExpoStatus.COMPLETED.value:
        raise LifecycleClosed("Expo is completed", resource_id=expo_id)
    resource = Resource(expo_id=expo_id, confirmed_count=0, **fields)
    db.add(resource)
    db.commit()
    db.refresh(resource)
    logger.info("%s %s added to expo %s", resource.kind.capitalize(), resource.id, expo_id)
    return resource


def add_booth(
    db: Session,
    *,
    expo_id: int,
    principal: Principal,
    name: str,
    capacity: int = 1,
    price_tier: PriceTier | str = PriceTier.STANDARD,
) -> Resource:
    return _add_resource(
        db,
        expo_id=expo_id,
        principal=principal,
        kind=ResourceKind.BOOTH.value,
        name=name,
        capacity=capacity,
        price_tier=PriceTier(price_tier).value,
    )


def add_session(
    db: Session,
    *,
    expo_id: int,
    principal: Principal,
    name: str,
    max_attendees: int,
    starts_at: datetime,
    ends_at: datetime,
) -> Resource:
    return _add_resource(
        db,
        expo_id=expo_id,
        principal=principal,
        kind=ResourceKind.SESSION.value,
        name=name,
        capacity=max_attendees,
        starts_at=starts_at,
        ends_at=ends_at,
    )


def get_resource(db: Session, resource_id: int) -> Resource:
    resource = db.get(Resource, resource_id)
    if resource is None or resource.is_deleted:
        raise NotFound("Resource not found", resource_id=resource_id)
    return resource


def _managed_resource(
    db: Session, resource_id: int, principal: Principal, kind: ResourceKind | None = None
) -> Resource:
    resource = get_resource(db, resource_id)
    if kind is not None and resource.kind != kind.value:
        raise NotFound(f"{kind.value.capitalize()} not found", resource_id=resource_id)
    ensure_manager(resource.expo, principal)
    return resource


def _update_resource(
    db: Session, *, resource_id: int, principal: Principal, kind: ResourceKind, capacity: int | None, **changes
) -> Resource:
    _managed_resource(db, resource_id, principal, kind)
    db.rollback()

    with ledger.hold(resource_id):
        try:
            resource = _managed_resource(db, resource_id, principal, kind)
            db.refresh(resource)
            if resource.expo.status == ExpoStatus.COMPLETED.value:
                raise LifecycleClosed("Expo is completed", resource_id=resource_id)
            for field, value in changes.items():
                if value is not None:
                    setattr(resource, field, value)
            if (
                resource.starts_at is not None
                and resource.ends_at is not None
                and as_utc(resource.ends_at) <= as_utc(resource.starts_at)
            ):
                raise InvalidTransition("Session must end after it starts", resource_id=resource_id)
            db.flush()
            if capacity is not None:
                ledger.resize(db, resource_id, capacity)
            db.commit()
        except Exception:
            db.rollback()
            raise
    db.refresh(resource)
    logger.info("%s %s updated by %s", resource.kind.capitalize(), resource_id, principal.id)
    return resource


def update_booth(
    db: Session,
    *,
    resource_id: int,
    principal: Principal,
    name: str | None = None,
    capacity: int | None = None,
    price_tier: PriceTier | str | None = None,
) -> Resource:
    return _update_resource(
        db,
        resource_id=resource_id,
        principal=principal,
        kind=ResourceKind.BOOTH,
        capacity=capacity,
        name=name,
        price_tier=PriceTier(price_tier).value if price_tier is not None else None,
    )


def update_session(
    db: Session,
    *,
    resource_id: int,
    principal: Principal,
    name: str | None = None,
    max_attendees: int | None = None,
    starts_at: datetime | None = None,
    ends_at: datetime | None = None,
    allow_registration: bool | None = None,
) -> Resource:
    return _update_resource(
        db,
        resource_id=resource_id,
        principal=principal,
        kind=ResourceKind.SESSION,
        capacity=max_attendees,
        name=name,
        starts_at=starts_at,
        ends_at=ends_at,
        allow_registration=allow_registration,
    )


def delete_resource(db: Session, *, resource_id: int, principal: Principal) -> None:
    """Soft-delete one booth or session. Refused while it has confirmed reservations."""
    _managed_resource(db, resource_id, principal)
    db.rollback()

    with ledger.hold(resource_id):
        try:
            resource = _managed_resource(db, resource_id, principal)
            if _confirmed_reservations(db, [resource_id]):
                raise InvalidTransition(
                    f"Cannot delete a {resource.kind} with confirmed reservations",
                    resource_id=resource_id,
                )
            resource.is_deleted = True
            db.commit()
        except Exception:
            db.rollback()
            raise
    logger.info("Resource %s deleted by %s", resource_id, principal.id)


def closed_reason(resource: Resource, now: datetime | None = None) -> str | None:
    """Why ``resource`` cannot take reservations right now, or None if it can."""
    now = now or utcnow()
    expo = resource.expo
    if resource.is_deleted or expo.is_deleted:
        return "Resource has been removed"
    if expo.status != ExpoStatus.PUBLISHED.value:
        return f"Expo is {expo.status}"
    if now > as_utc(expo.end_date):
        return "Expo has ended"
    if resource.kind == ResourceKind.SESSION.value and resource.ends_at is not None and now >= as_utc(resource.ends_at):
        return "Session has ended"
    if resource.kind == ResourceKind.SESSION.value and not resource.allow_registration:
        return "Registration is closed"
    return None


def is_open(resource: Resource, now: datetime | None = None) -> bool:
    return closed_reason(resource, now) is None


def ensure_open(resource: Resource, now: datetime | None = None) -> None:
    reason = closed_reason(resource, now)
    if reason is not None:
        raise LifecycleClosed(reason, resource_id=resource.id)


def list_available(db: Session, expo_id: int) -> list[Resource]:
    get_expo(db, expo_id)
    resources = db.scalars(
        select(Resource)
        .where(
            Resource.expo_id == expo_id,
            Resource.is_deleted.is_(False),
            Resource.confirmed_count < Resource.capacity,
        )
        .order_by(Resource.kind, Resource.name)
    )
    now = utcnow()
    return [resource for resource in resources if is_open(resource, now)]

