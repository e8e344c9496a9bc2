"""Reservation state machine for booth slots and session seats.

Booking is a single request+confirm step: the ledger consumes capacity and the
reservation is written as confirmed in the same transaction, under the
resource's lock. Cancelling releases the slot the same way. Booth bookings
also hold the exhibitor's quota lock for the expo, so the per-exhibitor booth
limit cannot be raced across different booths.
"""
import logging
from contextlib import ExitStack

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from expo_reserve.core.errors import AlreadyReserved, BoothLimitReached, NotFound, NotOwner
from expo_reserve.core.security import Operation, Principal
from expo_reserve.models.reservations import (
    ACTIVE_STATUSES,
    Reservation,
    ReservationStatus,
    transition,
)
from expo_reserve.models.resources import Resource, ResourceKind
from expo_reserve.services import ledger, lifecycle
from expo_reserve.tasks import enqueue_reservation_event

logger = logging.getLogger(__name__)


def operation_for(db: Session, resource_id: int) -> Operation:
    """The gate operation a booking request on this resource needs."""
    kind = db.scalar(select(Resource.kind).where(Resource.id == resource_id, Resource.is_deleted.is_(False)))
    if kind is None:
        raise NotFound("Resource not found", resource_id=resource_id)
    if kind == ResourceKind.SESSION.value:
        return Operation.REGISTER_SESSION
    return Operation.BOOK_BOOTH


def book(db: Session, *, resource_id: int, principal: Principal) -> Reservation:
    """
    Reserve one slot of ``resource_id`` for ``principal``.

    Every check and the write happen under the resource lock; on any failure
    the transaction is rolled back and nothing is recorded.
    """
    target = db.execute(select(Resource.kind, Resource.expo_id).where(Resource.id == resource_id)).first()
    # whatever was read so far must not become the snapshot the checks run against
    db.rollback()

    with ExitStack() as locks:
        if target is not None and target.kind == ResourceKind.BOOTH.value:
            locks.enter_context(ledger.hold_booth_quota(target.expo_id, principal.id))
        locks.enter_context(ledger.hold(resource_id))
        try:
            reservation = _book_in_transaction(db, resource_id, principal.id)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(reservation)

    logger.info("Reservation %s confirmed on resource %s for %s", reservation.id, resource_id, principal.id)
    enqueue_reservation_event(reservation, "confirmed")
    return reservation


def booths_held(db: Session, expo_id: int, principal_id: str) -> int:
    """Confirmed booth reservations ``principal_id`` holds across the expo."""
    count = db.scalar(
        select(func.count(Reservation.id))
        .join(Resource, Resource.id == Reservation.resource_id)
        .where(
            Resource.expo_id == expo_id,
            Resource.kind == ResourceKind.BOOTH.value,
            Reservation.principal_id == principal_id,
            Reservation.status == ReservationStatus.CONFIRMED.value,
        )
    )
    return int(count or 0)


def _check_booth_quota(db: Session, resource: Resource, principal_id: str) -> None:
    expo = resource.expo
    held = booths_held(db, expo.id, principal_id)
    if held and not expo.allow_booth_sharing:
        raise BoothLimitReached("Already holding a booth in this expo", resource_id=resource.id)
    if held >= expo.max_booths_per_exhibitor:
        raise BoothLimitReached(
            f"Booth limit of {expo.max_booths_per_exhibitor} reached for this expo",
            resource_id=resource.id,
        )


def _book_in_transaction(db: Session, resource_id: int, principal_id: str) -> Reservation:
    """Internal function to book within a transaction."""
    resource = lifecycle.get_resource(db, resource_id)
    # the session may hold copies loaded before the lock was taken
    db.refresh(resource)
    db.refresh(resource.expo)
    lifecycle.ensure_open(resource)

    existing = db.scalar(
        select(Reservation.id).where(
            Reservation.resource_id == resource_id,
            Reservation.principal_id == principal_id,
            Reservation.status.in_(ACTIVE_STATUSES),
        )
    )
    if existing is not None:
        raise AlreadyReserved(f"Already holding reservation {existing} on this resource", resource_id=resource_id)

    if resource.kind == ResourceKind.BOOTH.value:
        _check_booth_quota(db, resource, principal_id)

    ledger.reserve_slot(db, resource_id, principal_id)

    reservation = Reservation(
        resource_id=resource_id,
        principal_id=principal_id,
        status=ReservationStatus.CONFIRMED.value,
    )
    db.add(reservation)
    db.flush()  # gets reservation.id
    return reservation


def _can_act_on(db: Session, reservation: Reservation, principal: Principal) -> bool:
    if reservation.principal_id == principal.id or principal.is_admin:
        return True
    resource = db.get(Resource, reservation.resource_id)
    return resource is not None and lifecycle.can_manage(resource.expo, principal)


def get_reservation(db: Session, *, reservation_id: int, principal: Principal) -> Reservation:
    reservation = db.get(Reservation, reservation_id)
    if reservation is None:
        raise NotFound("Reservation not found", resource_id=reservation_id)
    if not _can_act_on(db, reservation, principal):
        raise NotOwner("Reservation belongs to another principal", resource_id=reservation.resource_id)
    return reservation


def cancel(db: Session, *, reservation_id: int, principal: Principal) -> Reservation:
    """
    Cancel a confirmed reservation and give its slot back.

    Cancelling an already-cancelled reservation succeeds without changes so
    that retries are safe.
    """
    resource_id = db.scalar(select(Reservation.resource_id).where(Reservation.id == reservation_id))
    if resource_id is None:
        raise NotFound("Reservation not found", resource_id=reservation_id)
    db.rollback()

    with ledger.hold(resource_id):
        try:
            reservation, changed = _cancel_in_transaction(db, reservation_id, principal)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(reservation)

    if changed:
        logger.info("Reservation %s cancelled by %s", reservation_id, principal.id)
        enqueue_reservation_event(reservation, "cancelled")
    return reservation


def _cancel_in_transaction(db: Session, reservation_id: int, principal: Principal) -> tuple[Reservation, bool]:
    reservation = db.get(Reservation, reservation_id, populate_existing=True, with_for_update=True)
    if reservation is None:
        raise NotFound("Reservation not found", resource_id=reservation_id)
    if not _can_act_on(db, reservation, principal):
        raise NotOwner("Reservation belongs to another principal", resource_id=reservation.resource_id)

    if reservation.status == ReservationStatus.CANCELLED.value:
        return reservation, False

    transition(reservation, ReservationStatus.CANCELLED)
    db.flush()
    ledger.release_slot(db, reservation.resource_id)
    return reservation, True
