"""Capacity ledger.

The ledger is the only writer of ``Resource.confirmed_count``. Check-and-consume
is a single conditional UPDATE executed while the per-resource Redis lock is
held, so a caller can never act on a stale count. Locks are keyed by resource
id; work on different resources never contends.
"""
import logging
from contextlib import ExitStack, contextmanager
from typing import Iterable, Iterator

import redis
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from expo_reserve.core.config import get_lock_timeouts, get_redis_url
from expo_reserve.core.errors import CapacityExceeded, ResourceBusy
from expo_reserve.models.reservations import Reservation, ReservationStatus
from expo_reserve.models.resources import Resource

logger = logging.getLogger(__name__)


def get_redis_client():
    """Get Redis client for locking."""
    return redis.from_url(get_redis_url(), decode_responses=True)


def lock_key(resource_id: int) -> str:
    return f"resource_lock:{resource_id}"


def quota_lock_key(expo_id: int, principal_id: str) -> str:
    return f"booth_quota_lock:{expo_id}:{principal_id}"


@contextmanager
def _hold_key(key: str, resource_id: int) -> Iterator[None]:
    lock_timeout, wait_timeout = get_lock_timeouts()
    lock = get_redis_client().lock(key, timeout=lock_timeout, blocking_timeout=wait_timeout)
    try:
        acquired = lock.acquire(blocking=True)
    except redis.exceptions.LockError:  # type: ignore
        acquired = False
    if not acquired:
        logger.warning("Timed out waiting for lock %s", key)
        raise ResourceBusy("Resource is busy, please try again.", resource_id=resource_id)

    try:
        yield
    finally:
        try:
            lock.release()
        except redis.exceptions.LockNotOwnedError:  # type: ignore
            # the work above outlived LOCK_TIMEOUT; the conditional update still held the line
            logger.warning("Lock %s expired before release", key)


def hold(resource_id: int):
    """Hold the lock for one resource for the duration of the block.

    Raises ResourceBusy if the lock is not acquired within the request
    timeout; in that case nothing has been written and the call can be retried.
    """
    return _hold_key(lock_key(resource_id), resource_id)


def hold_booth_quota(expo_id: int, principal_id: str):
    """Serialize one exhibitor's booth bookings within an expo.

    Always taken before any resource lock.
    """
    return _hold_key(quota_lock_key(expo_id, principal_id), expo_id)


@contextmanager
def hold_many(resource_ids: Iterable[int]) -> Iterator[None]:
    """Hold several resource locks, always taken in ascending id order."""
    with ExitStack() as stack:
        for resource_id in sorted(set(resource_ids)):
            stack.enter_context(hold(resource_id))
        yield


def reserve_slot(db: Session, resource_id: int, principal_id: str) -> None:
    """Consume one unit of capacity or raise CapacityExceeded."""
    stmt = (
        update(Resource)
        .where(Resource.id == resource_id)
        .where(Resource.confirmed_count < Resource.capacity)
        .values(confirmed_count=Resource.confirmed_count + 1)
    )
    res = db.execute(stmt)
    if res.rowcount != 1:  # type: ignore
        logger.warning("Capacity exceeded on resource %s for principal %s", resource_id, principal_id)
        raise CapacityExceeded("Resource is at full capacity.", resource_id=resource_id)


def release_slot(db: Session, resource_id: int) -> None:
    """Give back one unit of capacity.

    Never rejects: if the counter is already at zero it has drifted from the
    reservations table, so it is rebuilt from there instead.
    """
    stmt = (
        update(Resource)
        .where(Resource.id == resource_id)
        .where(Resource.confirmed_count > 0)
        .values(confirmed_count=Resource.confirmed_count - 1)
    )
    res = db.execute(stmt)
    if res.rowcount != 1:  # type: ignore
        logger.error("Capacity counter for resource %s was already zero on release", resource_id)
        reconcile(db, resource_id)


def recount(db: Session, resource_id: int) -> int:
    """Count confirmed reservations, the source of truth for the counter."""
    db.flush()
    count = db.scalar(
        select(func.count(Reservation.id)).where(
            Reservation.resource_id == resource_id,
            Reservation.status == ReservationStatus.CONFIRMED.value,
        )
    )
    return int(count or 0)


def reconcile(db: Session, resource_id: int) -> tuple[int, int]:
    """Reset the counter to the recomputed value. Returns (before, after)."""
    before = db.scalar(select(Resource.confirmed_count).where(Resource.id == resource_id))
    after = recount(db, resource_id)
    if before != after:
        db.execute(update(Resource).where(Resource.id == resource_id).values(confirmed_count=after))
        logger.error("Reconciled resource %s counter from %s to %s", resource_id, before, after)
    return int(before or 0), after


def resize(db: Session, resource_id: int, capacity: int) -> None:
    """Set a new capacity, refusing to drop it below the confirmed count."""
    stmt = (
        update(Resource)
        .where(Resource.id == resource_id)
        .where(Resource.confirmed_count <= capacity)
        .values(capacity=capacity)
    )
    res = db.execute(stmt)
    if res.rowcount != 1:  # type: ignore
        raise CapacityExceeded("Capacity cannot go below the confirmed reservations.", resource_id=resource_id)
