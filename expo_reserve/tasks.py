import logging

from sqlalchemy import select

from expo_reserve.core.celery_config import celery_app
from expo_reserve.core.errors import ResourceBusy
from expo_reserve.database.db import SessionLocal
from expo_reserve.models.reservations import Reservation
from expo_reserve.models.resources import Resource
from expo_reserve.services import ledger

logger = logging.getLogger(__name__)


def build_event_payload(reservation: Reservation, event: str) -> dict:
    return {
        "event": event,
        "reservation_id": reservation.id,
        "resource_id": reservation.resource_id,
        "principal_id": reservation.principal_id,
        "status": reservation.status,
        "occurred_at": reservation.updated_at.isoformat() if reservation.updated_at else None,
    }


@celery_app.task(bind=True)
def publish_reservation_event(self, payload: dict) -> dict:
    """Hand a confirmed/cancelled transition to the notification and analytics consumers."""
    logger.info(
        "Reservation %s %s (resource %s, principal %s)",
        payload["reservation_id"],
        payload["event"],
        payload["resource_id"],
        payload["principal_id"],
    )
    return payload


def enqueue_reservation_event(reservation: Reservation, event: str) -> None:
    """Fire-and-forget: the transition is already committed, so a broker outage only costs the event."""
    payload = build_event_payload(reservation, event)
    try:
        publish_reservation_event.delay(payload)
    except Exception:
        logger.warning("Could not enqueue %s event for reservation %s", event, reservation.id, exc_info=True)


@celery_app.task(bind=True)
def reconcile_counters_task(self) -> dict[int, tuple[int, int]]:
    """Rebuild every capacity counter from the reservations table and report drift."""
    drift: dict[int, tuple[int, int]] = {}
    db = SessionLocal()
    try:
        resource_ids = list(db.scalars(select(Resource.id).order_by(Resource.id)))
        db.rollback()
        for resource_id in resource_ids:
            try:
                with ledger.hold(resource_id):
                    before, after = ledger.reconcile(db, resource_id)
                    db.commit()
            except ResourceBusy:
                logger.warning("Skipped reconciling busy resource %s", resource_id)
                continue
            if before != after:
                drift[resource_id] = (before, after)
    finally:
        db.close()
    return drift
