"""Exhibitor applications: pending -> approved | rejected.

A separate, simpler workflow from booth slot booking. It has its own
transition table and never touches the capacity ledger.
"""
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from expo_reserve.core.errors import DuplicateApplication, InvalidTransition, LifecycleClosed, NotFound
from expo_reserve.core.security import Principal
from expo_reserve.models.applications import ApplicationStatus, ExhibitorApplication
from expo_reserve.models.expos import ExpoStatus
from expo_reserve.services import lifecycle

logger = logging.getLogger(__name__)

TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    ApplicationStatus.PENDING: frozenset({ApplicationStatus.APPROVED, ApplicationStatus.REJECTED}),
    ApplicationStatus.APPROVED: frozenset(),
    ApplicationStatus.REJECTED: frozenset(),
}


def apply(db: Session, *, expo_id: int, principal: Principal, company_name: str) -> ExhibitorApplication:
    expo = lifecycle.get_expo(db, expo_id)
    if expo.status != ExpoStatus.PUBLISHED.value:
        raise LifecycleClosed(f"Expo is {expo.status}", resource_id=expo_id)

    existing = db.scalar(
        select(ExhibitorApplication.id).where(
            ExhibitorApplication.expo_id == expo_id,
            ExhibitorApplication.exhibitor_id == principal.id,
            ExhibitorApplication.status.in_([ApplicationStatus.PENDING.value, ApplicationStatus.APPROVED.value]),
        )
    )
    if existing is not None:
        raise DuplicateApplication("An application for this expo is already open", resource_id=expo_id)

    application = ExhibitorApplication(
        expo_id=expo_id,
        exhibitor_id=principal.id,
        company_name=company_name,
        status=ApplicationStatus.PENDING.value,
    )
    db.add(application)
    db.commit()
    db.refresh(application)
    logger.info("Exhibitor %s applied to expo %s", principal.id, expo_id)
    return application


def decide(db: Session, *, application_id: int, principal: Principal, approve: bool) -> ExhibitorApplication:
    application = db.get(ExhibitorApplication, application_id)
    if application is None:
        raise NotFound("Application not found", resource_id=application_id)
    lifecycle.ensure_manager(lifecycle.get_expo(db, application.expo_id), principal)

    target = ApplicationStatus.APPROVED if approve else ApplicationStatus.REJECTED
    current = ApplicationStatus(application.status)
    if current is target:
        return application
    if target not in TRANSITIONS[current]:
        raise InvalidTransition(
            f"Cannot move application from {current.value} to {target.value}",
            resource_id=application.expo_id,
        )

    application.status = target.value
    application.decided_at = lifecycle.utcnow()
    db.commit()
    db.refresh(application)
    logger.info("Application %s %s by %s", application_id, target.value, principal.id)
    return application
