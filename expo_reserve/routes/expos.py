from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from expo_reserve.core.security import Operation, Principal, require
from expo_reserve.database.db import get_db
from expo_reserve.schemas.applications import ApplicationCreate, ApplicationOut
from expo_reserve.schemas.expos import ExpoCreate, ExpoOut, UnpublishOut
from expo_reserve.schemas.resources import BoothCreate, ResourceOut, SessionCreate
from expo_reserve.services import applications, lifecycle
from expo_reserve.services.lifecycle import UnpublishPolicy

router = APIRouter(prefix="/expos", tags=["expos"])


@router.post("", response_model=ExpoOut, status_code=status.HTTP_201_CREATED)
def create_expo(
    payload: ExpoCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require(Operation.CREATE_EXPO)),
):
    return lifecycle.create_expo(
        db,
        organizer=principal,
        title=payload.title,
        start_date=payload.start_date,
        end_date=payload.end_date,
        max_booths_per_exhibitor=payload.max_booths_per_exhibitor,
        allow_booth_sharing=payload.allow_booth_sharing,
    )


@router.get("", response_model=list[ExpoOut])
def list_expos(db: Session = Depends(get_db)):
    return lifecycle.list_expos(db)


@router.get("/{expo_id}", response_model=ExpoOut)
def get_expo(expo_id: int, db: Session = Depends(get_db)):
    return lifecycle.get_expo(db, expo_id)


@router.put("/{expo_id}/publish", response_model=ExpoOut)
def publish_expo(
    expo_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require(Operation.MANAGE_EXPO)),
):
    return lifecycle.publish_expo(db, expo_id=expo_id, principal=principal)


@router.put("/{expo_id}/unpublish", response_model=UnpublishOut)
def unpublish_expo(
    expo_id: int,
    policy: UnpublishPolicy = Query(..., description="What happens to confirmed reservations"),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require(Operation.MANAGE_EXPO)),
):
    expo, cancelled = lifecycle.unpublish_expo(db, expo_id=expo_id, principal=principal, policy=policy)
    return {"expo": expo, "cancelled_reservation_ids": [r.id for r in cancelled]}


@router.put("/{expo_id}/complete", response_model=ExpoOut)
def complete_expo(
    expo_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require(Operation.MANAGE_EXPO)),
):
    return lifecycle.complete_expo(db, expo_id=expo_id, principal=principal)


@router.delete("/{expo_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_expo(
    expo_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require(Operation.MANAGE_EXPO)),
):
    lifecycle.delete_expo(db, expo_id=expo_id, principal=principal)


@router.post("/{expo_id}/booths", response_model=ResourceOut, status_code=status.HTTP_201_CREATED)
def create_booth(
    expo_id: int,
    payload: BoothCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require(Operation.CREATE_BOOTH)),
):
    return lifecycle.add_booth(
        db,
        expo_id=expo_id,
        principal=principal,
        name=payload.name,
        capacity=payload.capacity,
        price_tier=payload.price_tier,
    )


@router.post("/{expo_id}/sessions", response_model=ResourceOut, status_code=status.HTTP_201_CREATED)
def create_session(
    expo_id: int,
    payload: SessionCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require(Operation.CREATE_SESSION)),
):
    return lifecycle.add_session(
        db,
        expo_id=expo_id,
        principal=principal,
        name=payload.name,
        max_attendees=payload.max_attendees,
        starts_at=payload.starts_at,
        ends_at=payload.ends_at,
    )


@router.post("/{expo_id}/applications", response_model=ApplicationOut, status_code=status.HTTP_201_CREATED)
def apply_to_expo(
    expo_id: int,
    payload: ApplicationCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require(Operation.APPLY_AS_EXHIBITOR)),
):
    return applications.apply(db, expo_id=expo_id, principal=principal, company_name=payload.company_name)
