from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from expo_reserve.core.security import Operation, Principal, authorize, get_current_principal, require
from expo_reserve.database.db import get_db
from expo_reserve.schemas.reservations import ReservationOut
from expo_reserve.schemas.resources import BoothUpdate, ResourceOut, SessionUpdate
from expo_reserve.services import lifecycle, reservations

router = APIRouter(prefix="/resources", tags=["resources"])


@router.get("/{expo_id}/available", response_model=list[ResourceOut])
def available_resources(expo_id: int, db: Session = Depends(get_db)):
    """Resources of an open expo that still have room."""
    return lifecycle.list_available(db, expo_id)


@router.post("/{resource_id}/book", response_model=ReservationOut)
def book_resource(
    resource_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    # booths and session seats are gated by different role sets
    authorize(principal, reservations.operation_for(db, resource_id))
    return reservations.book(db, resource_id=resource_id, principal=principal)


@router.put("/booths/{resource_id}", response_model=ResourceOut)
def update_booth(
    resource_id: int,
    payload: BoothUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require(Operation.MANAGE_RESOURCE)),
):
    return lifecycle.update_booth(
        db,
        resource_id=resource_id,
        principal=principal,
        name=payload.name,
        capacity=payload.capacity,
        price_tier=payload.price_tier,
    )


@router.put("/sessions/{resource_id}", response_model=ResourceOut)
def update_session(
    resource_id: int,
    payload: SessionUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require(Operation.MANAGE_RESOURCE)),
):
    return lifecycle.update_session(
        db,
        resource_id=resource_id,
        principal=principal,
        name=payload.name,
        max_attendees=payload.max_attendees,
        starts_at=payload.starts_at,
        ends_at=payload.ends_at,
        allow_registration=payload.allow_registration,
    )


@router.delete("/{resource_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_resource(
    resource_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require(Operation.MANAGE_RESOURCE)),
):
    lifecycle.delete_resource(db, resource_id=resource_id, principal=principal)
