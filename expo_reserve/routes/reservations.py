from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from expo_reserve.core.security import Operation, Principal, require
from expo_reserve.database.db import get_db
from expo_reserve.schemas.reservations import ReservationOut
from expo_reserve.services import reservations

router = APIRouter(prefix="/reservations", tags=["reservations"])


@router.get("/{reservation_id}", response_model=ReservationOut)
def get_reservation(
    reservation_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require(Operation.VIEW_RESERVATION)),
):
    return reservations.get_reservation(db, reservation_id=reservation_id, principal=principal)


@router.post("/{reservation_id}/cancel", response_model=ReservationOut)
def cancel_reservation(
    reservation_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require(Operation.CANCEL_RESERVATION)),
):
    return reservations.cancel(db, reservation_id=reservation_id, principal=principal)
