from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from expo_reserve.core.security import Operation, Principal, require
from expo_reserve.database.db import get_db
from expo_reserve.schemas.applications import ApplicationOut
from expo_reserve.services import applications

router = APIRouter(prefix="/applications", tags=["applications"])


@router.put("/{application_id}/approve", response_model=ApplicationOut)
def approve_application(
    application_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require(Operation.REVIEW_APPLICATION)),
):
    return applications.decide(db, application_id=application_id, principal=principal, approve=True)


@router.put("/{application_id}/reject", response_model=ApplicationOut)
def reject_application(
    application_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require(Operation.REVIEW_APPLICATION)),
):
    return applications.decide(db, application_id=application_id, principal=principal, approve=False)
