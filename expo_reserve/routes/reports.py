from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from expo_reserve.core.security import Operation, Principal, require
from expo_reserve.database.db import get_db
from expo_reserve.schemas.reports import ExpoReportOut, ReportOut, ResourceStatsOut
from expo_reserve.services import analytics, lifecycle

router = APIRouter(prefix="/report", tags=["reports"])


@router.get("", response_model=ReportOut)
def overall_report(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require(Operation.VIEW_ANALYTICS)),
):
    """Aggregate report across all expos."""
    return analytics.get_overall_report(db)


@router.get("/expo/{expo_id}", response_model=ExpoReportOut)
def expo_report(
    expo_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require(Operation.VIEW_ANALYTICS)),
):
    lifecycle.ensure_manager(lifecycle.get_expo(db, expo_id), principal)
    return analytics.get_expo_report(db, expo_id)


@router.get("/resource/{resource_id}", response_model=ResourceStatsOut)
def resource_report(
    resource_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require(Operation.VIEW_ANALYTICS)),
):
    resource = lifecycle.get_resource(db, resource_id)
    lifecycle.ensure_manager(resource.expo, principal)
    return analytics.get_resource_stats(db, resource_id)
