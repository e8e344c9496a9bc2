from pydantic import BaseModel


class ResourceStatsOut(BaseModel):
    resource_id: int
    expo_id: int
    kind: str
    capacity: int
    confirmed_count: int
    available: int
    occupancy: float


class BreakdownOut(BaseModel):
    resources: int
    capacity: int
    confirmed_count: int
    occupancy: float


class ExpoReportOut(BaseModel):
    expo_id: int
    resources: int
    total_capacity: int
    total_confirmed: int
    occupancy: float
    by_kind: dict[str, BreakdownOut]
    by_price_tier: dict[str, BreakdownOut]


class ReportOut(BaseModel):
    total_expos: int
    total_capacity: int
    total_confirmed: int
    occupancy: float
