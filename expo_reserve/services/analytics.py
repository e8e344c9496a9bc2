"""Read-only occupancy rollups built from the capacity counters.

Nothing here writes. Counts may trail in-flight bookings slightly but are
capped at capacity, so a report never shows more confirmed slots than exist.
"""
from collections import defaultdict

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from expo_reserve.models.expos import Expo
from expo_reserve.models.resources import Resource, ResourceKind
from expo_reserve.services import lifecycle


def occupancy(confirmed: int, capacity: int) -> float:
    if capacity <= 0:
        return 0.0
    return round(min(confirmed, capacity) / capacity, 4)


def _capped(resource: Resource) -> int:
    return min(resource.confirmed_count, resource.capacity)


def get_resource_stats(db: Session, resource_id: int) -> dict:
    resource = lifecycle.get_resource(db, resource_id)
    confirmed = _capped(resource)
    return {
        "resource_id": resource.id,
        "expo_id": resource.expo_id,
        "kind": resource.kind,
        "capacity": resource.capacity,
        "confirmed_count": confirmed,
        "available": resource.capacity - confirmed,
        "occupancy": occupancy(confirmed, resource.capacity),
    }


def _rollup(resources: list[Resource]) -> dict:
    capacity = sum(r.capacity for r in resources)
    confirmed = sum(_capped(r) for r in resources)
    return {
        "resources": len(resources),
        "capacity": capacity,
        "confirmed_count": confirmed,
        "occupancy": occupancy(confirmed, capacity),
    }


def get_expo_report(db: Session, expo_id: int) -> dict:
    lifecycle.get_expo(db, expo_id)
    resources = list(
        db.scalars(select(Resource).where(Resource.expo_id == expo_id, Resource.is_deleted.is_(False)))
    )

    by_kind: dict[str, list[Resource]] = defaultdict(list)
    by_tier: dict[str, list[Resource]] = defaultdict(list)
    for resource in resources:
        by_kind[resource.kind].append(resource)
        if resource.kind == ResourceKind.BOOTH.value and resource.price_tier:
            by_tier[resource.price_tier].append(resource)

    totals = _rollup(resources)
    return {
        "expo_id": expo_id,
        "resources": totals["resources"],
        "total_capacity": totals["capacity"],
        "total_confirmed": totals["confirmed_count"],
        "occupancy": totals["occupancy"],
        "by_kind": {kind: _rollup(group) for kind, group in by_kind.items()},
        "by_price_tier": {tier: _rollup(group) for tier, group in by_tier.items()},
    }


def get_overall_report(db: Session) -> dict:
    """Return aggregated totals across all live expos."""
    live = Resource.is_deleted.is_(False)
    capped = case((Resource.confirmed_count > Resource.capacity, Resource.capacity), else_=Resource.confirmed_count)
    total_expos = db.scalar(select(func.count(Expo.id)).where(Expo.is_deleted.is_(False)))
    total_capacity = db.scalar(select(func.sum(Resource.capacity)).where(live))
    total_confirmed = db.scalar(select(func.sum(capped)).where(live))
    total_capacity = int(total_capacity or 0)
    total_confirmed = int(total_confirmed or 0)

    return {
        "total_expos": int(total_expos or 0),
        "total_capacity": total_capacity,
        "total_confirmed": total_confirmed,
        "occupancy": occupancy(total_confirmed, total_capacity),
    }
