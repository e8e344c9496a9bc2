import enum
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from expo_reserve.core.errors import InvalidTransition
from expo_reserve.database.db import Base


class ReservationStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


TERMINAL_STATUSES = frozenset({ReservationStatus.CANCELLED.value, ReservationStatus.REJECTED.value})
ACTIVE_STATUSES = frozenset({ReservationStatus.PENDING.value, ReservationStatus.CONFIRMED.value})

TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.PENDING: frozenset({ReservationStatus.CONFIRMED, ReservationStatus.REJECTED}),
    ReservationStatus.CONFIRMED: frozenset({ReservationStatus.CANCELLED}),
    ReservationStatus.CANCELLED: frozenset(),
    ReservationStatus.REJECTED: frozenset(),
}


class Reservation(Base):
    __tablename__ = "reservations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    resource_id: Mapped[int] = mapped_column(ForeignKey("resources.id"), nullable=False, index=True)
    principal_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=ReservationStatus.PENDING.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    resource: Mapped["Resource"] = relationship(back_populates="reservations")  # noqa: F821


def transition(reservation: Reservation, target: ReservationStatus) -> None:
    """Move ``reservation`` to ``target`` or raise InvalidTransition, leaving it untouched."""
    current = ReservationStatus(reservation.status)
    if target not in TRANSITIONS[current]:
        raise InvalidTransition(
            f"Cannot move reservation from {current.value} to {target.value}",
            resource_id=reservation.resource_id,
        )
    reservation.status = target.value
