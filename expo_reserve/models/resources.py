import enum
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from expo_reserve.database.db import Base


class ResourceKind(str, enum.Enum):
    BOOTH = "booth"
    SESSION = "session"


class PriceTier(str, enum.Enum):
    STANDARD = "standard"
    PREMIUM = "premium"
    VIP = "vip"


class Resource(Base):
    """A booth or a session seat pool.

    ``confirmed_count`` is a cached count of confirmed reservations. It is
    written only by the capacity ledger and can always be rebuilt from the
    reservations table.
    """

    __tablename__ = "resources"
    __table_args__ = (
        CheckConstraint("capacity >= 0", name="ck_resources_capacity_non_negative"),
        CheckConstraint("confirmed_count >= 0", name="ck_resources_confirmed_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    expo_id: Mapped[int] = mapped_column(ForeignKey("expos.id"), nullable=False, index=True)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    confirmed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price_tier: Mapped[str | None] = mapped_column(String(16), nullable=True)
    starts_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    ends_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # sessions only: organizers can close registration without touching the expo
    allow_registration: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    expo: Mapped["Expo"] = relationship(back_populates="resources")  # noqa: F821
    reservations: Mapped[list["Reservation"]] = relationship(back_populates="resource")  # noqa: F821

    @property
    def status(self) -> str:
        return "available" if self.confirmed_count < self.capacity else "reserved"
