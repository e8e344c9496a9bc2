from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from expo_reserve.models.resources import PriceTier


class BoothCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    capacity: int = Field(default=1, ge=0)
    price_tier: PriceTier = PriceTier.STANDARD


class SessionCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    max_attendees: int = Field(ge=0)
    starts_at: datetime
    ends_at: datetime

    @model_validator(mode="after")
    def check_window(self):
        if self.ends_at <= self.starts_at:
            raise ValueError("ends_at must be after starts_at")
        return self


class BoothUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    capacity: int | None = Field(default=None, ge=0)
    price_tier: PriceTier | None = None


class SessionUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    max_attendees: int | None = Field(default=None, ge=0)
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    allow_registration: bool | None = None

    @model_validator(mode="after")
    def check_window(self):
        if self.starts_at and self.ends_at and self.ends_at <= self.starts_at:
            raise ValueError("ends_at must be after starts_at")
        return self


class ResourceOut(BaseModel):
    id: int
    expo_id: int
    kind: str
    name: str
    capacity: int
    confirmed_count: int
    status: str
    price_tier: str | None = None
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    allow_registration: bool = True

    class Config:
        from_attributes = True
