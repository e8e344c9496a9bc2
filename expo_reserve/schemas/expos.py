from datetime import datetime

from pydantic import BaseModel, Field, model_validator


# ---------- Expo ----------
class ExpoCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    start_date: datetime
    end_date: datetime
    max_booths_per_exhibitor: int = Field(default=1, ge=1)
    allow_booth_sharing: bool = False

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ExpoOut(BaseModel):
    id: int
    title: str
    organizer_id: str
    status: str
    start_date: datetime
    end_date: datetime
    max_booths_per_exhibitor: int
    allow_booth_sharing: bool

    class Config:
        from_attributes = True


class UnpublishOut(BaseModel):
    expo: ExpoOut
    cancelled_reservation_ids: list[int]
