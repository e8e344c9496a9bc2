from datetime import datetime

from pydantic import BaseModel, Field


class ApplicationCreate(BaseModel):
    company_name: str = Field(min_length=1, max_length=200)


class ApplicationOut(BaseModel):
    id: int
    expo_id: int
    exhibitor_id: str
    company_name: str
    status: str
    created_at: datetime
    decided_at: datetime | None = None

    class Config:
        from_attributes = True
