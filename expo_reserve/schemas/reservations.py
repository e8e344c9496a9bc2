from datetime import datetime

from pydantic import BaseModel


class ReservationOut(BaseModel):
    id: int
    resource_id: int
    principal_id: str
    status: str
    created_at: datetime

    class Config:
        from_attributes = True
