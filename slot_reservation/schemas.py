from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class HoldRequest(BaseModel):
    resource_id: str
    subject_id: str
    start_at: datetime
    duration_minutes: int = Field(gt=0)
    price: Decimal | None = None


class HoldResponse(BaseModel):
    message: str = "Slot reserved"
    reservation_id: str
    hold_token: str
    hold_expires_at: datetime
    expires_in_seconds: int


class ConfirmRequest(BaseModel):
    hold_token: str


class StatusUpdateRequest(BaseModel):
    status: Literal["Confirmed", "Rejected", "Completed"]


class DirectBookingRequest(BaseModel):
    resource_id: str
    subject_id: str
    start_at: datetime
    duration_minutes: int = Field(gt=0)
    price: Decimal | None = None


class ReservationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    resource_id: str
    subject_id: str
    owner_id: str | None = None
    start_at: datetime
    end_at: datetime
    status: str
    hold_expires_at: datetime | None = None
    price: Decimal | None = None


class ReapResponse(BaseModel):
    expired: int
