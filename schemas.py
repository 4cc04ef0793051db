import uuid
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from models import UserType
from scheduler import BookingStatus


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Offsets are normalised to UTC; naive values are taken as-is
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class APIModel(BaseModel):
    # JSON keys are camelCase (studioId, startTime); snake_case is accepted too
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


# --- Studios / users / equipment ---

class StudioCreate(APIModel):
    name: str
    description: Optional[str] = None
    hourly_rate: float = Field(ge=0)
    opening_hour: Optional[int] = Field(default=None, ge=0, le=23)
    closing_hour: Optional[int] = Field(default=None, ge=1, le=24)


class StudioRead(APIModel):
    id: uuid.UUID
    name: str
    description: Optional[str]
    hourly_rate: float
    opening_hour: int
    closing_hour: int


class UserCreate(APIModel):
    first_name: str
    last_name: str
    email: str
    phone_number: Optional[str] = None
    user_type: UserType = UserType.client


class UserRead(APIModel):
    id: uuid.UUID
    first_name: str
    last_name: str
    email: str
    phone_number: Optional[str]
    user_type: UserType


class EquipmentCreate(APIModel):
    name: str
    category: Optional[str] = None
    description: Optional[str] = None


class EquipmentRead(APIModel):
    id: uuid.UUID
    name: str
    category: Optional[str]
    description: Optional[str]


# --- Bookings ---

class BookingCreate(APIModel):
    studio_id: uuid.UUID
    client_id: uuid.UUID
    engineer_id: Optional[uuid.UUID] = None
    start_time: datetime
    end_time: datetime
    notes: Optional[str] = None
    equipment_ids: List[uuid.UUID] = []

    @field_validator("start_time", "end_time")
    @classmethod
    def normalise_times(cls, value):
        return naive_utc(value)

    @model_validator(mode="after")
    def check_order(self):
        if self.start_time >= self.end_time:
            raise ValueError("startTime must be before endTime")
        return self


class BookingUpdate(APIModel):
    studio_id: Optional[uuid.UUID] = None
    engineer_id: Optional[uuid.UUID] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    notes: Optional[str] = None
    # Cancellation goes through the cancel endpoint
    status: Optional[BookingStatus] = None
    equipment_ids: Optional[List[uuid.UUID]] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def normalise_times(cls, value):
        return naive_utc(value)

    @field_validator("status")
    @classmethod
    def status_not_cancelled(cls, value):
        if value == BookingStatus.cancelled:
            raise ValueError("use the cancel endpoint to cancel a booking")
        return value


class BookingCancel(APIModel):
    cancelled_reason: Optional[str] = None


class BookingRead(APIModel):
    id: uuid.UUID
    studio_id: uuid.UUID
    client_id: uuid.UUID
    engineer_id: Optional[uuid.UUID]
    start_time: datetime
    end_time: datetime
    status: BookingStatus
    notes: Optional[str]
    total_price: Optional[float]
    is_paid: bool
    cancelled_reason: Optional[str]
    created_at: datetime
    updated_at: datetime
    equipment_ids: List[uuid.UUID] = []


class BookingEnvelope(APIModel):
    success: bool = True
    booking: BookingRead


class CancelEnvelope(BookingEnvelope):
    message: str = "Booking cancelled successfully"


class BookingPage(APIModel):
    success: bool = True
    count: int
    total_pages: int
    current_page: int
    bookings: List[BookingRead]


class CalendarEvent(APIModel):
    id: uuid.UUID
    title: str
    start: datetime
    end: datetime
    resource_id: uuid.UUID
    status: BookingStatus
    extended_props: Dict[str, Any]


class CalendarResponse(APIModel):
    success: bool = True
    events: List[CalendarEvent]


class SlotRead(APIModel):
    start: datetime
    end: datetime


class AvailabilityResponse(APIModel):
    success: bool = True
    day: date = Field(alias="date")
    studio_id: uuid.UUID
    available_slots: List[SlotRead]
    booked_slots: List[SlotRead]
    opening_hour: int
    closing_hour: int
