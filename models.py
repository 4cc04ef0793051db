import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlmodel import SQLModel, Field
from sqlalchemy import DDL, DateTime, event

from config import DEFAULT_CLOSING_HOUR, DEFAULT_OPENING_HOUR
from scheduler import BookingInterval, BookingStatus


def utcnow() -> datetime:
    # Stored naive, in UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UserType(str, Enum):
    client = "client"
    staff = "staff"
    admin = "admin"


class Studio(SQLModel, table=True):
    __tablename__ = "studios"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str
    description: Optional[str] = None
    hourly_rate: float
    opening_hour: int = DEFAULT_OPENING_HOUR
    closing_hour: int = DEFAULT_CLOSING_HOUR


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    first_name: str
    last_name: str
    email: str = Field(unique=True, index=True)
    phone_number: Optional[str] = None
    user_type: UserType = Field(default=UserType.client, index=True)


class Equipment(SQLModel, table=True):
    __tablename__ = "equipment"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str
    category: Optional[str] = None
    description: Optional[str] = None


class BookingEquipment(SQLModel, table=True):
    __tablename__ = "booking_equipment"

    booking_id: uuid.UUID = Field(foreign_key="bookings.id", primary_key=True)
    equipment_id: uuid.UUID = Field(foreign_key="equipment.id", primary_key=True)


class Booking(SQLModel, table=True):
    __tablename__ = "bookings"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    studio_id: uuid.UUID = Field(foreign_key="studios.id", index=True)
    client_id: uuid.UUID = Field(foreign_key="users.id", index=True)
    engineer_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id", index=True)
    # Stored naive: UTC, or studio wall-clock when the client sent no offset
    start_time: datetime = Field(sa_type=DateTime(timezone=False), index=True)
    end_time: datetime = Field(sa_type=DateTime(timezone=False), index=True)
    status: BookingStatus = Field(default=BookingStatus.pending, index=True)
    notes: Optional[str] = None
    total_price: Optional[float] = None
    is_paid: bool = False
    cancelled_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=False))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=False))

    def interval(self) -> BookingInterval:
        return BookingInterval(
            id=self.id,
            studio_id=self.studio_id,
            start=self.start_time,
            end=self.end_time,
            status=self.status,
        )


# CRITICAL: Database-level protection against double booking.
# Two active bookings of one studio can never hold overlapping time ranges,
# even when two requests pass the application check at the same moment.
event.listen(
    SQLModel.metadata,
    "before_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    Booking.__table__,
    "after_create",
    DDL(
        "ALTER TABLE bookings ADD CONSTRAINT bookings_no_overlap "
        "EXCLUDE USING gist (studio_id WITH =, tsrange(start_time, end_time, '[)') WITH &&) "
        "WHERE (status <> 'cancelled')"
    ).execute_if(dialect="postgresql"),
)
