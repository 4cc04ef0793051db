import math
import uuid
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from fastapi import FastAPI, Depends, HTTPException, Query, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from sqlmodel import select
from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

import notifications
from config import CORS_ORIGINS, LOG_JSON, LOG_LEVEL
from database import init_db, get_session
from filters import BookingFilter
from logging_config import get_logger, setup_logging
from models import Booking, BookingEquipment, Equipment, Studio, User, UserType, utcnow
from scheduler import (
    TERMINAL_STATUSES,
    AvailabilityWindow,
    BookingInterval,
    BookingStatus,
    can_transition,
    compute_daily_availability,
    has_conflict,
    price_for_interval,
)
from schemas import (
    AvailabilityResponse,
    BookingCancel,
    BookingCreate,
    BookingEnvelope,
    BookingPage,
    BookingRead,
    BookingUpdate,
    CalendarEvent,
    CalendarResponse,
    CancelEnvelope,
    EquipmentCreate,
    EquipmentRead,
    SlotRead,
    StudioCreate,
    StudioRead,
    UserCreate,
    UserRead,
    naive_utc,
)

setup_logging(json_output=LOG_JSON, log_level=LOG_LEVEL)
logger = get_logger(__name__)

app = FastAPI(title="Studio Booking Assistant", version="1.0.0")

CONFLICT_DETAIL = "There is a conflicting booking for this time slot"


@app.on_event("startup")
async def on_startup():
    await init_db()


# --- Helpers ---

async def _get_or_404(session: AsyncSession, model, obj_id, label: str, lock: bool = False, **criteria):
    statement = select(model).where(model.id == obj_id)
    for column, value in criteria.items():
        statement = statement.where(getattr(model, column) == value)
    if lock:
        # Serializes writers for the same row until commit
        statement = statement.with_for_update()
    result = await session.execute(statement)
    obj = result.scalars().first()
    if obj is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{label} not found")
    return obj


async def _overlapping_bookings(
    session: AsyncSession, studio_id: uuid.UUID, start: datetime, end: datetime
) -> List[BookingInterval]:
    # Narrow in SQL, decide in the scheduler
    statement = select(Booking).where(
        Booking.studio_id == studio_id,
        Booking.status != BookingStatus.cancelled,
        Booking.start_time < end,
        Booking.end_time > start,
    )
    result = await session.execute(statement)
    return [b.interval() for b in result.scalars().all()]


async def _check_equipment(session: AsyncSession, equipment_ids: List[uuid.UUID]):
    wanted = set(equipment_ids)
    if not wanted:
        return
    result = await session.execute(select(Equipment.id).where(Equipment.id.in_(list(wanted))))
    if set(result.scalars().all()) != wanted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Equipment not found")


async def _link_equipment(session: AsyncSession, booking_id: uuid.UUID, equipment_ids: List[uuid.UUID]):
    await session.execute(delete(BookingEquipment).where(BookingEquipment.booking_id == booking_id))
    session.add_all(
        BookingEquipment(booking_id=booking_id, equipment_id=equipment_id)
        for equipment_id in set(equipment_ids)
    )


async def _read(session: AsyncSession, booking: Booking) -> BookingRead:
    result = await session.execute(
        select(BookingEquipment.equipment_id).where(BookingEquipment.booking_id == booking.id)
    )
    return BookingRead(**booking.model_dump(), equipment_ids=result.scalars().all())


def _conflict(studio_id, start, end, status_code=status.HTTP_400_BAD_REQUEST) -> HTTPException:
    # 400 for a conflict seen by the scheduler, 409 when the storage constraint trips
    logger.warning("booking_conflict", studio_id=str(studio_id), start=start.isoformat(), end=end.isoformat())
    return HTTPException(status_code=status_code, detail=CONFLICT_DETAIL)


# --- Index ---

@app.get("/")
async def api_index():
    return {
        "message": "Studio Booking Assistant API",
        "version": app.version,
        "endpoints": {
            "bookings": "/bookings",
            "studios": "/studios",
            "users": "/users",
            "equipment": "/equipment",
        },
    }


# --- Studios, users, equipment ---

@app.post("/studios", status_code=status.HTTP_201_CREATED, response_model=StudioRead)
async def create_studio(data: StudioCreate, session: AsyncSession = Depends(get_session)):
    studio = Studio(**data.model_dump(exclude_none=True))
    try:
        AvailabilityWindow(opening_hour=studio.opening_hour, closing_hour=studio.closing_hour)
    except ValidationError:
        raise HTTPException(
            status_code=422,
            detail="Opening hour must be before closing hour",
        )

    session.add(studio)
    await session.commit()
    await session.refresh(studio)
    logger.info("studio_created", studio_id=str(studio.id), name=studio.name)
    return studio


@app.get("/studios", response_model=List[StudioRead])
async def list_studios(session: AsyncSession = Depends(get_session)):
    result = await session.execute(select(Studio).order_by(Studio.name))
    return result.scalars().all()


@app.get("/studios/{studio_id}", response_model=StudioRead)
async def get_studio(studio_id: uuid.UUID, session: AsyncSession = Depends(get_session)):
    return await _get_or_404(session, Studio, studio_id, "Studio")


@app.post("/users", status_code=status.HTTP_201_CREATED, response_model=UserRead)
async def create_user(data: UserCreate, session: AsyncSession = Depends(get_session)):
    user = User(**data.model_dump())
    try:
        session.add(user)
        await session.commit()
        await session.refresh(user)
    except IntegrityError:
        await session.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")
    return user


@app.post("/equipment", status_code=status.HTTP_201_CREATED, response_model=EquipmentRead)
async def create_equipment(data: EquipmentCreate, session: AsyncSession = Depends(get_session)):
    equipment = Equipment(**data.model_dump())
    session.add(equipment)
    await session.commit()
    await session.refresh(equipment)
    return equipment


# --- Bookings ---

@app.get("/bookings", response_model=BookingPage)
async def list_bookings(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    client_id: Optional[uuid.UUID] = Query(None, alias="clientId"),
    engineer_id: Optional[uuid.UUID] = Query(None, alias="engineerId"),
    studio_id: Optional[uuid.UUID] = Query(None, alias="studioId"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    session: AsyncSession = Depends(get_session),
):
    booking_filter = BookingFilter(
        status=status_filter,
        client_id=client_id,
        engineer_id=engineer_id,
        studio_id=studio_id,
        start_date=naive_utc(start_date),
        end_date=naive_utc(end_date),
    )
    where = booking_filter.clauses()

    count_result = await session.execute(select(func.count()).select_from(Booking).where(*where))
    count = count_result.scalar_one()

    statement = (
        select(Booking)
        .where(*where)
        .order_by(Booking.start_time)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    result = await session.execute(statement)
    bookings = [await _read(session, b) for b in result.scalars().all()]

    return BookingPage(
        count=count,
        total_pages=math.ceil(count / limit),
        current_page=page,
        bookings=bookings,
    )


# Declared before /bookings/{booking_id} so the literal paths win
@app.get("/bookings/calendar", response_model=CalendarResponse)
async def calendar_bookings(
    start: datetime,
    end: datetime,
    session: AsyncSession = Depends(get_session),
):
    start, end = naive_utc(start), naive_utc(end)
    statement = (
        select(Booking, Studio, User)
        .join(Studio, Booking.studio_id == Studio.id)
        .join(User, Booking.client_id == User.id)
        .where(
            Booking.status != BookingStatus.cancelled,
            Booking.start_time <= end,
            Booking.end_time >= start,
        )
        .order_by(Booking.start_time)
    )
    result = await session.execute(statement)

    events = [
        CalendarEvent(
            id=booking.id,
            title=f"{studio.name} - {client.first_name} {client.last_name}",
            start=booking.start_time,
            end=booking.end_time,
            resource_id=booking.studio_id,
            status=booking.status,
            extended_props={
                "clientId": str(booking.client_id),
                "engineerId": str(booking.engineer_id) if booking.engineer_id else None,
                "notes": booking.notes,
            },
        )
        for booking, studio, client in result.all()
    ]
    return CalendarResponse(events=events)


@app.get("/bookings/availability", response_model=AvailabilityResponse)
async def check_availability(
    studio_id: uuid.UUID = Query(alias="studioId"),
    day: date = Query(alias="date"),
    session: AsyncSession = Depends(get_session),
):
    studio = await _get_or_404(session, Studio, studio_id, "Studio")
    window = AvailabilityWindow(opening_hour=studio.opening_hour, closing_hour=studio.closing_hour)

    start_of_day = datetime.combine(day, time.min)
    existing = await _overlapping_bookings(session, studio.id, start_of_day, start_of_day + timedelta(days=1))
    availability = compute_daily_availability(studio.id, day, window, existing)

    return AvailabilityResponse(
        day=day,
        studio_id=studio.id,
        available_slots=[SlotRead(**slot.model_dump()) for slot in availability.available_slots],
        booked_slots=[SlotRead(**slot.model_dump()) for slot in availability.booked_slots],
        opening_hour=window.opening_hour,
        closing_hour=window.closing_hour,
    )


@app.get("/bookings/{booking_id}", response_model=BookingEnvelope)
async def get_booking(booking_id: uuid.UUID, session: AsyncSession = Depends(get_session)):
    booking = await _get_or_404(session, Booking, booking_id, "Booking")
    return BookingEnvelope(booking=await _read(session, booking))


@app.post("/bookings", status_code=status.HTTP_201_CREATED, response_model=BookingEnvelope)
async def create_booking(
    booking_data: BookingCreate,
    session: AsyncSession = Depends(get_session),
):
    # Studio row stays locked until commit, so check and insert are one unit
    studio = await _get_or_404(session, Studio, booking_data.studio_id, "Studio", lock=True)
    client = await _get_or_404(
        session, User, booking_data.client_id, "Client", user_type=UserType.client
    )
    if booking_data.engineer_id:
        await _get_or_404(
            session, User, booking_data.engineer_id, "Engineer", user_type=UserType.staff
        )
    await _check_equipment(session, booking_data.equipment_ids)

    start, end = booking_data.start_time, booking_data.end_time
    existing = await _overlapping_bookings(session, studio.id, start, end)
    if has_conflict(studio.id, start, end, existing):
        raise _conflict(studio.id, start, end)

    new_booking = Booking(
        studio_id=studio.id,
        client_id=client.id,
        engineer_id=booking_data.engineer_id,
        start_time=start,
        end_time=end,
        notes=booking_data.notes,
        total_price=round(price_for_interval(studio.hourly_rate, start, end), 2),
        status=BookingStatus.pending,
    )

    try:
        session.add(new_booking)
        await session.flush()
        if booking_data.equipment_ids:
            await _link_equipment(session, new_booking.id, booking_data.equipment_ids)
        await session.commit()
        await session.refresh(new_booking)
    except IntegrityError:
        # Exclusion constraint caught a concurrent overlapping insert
        await session.rollback()
        raise _conflict(studio.id, start, end, status.HTTP_409_CONFLICT)

    logger.info(
        "booking_created",
        booking_id=str(new_booking.id),
        studio_id=str(studio.id),
        total_price=new_booking.total_price,
    )
    notifications.booking_confirmation(client, studio, new_booking)
    return BookingEnvelope(booking=await _read(session, new_booking))


@app.put("/bookings/{booking_id}", response_model=BookingEnvelope)
async def update_booking(
    booking_id: uuid.UUID,
    booking_data: BookingUpdate,
    session: AsyncSession = Depends(get_session),
):
    booking = await _get_or_404(session, Booking, booking_id, "Booking")

    if booking.status in TERMINAL_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot update a {booking.status.value} booking",
        )

    if booking_data.status is not None and not can_transition(booking.status, booking_data.status):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot change status from {booking.status.value} to {booking_data.status.value}",
        )

    studio_id = booking_data.studio_id or booking.studio_id
    start = booking_data.start_time or booking.start_time
    end = booking_data.end_time or booking.end_time
    if start >= end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Start time must be before end time",
        )

    # Only a change of studio or time can introduce a new conflict
    moved = (studio_id, start, end) != (booking.studio_id, booking.start_time, booking.end_time)
    if moved:
        studio = await _get_or_404(session, Studio, studio_id, "Studio", lock=True)
        existing = await _overlapping_bookings(session, studio_id, start, end)
        if has_conflict(studio_id, start, end, existing, exclude_booking_id=booking.id):
            raise _conflict(studio_id, start, end)
        booking.total_price = round(price_for_interval(studio.hourly_rate, start, end), 2)

    if booking_data.engineer_id is not None:
        await _get_or_404(
            session, User, booking_data.engineer_id, "Engineer", user_type=UserType.staff
        )
    if booking_data.equipment_ids is not None:
        await _check_equipment(session, booking_data.equipment_ids)

    booking.studio_id = studio_id
    booking.start_time = start
    booking.end_time = end
    if "engineer_id" in booking_data.model_fields_set:
        booking.engineer_id = booking_data.engineer_id
    if booking_data.notes is not None:
        booking.notes = booking_data.notes
    if booking_data.status is not None:
        booking.status = booking_data.status
    booking.updated_at = utcnow()

    try:
        session.add(booking)
        if booking_data.equipment_ids is not None:
            await _link_equipment(session, booking.id, booking_data.equipment_ids)
        await session.commit()
        await session.refresh(booking)
    except IntegrityError:
        await session.rollback()
        raise _conflict(studio_id, start, end, status.HTTP_409_CONFLICT)

    logger.info("booking_updated", booking_id=str(booking.id), status=booking.status.value, moved=moved)
    return BookingEnvelope(booking=await _read(session, booking))


@app.patch("/bookings/{booking_id}/cancel", response_model=CancelEnvelope)
async def cancel_booking(
    booking_id: uuid.UUID,
    cancel_data: Optional[BookingCancel] = None,
    session: AsyncSession = Depends(get_session),
):
    booking = await _get_or_404(session, Booking, booking_id, "Booking")

    if not can_transition(booking.status, BookingStatus.cancelled):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot cancel a {booking.status.value} booking",
        )

    reason = cancel_data.cancelled_reason if cancel_data else None
    booking.status = BookingStatus.cancelled
    booking.cancelled_reason = reason or "Cancelled by user"
    booking.updated_at = utcnow()

    session.add(booking)
    await session.commit()
    await session.refresh(booking)

    logger.info("booking_cancelled", booking_id=str(booking.id), reason=booking.cancelled_reason)
    client = await session.get(User, booking.client_id)
    if client is not None:
        notifications.booking_cancellation(client, booking)
    return CancelEnvelope(booking=await _read(session, booking))


app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
