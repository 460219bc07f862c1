"""
Reservation engine.

Decides whether a date range may be booked for a car, prices it and moves
bookings through their statuses. Every function takes the caller's
AsyncSession and commits its own unit of work; errors are RentalError
subclasses which the HTTP layer renders.

Overlap is boundary-inclusive: a booking ending on day D blocks another
starting on day D. Only pending and confirmed bookings block.
"""
import math
import re
import uuid
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from dateutil import parser
from pydantic import ValidationError
from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from .errors import (
    BookingNotFound,
    CarNotFound,
    DateRangeUnavailable,
    InvalidBookingDetails,
    InvalidDateRange,
    InvalidPrice,
    InvalidStatus,
    InvalidStatusTransition,
    PastStartDate,
    Unauthorized,
)
from .models import (
    ACTIVE_STATUSES,
    BOOKING_STATUSES,
    CONFIRMED,
    PENDING,
    ROLE_ADMIN,
    Booking,
    Car,
)
from .rbac import has_role
from .schemas import ContactDetails

CENT = Decimal("0.01")
ONE_DAY = timedelta(days=1)

# a full calendar date, optionally followed by a time part
FULL_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}(?:[T ].*)?$")

# name of the PostgreSQL exclusion constraint created by the bookings migration
OVERLAP_CONSTRAINT = "ex_bookings_active_no_overlap"

# Admins may move a booking from any status to any other.
# TODO: forbid reopening completed bookings once the business rules for it are agreed.
STATUS_TRANSITIONS = {s: frozenset(BOOKING_STATUSES) for s in BOOKING_STATUSES}


# ---- pricing ----

def rental_days(start: date, end: date) -> int:
    """Whole days between start and end; a partial day counts as a full one."""
    return math.ceil((end - start) / ONE_DAY)


def compute_total_price(price_per_day, days: int) -> Decimal:
    price = price_per_day if isinstance(price_per_day, Decimal) else Decimal(str(price_per_day))
    return (price * days).quantize(CENT, rounding=ROUND_HALF_UP)


# ---- dates ----

def parse_booking_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not FULL_DATE_RE.match(text):
        raise InvalidDateRange(f"Invalid date: {value!r}")
    try:
        return parser.isoparse(text).date()
    except (ValueError, OverflowError):
        raise InvalidDateRange(f"Invalid date: {value!r}")


def ranges_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    return a_start <= b_end and a_end >= b_start


# ---- queries ----

def _overlap_clause(start: date, end: date):
    return and_(Booking.start_date <= end, Booking.end_date >= start)


async def lock_car(db: AsyncSession, car_id: int) -> Car | None:
    # FOR UPDATE on PostgreSQL; on SQLite the session already holds the write lock
    res = await db.execute(select(Car).where(Car.id == car_id).with_for_update())
    return res.scalar_one_or_none()


async def find_conflicting_booking(
    db: AsyncSession,
    car_id: int,
    start: date,
    end: date,
    exclude_id: int | None = None,
) -> Booking | None:
    stmt = select(Booking).where(
        Booking.car_id == car_id,
        Booking.status.in_(ACTIVE_STATUSES),
        _overlap_clause(start, end),
    )
    if exclude_id is not None:
        stmt = stmt.where(Booking.id != exclude_id)

    res = await db.execute(stmt.limit(1))
    return res.scalars().first()


async def get_booking_row(db: AsyncSession, booking_id: str, with_relations: bool = False) -> Booking | None:
    stmt = select(Booking).where(Booking.booking_id == booking_id)
    if with_relations:
        stmt = stmt.options(selectinload(Booking.car), selectinload(Booking.user))
    res = await db.execute(stmt)
    return res.scalar_one_or_none()


@asynccontextmanager
async def _unit_of_work(db: AsyncSession):
    try:
        yield
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        if OVERLAP_CONSTRAINT in str(e.orig):
            raise DateRangeUnavailable()
        raise
    except Exception:
        await db.rollback()
        raise


def _require_admin(actor: dict):
    if not has_role(actor or {}, [ROLE_ADMIN]):
        raise Unauthorized("Admin role required")


def _normalize_status(value) -> str:
    status = (value or "").strip().lower() if isinstance(value, str) else ""
    if status not in BOOKING_STATUSES:
        raise InvalidStatus(f"Invalid status: {value!r}. Allowed: {list(BOOKING_STATUSES)}")
    return status


# ---- operations ----

async def request_booking(
    db: AsyncSession,
    car_id: int,
    start_date,
    end_date,
    user_email: str,
    today: date | None = None,
) -> Booking:
    start = parse_booking_date(start_date)
    end = parse_booking_date(end_date)

    if start >= end:
        raise InvalidDateRange()

    if start < (today or date.today()):
        raise PastStartDate()

    async with _unit_of_work(db):
        car = await lock_car(db, car_id)
        if not car:
            raise CarNotFound()

        if await find_conflicting_booking(db, car.id, start, end):
            raise DateRangeUnavailable()

        booking = Booking(
            booking_id=str(uuid.uuid4()),
            user_email=user_email,
            car_id=car.id,
            start_date=start,
            end_date=end,
            total_price=compute_total_price(car.price_per_day, rental_days(start, end)),
            status=PENDING,
        )
        db.add(booking)

    return booking


async def complete_booking_details(
    db: AsyncSession,
    booking_id: str,
    user_email: str,
    fields: dict,
) -> Booking:
    booking = await get_booking_row(db, booking_id)
    if not booking:
        raise BookingNotFound()

    if booking.user_email != user_email:
        raise Unauthorized("You do not own this booking")

    try:
        details = ContactDetails.model_validate(fields or {})
    except ValidationError as e:
        errors = [
            {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
            for err in e.errors()
        ]
        raise InvalidBookingDetails(errors)

    async with _unit_of_work(db):
        for name, value in details.model_dump().items():
            setattr(booking, name, value)
        if booking.status == PENDING:
            booking.status = CONFIRMED

    return booking


async def change_booking_status(
    db: AsyncSession,
    booking_id: str,
    new_status: str,
    actor: dict,
    transitions: dict = STATUS_TRANSITIONS,
) -> Booking:
    _require_admin(actor)
    status = _normalize_status(new_status)

    booking = await get_booking_row(db, booking_id)
    if not booking:
        raise BookingNotFound()

    if status not in transitions.get(booking.status, ()):
        raise InvalidStatusTransition(f"Cannot move booking from {booking.status} to {status}")

    async with _unit_of_work(db):
        if status in ACTIVE_STATUSES and booking.status not in ACTIVE_STATUSES:
            # reopening a booking must not double-book the car
            await lock_car(db, booking.car_id)
            conflict = await find_conflicting_booking(
                db, booking.car_id, booking.start_date, booking.end_date, exclude_id=booking.id
            )
            if conflict:
                raise DateRangeUnavailable()
        booking.status = status

    return booking


async def update_booking(
    db: AsyncSession,
    booking_id: str,
    changes: dict,
    actor: dict,
    transitions: dict = STATUS_TRANSITIONS,
) -> Booking:
    """
    Admin edit of a booking's status, dates and total price.

    The total price is only replaced when given explicitly; changing the
    dates does not reprice the booking.
    """
    _require_admin(actor)

    booking = await get_booking_row(db, booking_id)
    if not booking:
        raise BookingNotFound()

    status = booking.status
    if changes.get("status") is not None:
        status = _normalize_status(changes["status"])
        if status not in transitions.get(booking.status, ()):
            raise InvalidStatusTransition(f"Cannot move booking from {booking.status} to {status}")

    start = booking.start_date
    end = booking.end_date
    if changes.get("start_date") is not None:
        start = parse_booking_date(changes["start_date"])
    if changes.get("end_date") is not None:
        end = parse_booking_date(changes["end_date"])
    if start >= end:
        raise InvalidDateRange()

    total_price = booking.total_price
    if changes.get("total_price") is not None:
        total_price = Decimal(str(changes["total_price"]))
        if total_price <= 0:
            raise InvalidPrice()
        total_price = total_price.quantize(CENT, rounding=ROUND_HALF_UP)

    dates_changed = (start, end) != (booking.start_date, booking.end_date)
    reopened = status in ACTIVE_STATUSES and booking.status not in ACTIVE_STATUSES

    async with _unit_of_work(db):
        if status in ACTIVE_STATUSES and (dates_changed or reopened):
            await lock_car(db, booking.car_id)
            conflict = await find_conflicting_booking(
                db, booking.car_id, start, end, exclude_id=booking.id
            )
            if conflict:
                raise DateRangeUnavailable()

        booking.status = status
        booking.start_date = start
        booking.end_date = end
        booking.total_price = total_price

    return booking


async def get_booking(db: AsyncSession, booking_id: str, actor: dict) -> Booking:
    booking = await get_booking_row(db, booking_id, with_relations=True)
    if not booking:
        raise BookingNotFound()

    if booking.user_email != actor.get("sub") and not has_role(actor, [ROLE_ADMIN]):
        raise Unauthorized("You do not own this booking")

    return booking


async def list_user_bookings(db: AsyncSession, user_email: str) -> list[Booking]:
    res = await db.execute(
        select(Booking)
        .where(Booking.user_email == user_email)
        .options(selectinload(Booking.car))
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    return list(res.scalars().all())


async def list_bookings(db: AsyncSession, status: str | None = None) -> list[Booking]:
    stmt = select(Booking).options(selectinload(Booking.car), selectinload(Booking.user))
    if status:
        stmt = stmt.where(Booking.status == _normalize_status(status))
    res = await db.execute(stmt.order_by(Booking.created_at.desc(), Booking.id.desc()))
    return list(res.scalars().all())
