import asyncio
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from conftest import ADMIN_EMAIL, OTHER_EMAIL, USER_EMAIL
from rental_service.errors import (
    BookingNotFound,
    CarNotFound,
    DateRangeUnavailable,
    InvalidBookingDetails,
    InvalidDateRange,
    InvalidStatus,
    InvalidStatusTransition,
    PastStartDate,
    Unauthorized,
)
from rental_service.models import Booking, Car
from rental_service.reservations import (
    change_booking_status,
    complete_booking_details,
    request_booking,
    update_booking,
)

TODAY = date(2025, 5, 1)

ADMIN = {"sub": ADMIN_EMAIL, "roles": ["admin"]}
CUSTOMER = {"sub": USER_EMAIL, "roles": ["user"]}

CONTACT = {
    "phone_number": "5551234567",
    "drivers_license_number": "D1234567",
    "pickup_location": "Airport",
    "dropoff_location": "Downtown",
    "emergency_contact_name": "Carol",
    "emergency_contact_phone": "5557654321",
}


@pytest.fixture(name="book")
def fixture_book(session_factory, users):
    async def book(car_id, start, end, user_email=USER_EMAIL, today=TODAY):
        async with session_factory() as db:
            return await request_booking(db, car_id, start, end, user_email, today=today)

    return book


async def test_successful_booking_is_pending_and_priced(book, add_car):
    car_id = await add_car(price_per_day=Decimal("50.00"))

    booking = await book(car_id, "2025-07-01", "2025-07-04")

    assert booking.status == "pending"
    assert booking.total_price == Decimal("150.00")
    assert booking.start_date == date(2025, 7, 1)
    assert booking.end_date == date(2025, 7, 4)
    assert booking.user_email == USER_EMAIL
    assert booking.booking_id


async def test_price_uses_current_price_per_day(book, add_car, session_factory):
    car_id = await add_car(price_per_day=Decimal("80.00"))
    first = await book(car_id, "2025-07-01", "2025-07-03")

    async with session_factory() as db:
        car = await db.get(Car, car_id)
        car.price_per_day = Decimal("95.50")
        await db.commit()

    second = await book(car_id, "2025-08-01", "2025-08-03")

    assert first.total_price == Decimal("160.00")
    assert second.total_price == Decimal("191.00")


@pytest.mark.parametrize(
    "start, end",
    [("2025-07-04", "2025-07-01"), ("2025-07-01", "2025-07-01"), ("garbage", "2025-07-01")],
)
async def test_invalid_range_is_rejected(book, add_car, start, end):
    car_id = await add_car()
    with pytest.raises(InvalidDateRange):
        await book(car_id, start, end)


async def test_past_start_is_rejected_regardless_of_end(book, add_car):
    car_id = await add_car()
    with pytest.raises(PastStartDate):
        await book(car_id, "2025-04-30", "2025-09-01")


async def test_start_today_is_allowed(book, add_car):
    car_id = await add_car()
    booking = await book(car_id, "2025-05-01", "2025-05-02")
    assert booking.total_price == Decimal("50.00")


async def test_date_checks_run_before_car_lookup(book):
    with pytest.raises(InvalidDateRange):
        await book(9999, "2025-07-04", "2025-07-01")
    with pytest.raises(PastStartDate):
        await book(9999, "2025-01-01", "2025-07-01")


async def test_unknown_car(book):
    with pytest.raises(CarNotFound):
        await book(9999, "2025-07-01", "2025-07-04")


async def test_confirmed_booking_blocks_shared_boundary_day(book, add_car, add_booking):
    car_id = await add_car()
    await add_booking(car_id, date(2025, 6, 1), date(2025, 6, 5), "confirmed")

    with pytest.raises(DateRangeUnavailable):
        await book(car_id, "2025-06-05", "2025-06-10")


async def test_pending_booking_blocks_overlap(book, add_car, add_booking):
    car_id = await add_car()
    await add_booking(car_id, date(2025, 6, 1), date(2025, 6, 5), "pending")

    with pytest.raises(DateRangeUnavailable):
        await book(car_id, "2025-05-28", "2025-06-02")


@pytest.mark.parametrize("status", ["cancelled", "completed"])
async def test_inactive_bookings_do_not_block(book, add_car, add_booking, status):
    car_id = await add_car()
    await add_booking(car_id, date(2025, 6, 1), date(2025, 6, 5), status)

    booking = await book(car_id, "2025-06-01", "2025-06-05")
    assert booking.status == "pending"


async def test_bookings_on_other_cars_do_not_block(book, add_car, add_booking):
    car_a = await add_car()
    car_b = await add_car(make="Honda", model="Civic")
    await add_booking(car_a, date(2025, 6, 1), date(2025, 6, 5), "confirmed")

    booking = await book(car_b, "2025-06-01", "2025-06-05")
    assert booking.car_id == car_b


async def test_concurrent_overlapping_requests_admit_at_most_one(session_factory, users, add_car):
    car_id = await add_car()

    async def attempt(start, end, email):
        async with session_factory() as db:
            try:
                return await request_booking(db, car_id, start, end, email, today=TODAY)
            except DateRangeUnavailable:
                return None

    results = await asyncio.gather(
        attempt("2025-08-01", "2025-08-05", USER_EMAIL),
        attempt("2025-08-03", "2025-08-08", OTHER_EMAIL),
        attempt("2025-08-04", "2025-08-06", USER_EMAIL),
    )

    assert sum(r is not None for r in results) == 1

    async with session_factory() as db:
        count = await db.scalar(
            select(func.count()).select_from(Booking).where(Booking.car_id == car_id)
        )
    assert count == 1


# ---- complete booking details ----

async def test_complete_details_confirms_pending_booking(book, add_car, session_factory):
    car_id = await add_car()
    booking = await book(car_id, "2025-07-01", "2025-07-04")

    async with session_factory() as db:
        updated = await complete_booking_details(
            db, booking.booking_id, USER_EMAIL, {**CONTACT, "special_requests": "Child seat"}
        )

    assert updated.status == "confirmed"
    assert updated.phone_number == "5551234567"
    assert updated.pickup_location == "Airport"
    assert updated.special_requests == "Child seat"


async def test_complete_details_keeps_non_pending_status(add_car, add_booking, session_factory, users):
    car_id = await add_car()
    booking_id = await add_booking(car_id, date(2025, 6, 1), date(2025, 6, 5), "completed")

    async with session_factory() as db:
        updated = await complete_booking_details(db, booking_id, USER_EMAIL, CONTACT)

    assert updated.status == "completed"
    assert updated.drivers_license_number == "D1234567"


async def test_complete_details_by_other_user_is_unauthorized_even_with_bad_fields(
    book, add_car, session_factory
):
    car_id = await add_car()
    booking = await book(car_id, "2025-07-01", "2025-07-04")

    async with session_factory() as db:
        with pytest.raises(Unauthorized):
            await complete_booking_details(db, booking.booking_id, OTHER_EMAIL, CONTACT)
        with pytest.raises(Unauthorized):
            await complete_booking_details(db, booking.booking_id, OTHER_EMAIL, {"phone_number": "1"})


async def test_complete_details_validates_fields(book, add_car, session_factory):
    car_id = await add_car()
    booking = await book(car_id, "2025-07-01", "2025-07-04")

    async with session_factory() as db:
        with pytest.raises(InvalidBookingDetails) as exc_info:
            await complete_booking_details(
                db, booking.booking_id, USER_EMAIL, {**CONTACT, "phone_number": "123", "pickup_location": "   "}
            )

    failed = {tuple(e["loc"]) for e in exc_info.value.errors}
    assert ("phone_number",) in failed
    assert ("pickup_location",) in failed

    async with session_factory() as db:
        row = await db.scalar(select(Booking).where(Booking.booking_id == booking.booking_id))
    assert row.status == "pending"


async def test_complete_details_unknown_booking(session_factory, users):
    async with session_factory() as db:
        with pytest.raises(BookingNotFound):
            await complete_booking_details(db, "missing", USER_EMAIL, CONTACT)


# ---- status changes ----

@pytest.mark.parametrize("target", ["pending", "confirmed", "completed", "cancelled", "bogus"])
async def test_non_admin_cannot_change_status(book, add_car, session_factory, target):
    car_id = await add_car()
    booking = await book(car_id, "2025-07-01", "2025-07-04")

    async with session_factory() as db:
        with pytest.raises(Unauthorized):
            await change_booking_status(db, booking.booking_id, target, CUSTOMER)


async def test_admin_can_move_between_any_statuses(book, add_car, session_factory):
    car_id = await add_car()
    booking = await book(car_id, "2025-07-01", "2025-07-04")

    for target in ("confirmed", "completed", "pending", "cancelled", "confirmed"):
        async with session_factory() as db:
            updated = await change_booking_status(db, booking.booking_id, target, ADMIN)
        assert updated.status == target


async def test_admin_status_change_rejects_unknown_status(book, add_car, session_factory):
    car_id = await add_car()
    booking = await book(car_id, "2025-07-01", "2025-07-04")

    async with session_factory() as db:
        with pytest.raises(InvalidStatus):
            await change_booking_status(db, booking.booking_id, "archived", ADMIN)


async def test_admin_status_change_unknown_booking(session_factory, users):
    async with session_factory() as db:
        with pytest.raises(BookingNotFound):
            await change_booking_status(db, "missing", "confirmed", ADMIN)


async def test_transition_table_is_enforced_when_restricted(book, add_car, session_factory):
    car_id = await add_car()
    booking = await book(car_id, "2025-07-01", "2025-07-04")
    no_reopen = {
        "pending": {"confirmed", "cancelled"},
        "confirmed": {"completed", "cancelled"},
        "completed": set(),
        "cancelled": set(),
    }

    async with session_factory() as db:
        with pytest.raises(InvalidStatusTransition):
            await change_booking_status(db, booking.booking_id, "completed", ADMIN, transitions=no_reopen)


async def test_reopening_cancelled_booking_checks_overlap(book, add_car, add_booking, session_factory):
    car_id = await add_car()
    cancelled_id = await add_booking(car_id, date(2025, 6, 1), date(2025, 6, 5), "cancelled")
    await book(car_id, "2025-06-03", "2025-06-08")

    async with session_factory() as db:
        with pytest.raises(DateRangeUnavailable):
            await change_booking_status(db, cancelled_id, "pending", ADMIN)

    async with session_factory() as db:
        updated = await change_booking_status(db, cancelled_id, "completed", ADMIN)
    assert updated.status == "completed"


# ---- admin edits ----

async def test_admin_update_keeps_price_unless_given(book, add_car, session_factory):
    car_id = await add_car()
    booking = await book(car_id, "2025-07-01", "2025-07-04")

    async with session_factory() as db:
        moved = await update_booking(
            db, booking.booking_id, {"start_date": "2025-07-02", "end_date": "2025-07-06"}, ADMIN
        )
    assert moved.total_price == Decimal("150.00")
    assert moved.end_date == date(2025, 7, 6)

    async with session_factory() as db:
        repriced = await update_booking(db, booking.booking_id, {"total_price": Decimal("120")}, ADMIN)
    assert repriced.total_price == Decimal("120.00")


async def test_admin_update_rejects_bad_range_and_overlap(book, add_car, session_factory):
    car_id = await add_car()
    first = await book(car_id, "2025-07-01", "2025-07-04")
    await book(car_id, "2025-07-10", "2025-07-12")

    async with session_factory() as db:
        with pytest.raises(InvalidDateRange):
            await update_booking(db, first.booking_id, {"end_date": "2025-06-30"}, ADMIN)

    async with session_factory() as db:
        with pytest.raises(DateRangeUnavailable):
            await update_booking(db, first.booking_id, {"end_date": "2025-07-10"}, ADMIN)


async def test_admin_update_requires_admin(book, add_car, session_factory):
    car_id = await add_car()
    booking = await book(car_id, "2025-07-01", "2025-07-04")

    async with session_factory() as db:
        with pytest.raises(Unauthorized):
            await update_booking(db, booking.booking_id, {"total_price": Decimal("1")}, CUSTOMER)
