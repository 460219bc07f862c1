import json
from decimal import Decimal
from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .cache import catalog_cache_key, get_cached_result, set_cache
from .catalog import car_summary, car_to_dict, list_available_cars
from .config import ADMIN_EMAILS
from .db import get_db
from .errors import CarNotFound
from .events import booking_event_data, build_event, to_json
from .models import ROLE_ADMIN, ROLE_USER, Booking, Car, User
from .publisher import publisher
from .rbac import require_role
from .reservations import (
    complete_booking_details,
    get_booking,
    list_user_bookings,
    request_booking,
)
from .schemas import (
    BookingResponse,
    CarFilters,
    CreateBookingRequest,
    Login,
    Register,
    TokenResponse,
    UserResponse,
)
from .security import create_access_token, get_current_user, hash_password, verify_password

router = APIRouter()


def booking_response(booking: Booking, car: Car | None = None, user: User | None = None) -> BookingResponse:
    return BookingResponse(
        booking_id=booking.booking_id,
        user_email=booking.user_email,
        car_id=booking.car_id,
        start_date=booking.start_date,
        end_date=booking.end_date,
        total_price=booking.total_price,
        status=booking.status,
        created_at=booking.created_at,
        updated_at=booking.updated_at,
        phone_number=booking.phone_number,
        drivers_license_number=booking.drivers_license_number,
        pickup_location=booking.pickup_location,
        dropoff_location=booking.dropoff_location,
        emergency_contact_name=booking.emergency_contact_name,
        emergency_contact_phone=booking.emergency_contact_phone,
        special_requests=booking.special_requests,
        car=car_summary(car) if car else None,
        user=UserResponse.model_validate(user) if user else None,
    )


async def publish_booking_event(event_type: str, booking: Booking):
    event = build_event(event_type, booking_event_data(booking))
    await publisher.publish(event_type, to_json(event))


# ================= AUTH =================

@router.post("/register", status_code=status.HTTP_201_CREATED, tags=["Auth"])
async def register(data: Register, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).where(User.email == data.email))
    existing = result.scalar_one_or_none()

    if existing:
        raise HTTPException(status_code=400, detail="Email already exists")

    user = User(
        email=data.email,
        password=hash_password(data.password),
        name=data.name,
        role=ROLE_ADMIN if data.email in ADMIN_EMAILS else ROLE_USER,
    )
    db.add(user)
    await db.commit()

    return {"message": "User registered"}


@router.post("/login", response_model=TokenResponse, tags=["Auth"])
async def login(data: Login, db: AsyncSession = Depends(get_db)):
    email = (data.email or "").strip().lower()
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(data.password, user.password):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    return TokenResponse(access_token=create_access_token(user.email, [user.role]))


# ================= CARS =================

def car_filters(
    q: Optional[str] = None,
    make: Optional[str] = None,
    model: Optional[str] = None,
    year: Optional[int] = None,
    vehicle_class: Optional[str] = Query(None, alias="class"),
    fuel_type: Optional[str] = None,
    drive: Optional[str] = None,
    transmission: Optional[str] = None,
    available: Optional[bool] = None,
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    min_year: Optional[int] = None,
    max_year: Optional[int] = None,
    min_mpg: Optional[int] = None,
    max_mpg: Optional[int] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> CarFilters:
    return CarFilters(
        q=q,
        make=make,
        model=model,
        year=year,
        vehicle_class=vehicle_class,
        fuel_type=fuel_type,
        drive=drive,
        transmission=transmission,
        available=available,
        min_price=min_price,
        max_price=max_price,
        min_year=min_year,
        max_year=max_year,
        min_mpg=min_mpg,
        max_mpg=max_mpg,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
        offset=offset,
    )


@router.get("/cars", tags=["Cars"])
async def list_cars(filters: CarFilters = Depends(car_filters), db: AsyncSession = Depends(get_db)):
    key = catalog_cache_key(filters.model_dump())

    cached = await get_cached_result(key)
    if cached:
        return json.loads(cached)

    page = await list_available_cars(db, filters)
    await set_cache(key, json.dumps(page))
    return page


@router.get("/cars/{car_id}", tags=["Cars"])
async def get_car(car_id: int, db: AsyncSession = Depends(get_db)):
    car = await db.get(Car, car_id)
    if not car:
        raise CarNotFound()
    return car_to_dict(car)


# ================= BOOKINGS =================

@router.get("/bookings", response_model=List[BookingResponse], tags=["Bookings"])
async def my_bookings(db: AsyncSession = Depends(get_db), user=Depends(get_current_user)):
    require_role(user, [ROLE_USER, ROLE_ADMIN])
    bookings = await list_user_bookings(db, user["sub"])
    return [booking_response(b, car=b.car) for b in bookings]


@router.post(
    "/bookings",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Bookings"],
)
async def create_booking(
    data: CreateBookingRequest,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    require_role(user, [ROLE_USER, ROLE_ADMIN])

    booking = await request_booking(db, data.car_id, data.start_date, data.end_date, user["sub"])
    await publish_booking_event("booking.created", booking)

    return booking_response(booking)


@router.get("/bookings/{booking_id}", response_model=BookingResponse, tags=["Bookings"])
async def read_booking(booking_id: str, db: AsyncSession = Depends(get_db), user=Depends(get_current_user)):
    booking = await get_booking(db, booking_id, user)
    return booking_response(booking, car=booking.car)


@router.post("/bookings/{booking_id}/complete", response_model=BookingResponse, tags=["Bookings"])
async def complete_booking(
    booking_id: str,
    payload: Any = Body(default=None),
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    # fields are validated by the engine, after the ownership check
    booking = await complete_booking_details(
        db, booking_id, user["sub"], payload if isinstance(payload, dict) else {}
    )
    await publish_booking_event("booking.details_completed", booking)

    return booking_response(booking)
