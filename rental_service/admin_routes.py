from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .analytics import dashboard_summary, recent_bookings
from .catalog import car_to_dict
from .db import get_db
from .errors import CarHasBookings, CarNotFound
from .models import Booking, Car, User
from .rbac import require_admin
from .reservations import change_booking_status, list_bookings, update_booking
from .routes import booking_response, publish_booking_event
from .schemas import (
    BookingResponse,
    CarCreate,
    CarUpdate,
    UpdateBooking,
    UpdateBookingStatus,
    UpdateUser,
    UserResponse,
)

router = APIRouter(prefix="/admin")


# ================= CARS =================

@router.post("/cars", status_code=status.HTTP_201_CREATED, tags=["Admin"])
async def create_car(data: CarCreate, db: AsyncSession = Depends(get_db), admin=Depends(require_admin)):
    car = Car(**data.model_dump())
    db.add(car)
    await db.commit()
    return car_to_dict(car)


@router.patch("/cars/{car_id}", tags=["Admin"])
async def update_car(
    car_id: int,
    data: CarUpdate,
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_admin),
):
    car = await db.get(Car, car_id)
    if not car:
        raise CarNotFound()

    for name, value in data.model_dump(exclude_unset=True).items():
        if name == "images" and value is None:
            value = []
        setattr(car, name, value)

    await db.commit()
    await db.refresh(car)
    return car_to_dict(car)


@router.delete("/cars/{car_id}", tags=["Admin"])
async def delete_car(car_id: int, db: AsyncSession = Depends(get_db), admin=Depends(require_admin)):
    car = await db.get(Car, car_id)
    if not car:
        raise CarNotFound()

    booking_count = await db.scalar(
        select(func.count()).select_from(Booking).where(Booking.car_id == car_id)
    )
    if booking_count:
        raise CarHasBookings()

    await db.delete(car)
    await db.commit()
    return {"message": "Car deleted"}


# ================= BOOKINGS =================

@router.get("/bookings", response_model=List[BookingResponse], tags=["Admin"])
async def all_bookings(
    status: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_admin),
):
    bookings = await list_bookings(db, status)
    return [booking_response(b, car=b.car, user=b.user) for b in bookings]


@router.patch("/bookings/{booking_id}/status", response_model=BookingResponse, tags=["Admin"])
async def set_booking_status(
    booking_id: str,
    data: UpdateBookingStatus,
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_admin),
):
    booking = await change_booking_status(db, booking_id, data.status, admin)
    await publish_booking_event("booking.status_changed", booking)
    return booking_response(booking)


@router.patch("/bookings/{booking_id}", response_model=BookingResponse, tags=["Admin"])
async def edit_booking(
    booking_id: str,
    data: UpdateBooking,
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_admin),
):
    booking = await update_booking(db, booking_id, data.model_dump(exclude_unset=True), admin)
    await publish_booking_event("booking.updated", booking)
    return booking_response(booking)


# ================= USERS =================

@router.get("/users", response_model=List[UserResponse], tags=["Admin"])
async def list_users(db: AsyncSession = Depends(get_db), admin=Depends(require_admin)):
    result = await db.execute(select(User).order_by(User.created_at.desc(), User.id.desc()))
    return [UserResponse.model_validate(u) for u in result.scalars().all()]


@router.patch("/users/{email}", response_model=UserResponse, tags=["Admin"])
async def update_user(
    email: str,
    data: UpdateUser,
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_admin),
):
    result = await db.execute(select(User).where(User.email == email.lower()))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    for name, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(user, name, value)

    await db.commit()
    return UserResponse.model_validate(user)


@router.delete("/users/{email}", tags=["Admin"])
async def delete_user(email: str, db: AsyncSession = Depends(get_db), admin=Depends(require_admin)):
    email = email.lower()
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    if user.email == admin.get("sub"):
        raise HTTPException(status_code=400, detail="Cannot delete your own account")

    booking_count = await db.scalar(
        select(func.count()).select_from(Booking).where(Booking.user_email == email)
    )
    if booking_count:
        raise HTTPException(status_code=400, detail="User has bookings and cannot be deleted")

    await db.delete(user)
    await db.commit()
    return {"message": "User deleted"}


# ================= ANALYTICS =================

@router.get("/analytics", tags=["Admin"])
async def analytics(top: int = 5, db: AsyncSession = Depends(get_db), admin=Depends(require_admin)):
    summary = await dashboard_summary(db, top=top)
    recent = await recent_bookings(db)
    summary["recent_bookings"] = [
        booking_response(b, car=b.car, user=b.user).model_dump(mode="json") for b in recent
    ]
    return summary
