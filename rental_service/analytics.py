from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from .models import BOOKING_STATUSES, COMPLETED, CONFIRMED, Booking, Car, User

REVENUE_STATUSES = (CONFIRMED, COMPLETED)


async def count_rows(db: AsyncSession, model) -> int:
    return await db.scalar(select(func.count()).select_from(model))


async def total_revenue(db: AsyncSession):
    return await db.scalar(
        select(func.coalesce(func.sum(Booking.total_price), 0)).where(
            Booking.status.in_(REVENUE_STATUSES)
        )
    )


async def bookings_by_status(db: AsyncSession) -> dict:
    res = await db.execute(select(Booking.status, func.count(Booking.id)).group_by(Booking.status))
    counts = {status: 0 for status in BOOKING_STATUSES}
    for status, count in res.all():
        counts[status] = count
    return counts


async def popular_cars(db: AsyncSession, limit: int = 5) -> list[dict]:
    booking_count = func.count(Booking.id).label("bookings")
    res = await db.execute(
        select(Car.id, Car.make, Car.model, Car.year, booking_count)
        .join(Booking, Booking.car_id == Car.id)
        .group_by(Car.id, Car.make, Car.model, Car.year)
        .order_by(booking_count.desc(), Car.id.asc())
        .limit(limit)
    )
    return [
        {"car_id": car_id, "make": make, "model": model, "year": year, "bookings": count}
        for car_id, make, model, year, count in res.all()
    ]


async def recent_bookings(db: AsyncSession, limit: int = 5) -> list[Booking]:
    res = await db.execute(
        select(Booking)
        .options(selectinload(Booking.car), selectinload(Booking.user))
        .order_by(Booking.created_at.desc(), Booking.id.desc())
        .limit(limit)
    )
    return list(res.scalars().all())


async def dashboard_summary(db: AsyncSession, top: int = 5) -> dict:
    revenue = await total_revenue(db)
    return {
        "total_cars": await count_rows(db, Car),
        "total_bookings": await count_rows(db, Booking),
        "total_users": await count_rows(db, User),
        "total_revenue": str(revenue),
        "bookings_by_status": await bookings_by_status(db),
        "popular_cars": await popular_cars(db, limit=top),
    }
