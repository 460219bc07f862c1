from decimal import Decimal

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Car
from .schemas import CarFilters

SORT_COLUMNS = {
    "created_at": Car.created_at,
    "price": Car.price_per_day,
    "year": Car.year,
    "city_mpg": Car.city_mpg,
    "highway_mpg": Car.highway_mpg,
    "combination_mpg": Car.combination_mpg,
    "make": Car.make,
    "model": Car.model,
}
DEFAULT_SORT = "created_at"

MPG_COLUMNS = (Car.city_mpg, Car.highway_mpg, Car.combination_mpg)

CENT = Decimal("0.01")


def money(value) -> str:
    return str(Decimal(str(value)).quantize(CENT))


def car_to_dict(car: Car) -> dict:
    return {
        "id": car.id,
        "make": car.make,
        "model": car.model,
        "year": car.year,
        "class": car.vehicle_class,
        "fuel_type": car.fuel_type,
        "drive": car.drive,
        "transmission": car.transmission,
        "cylinders": car.cylinders,
        "displacement": car.displacement,
        "city_mpg": car.city_mpg,
        "highway_mpg": car.highway_mpg,
        "combination_mpg": car.combination_mpg,
        "price_per_day": money(car.price_per_day),
        "available": car.available,
        "description": car.description,
        "location": car.location,
        "images": list(car.images or []),
    }


def car_summary(car: Car) -> dict:
    return {
        "id": car.id,
        "make": car.make,
        "model": car.model,
        "year": car.year,
        "price_per_day": money(car.price_per_day),
        "images": list(car.images or []),
    }


def _between(column, low, high):
    bounds = []
    if low is not None:
        bounds.append(column >= low)
    if high is not None:
        bounds.append(column <= high)
    return and_(*bounds)


def build_conditions(filters: CarFilters) -> list:
    """
    (free-text OR group) AND equality filters AND range filters.
    The MPG range matches when any of the three MPG figures is in range.
    """
    conditions = []

    if filters.q:
        q = filters.q.strip()
        if q:
            conditions.append(
                or_(
                    Car.make.icontains(q, autoescape=True),
                    Car.model.icontains(q, autoescape=True),
                    Car.vehicle_class.icontains(q, autoescape=True),
                    Car.fuel_type.icontains(q, autoescape=True),
                    Car.description.icontains(q, autoescape=True),
                )
            )

    if filters.make:
        conditions.append(func.lower(Car.make) == filters.make.strip().lower())
    if filters.model:
        conditions.append(func.lower(Car.model) == filters.model.strip().lower())
    if filters.year is not None:
        conditions.append(Car.year == filters.year)
    if filters.vehicle_class:
        conditions.append(Car.vehicle_class == filters.vehicle_class)
    if filters.fuel_type:
        conditions.append(Car.fuel_type == filters.fuel_type)
    if filters.drive:
        conditions.append(Car.drive == filters.drive)
    if filters.transmission:
        conditions.append(Car.transmission == filters.transmission)
    if filters.available is not None:
        conditions.append(Car.available.is_(filters.available))

    if filters.min_price is not None or filters.max_price is not None:
        conditions.append(_between(Car.price_per_day, filters.min_price, filters.max_price))

    if filters.min_year is not None or filters.max_year is not None:
        conditions.append(_between(Car.year, filters.min_year, filters.max_year))

    if filters.min_mpg is not None or filters.max_mpg is not None:
        conditions.append(
            or_(*[_between(col, filters.min_mpg, filters.max_mpg) for col in MPG_COLUMNS])
        )

    return conditions


def order_clause(sort_by: str, sort_order: str):
    column = SORT_COLUMNS.get((sort_by or "").lower(), SORT_COLUMNS[DEFAULT_SORT])
    if (sort_order or "").lower() == "asc":
        return column.asc(), Car.id.asc()
    return column.desc(), Car.id.desc()


async def list_available_cars(db: AsyncSession, filters: CarFilters) -> dict:
    conditions = build_conditions(filters)

    total = await db.scalar(select(func.count()).select_from(Car).where(*conditions))

    res = await db.execute(
        select(Car)
        .where(*conditions)
        .order_by(*order_clause(filters.sort_by, filters.sort_order))
        .limit(filters.limit)
        .offset(filters.offset)
    )
    cars = res.scalars().all()

    return {
        "cars": [car_to_dict(car) for car in cars],
        "total": total,
        "limit": filters.limit,
        "offset": filters.offset,
        "hasMore": filters.offset + filters.limit < total,
    }
