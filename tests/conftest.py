import os

os.environ.setdefault("RENTAL_DB", "sqlite+aiosqlite:///./rental-test-unused.db")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["REDIS_URL"] = ""
os.environ["RABBIT_URL"] = ""
os.environ["ADMIN_EMAILS"] = "admin@example.com"

from datetime import date
from decimal import Decimal

import httpx
import pytest

from rental_service.db import Base, get_db, get_engine, get_session
from rental_service.main import app
from rental_service.models import Booking, Car, User
from rental_service.security import create_access_token, hash_password

USER_EMAIL = "alice@example.com"
OTHER_EMAIL = "bob@example.com"
ADMIN_EMAIL = "admin@example.com"


def car_fields(**overrides) -> dict:
    fields = {
        "make": "Toyota",
        "model": "Corolla",
        "year": 2022,
        "vehicle_class": "compact car",
        "fuel_type": "gas",
        "drive": "fwd",
        "transmission": "a",
        "cylinders": 4,
        "displacement": 1.8,
        "city_mpg": 30,
        "highway_mpg": 38,
        "combination_mpg": 33,
        "price_per_day": Decimal("50.00"),
        "available": True,
        "images": [],
    }
    fields.update(overrides)
    return fields


@pytest.fixture(name="engine")
async def fixture_engine(tmp_path):
    engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'rental.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture(name="session_factory")
def fixture_session_factory(engine):
    return get_session(engine)


@pytest.fixture(name="users")
async def fixture_users(session_factory):
    async with session_factory() as db:
        for email, role in ((USER_EMAIL, "user"), (OTHER_EMAIL, "user"), (ADMIN_EMAIL, "admin")):
            db.add(User(email=email, password=hash_password("password123"), role=role))
        await db.commit()
    return {"user": USER_EMAIL, "other": OTHER_EMAIL, "admin": ADMIN_EMAIL}


@pytest.fixture(name="add_car")
def fixture_add_car(session_factory):
    async def add_car(**overrides) -> int:
        async with session_factory() as db:
            car = Car(**car_fields(**overrides))
            db.add(car)
            await db.commit()
            return car.id

    return add_car


@pytest.fixture(name="add_booking")
def fixture_add_booking(session_factory):
    async def add_booking(car_id: int, start: date, end: date, status: str, user_email: str = USER_EMAIL) -> str:
        async with session_factory() as db:
            booking = Booking(
                booking_id=f"seed-{car_id}-{start.isoformat()}-{status}",
                user_email=user_email,
                car_id=car_id,
                start_date=start,
                end_date=end,
                total_price=Decimal("100.00"),
                status=status,
            )
            db.add(booking)
            await db.commit()
            return booking.booking_id

    return add_booking


@pytest.fixture(name="client")
async def fixture_client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


def auth_headers(email: str, role: str = "user") -> dict:
    return {"Authorization": f"Bearer {create_access_token(email, [role])}"}


@pytest.fixture(name="user_headers")
def fixture_user_headers(users):
    return auth_headers(USER_EMAIL)


@pytest.fixture(name="other_headers")
def fixture_other_headers(users):
    return auth_headers(OTHER_EMAIL)


@pytest.fixture(name="admin_headers")
def fixture_admin_headers(users):
    return auth_headers(ADMIN_EMAIL, "admin")
