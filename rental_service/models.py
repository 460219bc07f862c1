from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .db import Base


def utcnow():
    return datetime.now(timezone.utc)


PENDING = "pending"
CONFIRMED = "confirmed"
COMPLETED = "completed"
CANCELLED = "cancelled"

BOOKING_STATUSES = (PENDING, CONFIRMED, COMPLETED, CANCELLED)
ACTIVE_STATUSES = (PENDING, CONFIRMED)

ROLE_USER = "user"
ROLE_ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String, unique=True, nullable=False, index=True)
    password = Column(String, nullable=False)
    name = Column(String, nullable=True)
    role = Column(String, nullable=False, default=ROLE_USER)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    bookings = relationship("Booking", back_populates="user", passive_deletes=True)


class Car(Base):
    __tablename__ = "cars"

    id = Column(Integer, primary_key=True)
    make = Column(String, nullable=False, index=True)
    model = Column(String, nullable=False, index=True)
    year = Column(Integer, nullable=False)
    vehicle_class = Column("class", String, nullable=False)
    fuel_type = Column(String, nullable=False)
    drive = Column(String, nullable=False)
    transmission = Column(String, nullable=False)
    cylinders = Column(Integer, nullable=False)
    displacement = Column(Float, nullable=False)
    city_mpg = Column(Integer, nullable=False)
    highway_mpg = Column(Integer, nullable=False)
    combination_mpg = Column(Integer, nullable=False)
    price_per_day = Column(Numeric(10, 2), nullable=False)
    available = Column(Boolean, nullable=False, default=True)
    images = Column(JSON, nullable=False, default=list)
    description = Column(Text, nullable=True)
    location = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    bookings = relationship("Booking", back_populates="car", passive_deletes=True)

    __table_args__ = (
        CheckConstraint("price_per_day > 0", name="ck_cars_price_positive"),
        CheckConstraint(
            "city_mpg > 0 AND highway_mpg > 0 AND combination_mpg > 0",
            name="ck_cars_mpg_positive",
        ),
        CheckConstraint("displacement > 0", name="ck_cars_displacement_positive"),
    )


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True)
    booking_id = Column(String, unique=True, nullable=False, index=True)

    user_email = Column(String, ForeignKey("users.email"), nullable=False, index=True)
    car_id = Column(Integer, ForeignKey("cars.id"), nullable=False, index=True)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)

    status = Column(String, nullable=False, index=True, default=PENDING)

    # filled in by the complete-booking step
    phone_number = Column(String, nullable=True)
    drivers_license_number = Column(String, nullable=True)
    pickup_location = Column(String, nullable=True)
    dropoff_location = Column(String, nullable=True)
    emergency_contact_name = Column(String, nullable=True)
    emergency_contact_phone = Column(String, nullable=True)
    special_requests = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    user = relationship("User", back_populates="bookings")
    car = relationship("Car", back_populates="bookings")

    __table_args__ = (
        CheckConstraint("start_date < end_date", name="ck_bookings_date_order"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled')",
            name="ck_bookings_status",
        ),
    )
