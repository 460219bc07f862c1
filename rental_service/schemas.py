from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MIN_YEAR = 1900


def check_model_year(v):
    if v is not None and v > datetime.now().year + 1:
        raise ValueError(f"Year must be at most {datetime.now().year + 1}")
    return v


# ---- Auth ----

class Register(BaseModel):
    email: str
    password: str = Field(min_length=8)
    name: Optional[str] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = (v or "").strip().lower()
        if "@" not in v:
            raise ValueError("Invalid email address")
        return v


class Login(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    email: str
    name: Optional[str] = None
    role: str
    created_at: datetime


class UpdateUser(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    role: Optional[str] = None

    @field_validator("role")
    @classmethod
    def check_role(cls, v):
        if v is None:
            return v
        v = v.strip().lower()
        if v not in ("user", "admin"):
            raise ValueError("Invalid role. Allowed: ['admin', 'user']")
        return v


# ---- Cars ----

class CarCreate(BaseModel):
    make: str = Field(min_length=1)
    model: str = Field(min_length=1)
    year: int = Field(ge=MIN_YEAR)
    vehicle_class: str = Field(min_length=1, alias="class")
    fuel_type: str = Field(min_length=1)
    drive: str = Field(min_length=1)
    transmission: str = Field(min_length=1)
    cylinders: int = Field(gt=0)
    displacement: float = Field(gt=0)
    city_mpg: int = Field(gt=0)
    highway_mpg: int = Field(gt=0)
    combination_mpg: int = Field(gt=0)
    price_per_day: Decimal = Field(default=Decimal("50.00"), gt=0, max_digits=10, decimal_places=2)
    available: bool = True
    description: Optional[str] = None
    location: Optional[str] = None
    images: List[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("year")
    @classmethod
    def check_year(cls, v):
        return check_model_year(v)


class CarUpdate(BaseModel):
    make: Optional[str] = Field(default=None, min_length=1)
    model: Optional[str] = Field(default=None, min_length=1)
    year: Optional[int] = Field(default=None, ge=MIN_YEAR)
    vehicle_class: Optional[str] = Field(default=None, min_length=1, alias="class")
    fuel_type: Optional[str] = Field(default=None, min_length=1)
    drive: Optional[str] = Field(default=None, min_length=1)
    transmission: Optional[str] = Field(default=None, min_length=1)
    cylinders: Optional[int] = Field(default=None, gt=0)
    displacement: Optional[float] = Field(default=None, gt=0)
    city_mpg: Optional[int] = Field(default=None, gt=0)
    highway_mpg: Optional[int] = Field(default=None, gt=0)
    combination_mpg: Optional[int] = Field(default=None, gt=0)
    price_per_day: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    available: Optional[bool] = None
    description: Optional[str] = None
    location: Optional[str] = None
    images: Optional[List[str]] = None

    model_config = ConfigDict(populate_by_name=True)

    @field_validator(
        "make", "model", "year", "vehicle_class", "fuel_type", "drive", "transmission",
        "cylinders", "displacement", "city_mpg", "highway_mpg", "combination_mpg",
        "price_per_day", "available",
        mode="before",
    )
    @classmethod
    def reject_null(cls, v):
        # omit a field to leave it unchanged; these columns are NOT NULL
        if v is None:
            raise ValueError("Field cannot be null")
        return v

    @field_validator("year")
    @classmethod
    def check_year(cls, v):
        return check_model_year(v)


class CarFilters(BaseModel):
    q: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    vehicle_class: Optional[str] = None
    fuel_type: Optional[str] = None
    drive: Optional[str] = None
    transmission: Optional[str] = None
    available: Optional[bool] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    min_year: Optional[int] = None
    max_year: Optional[int] = None
    min_mpg: Optional[int] = None
    max_mpg: Optional[int] = None
    sort_by: str = "created_at"
    sort_order: str = "desc"
    limit: int = 10
    offset: int = 0


# ---- Bookings ----

class CreateBookingRequest(BaseModel):
    car_id: int
    start_date: str
    end_date: str


class ContactDetails(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    phone_number: str = Field(min_length=10)
    drivers_license_number: str = Field(min_length=5)
    pickup_location: str = Field(min_length=1)
    dropoff_location: str = Field(min_length=1)
    emergency_contact_name: str = Field(min_length=2)
    emergency_contact_phone: str = Field(min_length=10)
    special_requests: Optional[str] = None


class UpdateBookingStatus(BaseModel):
    status: str


class UpdateBooking(BaseModel):
    status: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    total_price: Optional[Decimal] = Field(default=None, max_digits=10, decimal_places=2)


class BookingResponse(BaseModel):
    booking_id: str
    user_email: str
    car_id: int
    start_date: date
    end_date: date
    total_price: Decimal
    status: str
    created_at: datetime
    updated_at: datetime
    phone_number: Optional[str] = None
    drivers_license_number: Optional[str] = None
    pickup_location: Optional[str] = None
    dropoff_location: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    special_requests: Optional[str] = None
    car: Optional[dict] = None
    user: Optional[UserResponse] = None
