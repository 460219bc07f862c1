from fastapi import status


class RentalError(Exception):
    """
    Base for business errors raised below the HTTP layer.

    Each subclass carries the HTTP status it maps to; main.py renders
    them as {"detail": ..., "code": <class name>}.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request could not be processed"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


# ---- validation (400) ----

class InvalidDateRange(RentalError):
    default_detail = "End date must be after start date"


class PastStartDate(RentalError):
    default_detail = "Start date cannot be in the past"


class InvalidStatus(RentalError):
    default_detail = "Invalid booking status"


class InvalidStatusTransition(RentalError):
    default_detail = "Status transition not allowed"


class InvalidBookingDetails(RentalError):
    default_detail = "Invalid booking details"

    def __init__(self, errors: list[dict], detail: str | None = None):
        self.errors = errors
        super().__init__(detail)


class InvalidPrice(RentalError):
    default_detail = "Total price must be positive"


# ---- business conflicts (400) ----

class DateRangeUnavailable(RentalError):
    default_detail = "Car is not available for the selected dates"


class CarHasBookings(RentalError):
    default_detail = "Car has bookings; mark it unavailable instead of deleting it"


# ---- not found (404) ----

class CarNotFound(RentalError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Car not found"


class BookingNotFound(RentalError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Booking not found"


# ---- authorization (403) ----

class Unauthorized(RentalError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Unauthorized"
