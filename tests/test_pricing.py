from datetime import date, datetime
from decimal import Decimal

import pytest

from rental_service.errors import InvalidDateRange
from rental_service.reservations import (
    compute_total_price,
    parse_booking_date,
    ranges_overlap,
    rental_days,
)


def test_three_day_rental_at_fifty_costs_one_fifty():
    days = rental_days(date(2025, 7, 1), date(2025, 7, 4))
    assert days == 3
    assert compute_total_price(Decimal("50.00"), days) == Decimal("150.00")


def test_partial_day_counts_as_full_day():
    assert rental_days(datetime(2025, 7, 1, 10), datetime(2025, 7, 2, 11)) == 2
    assert rental_days(datetime(2025, 7, 1, 10), datetime(2025, 7, 2, 10)) == 1


def test_price_is_quantized_to_cents():
    assert compute_total_price(Decimal("33.33"), 3) == Decimal("99.99")
    assert compute_total_price(49.99, 2) == Decimal("99.98")
    assert str(compute_total_price(Decimal("50"), 1)) == "50.00"


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2025-06-01", date(2025, 6, 1)),
        ("2025-06-01T15:30:00Z", date(2025, 6, 1)),
        (date(2025, 6, 1), date(2025, 6, 1)),
        (datetime(2025, 6, 1, 23, 59), date(2025, 6, 1)),
    ],
)
def test_parse_booking_date(value, expected):
    assert parse_booking_date(value) == expected


@pytest.mark.parametrize("value", ["", "not-a-date", "2025-13-01", "2025-02-30", "2025", "2025-06", "20250601", None])
def test_parse_booking_date_rejects_garbage(value):
    with pytest.raises(InvalidDateRange):
        parse_booking_date(value)


def test_overlap_is_boundary_inclusive():
    existing = (date(2025, 6, 1), date(2025, 6, 5))
    assert ranges_overlap(*existing, date(2025, 6, 5), date(2025, 6, 10))
    assert ranges_overlap(*existing, date(2025, 5, 28), date(2025, 6, 1))
    assert ranges_overlap(*existing, date(2025, 6, 2), date(2025, 6, 3))
    assert not ranges_overlap(*existing, date(2025, 6, 6), date(2025, 6, 10))
    assert not ranges_overlap(*existing, date(2025, 5, 20), date(2025, 5, 31))
