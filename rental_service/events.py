import json
import uuid
from datetime import datetime, timezone


def build_event(event_type: str, data: dict) -> dict:
    return {
        "event_id": str(uuid.uuid4()),
        "event_type": event_type,
        "occurred_at": datetime.now(timezone.utc).isoformat(),
        "data": data,
    }


def to_json(event: dict) -> str:
    return json.dumps(event, separators=(",", ":"), ensure_ascii=False, default=str)


def booking_event_data(booking) -> dict:
    return {
        "booking_id": booking.booking_id,
        "car_id": booking.car_id,
        "user_email": booking.user_email,
        "start_date": booking.start_date.isoformat(),
        "end_date": booking.end_date.isoformat(),
        "total_price": str(booking.total_price),
        "status": booking.status,
    }
