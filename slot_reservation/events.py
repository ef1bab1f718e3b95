import json
import uuid
from datetime import datetime, timezone

from .models import Reservation


def build_event(event_type: str, data: dict) -> dict:
    return {
        "event_id": str(uuid.uuid4()),
        "event_type": event_type,
        "occurred_at": datetime.now(timezone.utc).isoformat(),
        "data": data,
    }


def to_json(event: dict) -> str:
    return json.dumps(event, separators=(",", ":"), ensure_ascii=False)


def reservation_data(res: Reservation) -> dict:
    return {
        "reservation_id": res.id,
        "resource_id": res.resource_id,
        "subject_id": res.subject_id,
        "owner_id": res.owner_id,
        "start_at": res.start_at.isoformat(),
        "end_at": res.end_at.isoformat(),
        "status": res.status,
        "price": str(res.price) if res.price is not None else None,
    }


def reservation_event(event_type: str, res: Reservation) -> dict:
    return build_event(event_type, reservation_data(res))
