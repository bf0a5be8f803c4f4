import json
import uuid
from datetime import datetime, timezone


def build_event(event_type: str, data: dict, event_id: str | None = None, occurred_at: datetime | None = None) -> dict:
    return {
        "event_id": event_id or str(uuid.uuid4()),
        "event_type": event_type,
        "occurred_at": (occurred_at or datetime.now(timezone.utc)).isoformat(),
        "data": data,
    }


def to_json(event: dict) -> str:
    return json.dumps(event, separators=(",", ":"), ensure_ascii=False, default=str)


def routing_key_for(event_type: str) -> str:
    return f"booking.{event_type.lower()}"
