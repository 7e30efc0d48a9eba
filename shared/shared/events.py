"""
Envelope for messages on the ``domain_events`` exchange.

Routing key and ``event_type`` are always the same string, e.g.
``booking.rescheduled`` or ``availability.updated``.
"""

import json
import uuid
from datetime import datetime, timezone

SCHEMA_VERSION = 1


def build_event(event_type: str, data: dict, source: str | None = None) -> dict:
    return {
        "event_id": str(uuid.uuid4()),
        "event_type": event_type,
        "version": SCHEMA_VERSION,
        "source": source,
        "occurred_at": datetime.now(timezone.utc).isoformat(),
        "data": data,
    }


def to_json(event: dict) -> str:
    # datetimes and enums inside ``data`` fall back to str()
    return json.dumps(event, separators=(",", ":"), ensure_ascii=False, default=str)
