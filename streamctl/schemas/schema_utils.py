"""Validators shared by the session schemas."""

from datetime import datetime
from typing import Any


def parse_mongo_datetime(v: Any) -> Any:
    """Accept Extended JSON dates (`{'$date': '2024-11-01T08:00:00Z'}`) from seeded or imported rows."""
    if isinstance(v, dict) and "$date" in v:
        return datetime.fromisoformat(str(v["$date"]).replace("Z", "+00:00"))
    return v
