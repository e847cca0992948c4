"""
Utility helpers for shared packages.
"""

from datetime import datetime, timezone

utc_now = lambda: datetime.now(timezone.utc)  # noqa: E731
dt_to_ms = lambda dt: int(dt.timestamp() * 1000)  # noqa: E731

__all__ = [
    "dt_to_ms",
    "utc_now",
]
