"""Resolve relative alerting windows to absolute time ranges."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from .models import RawTimeRange, RelativeTimeRange, TimeRange

_UNITS = (
    ("w", 7 * 24 * 3600),
    ("d", 24 * 3600),
    ("h", 3600),
    ("m", 60),
)


def seconds_to_relative(seconds: int) -> str:
    """Render seconds-ago as a ``now-<n><unit>`` expression."""
    if seconds <= 0:
        return "now"
    for unit, size in _UNITS:
        if seconds % size == 0:
            return f"now-{seconds // size}{unit}"
    return f"now-{seconds}s"


def relative_to_time_range(
    relative: Optional[RelativeTimeRange], now: Optional[datetime] = None
) -> TimeRange:
    """Resolve ``relative`` against ``now`` (UTC when omitted).

    A missing relative range resolves with the default alerting window.
    """
    relative = relative or RelativeTimeRange()
    now = now or datetime.now(timezone.utc)

    return TimeRange(
        from_=now - timedelta(seconds=relative.from_),
        to=now - timedelta(seconds=relative.to),
        raw=RawTimeRange(
            from_=seconds_to_relative(relative.from_),
            to=seconds_to_relative(relative.to),
        ),
    )
