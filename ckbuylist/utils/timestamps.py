"""
CK Buylist: Run timestamp rendering

Internally a run's timestamp is an aware ``datetime``. It is only turned
into sheet text (or a Sheets date-time serial) at the write boundary.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from ckbuylist.config import TimestampFormat

# Day zero of the Sheets / Excel date system.
_SHEETS_EPOCH = datetime(1899, 12, 30)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_local(run_at: datetime, tz_name: str) -> datetime:
    if run_at.tzinfo is None:
        run_at = run_at.replace(tzinfo=timezone.utc)
    return run_at.astimezone(ZoneInfo(tz_name))


def format_human(run_at: datetime, tz_name: str) -> str:
    """'2025-08-20 11:04:05 PM' in the given zone."""
    local = to_local(run_at, tz_name)
    hour = local.hour % 12 or 12
    meridiem = "AM" if local.hour < 12 else "PM"
    return f"{local:%Y-%m-%d} {hour}:{local:%M:%S} {meridiem}"


def to_sheets_serial(run_at: datetime, tz_name: str) -> float:
    """Days since 1899-12-30 of the local wall-clock time, as Sheets stores dates."""
    local = to_local(run_at, tz_name).replace(tzinfo=None)
    return (local - _SHEETS_EPOCH) / timedelta(days=1)


def render_timestamp(run_at: datetime, fmt: TimestampFormat, tz_name: str) -> str | float:
    if fmt is TimestampFormat.SERIAL:
        return to_sheets_serial(run_at, tz_name)
    return format_human(run_at, tz_name)
