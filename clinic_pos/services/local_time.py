# ==============================================================================
# CLINIC LOCAL TIME
# ==============================================================================
# The store keeps UTC timestamps; the clinic reads everything (receipt dates,
# "today" on the dashboard) in its own fixed offset.
# ==============================================================================

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from clinic_pos import config
from clinic_pos.repositories.base import parse_timestamp


def clinic_timezone() -> timezone:
    return timezone(timedelta(hours=config.UTC_OFFSET_HOURS))


def now_local() -> datetime:
    return datetime.now(clinic_timezone())


def to_local(value: Any) -> Optional[datetime]:
    """Parses a stored timestamp and converts it to clinic time."""
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    return parsed.astimezone(clinic_timezone())


def start_of_day(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=clinic_timezone())
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=clinic_timezone())
    return dt.replace(hour=23, minute=59, second=59, microsecond=999999)
