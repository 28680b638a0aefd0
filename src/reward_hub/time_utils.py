from __future__ import annotations

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo


DEFAULT_TZ = "UTC"


def now_local(tz_name: str = DEFAULT_TZ) -> datetime:
    return datetime.now(tz=ZoneInfo(tz_name))


def ensure_aware(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def local_date(dt: datetime, tz_name: str = DEFAULT_TZ) -> date:
    return ensure_aware(dt).astimezone(ZoneInfo(tz_name)).date()


def same_local_day(a: datetime, b: datetime, tz_name: str = DEFAULT_TZ) -> bool:
    return local_date(a, tz_name) == local_date(b, tz_name)


def hours_between(earlier: datetime, later: datetime) -> float:
    delta = ensure_aware(later) - ensure_aware(earlier)
    return delta.total_seconds() / 3600


def parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    return ensure_aware(datetime.fromisoformat(value))
