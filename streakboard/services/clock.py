"""Clock/locale boundary: "now" and "today in the user's zone"."""
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def resolve_zone(tz_name: str | None) -> tzinfo:
    """Map an IANA zone name to a tzinfo. Unknown or empty names fall back to UTC."""
    if not tz_name or tz_name.upper() == 'UTC':
        return timezone.utc
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return timezone.utc


def is_known_zone(tz_name: str) -> bool:
    if tz_name.upper() == 'UTC':
        return True
    try:
        ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return False
    return True


def to_naive_utc(moment: datetime) -> datetime:
    """Storage format: naive datetimes are UTC."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


class Clock(Protocol):
    def now(self) -> datetime:
        """Current instant, timezone-aware UTC."""
        ...


class SystemClock:
    """Wall clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Clock pinned to one instant. Used by tests and replay tooling."""

    def __init__(self, moment: datetime):
        self.moment = moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self.moment

    def advance(self, **kwargs) -> None:
        self.moment = self.moment + timedelta(**kwargs)


def local_today(clock: Clock, tz_name: str | None) -> date:
    """Calendar day the user is currently living in."""
    return clock.now().astimezone(resolve_zone(tz_name)).date()


def local_day_window(clock: Clock, tz_name: str | None) -> tuple[datetime, datetime]:
    """[start of the user's local day, now), both aware."""
    zone = resolve_zone(tz_name)
    now = clock.now().astimezone(zone)
    start = datetime.combine(now.date(), time.min, tzinfo=zone)
    return start, now
