import re
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

PERIODS: "tuple[str, ...]" = ("today", "week", "month")

# days covered by the trailing periods, excluding the current day
_PERIOD_DAYS: "dict[str, int]" = {"week": 7, "month": 30}

_DATE_KEY_RE = re.compile(r"\d{4}-\d{2}-\d{2}")


@dataclass(frozen=True, slots=True)
class Window:
    """
    Window is a half-open [start, end) interval of aware
    datetimes. A record exactly at start is inside, one exactly
    at end is not, so adjacent windows never share a record.
    """

    start: "datetime"
    end: "datetime"

    def contains(self, timestamp: "datetime | None") -> "bool":
        if timestamp is None:
            return False
        return self.start <= timestamp < self.end

    def is_before(self, timestamp: "datetime") -> "bool":
        return timestamp < self.start


def civil_today(tz: "ZoneInfo", now: "datetime | None" = None) -> "date":
    """
    returns the calendar date at the given instant in tz.
    """
    now = now or datetime.now(timezone.utc)
    return now.astimezone(tz).date()


def day_start(day: "date", tz: "ZoneInfo") -> "datetime":
    return datetime(day.year, day.month, day.day, tzinfo=tz)


def resolve_window(
    period: "str",
    tz: "ZoneInfo",
    now: "datetime | None" = None,
) -> "Window":
    """
    resolves a named period into its window in tz:
     - today: [today 00:00, now)
     - week: [today - 7d 00:00, today 00:00)
     - month: [today - 30d 00:00, today 00:00)
    week and month leave out the current partial day.
    """
    if period not in PERIODS:
        raise ValueError(f"unknown period: {period!r}")

    now = now or datetime.now(timezone.utc)
    today = civil_today(tz, now)
    today_start = day_start(today, tz)

    if period == "today":
        return Window(start=today_start, end=now)

    start = day_start(today - timedelta(days=_PERIOD_DAYS[period]), tz)
    return Window(start=start, end=today_start)


def day_window(day: "date", tz: "ZoneInfo") -> "Window":
    return Window(
        start=day_start(day, tz),
        end=day_start(day + timedelta(days=1), tz),
    )


def date_range_window(start_date: "date", end_date: "date", tz: "ZoneInfo") -> "Window":
    """
    returns [start_date 00:00, end_date + 1 00:00) in tz.
    """
    return Window(
        start=day_start(start_date, tz),
        end=day_start(end_date + timedelta(days=1), tz),
    )


def iter_dates(start_date: "date", end_date: "date") -> "Iterator[date]":
    """
    yields every calendar day from start_date to end_date, both
    included.
    """
    current = start_date
    while current <= end_date:
        yield current
        current += timedelta(days=1)


def parse_date_key(value: "object") -> "date | None":
    """
    parses a YYYY-MM-DD key, rejecting impossible dates such as
    2025-02-30.
    """
    if not isinstance(value, str) or not _DATE_KEY_RE.fullmatch(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None
