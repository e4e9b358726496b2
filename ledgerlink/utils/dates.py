from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional, Union

import pytz
from dateutil import parser as date_parser

from ledgerlink.config import APP_TIMEZONE

DateLike = Union[str, date, datetime, None]

END_OF_DAY = time(23, 59, 59, 999000)


def local_zone():
    return pytz.timezone(APP_TIMEZONE)


def to_local(value: datetime) -> datetime:
    """Attach (naive) or convert (aware) a datetime to the local zone."""
    zone = local_zone()
    if value.tzinfo is None:
        return zone.localize(value)
    return value.astimezone(zone)


def parse_date(value) -> Optional[datetime]:
    """
    Best-effort conversion of a backend date field into a local datetime.

    Accepts ISO strings, date/datetime objects and epoch milliseconds.
    Anything unreadable yields None instead of raising, so one bad record
    cannot take a whole ledger down.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return to_local(value)
    if isinstance(value, date):
        return to_local(datetime.combine(value, time.min))
    if isinstance(value, (int, float, Decimal)):
        try:
            return datetime.fromtimestamp(float(value) / 1000.0, tz=pytz.utc).astimezone(local_zone())
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return to_local(date_parser.isoparse(text))
        except (ValueError, OverflowError):
            pass
        try:
            return to_local(date_parser.parse(text))
        except (ValueError, OverflowError):
            return None
    return None


def _as_day(value: DateLike) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_local(value).date()
    if isinstance(value, date):
        return value
    parsed = parse_date(value)
    return parsed.date() if parsed else None


@dataclass(frozen=True)
class DateWindow:
    """
    Inclusive date filter compared at day granularity in local time.

    `start` is the first instant of the `from` day (00:00:00.000) and `end`
    the last millisecond of the `to` day (23:59:59.999). Either bound may be
    missing; with both missing the window covers all time.
    """
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @classmethod
    def from_dates(cls, from_date: DateLike = None, to_date: DateLike = None) -> "DateWindow":
        zone = local_zone()
        start_day = _as_day(from_date)
        end_day = _as_day(to_date)
        start = zone.localize(datetime.combine(start_day, time.min)) if start_day else None
        end = zone.localize(datetime.combine(end_day, END_OF_DAY)) if end_day else None
        return cls(start=start, end=end)

    @property
    def is_unbounded(self) -> bool:
        return self.start is None and self.end is None

    def contains(self, moment: Optional[datetime]) -> bool:
        if moment is None:
            # Undated entries only count when no date filter is active.
            return self.is_unbounded
        if self.start is not None and moment < self.start:
            return False
        if self.end is not None and moment > self.end:
            return False
        return True

    def query_params(self):
        """fromDate/toDate in the YYYY-MM-DD form the backend expects."""
        return (
            self.start.date().isoformat() if self.start else None,
            self.end.date().isoformat() if self.end else None,
        )


ALL_TIME = DateWindow()
