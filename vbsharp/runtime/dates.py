"""Date handling: OLE Automation date numbers and date literal parsing."""

from __future__ import annotations

import re
from datetime import datetime, timedelta

from .errors import TypeMismatchError

OA_EPOCH = datetime(1899, 12, 30)

_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}


def to_oadate(value: datetime) -> float:
    """Days since 1899-12-30; the fraction is the time of day.

    Before the epoch the integer part counts backwards but the fraction still
    counts forwards, so -1.25 is 1899-12-29 06:00.
    """
    days = (value.date() - OA_EPOCH.date()).days
    seconds = value.hour * 3600 + value.minute * 60 + value.second + value.microsecond / 1e6
    fraction = seconds / 86400
    if days < 0:
        return days - fraction
    return days + fraction


def from_oadate(number: float) -> datetime:
    days = int(number)
    fraction = abs(number - days)
    return OA_EPOCH + timedelta(days=days, seconds=round(fraction * 86400))


def _two_digit_year(year: int) -> int:
    if year >= 100:
        return year
    return 2000 + year if year < 30 else 1900 + year


_TIME = re.compile(
    r"^(?P<h>\d{1,2})(?::(?P<m>\d{1,2}))?(?::(?P<s>\d{1,2}))?\s*(?P<ampm>[AaPp][Mm])?$"
)
_ISO = re.compile(r"^(?P<y>\d{4})[-/](?P<mo>\d{1,2})[-/](?P<d>\d{1,2})$")
_NUMERIC = re.compile(r"^(?P<mo>\d{1,2})[-/.](?P<d>\d{1,2})(?:[-/.](?P<y>\d{1,4}))?$")
_DAY_MONTH_NAME = re.compile(r"^(?P<d>\d{1,2})[\s-]+(?P<mon>[A-Za-z]+)\.?(?:[\s-]+(?P<y>\d{1,4}))?$")
_MONTH_NAME_DAY = re.compile(r"^(?P<mon>[A-Za-z]+)\.?\s+(?P<d>\d{1,2}),?(?:\s+(?P<y>\d{1,4}))?$")


class DateLiteralParser:
    """Parse the text of a #...# date literal (or a date string) into a datetime.

    Supported date forms: 2007-04-01, 4/1/2007 (month first), 1 Apr 2007,
    April 1, 2007. A missing year means the current year. A time part
    (10:30, 10:30:15 PM) may follow the date or stand alone, in which case
    the date is the epoch day 1899-12-30.
    """

    def __init__(self, today: datetime | None = None):
        self._today = today

    def Parse(self, text: str) -> datetime:
        value = self.try_parse(text)
        if value is None:
            raise TypeMismatchError(f"'{text}'")
        return value

    def try_parse(self, text: str) -> datetime | None:
        stripped = " ".join(text.strip().split())
        if not stripped:
            return None
        time_only = self._time(stripped)
        if time_only is not None:
            return OA_EPOCH + time_only
        date_part, time_part = stripped, None
        parts = stripped.split(" ")
        for split in range(len(parts) - 1, 0, -1):
            candidate = self._time(" ".join(parts[split:]))
            if candidate is not None:
                date_part, time_part = " ".join(parts[:split]), candidate
                break
        date = self._date(date_part)
        if date is None:
            return None
        return date + time_part if time_part is not None else date

    def _time(self, text: str) -> timedelta | None:
        match = _TIME.match(text)
        if match is None:
            return None
        # a bare number is not a time
        if match.group("m") is None and match.group("ampm") is None:
            return None
        hours = int(match.group("h"))
        minutes = int(match.group("m") or 0)
        seconds = int(match.group("s") or 0)
        ampm = match.group("ampm")
        if ampm is not None:
            if not 1 <= hours <= 12:
                return None
            hours = hours % 12 + (12 if ampm.lower() == "pm" else 0)
        if hours > 23 or minutes > 59 or seconds > 59:
            return None
        return timedelta(hours=hours, minutes=minutes, seconds=seconds)

    def _date(self, text: str) -> datetime | None:
        match = _ISO.match(text)
        if match is not None:
            return self._build(int(match.group("y")), int(match.group("mo")), int(match.group("d")))
        match = _NUMERIC.match(text)
        if match is not None:
            return self._build(self._year(match.group("y")), int(match.group("mo")), int(match.group("d")))
        for pattern in (_DAY_MONTH_NAME, _MONTH_NAME_DAY):
            match = pattern.match(text)
            if match is None:
                continue
            month = _MONTHS.get(match.group("mon")[:3].lower())
            if month is None:
                return None
            return self._build(self._year(match.group("y")), month, int(match.group("d")))
        return None

    def _year(self, text: str | None) -> int:
        if text is None:
            return (self._today or datetime.now()).year
        return _two_digit_year(int(text))

    def _build(self, year: int, month: int, day: int) -> datetime | None:
        try:
            return datetime(year, month, day)
        except ValueError:
            return None
