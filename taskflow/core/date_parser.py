"""Date keywords in task titles, plus local-day boundary helpers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

WEEKDAYS_DE = [
    "montag",
    "dienstag",
    "mittwoch",
    "donnerstag",
    "freitag",
    "samstag",
    "sonntag",
]
WEEKDAYS_EN = [
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
]

_TODAY_RE = re.compile(r"\b(heute|today)\b", re.IGNORECASE)
_TOMORROW_RE = re.compile(r"\b(morgen|tomorrow)\b", re.IGNORECASE)
_WEEKDAY_RES = [
    [re.compile(rf"\b{name}\b", re.IGNORECASE) for name in names]
    for names in (WEEKDAYS_DE, WEEKDAYS_EN)
]
_WHITESPACE_RE = re.compile(r"\s+")

_END_OF_DAY = time(23, 59, 59, 999000)


@dataclass(frozen=True)
class ParseResult:
    """Title with date keywords removed and the due date they implied."""

    cleaned_title: str
    detected_date: Optional[int] = None


def _to_ms(dt: datetime) -> int:
    # Naive datetimes are interpreted in the device's local timezone.
    return round(dt.timestamp() * 1000)


def end_of_day_ms(day: date) -> int:
    """Epoch ms of 23:59:59.999 local time on ``day``."""
    return _to_ms(datetime.combine(day, _END_OF_DAY))


def start_of_day_ms(now: Optional[datetime] = None, offset_days: int = 0) -> int:
    """Epoch ms of local midnight, ``offset_days`` after the day of ``now``."""
    current = now or datetime.now()
    day = current.date() + timedelta(days=offset_days)
    return _to_ms(datetime.combine(day, time.min))


def next_weekday(target: int, now: Optional[datetime] = None) -> date:
    """Next future date falling on ``target`` (0=Monday). Never today."""
    current = (now or datetime.now()).date()
    days_ahead = target - current.weekday()
    if days_ahead <= 0:
        days_ahead += 7
    return current + timedelta(days=days_ahead)


def parse_task_title(title: str, now: Optional[datetime] = None) -> ParseResult:
    """Extract a relative date keyword from a task title.

    Precedence: today/heute, then tomorrow/morgen, then German weekday
    names, then English weekday names. Within a list the first weekday that
    appears in the title wins. If removing the keyword would leave nothing,
    the original title is kept alongside the detected date.
    """
    current = now or datetime.now()
    cleaned = title
    detected: Optional[int] = None

    if _TODAY_RE.search(title):
        detected = end_of_day_ms(current.date())
        cleaned = _TODAY_RE.sub("", cleaned)
    elif _TOMORROW_RE.search(title):
        detected = end_of_day_ms(current.date() + timedelta(days=1))
        cleaned = _TOMORROW_RE.sub("", cleaned)
    else:
        for patterns in _WEEKDAY_RES:
            for index, pattern in enumerate(patterns):
                if pattern.search(title):
                    detected = end_of_day_ms(next_weekday(index, current))
                    cleaned = pattern.sub("", cleaned)
                    break
            if detected is not None:
                break

    cleaned = _WHITESPACE_RE.sub(" ", cleaned).strip()
    if not cleaned and title.strip():
        return ParseResult(cleaned_title=title.strip(), detected_date=detected)
    return ParseResult(cleaned_title=cleaned, detected_date=detected)


def format_date(timestamp_ms: int) -> str:
    """Short local date for listings, e.g. ``Mon, 19 Oct 2026``."""
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%a, %d %b %Y")
