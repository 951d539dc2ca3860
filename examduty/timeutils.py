from datetime import date, datetime
from typing import Tuple

from .exceptions import TimeFormatError

DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%Y.%m.%d")
TIME_FORMATS = ("%H:%M", "%H:%M:%S")


def parse_date(text: str) -> date:
    raw = str(text).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue
    raise TimeFormatError(f"Unrecognised date: {text!r}", context={"value": text})


def time_to_minutes(text: str) -> int:
    """Minutes since midnight for an ``HH:MM`` (or ``HH:MM:SS``) wall-clock time."""
    raw = str(text).strip()
    for fmt in TIME_FORMATS:
        try:
            t = datetime.strptime(raw, fmt)
        except ValueError:
            continue
        return t.hour * 60 + t.minute
    raise TimeFormatError(f"Unrecognised time: {text!r}", context={"value": text})


def duration_minutes(start: str, end: str) -> int:
    s, e = time_to_minutes(start), time_to_minutes(end)
    if e <= s:
        raise TimeFormatError(
            f"Window {start}-{end} is empty or crosses midnight",
            context={"start": start, "end": end},
        )
    return e - s


def overlaps(start1: str, end1: str, start2: str, end2: str) -> bool:
    # half-open: back-to-back windows do not overlap
    s1, e1 = time_to_minutes(start1), time_to_minutes(end1)
    s2, e2 = time_to_minutes(start2), time_to_minutes(end2)
    return s1 < e2 and s2 < e1


def session_sort_key(day: str, start: str) -> Tuple[date, int]:
    return parse_date(day), time_to_minutes(start)
