import re

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def is_valid_hhmm(value) -> bool:
    return isinstance(value, str) and _HHMM.match(value) is not None


def time_to_minutes(value: str) -> int:
    """Minutes since midnight for a "HH:MM" wall-clock string."""
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_time(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def intervals_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    # half-open [start, end): touching boundaries do not overlap
    return a_start < b_end and b_start < a_end
