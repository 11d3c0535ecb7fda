"""
Time Slot Helpers

Pure functions for reading the time labels barbers publish ("9:30 AM",
"09:30") and for deciding which of them a client may still pick.
All functions are stateless; "now" is always passed in.

Parsing rules:
    12-hour: "9 AM", "11:30 pm"  -> hour 1-12, minute 0-59, AM/PM required
    24-hour: "09:30", "9:30"     -> hour 0-23, minute 0-59
    anything else                -> None

None means "unknown": filters keep such labels rather than dropping them.
"""

import re
from datetime import date, datetime, time, timedelta
from typing import Optional

_AMPM_RE = re.compile(r"^\s*([0-9]{1,2})(?::([0-9]{2}))?\s*(AM|PM)\s*$")
_HHMM_RE = re.compile(r"^\s*([0-9]{1,2}):([0-9]{2})\s*$")

NOON_MINUTES = 12 * 60
EVENING_MINUTES = 17 * 60


def parse_time_to_hours_minutes(value: Optional[str]) -> Optional[tuple[int, int]]:
    """
    Parse a slot label into (hours, minutes) on a 24-hour clock.

    Examples:
        parse_time_to_hours_minutes("9:30 AM")  = (9, 30)
        parse_time_to_hours_minutes("12 AM")    = (0, 0)
        parse_time_to_hours_minutes("12:30 PM") = (12, 30)
        parse_time_to_hours_minutes("21:05")    = (21, 5)
        parse_time_to_hours_minutes("13 PM")    = None
    """
    raw = (value or "").strip()
    if not raw:
        return None

    match = _AMPM_RE.match(raw.upper())
    if match:
        hours = int(match.group(1))
        minutes = int(match.group(2) or "0")
        meridiem = match.group(3)

        if hours < 1 or hours > 12 or minutes > 59:
            return None

        if meridiem == "AM":
            if hours == 12:
                hours = 0
        elif hours != 12:
            hours += 12
        return hours, minutes

    match = _HHMM_RE.match(raw)
    if match:
        hours = int(match.group(1))
        minutes = int(match.group(2))
        if hours > 23 or minutes > 59:
            return None
        return hours, minutes

    return None


def parse_time_to_minutes(value: Optional[str]) -> Optional[int]:
    """Minutes since midnight for a slot label, or None when it does not parse."""
    parsed = parse_time_to_hours_minutes(value)
    if parsed is None:
        return None
    hours, minutes = parsed
    return hours * 60 + minutes


def minutes_since_midnight(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute


def normalize_time_to_hhmm(value: Optional[str]) -> Optional[str]:
    """Normalize a label to HH:MM ("9:30 PM" -> "21:30"); None when it does not parse."""
    parsed = parse_time_to_hours_minutes(value)
    if parsed is None:
        return None
    return f"{parsed[0]:02d}:{parsed[1]:02d}"


def format_time_12h(value: Optional[str]) -> str:
    """
    Render a label as "h:MM AM|PM".

    Labels that do not parse come back stripped but otherwise untouched.
    """
    parsed = parse_time_to_hours_minutes(value)
    if parsed is None:
        return (value or "").strip()

    hours, minutes = parsed
    meridiem = "PM" if hours >= 12 else "AM"
    return f"{hours % 12 or 12}:{minutes:02d} {meridiem}"


def build_appointment_datetime(date_value: str, time_value: str) -> datetime:
    """
    Combine "YYYY-MM-DD" and a slot label into a naive datetime.

    Falls back to midnight of the date when the label does not parse.
    """
    base = datetime.strptime(date_value, "%Y-%m-%d")
    parsed = parse_time_to_hours_minutes(time_value)
    if parsed is None:
        return base
    return datetime.combine(base.date(), time(parsed[0], parsed[1]))


# ────────────────────────────────────────────────────────────────
# Availability filtering
# ────────────────────────────────────────────────────────────────

def filter_available_times(
    available_times: list[str],
    selected_date: Optional[date],
    now: datetime,
) -> list[str]:
    """
    Drop the slots a client can no longer book.

    - no date selected: list unchanged
    - date before today: nothing is bookable
    - date after today: list unchanged
    - today: only slots strictly later than now; unparseable labels stay

    Original order is preserved.
    """
    if selected_date is None:
        return list(available_times)

    today = now.date()
    if selected_date < today:
        return []
    if selected_date > today:
        return list(available_times)

    now_minutes = minutes_since_midnight(now)
    kept = []
    for label in available_times:
        minutes = parse_time_to_minutes(label)
        if minutes is None or minutes > now_minutes:
            kept.append(label)
    return kept


# ────────────────────────────────────────────────────────────────
# Presentation
# ────────────────────────────────────────────────────────────────

def _sort_minutes(label: str) -> int:
    # Unparseable labels sort as midnight, i.e. first
    minutes = parse_time_to_minutes(label)
    return minutes if minutes is not None else 0


def sort_slots(times: list[str]) -> list[str]:
    """Ascending by time of day. Stable, so equal times keep their order."""
    return sorted(times, key=_sort_minutes)


def group_slots(times: list[str]) -> list[dict]:
    """
    Split slots into the three groups shown on the date/time step.

    Returns:
        [{"label": "Morning", "items": [...]},
         {"label": "Afternoon", "items": [...]},
         {"label": "Evening", "items": [...]}]
    """
    ordered = sort_slots(times)
    morning = [t for t in ordered if _sort_minutes(t) < NOON_MINUTES]
    afternoon = [t for t in ordered if NOON_MINUTES <= _sort_minutes(t) < EVENING_MINUTES]
    evening = [t for t in ordered if _sort_minutes(t) >= EVENING_MINUTES]
    return [
        {"label": "Morning", "items": morning},
        {"label": "Afternoon", "items": afternoon},
        {"label": "Evening", "items": evening},
    ]


def format_slot(value: Optional[str]) -> tuple[str, str]:
    """
    Split a 12-hour label into its clock part and meridiem.

    Examples:
        format_slot("9:30 AM") = ("9:30", "AM")
        format_slot("9 pm")    = ("9:00", "PM")
        format_slot("14:00")   = ("14:00", "")
    """
    text = (value or "").strip()
    match = _AMPM_RE.match(text.upper())
    if not match:
        return text, ""
    return f"{int(match.group(1))}:{match.group(2) or '00'}", match.group(3)


def quick_days(today: date, count: int = 7) -> list[date]:
    """The strip of selectable days starting today."""
    return [today + timedelta(days=offset) for offset in range(count)]
