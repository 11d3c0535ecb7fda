"""
Tests for slot label parsing, filtering and presentation.
"""
from datetime import date, datetime

import pytest

from reservar.time_slots import (
    build_appointment_datetime,
    filter_available_times,
    format_slot,
    format_time_12h,
    group_slots,
    normalize_time_to_hhmm,
    parse_time_to_hours_minutes,
    parse_time_to_minutes,
    quick_days,
    sort_slots,
)


# ============================================================================
# PARSING
# ============================================================================

class TestParseTimeToMinutes:
    """parse_time_to_minutes accepts 12-hour and 24-hour labels."""

    @pytest.mark.parametrize("label,expected", [
        ("9:30 AM", 570),
        ("12:00 AM", 0),
        ("12:15 PM", 735),
        ("11 pm", 1380),
        ("  7:05 pm  ", 1145),
        ("09:30", 570),
        ("9:30", 570),
        ("23:59", 1439),
        ("0:00", 0),
    ])
    def test_valid_labels(self, label, expected):
        assert parse_time_to_minutes(label) == expected

    @pytest.mark.parametrize("label", [
        "13 PM",
        "0 AM",
        "9:60 AM",
        "24:00",
        "12:75",
        "noon",
        "9.30",
        "\u0669:\u0663\u0660 AM",  # Arabic-Indic digits
        "\uff11\uff10:\uff10\uff10",  # fullwidth digits
        "",
        None,
    ])
    def test_invalid_labels(self, label):
        assert parse_time_to_minutes(label) is None

    def test_non_breaking_space_before_meridiem(self):
        assert parse_time_to_minutes("9:30\u00a0AM") == 570

    def test_hours_minutes_pair(self):
        assert parse_time_to_hours_minutes("12:30 PM") == (12, 30)
        assert parse_time_to_hours_minutes("12 AM") == (0, 0)
        assert parse_time_to_hours_minutes("21:05") == (21, 5)


class TestFormatting:
    """Normalization and display helpers."""

    def test_normalize_to_hhmm(self):
        assert normalize_time_to_hhmm("9:30 PM") == "21:30"
        assert normalize_time_to_hhmm("7 am") == "07:00"
        assert normalize_time_to_hhmm("14:00") == "14:00"
        assert normalize_time_to_hhmm("whenever") is None

    def test_format_12h(self):
        assert format_time_12h("14:05") == "2:05 PM"
        assert format_time_12h("00:00") == "12:00 AM"
        assert format_time_12h("9 am") == "9:00 AM"

    def test_format_12h_keeps_unparseable_text(self):
        assert format_time_12h("  walk-in ") == "walk-in"
        assert format_time_12h(None) == ""

    def test_format_slot_splits_meridiem(self):
        assert format_slot("9:30 AM") == ("9:30", "AM")
        assert format_slot("9 pm") == ("9:00", "PM")

    def test_format_slot_24h_has_no_meridiem(self):
        assert format_slot("14:00") == ("14:00", "")

    def test_build_appointment_datetime(self):
        assert build_appointment_datetime("2026-03-02", "2:30 PM") == datetime(2026, 3, 2, 14, 30)

    def test_build_appointment_datetime_falls_back_to_midnight(self):
        assert build_appointment_datetime("2026-03-02", "later") == datetime(2026, 3, 2)


# ============================================================================
# FILTERING
# ============================================================================

class TestFilterAvailableTimes:
    """Only slots a client can still book are offered."""

    NOW = datetime(2026, 3, 2, 10, 15)
    TIMES = ["9:00 AM", "10:15 AM", "10:30 AM", "bogus", "2:00 PM"]

    def test_no_date_selected_returns_list_unchanged(self):
        assert filter_available_times(self.TIMES, None, self.NOW) == self.TIMES

    def test_past_date_returns_nothing(self):
        assert filter_available_times(self.TIMES, date(2026, 3, 1), self.NOW) == []

    def test_future_date_returns_list_unchanged(self):
        assert filter_available_times(self.TIMES, date(2026, 3, 3), self.NOW) == self.TIMES

    def test_today_keeps_only_strictly_later_slots(self):
        result = filter_available_times(self.TIMES, date(2026, 3, 2), self.NOW)
        # 10:15 AM equals now and is dropped; unparseable labels are kept
        assert result == ["10:30 AM", "bogus", "2:00 PM"]

    def test_does_not_mutate_input(self):
        times = list(self.TIMES)
        filter_available_times(times, date(2026, 3, 2), self.NOW)
        assert times == self.TIMES

    def test_late_evening_today(self):
        now = datetime(2026, 3, 2, 22, 0)
        assert filter_available_times(["9:00 PM", "22:30", "11 PM"], date(2026, 3, 2), now) == ["22:30", "11 PM"]


# ============================================================================
# PRESENTATION
# ============================================================================

class TestSortingAndGrouping:
    """Slots are listed in time order and grouped by part of day."""

    def test_sort_ascending(self):
        assert sort_slots(["2:00 PM", "09:00", "11:30 AM"]) == ["09:00", "11:30 AM", "2:00 PM"]

    def test_unparseable_labels_sort_first(self):
        assert sort_slots(["9:00 AM", "tbd"]) == ["tbd", "9:00 AM"]

    def test_sort_is_stable_for_equal_times(self):
        assert sort_slots(["14:00", "2:00 PM"]) == ["14:00", "2:00 PM"]

    def test_group_boundaries(self):
        groups = group_slots(["5:00 PM", "11:59 AM", "12:00 PM", "4:59 PM", "8:00 AM"])
        assert [g["label"] for g in groups] == ["Morning", "Afternoon", "Evening"]
        assert groups[0]["items"] == ["8:00 AM", "11:59 AM"]
        assert groups[1]["items"] == ["12:00 PM", "4:59 PM"]
        assert groups[2]["items"] == ["5:00 PM"]

    def test_empty_groups_still_listed(self):
        groups = group_slots([])
        assert [g["items"] for g in groups] == [[], [], []]

    def test_quick_days(self):
        days = quick_days(date(2026, 2, 27))
        assert len(days) == 7
        assert days[0] == date(2026, 2, 27)
        assert days[-1] == date(2026, 3, 5)
