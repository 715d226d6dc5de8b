"""
Unit tests for the Slot Calendar.

Tests cover:
- Slot enumeration order and indexing
- Block splitting of shift ranges
- Configuration errors
- Slot adjacency helpers
"""

import pytest

from src.timetabling.core.calendar import (
    DEFAULT_SHIFTS,
    Day,
    Shift,
    ShiftDefinition,
    are_consecutive,
    block_minutes,
    default_calendar,
    enumerate_slots,
    gap_minutes,
    parse_time,
    slots_overlap,
)
from src.timetabling.core.errors import ConfigError


class TestSlotEnumeration:
    """Test suite for enumerate_slots."""

    def test_default_calendar_size(self):
        """Five days, three shifts of two blocks each."""
        slots = default_calendar()

        assert len(slots) == 5 * 3 * 2
        assert [slot.index for slot in slots] == list(range(len(slots)))

    def test_order_is_day_then_shift_then_start(self):
        """Slots are ordered by day, shift and start regardless of input order."""
        shifts = [
            ShiftDefinition(Shift.EVENING, "19:00", "21:00"),
            ShiftDefinition(Shift.MORNING, "08:00", "12:00", block_minutes=120),
        ]
        slots = enumerate_slots(["wed", "mon"], shifts)

        assert [(s.day, s.shift, s.start_time) for s in slots] == [
            (Day.MONDAY, Shift.MORNING, "08:00"),
            (Day.MONDAY, Shift.MORNING, "10:00"),
            (Day.MONDAY, Shift.EVENING, "19:00"),
            (Day.WEDNESDAY, Shift.MORNING, "08:00"),
            (Day.WEDNESDAY, Shift.MORNING, "10:00"),
            (Day.WEDNESDAY, Shift.EVENING, "19:00"),
        ]

    def test_enumeration_is_deterministic(self):
        """Enumeration is a pure function of its configuration."""
        assert enumerate_slots(["mon", "tue"], DEFAULT_SHIFTS) == enumerate_slots(["mon", "tue"], DEFAULT_SHIFTS)

    def test_portuguese_day_names(self):
        """Day aliases from the data layer are accepted."""
        slots = enumerate_slots(["segunda", "sexta"], [ShiftDefinition(Shift.MORNING, "08:00", "10:00")])

        assert [slot.day for slot in slots] == [Day.MONDAY, Day.FRIDAY]

    def test_partial_trailing_block_is_dropped(self):
        """A shift that does not divide evenly keeps only whole blocks."""
        definition = ShiftDefinition(Shift.AFTERNOON, "14:00", "17:00", block_minutes=120)

        assert definition.blocks() == [(14 * 60, 16 * 60)]


class TestCalendarErrors:
    """Test suite for calendar configuration errors."""

    def test_empty_days(self):
        with pytest.raises(ConfigError):
            enumerate_slots([], DEFAULT_SHIFTS)

    def test_shift_start_after_end(self):
        with pytest.raises(ConfigError):
            enumerate_slots(["mon"], [ShiftDefinition(Shift.MORNING, "12:00", "08:00")])

    def test_shift_start_equals_end(self):
        with pytest.raises(ConfigError):
            enumerate_slots(["mon"], [ShiftDefinition(Shift.MORNING, "08:00", "08:00")])

    def test_repeated_day(self):
        with pytest.raises(ConfigError):
            enumerate_slots(["mon", "segunda"], DEFAULT_SHIFTS)

    def test_repeated_shift(self):
        shifts = [
            ShiftDefinition(Shift.MORNING, "08:00", "10:00"),
            ShiftDefinition(Shift.MORNING, "10:00", "12:00"),
        ]
        with pytest.raises(ConfigError):
            enumerate_slots(["mon"], shifts)

    def test_block_longer_than_shift(self):
        with pytest.raises(ConfigError):
            enumerate_slots(["mon"], [ShiftDefinition(Shift.MORNING, "08:00", "09:00", block_minutes=120)])

    def test_unknown_day(self):
        with pytest.raises(ConfigError) as exc_info:
            enumerate_slots(["funday"], DEFAULT_SHIFTS)

        assert exc_info.value.error_code == "config_error"

    @pytest.mark.parametrize("value", ["8h", "24:00", "12:60", ""])
    def test_malformed_time(self, value):
        with pytest.raises(ConfigError):
            parse_time(value)


class TestSlotHelpers:
    """Test suite for slot adjacency helpers."""

    def test_consecutive_blocks(self):
        slots = default_calendar()
        first, second = slots[0], slots[1]

        assert are_consecutive(first, second)
        assert gap_minutes(first, second) == 0
        assert not slots_overlap(first, second)

    def test_gap_across_shifts(self):
        slots = default_calendar()
        late_morning, early_afternoon = slots[1], slots[2]

        assert gap_minutes(late_morning, early_afternoon) == 120
        assert not are_consecutive(late_morning, early_afternoon)

    def test_different_days_have_no_gap(self):
        slots = default_calendar()

        assert gap_minutes(slots[0], slots[6]) is None

    def test_block_minutes(self):
        assert block_minutes(default_calendar()) == 120

    def test_slot_to_dict(self):
        slot = default_calendar()[0]

        assert slot.to_dict() == {
            "index": 0,
            "day": "mon",
            "shift": "morning",
            "start_time": "08:00",
            "end_time": "10:00",
        }
