"""
Unit tests for input entities and tagged restriction values.

Tests cover:
- Course block expansion
- Room hosting rules
- Professor availability policy
- ConstraintValue variants
- Run scopes
"""

import pytest
from pydantic import TypeAdapter, ValidationError

from src.timetabling.core.calendar import default_calendar
from src.timetabling.core.entities import (
    AvailabilityWindow,
    CollectiveScope,
    ConstraintValue,
    Course,
    EnumValue,
    NumberValue,
    ProfessorProfile,
    RangeValue,
    Restriction,
    RestrictionKind,
    Room,
    RoomType,
    Scope,
    StringValue,
    TimeRange,
)


class TestCourse:
    """Test suite for Course."""

    def test_code_is_normalized(self):
        course = Course(id="c1", code=" mat101 ", name="Calculus", workload_hours=60, credits=4)

        assert course.code == "MAT101"

    def test_required_blocks_from_credits(self):
        """One credit is one weekly class hour, rounded up to whole blocks."""
        course = Course(id="c1", code="X", name="X", workload_hours=60, credits=4)

        assert course.required_blocks(120) == 2
        assert course.required_blocks(50) == 5

    def test_required_blocks_minimum_one(self):
        course = Course(id="c1", code="X", name="X", workload_hours=15, credits=1)

        assert course.required_blocks(240) == 1

    def test_explicit_weekly_blocks_win(self):
        course = Course(id="c1", code="X", name="X", workload_hours=60, credits=4, weekly_blocks=3)

        assert course.required_blocks(120) == 3

    def test_invalid_credits(self):
        with pytest.raises(ValidationError):
            Course(id="c1", code="X", name="X", workload_hours=60, credits=0)


class TestRoom:
    """Test suite for Room hosting rules."""

    def test_capacity(self):
        course = Course(id="c1", code="X", name="X", workload_hours=60, credits=4, enrollment=35)

        assert Room(id="r1", code="R1", capacity=40).can_host(course)
        assert not Room(id="r2", code="R2", capacity=30).can_host(course)

    def test_room_type(self):
        course = Course(id="c1", code="X", name="X", workload_hours=60, credits=4,
                        required_room_type=RoomType.LAB)

        assert Room(id="l1", code="L1", capacity=20, room_type=RoomType.LAB).can_host(course)
        assert not Room(id="r1", code="R1", capacity=20).can_host(course)

    def test_unavailable_room(self):
        course = Course(id="c1", code="X", name="X", workload_hours=60, credits=4)

        assert not Room(id="r1", code="R1", capacity=20, available=False).can_host(course)


class TestAvailability:
    """Test suite for the professor availability policy."""

    def test_no_declared_availability_means_available_everywhere(self):
        profile = ProfessorProfile(professor_id="p1")

        assert all(profile.is_available(slot) for slot in default_calendar())

    def test_declared_windows_restrict(self):
        profile = ProfessorProfile(
            professor_id="p1",
            availability=[AvailabilityWindow(day="segunda", shift="manha")],
        )
        slots = default_calendar()

        available = [slot for slot in slots if profile.is_available(slot)]
        assert [(s.day.value, s.shift.value) for s in available] == [("mon", "morning"), ("mon", "morning")]

    def test_time_ranges_inside_window(self):
        profile = ProfessorProfile(
            professor_id="p1",
            availability=[AvailabilityWindow(day="mon", shift="morning",
                                             ranges=[TimeRange(start="08:00", end="10:00")])],
        )
        slots = default_calendar()

        assert profile.is_available(slots[0])
        assert not profile.is_available(slots[1])

    def test_blocked_window_always_wins(self):
        profile = ProfessorProfile(
            professor_id="p1",
            availability=[AvailabilityWindow(day="tue", shift="evening", available=False)],
        )
        slots = default_calendar()

        blocked = [slot for slot in slots if not profile.is_available(slot)]
        assert {(s.day.value, s.shift.value) for s in blocked} == {("tue", "evening")}

    def test_unknown_day_is_rejected(self):
        with pytest.raises(ValidationError):
            AvailabilityWindow(day="someday", shift="morning")

    def test_preference_defaults_to_neutral(self, professor):
        assert professor.preference_for("c1") == 5
        assert professor.preference_for("unknown") == 3


class TestConstraintValue:
    """Test suite for the tagged ConstraintValue variant."""

    def test_discriminated_parsing(self):
        adapter = TypeAdapter(ConstraintValue)

        assert isinstance(adapter.validate_python({"type": "string", "value": "R101"}), StringValue)
        assert isinstance(adapter.validate_python({"type": "number", "value": 6}), NumberValue)
        assert isinstance(adapter.validate_python({"type": "range", "start": "12:00", "end": "13:00"}), RangeValue)
        assert isinstance(adapter.validate_python({"type": "enum", "values": ["manha"]}), EnumValue)

    def test_unknown_tag(self):
        with pytest.raises(ValidationError):
            TypeAdapter(ConstraintValue).validate_python({"type": "mixed", "value": 1})

    def test_range_order(self):
        with pytest.raises(ValidationError):
            RangeValue(start="13:00", end="12:00")

    def test_range_minutes(self):
        value = RangeValue(start="12:00", end="13:30")

        assert (value.start_minutes, value.end_minutes) == (720, 810)

    def test_restriction_with_value(self):
        restriction = Restriction.model_validate({
            "kind": "intervalo_minimo",
            "value": {"type": "number", "value": 60},
            "priority": 4,
        })

        assert restriction.kind == RestrictionKind.MIN_INTERVAL
        assert restriction.value.value == 60

    def test_priority_bounds(self):
        with pytest.raises(ValidationError):
            Restriction(kind=RestrictionKind.NON_CONSECUTIVE, priority=6)


class TestScope:
    """Test suite for run scopes."""

    def test_individual_scope(self):
        scope = TypeAdapter(Scope).validate_python({"kind": "individual", "professor_id": "p1"})

        assert scope.professor_ids == ["p1"]

    def test_collective_scope_requires_unique_ids(self):
        with pytest.raises(ValidationError):
            CollectiveScope(professor_ids=["p1", "p1"])

    def test_collective_scope_not_empty(self):
        with pytest.raises(ValidationError):
            CollectiveScope(professor_ids=[])
