"""
Slot Calendar.

Enumerates the discrete schedulable units (day x shift x time range) from
which gene assignments are drawn. Enumeration is a pure function of the
calendar configuration.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from src.timetabling.core.errors import ConfigError

_TIME_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")


class Day(str, Enum):
    """Teaching days, Monday to Saturday."""
    MONDAY = "mon"
    TUESDAY = "tue"
    WEDNESDAY = "wed"
    THURSDAY = "thu"
    FRIDAY = "fri"
    SATURDAY = "sat"

    @property
    def order(self) -> int:
        return list(Day).index(self)

    @classmethod
    def parse(cls, value: "Day | str") -> "Day":
        """Accept enum members, short English names or Portuguese day names."""
        if isinstance(value, Day):
            return value
        key = str(value).strip().lower()
        if key in _DAY_ALIASES:
            return _DAY_ALIASES[key]
        raise ConfigError(f"Unknown day: {value!r}", details={"day": value})


_DAY_ALIASES: Dict[str, Day] = {
    **{day.value: day for day in Day},
    "monday": Day.MONDAY, "segunda": Day.MONDAY,
    "tuesday": Day.TUESDAY, "terca": Day.TUESDAY,
    "wednesday": Day.WEDNESDAY, "quarta": Day.WEDNESDAY,
    "thursday": Day.THURSDAY, "quinta": Day.THURSDAY,
    "friday": Day.FRIDAY, "sexta": Day.FRIDAY,
    "saturday": Day.SATURDAY, "sabado": Day.SATURDAY,
}


class Shift(str, Enum):
    """Teaching shifts."""
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"

    @property
    def order(self) -> int:
        return list(Shift).index(self)

    @classmethod
    def parse(cls, value: "Shift | str") -> "Shift":
        if isinstance(value, Shift):
            return value
        key = str(value).strip().lower()
        if key in _SHIFT_ALIASES:
            return _SHIFT_ALIASES[key]
        raise ConfigError(f"Unknown shift: {value!r}", details={"shift": value})


_SHIFT_ALIASES: Dict[str, Shift] = {
    **{shift.value: shift for shift in Shift},
    "manha": Shift.MORNING,
    "tarde": Shift.AFTERNOON,
    "noite": Shift.EVENING,
}


def parse_time(value: str) -> int:
    """Convert an HH:MM string to minutes since midnight."""
    match = _TIME_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ConfigError(f"Invalid time format (HH:MM): {value!r}", details={"time": value})
    return int(match.group(1)) * 60 + int(match.group(2))


def format_time(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


@dataclass(frozen=True)
class Slot:
    """One schedulable unit. Immutable once enumerated."""
    index: int
    day: Day
    shift: Shift
    start: int
    end: int

    @property
    def duration(self) -> int:
        return self.end - self.start

    @property
    def start_time(self) -> str:
        return format_time(self.start)

    @property
    def end_time(self) -> str:
        return format_time(self.end)

    def to_dict(self) -> Dict[str, object]:
        return {
            "index": self.index,
            "day": self.day.value,
            "shift": self.shift.value,
            "start_time": self.start_time,
            "end_time": self.end_time,
        }

    def __repr__(self) -> str:
        return f"Slot({self.day.value} {self.shift.value} {self.start_time}-{self.end_time})"


@dataclass(frozen=True)
class ShiftDefinition:
    """
    Time range of a shift.

    With block_minutes set, the range is cut into consecutive blocks of that
    length; otherwise the whole range is a single slot.
    """
    shift: Shift
    start: str
    end: str
    block_minutes: Optional[int] = None

    def blocks(self) -> List[Tuple[int, int]]:
        start = parse_time(self.start)
        end = parse_time(self.end)
        if start >= end:
            raise ConfigError(
                f"Shift {self.shift.value} starts at {self.start} but ends at {self.end}",
                details={"shift": self.shift.value, "start": self.start, "end": self.end},
            )
        if self.block_minutes is None:
            return [(start, end)]
        if self.block_minutes <= 0 or self.block_minutes > end - start:
            raise ConfigError(
                f"Block length {self.block_minutes} does not fit shift {self.shift.value}",
                details={"shift": self.shift.value, "block_minutes": self.block_minutes},
            )
        return [
            (cursor, cursor + self.block_minutes)
            for cursor in range(start, end - self.block_minutes + 1, self.block_minutes)
        ]


DEFAULT_DAYS: Tuple[Day, ...] = (
    Day.MONDAY, Day.TUESDAY, Day.WEDNESDAY, Day.THURSDAY, Day.FRIDAY,
)

DEFAULT_SHIFTS: Tuple[ShiftDefinition, ...] = (
    ShiftDefinition(Shift.MORNING, "08:00", "12:00", block_minutes=120),
    ShiftDefinition(Shift.AFTERNOON, "14:00", "18:00", block_minutes=120),
    ShiftDefinition(Shift.EVENING, "19:00", "23:00", block_minutes=120),
)


def enumerate_slots(days_in_use: Iterable["Day | str"],
                    shift_definitions: Sequence[ShiftDefinition]) -> Tuple[Slot, ...]:
    """
    Enumerate the calendar slots.

    Slots are ordered by day, then shift, then start time, and their index
    is their position in that order.

    Raises:
        ConfigError: empty day list, repeated day or shift, malformed times
            or a shift whose start is not before its end.
    """
    days = [Day.parse(day) for day in days_in_use]
    if not days:
        raise ConfigError("At least one teaching day is required")
    if len(set(days)) != len(days):
        raise ConfigError("Teaching days must not repeat", details={"days": [d.value for d in days]})
    if not shift_definitions:
        raise ConfigError("At least one shift definition is required")

    shifts = [definition.shift for definition in shift_definitions]
    if len(set(shifts)) != len(shifts):
        raise ConfigError("Shift definitions must not repeat", details={"shifts": [s.value for s in shifts]})

    ordered_shifts = sorted(shift_definitions, key=lambda d: d.shift.order)
    blocks_by_shift = [(definition.shift, definition.blocks()) for definition in ordered_shifts]

    slots: List[Slot] = []
    for day in sorted(days, key=lambda d: d.order):
        for shift, blocks in blocks_by_shift:
            for start, end in blocks:
                slots.append(Slot(index=len(slots), day=day, shift=shift, start=start, end=end))
    return tuple(slots)


def default_calendar() -> Tuple[Slot, ...]:
    """Monday to Friday with three shifts of two-hour blocks."""
    return enumerate_slots(DEFAULT_DAYS, DEFAULT_SHIFTS)


def block_minutes(slots: Sequence[Slot]) -> int:
    """Length of a teaching block: the longest slot in the calendar."""
    if not slots:
        raise ConfigError("Calendar has no slots")
    return max(slot.duration for slot in slots)


def slots_overlap(a: Slot, b: Slot) -> bool:
    return a.day == b.day and a.start < b.end and b.start < a.end


def gap_minutes(a: Slot, b: Slot) -> Optional[int]:
    """Minutes between two non-overlapping slots on the same day, else None."""
    if a.day != b.day or slots_overlap(a, b):
        return None
    first, second = (a, b) if a.start <= b.start else (b, a)
    return second.start - first.end


def are_consecutive(a: Slot, b: Slot) -> bool:
    """Same day and one slot ends exactly when the other starts."""
    return gap_minutes(a, b) == 0
