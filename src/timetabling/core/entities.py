"""
Input entities for timetable generation.

These are the validated records handed over by the data layer: courses,
rooms, professor profiles (course preferences, availability, personal
restrictions) and department-wide restrictions. Restriction values use the
tagged ConstraintValue variant instead of free-form data.
"""

import math
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.timetabling.core.calendar import Day, Shift, Slot, parse_time
from src.timetabling.core.errors import ConfigError


# ---------------------------------------------------------------------------
# Tagged restriction values
# ---------------------------------------------------------------------------

class StringValue(BaseModel):
    type: Literal["string"] = "string"
    value: str = Field(min_length=1)


class NumberValue(BaseModel):
    type: Literal["number"] = "number"
    value: float = Field(ge=0)


class RangeValue(BaseModel):
    """Time range in HH:MM."""
    type: Literal["range"] = "range"
    start: str
    end: str

    @model_validator(mode="after")
    def check_order(self) -> "RangeValue":
        try:
            start, end = parse_time(self.start), parse_time(self.end)
        except ConfigError as exc:
            raise ValueError(str(exc)) from exc
        if start >= end:
            raise ValueError(f"Range start {self.start} must be before end {self.end}")
        return self

    @property
    def start_minutes(self) -> int:
        return parse_time(self.start)

    @property
    def end_minutes(self) -> int:
        return parse_time(self.end)


class EnumValue(BaseModel):
    type: Literal["enum"] = "enum"
    values: List[str] = Field(min_length=1)


ConstraintValue = Annotated[
    Union[StringValue, NumberValue, RangeValue, EnumValue],
    Field(discriminator="type"),
]


class RestrictionKind(str, Enum):
    """Personal restrictions a professor may declare."""
    NON_CONSECUTIVE = "nao_consecutivo"
    MIN_INTERVAL = "intervalo_minimo"
    PREFERRED_ROOM = "sala_preferida"
    PREFERRED_SHIFT = "turno_preferido"


class GlobalRestrictionKind(str, Enum):
    """Department-wide restrictions for collective runs."""
    LUNCH_BREAK = "intervalo_almoco"
    MAX_DAILY_LOAD = "carga_maxima_diaria"


class Restriction(BaseModel):
    kind: RestrictionKind
    description: str = ""
    value: Optional[ConstraintValue] = None
    priority: int = Field(default=3, ge=1, le=5)


class GlobalRestriction(BaseModel):
    kind: GlobalRestrictionKind
    description: str = ""
    value: Optional[ConstraintValue] = None
    priority: int = Field(default=3, ge=1, le=5)


# ---------------------------------------------------------------------------
# Courses and rooms
# ---------------------------------------------------------------------------

class RoomType(str, Enum):
    LAB = "laboratorio"
    CLASSROOM = "sala_aula"
    AUDITORIUM = "auditorio"
    MULTIMEDIA = "sala_multimidia"


class RoomResource(str, Enum):
    PROJECTOR = "projetor"
    AIR_CONDITIONING = "ar_condicionado"
    DIGITAL_BOARD = "quadro_digital"
    COMPUTERS = "computadores"
    SOUND = "som"
    MICROPHONE = "microfone"


class Course(BaseModel):
    """A course (disciplina) with its teaching load."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    code: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=200)
    workload_hours: int = Field(ge=1, description="Total semester load in hours")
    credits: int = Field(ge=1)
    department: str = ""
    period: int = Field(default=1, ge=1, le=10)
    weekly_blocks: Optional[int] = Field(default=None, ge=1)
    enrollment: Optional[int] = Field(default=None, ge=1)
    required_room_type: Optional[RoomType] = None
    active: bool = True

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()

    def required_blocks(self, block_minutes: int) -> int:
        """
        Weekly teaching blocks for this course.

        One credit is one weekly class hour; an explicit weekly_blocks wins.
        """
        if self.weekly_blocks is not None:
            return self.weekly_blocks
        return max(1, math.ceil(self.credits * 60 / block_minutes))


class Room(BaseModel):
    """A room (sala)."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    code: str = Field(min_length=1)
    name: str = ""
    capacity: int = Field(ge=1)
    room_type: RoomType = RoomType.CLASSROOM
    building: str = ""
    floor: int = Field(default=0, ge=0)
    resources: List[RoomResource] = Field(default_factory=list)
    available: bool = True

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()

    def can_host(self, course: Course) -> bool:
        if not self.available:
            return False
        if course.enrollment is not None and self.capacity < course.enrollment:
            return False
        if course.required_room_type is not None and self.room_type != course.required_room_type:
            return False
        return True


# ---------------------------------------------------------------------------
# Professor profiles
# ---------------------------------------------------------------------------

class TimeRange(BaseModel):
    start: str
    end: str

    @model_validator(mode="after")
    def check_order(self) -> "TimeRange":
        try:
            start, end = parse_time(self.start), parse_time(self.end)
        except ConfigError as exc:
            raise ValueError(str(exc)) from exc
        if start >= end:
            raise ValueError(f"Time range start {self.start} must be before end {self.end}")
        return self

    def contains(self, slot: Slot) -> bool:
        return parse_time(self.start) <= slot.start and slot.end <= parse_time(self.end)


class AvailabilityWindow(BaseModel):
    """
    A declared availability window.

    An empty range list covers the whole shift. Windows with available=False
    mark time the professor cannot teach.
    """
    day: Day
    shift: Shift
    ranges: List[TimeRange] = Field(default_factory=list)
    available: bool = True

    @field_validator("day", mode="before")
    @classmethod
    def parse_day(cls, v):
        try:
            return Day.parse(v)
        except ConfigError as exc:
            raise ValueError(str(exc)) from exc

    @field_validator("shift", mode="before")
    @classmethod
    def parse_shift(cls, v):
        try:
            return Shift.parse(v)
        except ConfigError as exc:
            raise ValueError(str(exc)) from exc

    def covers(self, slot: Slot) -> bool:
        if slot.day != self.day or slot.shift != self.shift:
            return False
        if not self.ranges:
            return True
        return any(time_range.contains(slot) for time_range in self.ranges)


class CoursePreference(BaseModel):
    course_id: str
    level: int = Field(default=3, ge=1, le=5, description="1 = dislikes, 5 = loves teaching it")


class ProfessorProfile(BaseModel):
    """Teaching preferences and availability of one professor."""

    professor_id: str = Field(min_length=1)
    name: str = ""
    courses: List[CoursePreference] = Field(default_factory=list)
    availability: List[AvailabilityWindow] = Field(default_factory=list)
    restrictions: List[Restriction] = Field(default_factory=list)
    max_weekly_hours: int = Field(default=20, ge=1, le=40)
    active: bool = True

    def preference_for(self, course_id: str) -> int:
        for preference in self.courses:
            if preference.course_id == course_id:
                return preference.level
        return 3

    def restriction(self, kind: RestrictionKind) -> Optional[Restriction]:
        for restriction in self.restrictions:
            if restriction.kind == kind:
                return restriction
        return None

    @property
    def declares_availability(self) -> bool:
        return any(window.available for window in self.availability)

    def is_available(self, slot: Slot) -> bool:
        """
        Whether the professor may teach in a slot.

        Explicitly blocked windows always win. A professor who declares no
        available windows is available everywhere else.
        """
        if any(w.covers(slot) for w in self.availability if not w.available):
            return False
        if not self.declares_availability:
            return True
        return any(w.covers(slot) for w in self.availability if w.available)


# ---------------------------------------------------------------------------
# Scope
# ---------------------------------------------------------------------------

class IndividualScope(BaseModel):
    kind: Literal["individual"] = "individual"
    professor_id: str = Field(min_length=1)

    @property
    def professor_ids(self) -> List[str]:
        return [self.professor_id]


class CollectiveScope(BaseModel):
    kind: Literal["collective"] = "collective"
    professor_ids: List[str] = Field(min_length=1)

    @field_validator("professor_ids")
    @classmethod
    def unique_ids(cls, v: List[str]) -> List[str]:
        if len(set(v)) != len(v):
            raise ValueError("Professor ids must be unique")
        return v


Scope = Annotated[Union[IndividualScope, CollectiveScope], Field(discriminator="kind")]
