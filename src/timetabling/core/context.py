"""
Read-only view of the entities of one run, shared by every evaluation task.
"""

from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence, Tuple

from src.timetabling.core.calendar import ShiftDefinition, Slot, block_minutes, enumerate_slots
from src.timetabling.core.entities import (
    Course,
    GlobalRestriction,
    GlobalRestrictionKind,
    ProfessorProfile,
    Room,
)
from src.timetabling.core.errors import EvaluationError, InputError


@dataclass(frozen=True)
class ScheduleContext:
    """
    Calendar and entities of a run.

    Lookups raise EvaluationError on references a chromosome should never
    contain, so a malformed gene fails only its own chromosome.
    """
    scope_kind: str
    slots: Tuple[Slot, ...]
    courses: Mapping[str, Course]
    rooms: Mapping[str, Room]
    profiles: Mapping[str, ProfessorProfile]
    global_restrictions: Tuple[GlobalRestriction, ...]
    block_minutes: int

    @classmethod
    def build(
        cls,
        scope_kind: str,
        professor_ids: Sequence[str],
        days: Sequence[str],
        shifts: Sequence[ShiftDefinition],
        courses: Sequence[Course],
        rooms: Sequence[Room],
        profiles: Sequence[ProfessorProfile],
        global_restrictions: Sequence[GlobalRestriction] = (),
    ) -> "ScheduleContext":
        """
        Enumerate the calendar and index the entity sets.

        Raises:
            ConfigError: invalid calendar configuration.
            InputError: empty course or room sets, or professors in scope
                without a profile.
        """
        slots = enumerate_slots(days, shifts)

        if not courses:
            raise InputError("No courses supplied for generation")
        available_rooms = [room for room in rooms if room.available]
        if not available_rooms:
            raise InputError("No rooms available for generation")

        profiles_by_id = {profile.professor_id: profile for profile in profiles}
        missing = [pid for pid in professor_ids if pid not in profiles_by_id]
        if missing:
            raise InputError(
                "Professors in scope have no preference profile",
                details={"professor_ids": missing},
            )

        return cls(
            scope_kind=scope_kind,
            slots=slots,
            courses={course.id: course for course in courses},
            rooms={room.id: room for room in available_rooms},
            profiles={pid: profiles_by_id[pid] for pid in professor_ids},
            global_restrictions=tuple(global_restrictions),
            block_minutes=block_minutes(slots),
        )

    def slot(self, index: int) -> Slot:
        if not 0 <= index < len(self.slots):
            raise EvaluationError(f"Slot index {index} out of range", details={"slot_index": index})
        return self.slots[index]

    def room(self, room_id: str) -> Room:
        try:
            return self.rooms[room_id]
        except KeyError:
            raise EvaluationError(f"Unknown room {room_id}", details={"room_id": room_id}) from None

    def course(self, course_id: str) -> Course:
        try:
            return self.courses[course_id]
        except KeyError:
            raise EvaluationError(f"Unknown course {course_id}", details={"course_id": course_id}) from None

    def profile(self, professor_id: str) -> ProfessorProfile:
        try:
            return self.profiles[professor_id]
        except KeyError:
            raise EvaluationError(
                f"Unknown professor {professor_id}", details={"professor_id": professor_id}
            ) from None

    def global_restriction(self, kind: GlobalRestrictionKind) -> Optional[GlobalRestriction]:
        for restriction in self.global_restrictions:
            if restriction.kind == kind:
                return restriction
        return None

    def room_positions(self) -> Dict[str, int]:
        return {room_id: position for position, room_id in enumerate(sorted(self.rooms))}
