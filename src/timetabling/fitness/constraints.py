"""
Constraint Catalog for timetable chromosomes.

Each constraint is an independent, side-effect free predicate over a
chromosome and the run context. The catalog registers the predicates that
apply to a run, resolving every restriction value against the variant its
kind accepts when the predicate is registered, and aggregates their
violations on evaluation.
"""

from abc import ABC, abstractmethod
from collections import defaultdict
from enum import Enum
from itertools import combinations
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple, Type, Union

from src.timetabling.core.calendar import Shift, Slot, gap_minutes
from src.timetabling.core.chromosome import Gene, ScheduleChromosome
from src.timetabling.core.context import ScheduleContext
from src.timetabling.core.entities import (
    EnumValue,
    GlobalRestrictionKind,
    NumberValue,
    RangeValue,
    RestrictionKind,
    StringValue,
)
from src.timetabling.core.errors import ConfigError, EvaluationError
from src.timetabling.fitness.base import ConstraintKind, Severity, Violation, ViolationLevel


class ConstraintScope(str, Enum):
    """Run scopes a constraint is evaluated in."""
    INDIVIDUAL = "individual"
    COLLECTIVE = "collective"
    ANY = "any"

    def applies_to(self, scope_kind: str) -> bool:
        return self == ConstraintScope.ANY or self.value == scope_kind


RestrictionKey = Union[RestrictionKind, GlobalRestrictionKind]

# Variants accepted by each restriction kind; None means the kind carries no value.
RESTRICTION_VALUE_TYPES: Dict[RestrictionKey, Optional[Tuple[Type, ...]]] = {
    RestrictionKind.NON_CONSECUTIVE: None,
    RestrictionKind.MIN_INTERVAL: (NumberValue,),
    RestrictionKind.PREFERRED_ROOM: (StringValue, EnumValue),
    RestrictionKind.PREFERRED_SHIFT: (StringValue, EnumValue),
    GlobalRestrictionKind.LUNCH_BREAK: (RangeValue,),
    GlobalRestrictionKind.MAX_DAILY_LOAD: (NumberValue,),
}


def resolve_value(kind: RestrictionKey, value, owner: str = "global"):
    """
    Check a restriction value against the variant its kind accepts.

    Raises:
        ConfigError: missing value, or a value of the wrong variant.
    """
    accepted = RESTRICTION_VALUE_TYPES[kind]
    if accepted is None:
        return value
    if value is None:
        raise ConfigError(
            f"Restriction {kind.value} of {owner} requires a value",
            details={"kind": kind.value, "owner": owner},
        )
    if not isinstance(value, accepted):
        raise ConfigError(
            f"Restriction {kind.value} of {owner} does not accept a {value.type} value",
            details={
                "kind": kind.value,
                "owner": owner,
                "received": value.type,
                "accepted": [variant.model_fields["type"].default for variant in accepted],
            },
        )
    return value


def _string_values(value: Union[StringValue, EnumValue]) -> List[str]:
    if isinstance(value, EnumValue):
        return list(value.values)
    return [value.value]


def _soft_level(priority: int) -> ViolationLevel:
    return ViolationLevel.MEDIUM if priority >= 4 else ViolationLevel.LOW


def _describe(slot: Slot) -> str:
    return f"{slot.day.value} {slot.start_time}-{slot.end_time}"


class Constraint(ABC):
    """A single constraint predicate."""

    kind: ConstraintKind
    severity: Severity
    scope: ConstraintScope = ConstraintScope.ANY

    def __init__(self, weight: float = 1.0):
        self.weight = weight

    @abstractmethod
    def check(self, chromosome: ScheduleChromosome, context: ScheduleContext) -> List[Violation]:
        """Return the violations of this constraint in the chromosome."""
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value}, severity={self.severity.value})"


class _PairwiseClash(Constraint):
    """Base for double bookings: one violation per pair of genes sharing a key."""

    severity = Severity.HARD

    def _key(self, gene: Gene) -> Tuple[str, int]:
        raise NotImplementedError

    def _message(self, gene: Gene, slot: Slot, context: ScheduleContext) -> str:
        raise NotImplementedError

    def check(self, chromosome: ScheduleChromosome, context: ScheduleContext) -> List[Violation]:
        groups: Dict[Tuple[str, int], List[int]] = defaultdict(list)
        for position, gene in enumerate(chromosome.genes):
            context.slot(gene.slot_index)
            context.room(gene.room_id)
            groups[self._key(gene)].append(position)

        violations = []
        for positions in groups.values():
            for first, second in combinations(positions, 2):
                a, b = chromosome.genes[first], chromosome.genes[second]
                violations.append(Violation(
                    kind=self.kind,
                    severity=self.severity,
                    involved_genes=(first, second),
                    professors=tuple(dict.fromkeys((a.professor_id, b.professor_id))),
                    courses=tuple(dict.fromkeys((a.course_id, b.course_id))),
                    rooms=tuple(dict.fromkeys((a.room_id, b.room_id))),
                    description=self._message(a, context.slot(a.slot_index), context),
                    penalty=self.weight,
                    level=ViolationLevel.CRITICAL,
                ))
        return violations


class RoomDoubleBooking(_PairwiseClash):
    kind = ConstraintKind.ROOM_DOUBLE_BOOKING

    def _key(self, gene: Gene) -> Tuple[str, int]:
        return gene.room_id, gene.slot_index

    def _message(self, gene: Gene, slot: Slot, context: ScheduleContext) -> str:
        return f"Room {context.room(gene.room_id).code} double-booked on {_describe(slot)}"


class ProfessorDoubleBooking(_PairwiseClash):
    kind = ConstraintKind.PROFESSOR_DOUBLE_BOOKING

    def _key(self, gene: Gene) -> Tuple[str, int]:
        return gene.professor_id, gene.slot_index

    def _message(self, gene: Gene, slot: Slot, context: ScheduleContext) -> str:
        return f"Professor {gene.professor_id} teaches two classes on {_describe(slot)}"


class AvailabilityConstraint(Constraint):
    """Genes placed outside the professor's declared availability."""

    kind = ConstraintKind.AVAILABILITY_VIOLATION
    severity = Severity.HARD

    def check(self, chromosome: ScheduleChromosome, context: ScheduleContext) -> List[Violation]:
        violations = []
        for position, gene in enumerate(chromosome.genes):
            profile = context.profile(gene.professor_id)
            slot = context.slot(gene.slot_index)
            if profile.is_available(slot):
                continue
            violations.append(Violation(
                kind=self.kind,
                severity=self.severity,
                involved_genes=(position,),
                professors=(gene.professor_id,),
                courses=(gene.course_id,),
                rooms=(gene.room_id,),
                description=f"Professor {gene.professor_id} is not available on {_describe(slot)}",
                penalty=self.weight,
                level=ViolationLevel.HIGH,
            ))
        return violations


class MaxDailyLoad(Constraint):
    """
    Genes per (professor, day) beyond the daily limit.

    The limit is given in hours and converted to whole blocks of the
    calendar's block length, with a minimum of one block.
    """

    kind = ConstraintKind.MAX_DAILY_LOAD_EXCEEDED
    severity = Severity.HARD

    def __init__(self, limit_hours: Optional[float] = None, weight: float = 1.0):
        super().__init__(weight)
        self.limit_hours = limit_hours

    def max_blocks(self, professor_hours: float, block_minutes: int) -> int:
        hours = self.limit_hours if self.limit_hours is not None else professor_hours
        return max(1, int(hours * 60 // block_minutes))

    def check(self, chromosome: ScheduleChromosome, context: ScheduleContext) -> List[Violation]:
        per_day: Dict[Tuple[str, str], List[int]] = defaultdict(list)
        for position, gene in enumerate(chromosome.genes):
            slot = context.slot(gene.slot_index)
            per_day[(gene.professor_id, slot.day.value)].append(position)

        violations = []
        for (professor_id, day), positions in per_day.items():
            profile = context.profile(professor_id)
            limit = self.max_blocks(profile.max_weekly_hours, context.block_minutes)
            if len(positions) <= limit:
                continue
            genes = [chromosome.genes[p] for p in positions]
            violations.append(Violation(
                kind=self.kind,
                severity=self.severity,
                involved_genes=tuple(positions),
                professors=(professor_id,),
                courses=tuple(dict.fromkeys(g.course_id for g in genes)),
                rooms=tuple(dict.fromkeys(g.room_id for g in genes)),
                description=(
                    f"Professor {professor_id} has {len(positions)} blocks on {day} "
                    f"(limit {limit})"
                ),
                penalty=self.weight,
                level=ViolationLevel.HIGH,
            ))
        return violations


class _SameDayPairs(Constraint):
    """Base for rules over pairs of one professor's genes on the same day."""

    severity = Severity.SOFT

    def __init__(self, rules: Dict[str, Tuple[int, int]], weight: float = 1.0):
        # professor_id -> (threshold minutes, priority)
        super().__init__(weight)
        self.rules = rules

    def _violates(self, gap: int, threshold: int) -> bool:
        raise NotImplementedError

    def _message(self, professor_id: str, a: Slot, b: Slot, gap: int) -> str:
        raise NotImplementedError

    def check(self, chromosome: ScheduleChromosome, context: ScheduleContext) -> List[Violation]:
        by_professor: Dict[str, List[int]] = defaultdict(list)
        for position, gene in enumerate(chromosome.genes):
            if gene.professor_id in self.rules:
                by_professor[gene.professor_id].append(position)

        violations = []
        for professor_id, positions in by_professor.items():
            threshold, priority = self.rules[professor_id]
            for first, second in combinations(positions, 2):
                a, b = chromosome.genes[first], chromosome.genes[second]
                slot_a, slot_b = context.slot(a.slot_index), context.slot(b.slot_index)
                gap = gap_minutes(slot_a, slot_b)
                if gap is None or not self._violates(gap, threshold):
                    continue
                violations.append(Violation(
                    kind=self.kind,
                    severity=self.severity,
                    involved_genes=(first, second),
                    professors=(professor_id,),
                    courses=tuple(dict.fromkeys((a.course_id, b.course_id))),
                    rooms=tuple(dict.fromkeys((a.room_id, b.room_id))),
                    description=self._message(professor_id, slot_a, slot_b, gap),
                    penalty=self.weight * priority / 5,
                    level=_soft_level(priority),
                ))
        return violations


class ConsecutiveBlocks(_SameDayPairs):
    """Back-to-back blocks for professors who asked for non-consecutive classes."""

    kind = ConstraintKind.CONSECUTIVE_BLOCK_VIOLATION

    def _violates(self, gap: int, threshold: int) -> bool:
        return gap == 0

    def _message(self, professor_id: str, a: Slot, b: Slot, gap: int) -> str:
        return f"Professor {professor_id} has consecutive blocks on {a.day.value}"


class MinimumInterval(_SameDayPairs):
    """Same-day blocks closer than the professor's minimum interval."""

    kind = ConstraintKind.MIN_INTERVAL_VIOLATION

    def _violates(self, gap: int, threshold: int) -> bool:
        return gap < threshold

    def _message(self, professor_id: str, a: Slot, b: Slot, gap: int) -> str:
        return f"Professor {professor_id} has only {gap} minutes between blocks on {a.day.value}"


class PreferenceMismatch(Constraint):
    """
    Courses assigned below the professor's top preference.

    One violation per (professor, course) with penalty (5 - level) / 5 for
    each of the course's blocks.
    """

    kind = ConstraintKind.PREFERENCE_MISMATCH
    severity = Severity.SOFT

    def check(self, chromosome: ScheduleChromosome, context: ScheduleContext) -> List[Violation]:
        groups: Dict[Tuple[str, str], List[int]] = defaultdict(list)
        for position, gene in enumerate(chromosome.genes):
            groups[(gene.professor_id, gene.course_id)].append(position)

        violations = []
        for (professor_id, course_id), positions in groups.items():
            level = context.profile(professor_id).preference_for(course_id)
            unit = (5 - level) / 5
            if unit <= 0:
                continue
            course = context.course(course_id)
            violations.append(Violation(
                kind=self.kind,
                severity=self.severity,
                involved_genes=tuple(positions),
                professors=(professor_id,),
                courses=(course_id,),
                rooms=tuple(dict.fromkeys(chromosome.genes[p].room_id for p in positions)),
                description=f"Professor {professor_id} rated {course.code} at {level}/5",
                penalty=self.weight * unit * len(positions),
                level=ViolationLevel.MEDIUM if level <= 2 else ViolationLevel.LOW,
            ))
        return violations


class _PerGeneRule(Constraint):
    """Base for soft rules checked gene by gene."""

    severity = Severity.SOFT

    def _priority(self, gene: Gene) -> Optional[int]:
        """Priority of the rule that applies to the gene, or None."""
        raise NotImplementedError

    def _offends(self, gene: Gene, context: ScheduleContext) -> Optional[str]:
        """Description of the offence, or None."""
        raise NotImplementedError

    def check(self, chromosome: ScheduleChromosome, context: ScheduleContext) -> List[Violation]:
        violations = []
        for position, gene in enumerate(chromosome.genes):
            priority = self._priority(gene)
            if priority is None:
                continue
            description = self._offends(gene, context)
            if description is None:
                continue
            violations.append(Violation(
                kind=self.kind,
                severity=self.severity,
                involved_genes=(position,),
                professors=(gene.professor_id,),
                courses=(gene.course_id,),
                rooms=(gene.room_id,),
                description=description,
                penalty=self.weight * priority / 5,
                level=_soft_level(priority),
            ))
        return violations


class RoomPreference(_PerGeneRule):
    """Genes outside the professor's preferred rooms, given as codes, ids or room types."""

    kind = ConstraintKind.ROOM_PREFERENCE_MISMATCH

    def __init__(self, rules: Dict[str, Tuple[FrozenSet[str], int]], weight: float = 1.0):
        super().__init__(weight)
        self.rules = rules

    def _priority(self, gene: Gene) -> Optional[int]:
        rule = self.rules.get(gene.professor_id)
        return rule[1] if rule else None

    def _offends(self, gene: Gene, context: ScheduleContext) -> Optional[str]:
        preferred = self.rules[gene.professor_id][0]
        room = context.room(gene.room_id)
        if preferred & {room.code, room.id.upper(), room.room_type.value.upper()}:
            return None
        return f"Professor {gene.professor_id} prefers other rooms than {room.code}"


class ShiftPreference(_PerGeneRule):
    kind = ConstraintKind.SHIFT_PREFERENCE_MISMATCH

    def __init__(self, rules: Dict[str, Tuple[FrozenSet[Shift], int]], weight: float = 1.0):
        super().__init__(weight)
        self.rules = rules

    def _priority(self, gene: Gene) -> Optional[int]:
        rule = self.rules.get(gene.professor_id)
        return rule[1] if rule else None

    def _offends(self, gene: Gene, context: ScheduleContext) -> Optional[str]:
        slot = context.slot(gene.slot_index)
        if slot.shift in self.rules[gene.professor_id][0]:
            return None
        return f"Professor {gene.professor_id} prefers not to teach in the {slot.shift.value}"


class LunchBreak(_PerGeneRule):
    kind = ConstraintKind.LUNCH_BREAK_VIOLATION

    def __init__(self, start: int, end: int, priority: int, weight: float = 1.0):
        super().__init__(weight)
        self.start = start
        self.end = end
        self.priority = priority

    def _priority(self, gene: Gene) -> Optional[int]:
        return self.priority

    def _offends(self, gene: Gene, context: ScheduleContext) -> Optional[str]:
        slot = context.slot(gene.slot_index)
        if slot.start < self.end and self.start < slot.end:
            return f"Block on {_describe(slot)} overlaps the lunch break"
        return None


class ConstraintCatalog:
    """
    Registry of the constraints evaluated for a run.

    Use for_context() to register the default predicates together with the
    professors' personal restrictions and the global restrictions.
    """

    def __init__(self, constraints: Optional[Sequence[Constraint]] = None):
        self._constraints: List[Constraint] = list(constraints or [])

    def register(self, constraint: Constraint) -> "ConstraintCatalog":
        self._constraints.append(constraint)
        return self

    @property
    def constraints(self) -> List[Constraint]:
        return list(self._constraints)

    @property
    def kinds(self) -> List[ConstraintKind]:
        return [constraint.kind for constraint in self._constraints]

    def __len__(self) -> int:
        return len(self._constraints)

    @classmethod
    def for_context(cls, context: ScheduleContext) -> "ConstraintCatalog":
        """
        Build the catalog for a run.

        Raises:
            ConfigError: a restriction value does not match its kind.
        """
        catalog = cls()
        catalog.register(RoomDoubleBooking())
        catalog.register(ProfessorDoubleBooking())
        catalog.register(AvailabilityConstraint())

        daily_limit = None
        daily = context.global_restriction(GlobalRestrictionKind.MAX_DAILY_LOAD)
        if daily is not None:
            daily_limit = resolve_value(daily.kind, daily.value).value
        catalog.register(MaxDailyLoad(limit_hours=daily_limit))
        catalog.register(PreferenceMismatch())

        non_consecutive: Dict[str, Tuple[int, int]] = {}
        min_interval: Dict[str, Tuple[int, int]] = {}
        room_rules: Dict[str, Tuple[FrozenSet[str], int]] = {}
        shift_rules: Dict[str, Tuple[FrozenSet[Shift], int]] = {}

        for professor_id, profile in context.profiles.items():
            for restriction in profile.restrictions:
                value = resolve_value(restriction.kind, restriction.value, owner=professor_id)
                if restriction.kind == RestrictionKind.NON_CONSECUTIVE:
                    non_consecutive[professor_id] = (0, restriction.priority)
                elif restriction.kind == RestrictionKind.MIN_INTERVAL:
                    min_interval[professor_id] = (int(value.value), restriction.priority)
                elif restriction.kind == RestrictionKind.PREFERRED_ROOM:
                    rooms = frozenset(v.strip().upper() for v in _string_values(value))
                    room_rules[professor_id] = (rooms, restriction.priority)
                elif restriction.kind == RestrictionKind.PREFERRED_SHIFT:
                    shifts = frozenset(Shift.parse(v) for v in _string_values(value))
                    shift_rules[professor_id] = (shifts, restriction.priority)

        if non_consecutive:
            catalog.register(ConsecutiveBlocks(non_consecutive))
        if min_interval:
            catalog.register(MinimumInterval(min_interval))
        if room_rules:
            catalog.register(RoomPreference(room_rules))
        if shift_rules:
            catalog.register(ShiftPreference(shift_rules))

        lunch = context.global_restriction(GlobalRestrictionKind.LUNCH_BREAK)
        if lunch is not None:
            window = resolve_value(lunch.kind, lunch.value)
            catalog.register(LunchBreak(window.start_minutes, window.end_minutes, lunch.priority))

        return catalog

    def evaluate(self, chromosome: ScheduleChromosome, context: ScheduleContext) -> List[Violation]:
        """
        Run every applicable constraint and aggregate the violations.

        Raises:
            EvaluationError: a predicate hit a malformed entity reference.
        """
        violations: List[Violation] = []
        for constraint in self._constraints:
            if not constraint.scope.applies_to(context.scope_kind):
                continue
            try:
                violations.extend(constraint.check(chromosome, context))
            except EvaluationError:
                raise
            except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
                raise EvaluationError(
                    f"Constraint {constraint.kind.value} failed: {e}",
                    details={"kind": constraint.kind.value, "chromosome_id": chromosome.chromosome_id},
                ) from e
        return violations
