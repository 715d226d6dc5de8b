"""
Base classes for fitness evaluation in the timetabling framework.

This module provides the violation record produced by constraint
predicates, the Fitness result with its lexicographic ranking, and the
abstract FitnessFunction interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from src.timetabling.core.chromosome import ScheduleChromosome
    from src.timetabling.core.context import ScheduleContext


class ConstraintKind(str, Enum):
    """Kinds of constraints the catalog can evaluate."""
    ROOM_DOUBLE_BOOKING = "room_double_booking"
    PROFESSOR_DOUBLE_BOOKING = "professor_double_booking"
    AVAILABILITY_VIOLATION = "availability_violation"
    MAX_DAILY_LOAD_EXCEEDED = "max_daily_load_exceeded"
    CONSECUTIVE_BLOCK_VIOLATION = "consecutive_block_violation"
    PREFERENCE_MISMATCH = "preference_mismatch"
    MIN_INTERVAL_VIOLATION = "min_interval_violation"
    ROOM_PREFERENCE_MISMATCH = "room_preference_mismatch"
    SHIFT_PREFERENCE_MISMATCH = "shift_preference_mismatch"
    LUNCH_BREAK_VIOLATION = "lunch_break_violation"


class Severity(str, Enum):
    """Hard constraints decide feasibility; soft ones only modulate the score."""
    HARD = "hard"
    SOFT = "soft"


class ViolationLevel(str, Enum):
    """Reported seriousness of a violation."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class FitnessWeights(BaseModel):
    """Relative weight of hard conflicts and soft preference penalties."""
    preference_weight: float = Field(default=0.3, ge=0.0, le=1.0)
    conflict_weight: float = Field(default=0.7, ge=0.0, le=1.0)


@dataclass(frozen=True)
class Violation:
    """A detected constraint violation."""
    kind: ConstraintKind
    severity: Severity
    involved_genes: Tuple[int, ...]
    professors: Tuple[str, ...] = ()
    courses: Tuple[str, ...] = ()
    rooms: Tuple[str, ...] = ()
    description: str = ""
    penalty: float = 1.0
    level: ViolationLevel = ViolationLevel.MEDIUM

    @property
    def is_hard(self) -> bool:
        return self.severity == Severity.HARD

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "severity": self.severity.value,
            "level": self.level.value,
            "description": self.description,
            "involved_genes": list(self.involved_genes),
            "professors": list(self.professors),
            "courses": list(self.courses),
            "rooms": list(self.rooms),
            "penalty": self.penalty,
        }


@dataclass
class Fitness:
    """
    Result of scoring one chromosome.

    value lies in [0, 100]. Ranking is lexicographic: chromosomes whose
    evaluation failed come last, then fewer hard violations win, then the
    higher value wins.
    """
    value: float
    hard_violations: int
    soft_penalty: float
    violations: List[Violation] = field(default_factory=list)
    failed: bool = False
    error: Optional[str] = None

    @property
    def rank_key(self) -> Tuple[int, int, float]:
        """Sort key where smaller is better."""
        return (1 if self.failed else 0, self.hard_violations, -self.value)

    @property
    def is_feasible(self) -> bool:
        return not self.failed and self.hard_violations == 0

    @property
    def selection_weight(self) -> float:
        """Positive weight for fitness-proportionate selection."""
        if self.failed:
            return 1e-6
        return (self.value + 1.0) / (1 + self.hard_violations) ** 2

    def better_than(self, other: Optional["Fitness"]) -> bool:
        return other is None or self.rank_key < other.rank_key

    @classmethod
    def minimum(cls, error: str) -> "Fitness":
        """Fitness assigned when evaluation of a chromosome fails."""
        return cls(value=0.0, hard_violations=0, soft_penalty=0.0, failed=True, error=error)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "hard_violations": self.hard_violations,
            "soft_penalty": self.soft_penalty,
            "failed": self.failed,
            "error": self.error,
            "violations": [v.to_dict() for v in self.violations],
        }


class FitnessFunction(ABC):
    """
    Abstract base class for fitness functions.

    Implementations must be pure: scoring the same chromosome twice yields
    the same result, and no state is shared between calls.
    """

    @abstractmethod
    def score(self, chromosome: "ScheduleChromosome", context: "ScheduleContext") -> Fitness:
        """
        Score a chromosome.

        Args:
            chromosome: The schedule to evaluate
            context: Entities and calendar of the run

        Returns:
            Fitness with value in [0, 100] and the detected violations
        """
        pass

    @staticmethod
    def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
        return max(low, min(high, value))
