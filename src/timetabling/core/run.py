"""
Run model for timetable generation.

A RunRequest carries the scope, algorithm configuration and validated
entity sets handed over by the data layer. A Run records the lifecycle of
one execution, and RunResult materializes the best schedule, its violation
report and summary statistics once the run reaches a terminal state.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
import time
import uuid

from pydantic import BaseModel, Field, field_validator

from src.timetabling.core.calendar import DEFAULT_DAYS, DEFAULT_SHIFTS, Day, ShiftDefinition
from src.timetabling.core.chromosome import ScheduleChromosome
from src.timetabling.core.config import (
    OptimizationProfile,
    SchedulerConfig,
    apply_profile,
    create_default_config,
)
from src.timetabling.core.context import ScheduleContext
from src.timetabling.core.entities import (
    Course,
    GlobalRestriction,
    ProfessorProfile,
    Room,
    Scope,
)
from src.timetabling.core.errors import ConfigError, RunFailure, SchedulerError
from src.timetabling.fitness.base import Fitness, Violation


class RunStatus(str, Enum):
    """Status reported to the data layer."""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class EngineState(str, Enum):
    """Evolution driver state machine."""
    SEEDED = "seeded"
    EVOLVING = "evolving"
    CONVERGED = "converged"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES

    @property
    def status(self) -> RunStatus:
        if self in (EngineState.CONVERGED, EngineState.EXHAUSTED):
            return RunStatus.COMPLETED
        if self == EngineState.CANCELLED:
            return RunStatus.CANCELLED
        if self == EngineState.FAILED:
            return RunStatus.FAILED
        return RunStatus.RUNNING


_TERMINAL_STATES = frozenset({
    EngineState.CONVERGED, EngineState.EXHAUSTED, EngineState.CANCELLED, EngineState.FAILED,
})

_TRANSITIONS = {
    None: {EngineState.SEEDED, EngineState.CANCELLED, EngineState.FAILED},
    EngineState.SEEDED: {EngineState.EVOLVING, EngineState.CANCELLED, EngineState.FAILED},
    EngineState.EVOLVING: {
        EngineState.CONVERGED, EngineState.EXHAUSTED, EngineState.CANCELLED, EngineState.FAILED,
    },
}


class RunRequest(BaseModel):
    """Generation request submitted by the data layer."""

    scope: Scope
    config: SchedulerConfig = Field(default_factory=create_default_config)
    profile: Optional[OptimizationProfile] = None

    courses: List[Course] = Field(default_factory=list)
    rooms: List[Room] = Field(default_factory=list)
    professors: List[ProfessorProfile] = Field(default_factory=list)

    days: List[Day] = Field(default_factory=lambda: list(DEFAULT_DAYS))
    shifts: List[ShiftDefinition] = Field(default_factory=lambda: list(DEFAULT_SHIFTS))
    global_restrictions: List[GlobalRestriction] = Field(default_factory=list)

    time_budget: Optional[timedelta] = None
    seed: Optional[int] = None

    title: str = Field(default="", max_length=200)
    semester: Optional[str] = Field(default=None, pattern=r"^\d{4}\.[1-2]$")
    notes: str = Field(default="", max_length=1000)

    @field_validator("days", mode="before")
    @classmethod
    def parse_days(cls, v):
        try:
            return [Day.parse(day) for day in v]
        except ConfigError as exc:
            raise ValueError(str(exc)) from exc

    @field_validator("time_budget")
    @classmethod
    def positive_budget(cls, v):
        if v is not None and v.total_seconds() <= 0:
            raise ValueError("time_budget must be positive")
        return v

    @property
    def professor_ids(self) -> List[str]:
        return list(self.scope.professor_ids)

    def effective_config(self, default_time_budget: Optional[float] = None) -> SchedulerConfig:
        """
        Configuration the run executes with.

        The optimization profile replaces the fitness weights; the request
        seed and time budget override the configured ones.

        Raises:
            ConfigError: inconsistent configuration.
        """
        config = self.config.model_copy(deep=True)
        if self.profile is not None:
            config.evolution = apply_profile(config.evolution, self.profile)
        if self.seed is not None:
            config.random_seed = self.seed
        if self.time_budget is not None:
            config.termination.max_runtime = self.time_budget
        elif config.termination.max_runtime is None and default_time_budget:
            config.termination.max_runtime = timedelta(seconds=default_time_budget)

        try:
            config.validate_consistency()
        except ValueError as e:
            raise ConfigError(str(e), details={"config": config.to_dict()}) from e
        return config

    def build_context(self) -> ScheduleContext:
        return ScheduleContext.build(
            scope_kind=self.scope.kind,
            professor_ids=self.professor_ids,
            days=self.days,
            shifts=self.shifts,
            courses=self.courses,
            rooms=self.rooms,
            profiles=self.professors,
            global_restrictions=self.global_restrictions,
        )


@dataclass
class GenerationProgress:
    """Progress report emitted after each evaluated generation."""
    run_id: str
    generation: int
    best_fitness: float
    best_hard_violations: int
    avg_fitness: float
    diversity: float
    elapsed_seconds: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "generation": self.generation,
            "best_fitness": self.best_fitness,
            "best_hard_violations": self.best_hard_violations,
            "avg_fitness": self.avg_fitness,
            "diversity": self.diversity,
            "elapsed_seconds": self.elapsed_seconds,
        }


class Run:
    """
    One execution of the evolutionary search.

    Mutated only by its engine; once terminal it can no longer change.
    """

    def __init__(self, request: RunRequest, run_id: Optional[str] = None):
        self.run_id = run_id or uuid.uuid4().hex
        self.request = request
        self.state: Optional[EngineState] = None
        self.generations_completed = 0
        self.best_chromosome: Optional[ScheduleChromosome] = None
        self.best_fitness: Optional[Fitness] = None
        self.best_generation: Optional[int] = None
        self.error: Optional[SchedulerError] = None
        self.created_at = datetime.now(timezone.utc)
        self.finished_at: Optional[datetime] = None
        self._started: Optional[float] = None
        self._finished: Optional[float] = None

    @property
    def status(self) -> RunStatus:
        return self.state.status if self.state else RunStatus.RUNNING

    @property
    def is_terminal(self) -> bool:
        return self.state is not None and self.state.is_terminal

    @property
    def elapsed_seconds(self) -> float:
        if self._started is None:
            return 0.0
        end = self._finished if self._finished is not None else time.monotonic()
        return end - self._started

    def start(self) -> None:
        if self._started is None:
            self._started = time.monotonic()

    def advance(self, state: EngineState) -> None:
        """
        Move to a new state.

        Raises:
            RunFailure: the run is terminal or the transition is not allowed.
        """
        if self.is_terminal:
            raise RunFailure(
                f"Run {self.run_id} is already {self.state.value}",
                details={"run_id": self.run_id, "state": self.state.value, "requested": state.value},
            )
        if state not in _TRANSITIONS[self.state]:
            raise RunFailure(
                f"Invalid transition {self.state.value if self.state else 'new'} -> {state.value}",
                details={"run_id": self.run_id},
            )
        self.state = state
        if state.is_terminal:
            self._finished = time.monotonic()
            self.finished_at = datetime.now(timezone.utc)

    def record_best(self, chromosome: ScheduleChromosome, fitness: Fitness, generation: int) -> None:
        if self.is_terminal:
            raise RunFailure(f"Run {self.run_id} is already {self.state.value}")
        self.best_chromosome = chromosome
        self.best_fitness = fitness
        self.best_generation = generation

    def fail(self, error: SchedulerError) -> None:
        """Mark the run Failed and discard partial results."""
        self.error = error
        self.best_chromosome = None
        self.best_fitness = None
        self.best_generation = None
        self.advance(EngineState.FAILED)

    def __repr__(self) -> str:
        state = self.state.value if self.state else "new"
        return f"Run(id={self.run_id[:8]}, state={state}, generations={self.generations_completed})"


@dataclass
class ScheduleEntry:
    """One materialized class: (course, room, day, shift, start, end) for a professor."""
    professor_id: str
    course_id: str
    course_code: str
    course_name: str
    room_id: str
    room_code: str
    day: Day
    shift: str
    start_time: str
    end_time: str
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "professor_id": self.professor_id,
            "course_id": self.course_id,
            "course_code": self.course_code,
            "course_name": self.course_name,
            "room_id": self.room_id,
            "room_code": self.room_code,
            "day": self.day.value,
            "shift": self.shift,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "block_number": self.block_number,
        }


def materialize(chromosome: ScheduleChromosome, context: ScheduleContext) -> Dict[str, List[ScheduleEntry]]:
    """Turn a chromosome into schedule entries grouped by professor."""
    schedule: Dict[str, List[ScheduleEntry]] = {pid: [] for pid in context.profiles}
    for gene in chromosome.genes:
        course = context.course(gene.course_id)
        room = context.room(gene.room_id)
        slot = context.slot(gene.slot_index)
        schedule.setdefault(gene.professor_id, []).append(ScheduleEntry(
            professor_id=gene.professor_id,
            course_id=course.id,
            course_code=course.code,
            course_name=course.name,
            room_id=room.id,
            room_code=room.code,
            day=slot.day,
            shift=slot.shift.value,
            start_time=slot.start_time,
            end_time=slot.end_time,
            block_number=gene.block_number,
        ))
    return schedule


def weekly_grid(entries: List[ScheduleEntry]) -> Dict[str, List[Dict[str, Any]]]:
    """Entries grouped by day in calendar order, each day sorted by start time."""
    by_day: Dict[Day, List[ScheduleEntry]] = defaultdict(list)
    for entry in entries:
        by_day[entry.day].append(entry)
    return {
        day.value: [e.to_dict() for e in sorted(by_day[day], key=lambda e: e.start_time)]
        for day in sorted(by_day, key=lambda d: d.order)
    }


def schedule_statistics(schedule: Dict[str, List[ScheduleEntry]], violations: List[Violation],
                        context: ScheduleContext) -> Dict[str, Any]:
    entries = [entry for professor_entries in schedule.values() for entry in professor_entries]
    total = len(entries)
    preferred = sum(
        1 for entry in entries
        if context.profile(entry.professor_id).preference_for(entry.course_id) >= 3
    )
    return {
        "total_professors": len(schedule),
        "total_courses": len({entry.course_id for entry in entries}),
        "total_rooms": len({entry.room_id for entry in entries}),
        "total_entries": total,
        "preferences_met_pct": round(preferred / total * 100, 2) if total else 0.0,
        "conflict_pct": round(min(100.0, len(violations) / total * 100), 2) if total else 0.0,
    }


@dataclass
class RunResult:
    """Outcome of a run handed back to the data layer."""
    run_id: str
    status: RunStatus
    state: EngineState
    fitness: Optional[float]
    hard_violations: Optional[int]
    elapsed_seconds: float
    generations_completed: int
    best_generation: Optional[int] = None
    schedule: Dict[str, List[ScheduleEntry]] = field(default_factory=dict)
    violations: List[Violation] = field(default_factory=list)
    statistics: Dict[str, Any] = field(default_factory=dict)
    history: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[Dict[str, Any]] = None

    @property
    def is_feasible(self) -> bool:
        return self.hard_violations == 0 and self.state != EngineState.FAILED

    @classmethod
    def from_run(cls, run: Run, context: Optional[ScheduleContext],
                 history: Optional[List[Dict[str, Any]]] = None) -> "RunResult":
        if not run.is_terminal:
            raise RunFailure(f"Run {run.run_id} has not finished", details={"run_id": run.run_id})

        result = cls(
            run_id=run.run_id,
            status=run.status,
            state=run.state,
            fitness=run.best_fitness.value if run.best_fitness else None,
            hard_violations=run.best_fitness.hard_violations if run.best_fitness else None,
            elapsed_seconds=run.elapsed_seconds,
            generations_completed=run.generations_completed,
            best_generation=run.best_generation,
            history=list(history or []),
            error=run.error.to_dict() if run.error else None,
        )
        if run.best_chromosome is not None and context is not None:
            result.schedule = materialize(run.best_chromosome, context)
            result.violations = list(run.best_fitness.violations)
            result.statistics = schedule_statistics(result.schedule, result.violations, context)
        return result

    def grid(self) -> Dict[str, Dict[str, List[Dict[str, Any]]]]:
        """Weekly grid per professor."""
        return {pid: weekly_grid(entries) for pid, entries in self.schedule.items()}

    def violation_report(self) -> List[Dict[str, Any]]:
        return [v.to_dict() for v in self.violations]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "state": self.state.value,
            "fitness": self.fitness,
            "hard_violations": self.hard_violations,
            "elapsed_seconds": self.elapsed_seconds,
            "generations_completed": self.generations_completed,
            "best_generation": self.best_generation,
            "schedule": {
                pid: [entry.to_dict() for entry in entries]
                for pid, entries in self.schedule.items()
            },
            "grid": self.grid(),
            "violations": self.violation_report(),
            "statistics": self.statistics,
            "error": self.error,
        }
