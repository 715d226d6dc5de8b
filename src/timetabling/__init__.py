"""
Timetable Optimization Engine.

This package implements a genetic algorithm that produces conflict-minimized
weekly class timetables for one professor or a whole department, balancing
hard conflicts (double bookings, availability, daily load) against soft
preferences.
"""

from src.timetabling.core.config import (
    SchedulerConfig,
    EvolutionParameters,
    TerminationConfig,
    LoggingConfig,
    ParallelizationConfig,
    OptimizationProfile,
    apply_profile,
    create_default_config,
    create_individual_config,
    create_collective_config,
    create_test_config,
    create_production_config
)
from src.timetabling.core.calendar import (
    Day,
    Shift,
    Slot,
    ShiftDefinition,
    enumerate_slots,
    default_calendar
)
from src.timetabling.core.entities import (
    Course,
    Room,
    RoomType,
    ProfessorProfile,
    CoursePreference,
    AvailabilityWindow,
    Restriction,
    RestrictionKind,
    GlobalRestriction,
    GlobalRestrictionKind,
    IndividualScope,
    CollectiveScope,
    StringValue,
    NumberValue,
    RangeValue,
    EnumValue
)
from src.timetabling.core.chromosome import ScheduleChromosome, Gene, CrossoverType
from src.timetabling.core.population import Population, Individual
from src.timetabling.core.engine import TimetableEvolutionEngine
from src.timetabling.core.registry import RunRegistry, RunHandle
from src.timetabling.core.run import (
    RunRequest,
    Run,
    RunResult,
    RunStatus,
    EngineState,
    GenerationProgress,
    ScheduleEntry
)
from src.timetabling.core.errors import (
    SchedulerError,
    ConfigError,
    InputError,
    EvaluationError,
    RunFailure
)
from src.timetabling.fitness.base import Fitness, Violation, ConstraintKind, Severity
from src.timetabling.fitness.constraints import ConstraintCatalog
from src.timetabling.fitness.evaluator import FitnessEvaluator

__version__ = "1.0.0"

__all__ = [
    # Configuration
    "SchedulerConfig",
    "EvolutionParameters",
    "TerminationConfig",
    "LoggingConfig",
    "ParallelizationConfig",
    "OptimizationProfile",
    "apply_profile",
    "create_default_config",
    "create_individual_config",
    "create_collective_config",
    "create_test_config",
    "create_production_config",
    # Calendar
    "Day",
    "Shift",
    "Slot",
    "ShiftDefinition",
    "enumerate_slots",
    "default_calendar",
    # Entities
    "Course",
    "Room",
    "RoomType",
    "ProfessorProfile",
    "CoursePreference",
    "AvailabilityWindow",
    "Restriction",
    "RestrictionKind",
    "GlobalRestriction",
    "GlobalRestrictionKind",
    "IndividualScope",
    "CollectiveScope",
    "StringValue",
    "NumberValue",
    "RangeValue",
    "EnumValue",
    # Chromosome
    "ScheduleChromosome",
    "Gene",
    "CrossoverType",
    # Population
    "Population",
    "Individual",
    # Engine and runs
    "TimetableEvolutionEngine",
    "RunRegistry",
    "RunHandle",
    "RunRequest",
    "Run",
    "RunResult",
    "RunStatus",
    "EngineState",
    "GenerationProgress",
    "ScheduleEntry",
    # Errors
    "SchedulerError",
    "ConfigError",
    "InputError",
    "EvaluationError",
    "RunFailure",
    # Fitness
    "Fitness",
    "Violation",
    "ConstraintKind",
    "Severity",
    "ConstraintCatalog",
    "FitnessEvaluator"
]
