"""
PyTest configuration and fixtures for the Timetable Optimization Engine.

This module provides shared entity fixtures, request factories and the
test-time observability setup.
"""

import os
import sys
from typing import Callable, List, Optional
import pytest

# Add project root to Python path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from src.core.config import settings
from src.core.observability import configure_observability
from src.timetabling.core.calendar import Shift, ShiftDefinition
from src.timetabling.core.config import (
    EvolutionParameters,
    LoggingConfig,
    ParallelizationConfig,
    SchedulerConfig,
    TerminationConfig,
)
from src.timetabling.core.entities import (
    AvailabilityWindow,
    CollectiveScope,
    Course,
    CoursePreference,
    IndividualScope,
    ProfessorProfile,
    Room,
    RoomType,
)
from src.timetabling.core.run import RunRequest


# Override settings for testing
settings.environment = "testing"
settings.logfire_environment = "testing"
settings.logfire_token = ""
settings.logfire_console = False

configure_observability(settings, force=True)


# Entity fixtures
@pytest.fixture
def rooms() -> List[Room]:
    """A classroom, a lab and a small seminar room."""
    return [
        Room(id="r101", code="r101", name="Sala 101", capacity=40),
        Room(id="lab1", code="LAB1", name="Lab 1", capacity=30, room_type=RoomType.LAB),
        Room(id="r102", code="R102", name="Sala 102", capacity=15),
    ]


@pytest.fixture
def courses() -> List[Course]:
    return [
        Course(id="c1", code="mat101", name="Calculus I", workload_hours=60, credits=4),
        Course(id="c2", code="INF110", name="Programming", workload_hours=60, credits=4,
               required_room_type=RoomType.LAB),
        Course(id="c3", code="FIS100", name="Physics", workload_hours=30, credits=2, enrollment=35),
    ]


@pytest.fixture
def professor() -> ProfessorProfile:
    return ProfessorProfile(
        professor_id="p1",
        name="Ana",
        courses=[CoursePreference(course_id="c1", level=5), CoursePreference(course_id="c3", level=2)],
    )


@pytest.fixture
def single_day_shifts() -> List[ShiftDefinition]:
    """Morning and afternoon split into two-hour blocks."""
    return [
        ShiftDefinition(Shift.MORNING, "08:00", "12:00", block_minutes=120),
        ShiftDefinition(Shift.AFTERNOON, "14:00", "18:00", block_minutes=120),
    ]


def make_config(population_size: int = 20, generations: int = 10, mutation_rate: float = 0.2,
                crossover_type: int = 1, parallel: bool = False, seed: Optional[int] = 42,
                **termination) -> SchedulerConfig:
    """Small deterministic configuration for tests."""
    return SchedulerConfig(
        evolution=EvolutionParameters(
            population_size=population_size,
            generations=generations,
            mutation_rate=mutation_rate,
            crossover_type=crossover_type,
        ),
        termination=TerminationConfig(**termination),
        logging=LoggingConfig(log_interval=1, metrics_export=False),
        parallelization=ParallelizationConfig(enable_parallel=parallel, chunk_size=5),
        random_seed=seed,
    )


@pytest.fixture
def config_factory() -> Callable[..., SchedulerConfig]:
    return make_config


@pytest.fixture
def two_course_request() -> Callable[..., RunRequest]:
    """
    One professor, two courses of one block each, one room and five
    available morning slots.
    """
    def factory(**config_kwargs) -> RunRequest:
        professor = ProfessorProfile(
            professor_id="p1",
            courses=[CoursePreference(course_id="c1", level=5), CoursePreference(course_id="c2", level=5)],
            availability=[AvailabilityWindow(day=day, shift="morning") for day in
                          ("mon", "tue", "wed", "thu", "fri")],
        )
        return RunRequest(
            scope=IndividualScope(professor_id="p1"),
            config=make_config(**config_kwargs),
            courses=[
                Course(id="c1", code="A1", name="Course A", workload_hours=30, credits=2, weekly_blocks=1),
                Course(id="c2", code="B1", name="Course B", workload_hours=30, credits=2, weekly_blocks=1),
            ],
            rooms=[Room(id="r1", code="R1", capacity=40)],
            professors=[professor],
            days=["mon", "tue", "wed", "thu", "fri"],
            shifts=[ShiftDefinition(Shift.MORNING, "08:00", "10:00")],
        )

    return factory


@pytest.fixture
def department_request(rooms, courses) -> Callable[..., RunRequest]:
    """Collective request for three professors sharing the room and course pools."""
    def factory(**config_kwargs) -> RunRequest:
        professors = [
            ProfessorProfile(
                professor_id="p1",
                courses=[CoursePreference(course_id="c1", level=5)],
            ),
            ProfessorProfile(
                professor_id="p2",
                courses=[CoursePreference(course_id="c2", level=4)],
                availability=[
                    AvailabilityWindow(day="mon", shift="afternoon"),
                    AvailabilityWindow(day="wed", shift="afternoon"),
                    AvailabilityWindow(day="fri", shift="morning"),
                ],
            ),
            ProfessorProfile(
                professor_id="p3",
                courses=[CoursePreference(course_id="c3", level=3)],
            ),
        ]
        return RunRequest(
            scope=CollectiveScope(professor_ids=["p1", "p2", "p3"]),
            config=make_config(**config_kwargs),
            courses=courses,
            rooms=rooms,
            professors=professors,
            semester="2024.1",
            title="Department timetable",
        )

    return factory


# Test markers
pytest.mark.slow = pytest.mark.slow
pytest.mark.integration = pytest.mark.integration
pytest.mark.unit = pytest.mark.unit
