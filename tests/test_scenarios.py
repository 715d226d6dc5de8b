"""
End-to-end scenarios for the timetable engine.

Each scenario submits a request through the run registry and inspects the
materialized result the data layer would persist.
"""

import asyncio
import time
from datetime import timedelta

import pytest

from src.timetabling import RunRegistry, TimetableEvolutionEngine
from src.timetabling.core.entities import (
    GlobalRestriction,
    GlobalRestrictionKind,
    NumberValue,
    Restriction,
    RestrictionKind,
)
from src.timetabling.core.run import EngineState, RunStatus


def double_bookings(result):
    entries = [e for professor_entries in result.schedule.values() for e in professor_entries]
    rooms = [(e.room_id, e.day, e.start_time) for e in entries]
    professors = [(e.professor_id, e.day, e.start_time) for e in entries]
    return (len(rooms) - len(set(rooms))) + (len(professors) - len(set(professors)))


@pytest.mark.integration
class TestScenarios:
    """Full runs through the registry."""

    @pytest.mark.asyncio
    async def test_single_professor_two_courses(self, two_course_request, mocker):
        callback = mocker.Mock()
        registry = RunRegistry(max_concurrent_runs=1)

        handle = await registry.submit(two_course_request(generations=50), progress_callback=callback)
        result = await handle.result()

        assert result.status == RunStatus.COMPLETED
        assert result.state in (EngineState.CONVERGED, EngineState.EXHAUSTED)
        assert len(result.schedule["p1"]) == 2
        assert double_bookings(result) == 0
        assert result.hard_violations == 0
        assert callback.call_count == result.generations_completed
        assert callback.call_args_list[0].args[0].generation == 1

    @pytest.mark.asyncio
    async def test_cancel_after_third_generation(self, two_course_request):
        registry = RunRegistry(max_concurrent_runs=1)
        handle = None

        def on_progress(progress):
            if progress.generation == 3:
                handle.cancel()

        handle = await registry.submit(
            two_course_request(generations=200, stop_on_perfect=False),
            progress_callback=on_progress,
        )
        result = await handle.result()

        assert result.state == EngineState.CANCELLED
        assert result.status == RunStatus.CANCELLED
        assert result.generations_completed == 3
        assert result.best_generation <= 3
        assert len(result.schedule["p1"]) == 2

    @pytest.mark.asyncio
    async def test_cancel_from_a_collaborator_task(self, two_course_request):
        engine = TimetableEvolutionEngine(two_course_request(generations=2000, stop_on_perfect=False))
        run_task = asyncio.create_task(engine.execute())

        while engine.run.generations_completed < 3:
            await asyncio.sleep(0)
        engine.cancel()
        result = await run_task

        assert result.state == EngineState.CANCELLED
        assert 3 <= result.generations_completed < 2000
        assert result.fitness is not None

    @pytest.mark.asyncio
    async def test_time_budget_exhausts_the_run(self, two_course_request):
        request = two_course_request(generations=2000, stop_on_perfect=False).model_copy(
            update={"time_budget": timedelta(milliseconds=50)}
        )
        engine = TimetableEvolutionEngine(request, progress_callback=lambda progress: time.sleep(0.01))

        result = await engine.execute()

        assert result.state == EngineState.EXHAUSTED
        assert result.status == RunStatus.COMPLETED
        assert 1 <= result.generations_completed < 2000
        assert result.fitness is not None

    @pytest.mark.asyncio
    async def test_department_run(self, department_request):
        registry = RunRegistry(max_concurrent_runs=1)

        handle = await registry.submit(department_request(generations=80, parallel=True))
        result = await handle.result()

        assert result.status == RunStatus.COMPLETED
        assert set(result.schedule) == {"p1", "p2", "p3"}
        # c1 and c2 take two blocks each, c3 one
        assert [len(result.schedule[p]) for p in ("p1", "p2", "p3")] == [2, 2, 1]
        assert all(e.room_id == "lab1" for e in result.schedule["p2"])
        assert all(e.room_id == "r101" for e in result.schedule["p3"])
        assert result.to_dict()["statistics"]["total_professors"] == 3

    @pytest.mark.asyncio
    async def test_restrictions_shape_the_schedule(self, department_request):
        request = department_request(generations=60, stop_on_perfect=False)
        p1 = request.professors[0].model_copy(update={"restrictions": [
            Restriction(kind=RestrictionKind.NON_CONSECUTIVE, priority=5),
        ]})
        request = request.model_copy(update={
            "professors": [p1, *request.professors[1:]],
            "global_restrictions": [
                GlobalRestriction(kind=GlobalRestrictionKind.MAX_DAILY_LOAD, value=NumberValue(value=2)),
            ],
        })

        result = await TimetableEvolutionEngine(request).execute()

        assert result.status == RunStatus.COMPLETED
        kinds = {v.kind.value for v in result.violations}
        assert kinds <= {
            "room_double_booking", "professor_double_booking", "availability_violation",
            "max_daily_load_exceeded", "consecutive_block_violation", "preference_mismatch",
        }
