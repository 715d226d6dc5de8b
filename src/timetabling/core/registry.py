"""
Run registry.

Owns the asyncio tasks of submitted runs, bounds how many execute at once
and routes cancellation requests to the right engine.
"""

import asyncio
from typing import Dict, List, Optional

import logfire

from src.core.config import settings
from src.core.observability import configure_observability
from src.timetabling.core.engine import ProgressCallback, TimetableEvolutionEngine
from src.timetabling.core.run import Run, RunRequest, RunResult, RunStatus


class RunHandle:
    """Reference to a submitted run."""

    def __init__(self, engine: TimetableEvolutionEngine, task: "asyncio.Task[RunResult]"):
        self.engine = engine
        self.task = task

    @property
    def run_id(self) -> str:
        return self.engine.run.run_id

    @property
    def run(self) -> Run:
        return self.engine.run

    @property
    def status(self) -> RunStatus:
        return self.engine.run.status

    def cancel(self) -> None:
        """Signal cancellation; the run stops at its next generation boundary."""
        self.engine.cancel()

    def done(self) -> bool:
        return self.task.done()

    async def result(self) -> RunResult:
        return await self.task

    def __repr__(self) -> str:
        return f"RunHandle(run_id={self.run_id[:8]}, status={self.status.value})"


class RunRegistry:
    """
    Schedules runs as independent asyncio tasks.

    At most max_concurrent_runs execute at the same time; further runs wait
    for a free slot and can be cancelled while waiting.
    """

    def __init__(self, max_concurrent_runs: Optional[int] = None):
        configure_observability()
        self.max_concurrent_runs = max_concurrent_runs or settings.scheduler_max_concurrent_runs
        if self.max_concurrent_runs < 1:
            raise ValueError("max_concurrent_runs must be at least 1")
        self._semaphore = asyncio.Semaphore(self.max_concurrent_runs)
        self._handles: Dict[str, RunHandle] = {}
        self._executing = 0

    async def submit(self, request: RunRequest,
                     progress_callback: Optional[ProgressCallback] = None) -> RunHandle:
        """
        Validate a request and schedule its run.

        Raises:
            ConfigError: invalid configuration or calendar.
            InputError: entity sets that cannot produce a schedule.
        """
        engine = TimetableEvolutionEngine(request, progress_callback=progress_callback)
        engine.prepare()

        task = asyncio.create_task(self._execute(engine), name=f"timetable-run-{engine.run.run_id}")
        handle = RunHandle(engine, task)
        self._handles[handle.run_id] = handle

        logfire.info("Run submitted", run_id=handle.run_id, scope=request.scope.kind,
                     professors=len(request.professor_ids))
        return handle

    async def _execute(self, engine: TimetableEvolutionEngine) -> RunResult:
        async with self._semaphore:
            self._executing += 1
            try:
                return await engine.execute()
            finally:
                self._executing -= 1

    def get(self, run_id: str) -> Optional[RunHandle]:
        return self._handles.get(run_id)

    def cancel(self, run_id: str) -> bool:
        """Cancel a run; returns False for unknown or finished runs."""
        handle = self._handles.get(run_id)
        if handle is None or handle.done():
            return False
        handle.cancel()
        logfire.info("Run cancellation requested", run_id=run_id)
        return True

    def forget(self, run_id: str) -> Optional[RunHandle]:
        """Drop a finished run from the registry."""
        handle = self._handles.get(run_id)
        if handle is not None and handle.done():
            return self._handles.pop(run_id)
        return None

    @property
    def executing(self) -> int:
        """Number of runs currently holding an execution slot."""
        return self._executing

    def active(self) -> List[RunHandle]:
        return [handle for handle in self._handles.values() if not handle.done()]

    async def wait_all(self) -> List[RunResult]:
        handles = list(self._handles.values())
        return list(await asyncio.gather(*(handle.result() for handle in handles)))
