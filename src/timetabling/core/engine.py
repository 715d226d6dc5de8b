"""
Evolution Driver for the Timetable Genetic Algorithm.

This module implements the engine that orchestrates one run: input
preparation, seeding, parallel fitness evaluation, termination policy and
breeding. States follow Seeded -> Evolving -> Converged | Exhausted |
Cancelled | Failed.
"""

import asyncio
import logging
import os
import random
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Tuple

import logfire

from src.core.config import settings
from src.timetabling.core.chromosome import (
    GeneDomain,
    RequiredBlock,
    build_required_blocks,
)
from src.timetabling.core.config import SchedulerConfig
from src.timetabling.core.context import ScheduleContext
from src.timetabling.core.errors import RunFailure, SchedulerError
from src.timetabling.core.population import Individual, Population
from src.timetabling.core.run import (
    EngineState,
    GenerationProgress,
    Run,
    RunRequest,
    RunResult,
)
from src.timetabling.fitness.base import Fitness, FitnessFunction, FitnessWeights
from src.timetabling.fitness.constraints import ConstraintCatalog
from src.timetabling.fitness.evaluator import FitnessEvaluator

ProgressCallback = Callable[[GenerationProgress], None]


class TimetableEvolutionEngine:
    """
    Main engine for running one timetable optimization.

    Owns the population and the in-progress Run exclusively. Randomness
    comes from a generator private to the run, so concurrent runs share no
    mutable state.
    """

    def __init__(
        self,
        request: RunRequest,
        run: Optional[Run] = None,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
        executor: Optional[ThreadPoolExecutor] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the engine.

        Args:
            request: Generation request with scope, entities and parameters
            run: Optional pre-created run record
            progress_callback: Called with a GenerationProgress after each generation
            cancel_event: Cooperative cancellation signal
            executor: Optional shared executor for fitness evaluation
            logger: Optional logger instance

        Raises:
            ConfigError: inconsistent configuration.
        """
        self.request = request
        self.config: SchedulerConfig = request.effective_config(
            default_time_budget=settings.scheduler_default_time_budget_seconds
        )
        self.run = run or Run(request)
        self.progress_callback = progress_callback
        self.cancel_event = cancel_event or threading.Event()
        self.logger = logger or self._setup_logger()
        self.rng = random.Random(self.config.random_seed)

        self._executor = executor
        self._owns_executor = False

        # Prepared problem
        self.context: Optional[ScheduleContext] = None
        self.blocks: List[RequiredBlock] = []
        self.domain: Optional[GeneDomain] = None
        self.fitness_function: Optional[FitnessFunction] = None

        # State tracking
        self.current_population: Optional[Population] = None
        self.total_evaluations = 0

    def _setup_logger(self) -> logging.Logger:
        """Setup default logger."""
        logger = logging.getLogger("timetabling.engine")
        logger.setLevel(getattr(logging, self.config.logging.log_level))

        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            logger.addHandler(handler)

        return logger

    @property
    def prepared(self) -> bool:
        return self.fitness_function is not None

    def prepare(self) -> None:
        """
        Validate the request and build calendar, gene domain and catalog.

        Raises:
            ConfigError: invalid calendar or restriction values.
            InputError: entity sets that cannot produce a schedule.
        """
        with logfire.span("Prepare Run", run_id=self.run.run_id, scope=self.request.scope.kind):
            context = self.request.build_context()
            blocks = build_required_blocks(
                self.request.professor_ids, context.profiles, context.courses, context.block_minutes
            )
            domain = GeneDomain.build(
                context.slots, context.courses, list(context.rooms.values()),
                [block.course_id for block in blocks],
            )
            catalog = ConstraintCatalog.for_context(context)
            weights = FitnessWeights(
                preference_weight=self.config.evolution.preference_weight,
                conflict_weight=self.config.evolution.conflict_weight,
            )

            self.context = context
            self.blocks = blocks
            self.domain = domain
            self.fitness_function = FitnessEvaluator(catalog, weights)

            logfire.info(
                "Run prepared",
                run_id=self.run.run_id,
                slots=len(context.slots),
                rooms=len(context.rooms),
                required_blocks=len(blocks),
                constraints=[kind.value for kind in catalog.kinds],
            )

    def cancel(self) -> None:
        """Request cancellation; observed at the next generation boundary."""
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    async def execute(self) -> RunResult:
        """
        Run the genetic algorithm until a terminal state.

        Returns:
            RunResult for the terminal state. Failures are reported in the
            result rather than raised.
        """
        evolution = self.config.evolution
        with logfire.span("Timetable Run",
                          run_id=self.run.run_id,
                          scope=self.request.scope.kind,
                          population_size=evolution.population_size,
                          generations=evolution.generations):

            self.run.start()
            self.logger.info(
                f"Starting run {self.run.run_id} with population size {evolution.population_size}"
            )

            try:
                if not self.prepared:
                    self.prepare()
                state = await self._evolve()
                self.run.advance(state)
            except SchedulerError as e:
                return self._fail(e)
            except Exception as e:
                self.logger.exception(f"Run {self.run.run_id} crashed")
                return self._fail(RunFailure(
                    f"Unexpected error: {e}",
                    details={"exception": type(e).__name__},
                ))
            finally:
                self._shutdown_executor()

            result = RunResult.from_run(self.run, self.context, self._history())
            self.logger.info(
                f"Run {self.run.run_id} finished as {state.value} after "
                f"{self.run.generations_completed} generations in {self.run.elapsed_seconds:.2f}s"
            )
            logfire.info(
                "Run finished",
                run_id=self.run.run_id,
                state=state.value,
                fitness=result.fitness,
                hard_violations=result.hard_violations,
                generations=result.generations_completed,
                elapsed_seconds=result.elapsed_seconds,
            )
            return result

    async def _evolve(self) -> EngineState:
        """Seed, then evaluate and breed until a termination condition holds."""
        if self.cancelled:
            return EngineState.CANCELLED

        self.current_population = await self._initialize_population()
        self.run.advance(EngineState.SEEDED)
        self.run.advance(EngineState.EVOLVING)

        generations = self.config.evolution.generations
        for generation in range(generations):
            with logfire.span("Generation", generation=generation + 1):
                await self._evaluate_population()

                population = self.current_population
                if population.update_best_individual():
                    best = population.best_individual
                    self.run.record_best(best.chromosome, best.fitness, population.best_generation + 1)
                entry = population.record_history()
                self.run.generations_completed = generation + 1

                self._report_progress(generation + 1, entry)
                if self.config.logging.enable_logging and \
                   (generation + 1) % self.config.logging.log_interval == 0:
                    self._log_progress(generation + 1)

                # Generation boundary: let other tasks run, including cancellers
                await asyncio.sleep(0)

                if self.cancelled:
                    self.logger.info(f"Cancellation observed after generation {generation + 1}")
                    return EngineState.CANCELLED
                if self._has_converged():
                    self.logger.info(f"Converged at generation {generation + 1}")
                    return EngineState.CONVERGED
                if self._budget_exceeded():
                    self.logger.info(f"Time budget exhausted after generation {generation + 1}")
                    return EngineState.EXHAUSTED

                if generation < generations - 1:
                    await self._create_next_generation()

        return EngineState.EXHAUSTED

    async def _initialize_population(self) -> Population:
        """Initialize the population."""
        with logfire.span("Initialize Population"):
            population = Population(
                self.config, self.rng, generation=0, room_index=self.context.room_positions()
            )
            population.initialize_random(self.blocks, self.domain)
            self._check_structure(population.individuals)

            self.logger.info(f"Initialized population with {len(population.individuals)} individuals")
            return population

    async def _evaluate_population(self) -> None:
        """Evaluate fitness for all unevaluated individuals; returns once all are scored."""
        with logfire.span("Evaluate Population", size=len(self.current_population.individuals)):
            unevaluated = self.current_population.unevaluated()

            if not unevaluated:
                return

            if self.config.parallelization.enable_parallel:
                await self._parallel_evaluation(unevaluated)
            else:
                await self._sequential_evaluation(unevaluated)

            self.total_evaluations += len(unevaluated)
            failed = sum(1 for ind in unevaluated if ind.fitness.failed)
            if failed:
                logfire.warn(f"{failed} chromosomes failed evaluation",
                             run_id=self.run.run_id, failed=failed)

    async def _sequential_evaluation(self, individuals: List[Individual]) -> None:
        """Evaluate individuals sequentially."""
        for individual in individuals:
            individual.update_fitness(self.fitness_function.score(individual.chromosome, self.context))

    async def _parallel_evaluation(self, individuals: List[Individual]) -> None:
        """Evaluate chunks on worker threads; gather is the barrier before selection."""
        loop = asyncio.get_running_loop()
        executor = self._get_executor()
        chunk_size = self.config.parallelization.chunk_size
        chunks = [individuals[i:i + chunk_size] for i in range(0, len(individuals), chunk_size)]

        results = await asyncio.gather(*(
            loop.run_in_executor(executor, self._evaluate_chunk, chunk) for chunk in chunks
        ))

        for evaluated_chunk in results:
            for individual, fitness in evaluated_chunk:
                individual.update_fitness(fitness)

    def _evaluate_chunk(self, individuals: List[Individual]) -> List[Tuple[Individual, Fitness]]:
        """Evaluate a chunk of individuals (runs on a worker thread)."""
        return [
            (individual, self.fitness_function.score(individual.chromosome, self.context))
            for individual in individuals
        ]

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            num_workers = (
                self.config.parallelization.num_workers
                or settings.scheduler_num_workers
                or os.cpu_count()
                or 1
            )
            self._executor = ThreadPoolExecutor(
                max_workers=num_workers, thread_name_prefix=f"eval-{self.run.run_id[:8]}"
            )
            self._owns_executor = True
        return self._executor

    def _shutdown_executor(self) -> None:
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
            self._owns_executor = False

    async def _create_next_generation(self) -> None:
        """Create the next generation of individuals."""
        with logfire.span("Create Next Generation"):
            evolution = self.config.evolution
            population = self.current_population

            # Preserve elite
            new_individuals = population.get_elite()

            while len(new_individuals) < evolution.population_size:
                parents = population.select_parents(2)

                if self.rng.random() < evolution.crossover_rate:
                    children = parents[0].chromosome.crossover(
                        parents[1].chromosome, evolution.crossover_type, self.rng
                    )
                else:
                    children = (parents[0].chromosome.clone(), parents[1].chromosome.clone())

                for child in children:
                    child.mutate(self.domain, evolution.mutation_rate, self.rng)
                    new_individuals.append(
                        Individual(chromosome=child, parent_ids=[p.id for p in parents])
                    )

            new_individuals = new_individuals[:evolution.population_size]
            self._check_structure(new_individuals)
            population.replace_population(new_individuals)

    def _check_structure(self, individuals: List[Individual]) -> None:
        """Every chromosome must cover exactly the required blocks."""
        if not individuals:
            raise RunFailure("Population is empty", details={"run_id": self.run.run_id})
        expected = len(self.blocks)
        for individual in individuals:
            if len(individual.chromosome) != expected:
                raise RunFailure(
                    f"Chromosome has {len(individual.chromosome)} genes, expected {expected}",
                    details={"run_id": self.run.run_id, "chromosome_id": individual.id},
                )

    def _has_converged(self) -> bool:
        """Early stop requires a feasible best-ever chromosome."""
        best = self.current_population.best_individual
        if best is None or not best.fitness.is_feasible:
            return False

        termination = self.config.termination
        if termination.stop_on_perfect and best.fitness.value >= 100.0 and not best.fitness.violations:
            return True
        return self.current_population.detect_stagnation(termination.stagnation_generations)

    def _budget_exceeded(self) -> bool:
        max_runtime = self.config.termination.max_runtime
        if max_runtime is None:
            return False
        return self.run.elapsed_seconds > max_runtime.total_seconds()

    def _report_progress(self, generation: int, entry: dict) -> None:
        if self.progress_callback is None:
            return
        best = self.current_population.best_individual
        self.progress_callback(GenerationProgress(
            run_id=self.run.run_id,
            generation=generation,
            best_fitness=best.fitness.value,
            best_hard_violations=best.fitness.hard_violations,
            avg_fitness=entry.get("avg_fitness", 0.0),
            diversity=entry.get("avg_chromosome_distance", 0.0),
            elapsed_seconds=self.run.elapsed_seconds,
        ))

    def _log_progress(self, generation: int) -> None:
        """Log evolution progress."""
        stats = self.current_population.statistics
        diversity = self.current_population.diversity_metrics

        self.logger.info(
            f"Generation {generation}: "
            f"Best: {stats.get('best_fitness', 0):.2f} "
            f"(hard {stats.get('best_hard_violations', 0)}), "
            f"Avg: {stats.get('avg_fitness', 0):.2f}, "
            f"Diversity: {diversity.get('avg_chromosome_distance', 0):.2f}"
        )

        if self.config.logging.metrics_export:
            metrics = {
                "run_id": self.run.run_id,
                "evolution_generation": generation,
                **{k: v for k, v in stats.items() if k != "generation"},
                **diversity
            }
            logfire.info("Evolution Progress", **metrics)

    def _history(self) -> List[dict]:
        if self.current_population is None:
            return []
        return list(self.current_population.history)

    def _fail(self, error: SchedulerError) -> RunResult:
        self.logger.error(f"Run {self.run.run_id} failed: {error.message}")
        logfire.error(
            "Run failed",
            run_id=self.run.run_id,
            error_code=error.error_code,
            error=error.message,
            details=error.details,
        )
        if not self.run.is_terminal:
            self.run.fail(error)
        return RunResult.from_run(self.run, self.context)
