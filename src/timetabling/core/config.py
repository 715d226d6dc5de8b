"""
Timetabling Configuration Module.

This module defines configuration classes for the timetable genetic
algorithm, including evolution parameters, termination policy and
system settings.
"""

from datetime import timedelta
from enum import Enum
from typing import Any, Dict, Literal, Optional
import json
import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.core.config import settings
from src.timetabling.core.chromosome import CrossoverType


class EvolutionParameters(BaseModel):
    """Parameters controlling the genetic algorithm evolution process."""

    model_config = ConfigDict(validate_assignment=True)

    # Population parameters
    population_size: int = Field(
        default=50,
        ge=10,
        le=500,
        description="Number of chromosomes in the population"
    )
    generations: int = Field(
        default=100,
        ge=10,
        le=2000,
        description="Maximum number of generations to evolve"
    )

    # Genetic operators
    mutation_rate: float = Field(
        default=0.1,
        ge=0.01,
        le=1.0,
        description="Probability of mutation for each gene"
    )
    crossover_type: CrossoverType = Field(
        default=CrossoverType.ONE_POINT,
        description="1 = one-point crossover, 2 = two-point crossover"
    )
    crossover_rate: float = Field(
        default=1.0,
        ge=0.0,
        le=1.0,
        description="Probability of crossover between parents"
    )

    # Fitness weights
    preference_weight: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Weight of soft (preference) penalties"
    )
    conflict_weight: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Weight of hard conflicts"
    )

    # Selection parameters
    elite_size: int = Field(
        default=1,
        ge=1,
        description="Number of best chromosomes copied unchanged into the next generation"
    )
    tournament_size: int = Field(
        default=3,
        ge=2,
        description="Number of chromosomes in tournament selection"
    )
    selection_method: Literal["tournament", "roulette", "rank"] = Field(
        default="tournament",
        description="Selection method for choosing parents"
    )

    @field_validator('elite_size')
    def validate_elite_size(cls, v, info):
        """Ensure elite size is less than population size."""
        if 'population_size' in info.data and v >= info.data['population_size']:
            raise ValueError('Elite size must be less than population size')
        return v


class TerminationConfig(BaseModel):
    """Early-stop policy."""

    stagnation_generations: Optional[int] = Field(
        default=None,
        ge=1,
        description="Generations without improvement before declaring convergence (None disables)"
    )
    max_runtime: Optional[timedelta] = Field(
        default=None,
        description="Wall-clock budget; exceeding it ends the run as exhausted"
    )
    stop_on_perfect: bool = Field(
        default=True,
        description="Stop as soon as a schedule with no violations is found"
    )

    @field_validator('max_runtime')
    def validate_max_runtime(cls, v):
        if v is not None and v.total_seconds() <= 0:
            raise ValueError('max_runtime must be positive')
        return v


class LoggingConfig(BaseModel):
    """Configuration for logging and monitoring."""

    enable_logging: bool = Field(
        default=True,
        description="Enable detailed evolution logging"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default_factory=lambda: settings.scheduler_log_level,
        description="Logging level (defaults to SCHEDULER_LOG_LEVEL)"
    )
    log_interval: int = Field(
        default=10,
        ge=1,
        description="Generations between progress logs"
    )
    metrics_export: bool = Field(
        default=True,
        description="Export progress metrics through logfire"
    )


class ParallelizationConfig(BaseModel):
    """Configuration for parallel fitness evaluation."""

    enable_parallel: bool = Field(
        default=True,
        description="Enable parallel fitness evaluation"
    )
    num_workers: Optional[int] = Field(
        default=None,
        ge=1,
        description="Number of worker threads (None for CPU count)"
    )
    chunk_size: int = Field(
        default=10,
        ge=1,
        description="Chromosomes per evaluation task"
    )


class SchedulerConfig(BaseModel):
    """Main configuration class for a timetable generation run."""

    model_config = ConfigDict(
        validate_assignment=True,
        extra='forbid'
    )

    evolution: EvolutionParameters = Field(
        default_factory=EvolutionParameters,
        description="Evolution parameters"
    )
    termination: TerminationConfig = Field(
        default_factory=TerminationConfig,
        description="Termination policy"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging and monitoring configuration"
    )
    parallelization: ParallelizationConfig = Field(
        default_factory=ParallelizationConfig,
        description="Parallel evaluation configuration"
    )
    random_seed: Optional[int] = Field(
        default=None,
        description="Random seed for reproducibility"
    )

    @classmethod
    def from_env(cls) -> "SchedulerConfig":
        """Create configuration from environment variables and a `.env` file."""
        load_dotenv()
        config_dict: Dict[str, Any] = {}

        if pop_size := os.getenv("TIMETABLING_POPULATION_SIZE"):
            config_dict.setdefault("evolution", {})["population_size"] = int(pop_size)
        if generations := os.getenv("TIMETABLING_GENERATIONS"):
            config_dict.setdefault("evolution", {})["generations"] = int(generations)
        if mutation_rate := os.getenv("TIMETABLING_MUTATION_RATE"):
            config_dict.setdefault("evolution", {})["mutation_rate"] = float(mutation_rate)
        if crossover_type := os.getenv("TIMETABLING_CROSSOVER_TYPE"):
            config_dict.setdefault("evolution", {})["crossover_type"] = int(crossover_type)
        if preference_weight := os.getenv("TIMETABLING_PREFERENCE_WEIGHT"):
            config_dict.setdefault("evolution", {})["preference_weight"] = float(preference_weight)
        if conflict_weight := os.getenv("TIMETABLING_CONFLICT_WEIGHT"):
            config_dict.setdefault("evolution", {})["conflict_weight"] = float(conflict_weight)

        if stagnation := os.getenv("TIMETABLING_STAGNATION_GENERATIONS"):
            config_dict.setdefault("termination", {})["stagnation_generations"] = int(stagnation)
        if runtime := os.getenv("TIMETABLING_MAX_RUNTIME_SECONDS"):
            config_dict.setdefault("termination", {})["max_runtime"] = timedelta(seconds=float(runtime))

        if num_workers := os.getenv("TIMETABLING_NUM_WORKERS"):
            config_dict.setdefault("parallelization", {})["num_workers"] = int(num_workers)

        if random_seed := os.getenv("TIMETABLING_RANDOM_SEED"):
            config_dict["random_seed"] = int(random_seed)

        return cls(**config_dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return self.model_dump(mode="json")

    def save(self, filepath: str) -> None:
        """Save configuration to JSON file."""
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2, default=str)

    @classmethod
    def load(cls, filepath: str) -> "SchedulerConfig":
        """Load configuration from JSON file."""
        with open(filepath, 'r') as f:
            data = json.load(f)
        return cls(**data)

    def validate_consistency(self) -> None:
        """Validate configuration consistency across components."""
        if self.evolution.elite_size >= self.evolution.population_size:
            raise ValueError(
                f"Elite size ({self.evolution.elite_size}) must be less than "
                f"population size ({self.evolution.population_size})"
            )

        if self.evolution.tournament_size > self.evolution.population_size:
            raise ValueError(
                f"Tournament size ({self.evolution.tournament_size}) must not exceed "
                f"population size ({self.evolution.population_size})"
            )

        stagnation = self.termination.stagnation_generations
        if stagnation is not None and stagnation >= self.evolution.generations:
            raise ValueError(
                f"Stagnation window ({stagnation}) must be shorter than "
                f"the generation count ({self.evolution.generations})"
            )


class OptimizationProfile(str, Enum):
    """Weight presets offered to administrators for collective runs."""
    BALANCED = "equilibrio"
    PREFERENCES = "preferencias"
    RESOURCES = "recursos"


PROFILE_WEIGHTS: Dict[OptimizationProfile, Dict[str, float]] = {
    OptimizationProfile.BALANCED: {"preference_weight": 0.3, "conflict_weight": 0.7},
    OptimizationProfile.PREFERENCES: {"preference_weight": 0.6, "conflict_weight": 0.4},
    OptimizationProfile.RESOURCES: {"preference_weight": 0.1, "conflict_weight": 0.9},
}


def apply_profile(parameters: EvolutionParameters, profile: OptimizationProfile) -> EvolutionParameters:
    """Return a copy of the parameters with the profile's weights."""
    return parameters.model_copy(update=PROFILE_WEIGHTS[profile])


# Convenience functions
def create_default_config() -> SchedulerConfig:
    """Create a default configuration suitable for most use cases."""
    return SchedulerConfig()


def create_individual_config() -> SchedulerConfig:
    """Defaults for a single professor's timetable."""
    return SchedulerConfig(
        evolution=EvolutionParameters(
            population_size=50,
            generations=100,
            mutation_rate=0.1,
            crossover_type=CrossoverType.ONE_POINT
        )
    )


def create_collective_config() -> SchedulerConfig:
    """Defaults for a department-wide timetable."""
    return SchedulerConfig(
        evolution=EvolutionParameters(
            population_size=100,
            generations=200,
            mutation_rate=0.05,
            crossover_type=CrossoverType.TWO_POINT,
            elite_size=2
        ),
        termination=TerminationConfig(stagnation_generations=50)
    )


def create_test_config() -> SchedulerConfig:
    """Create a configuration suitable for testing (smaller, faster)."""
    return SchedulerConfig(
        evolution=EvolutionParameters(
            population_size=20,
            generations=10,
            mutation_rate=0.2
        ),
        logging=LoggingConfig(
            log_interval=1,
            metrics_export=False
        ),
        parallelization=ParallelizationConfig(
            enable_parallel=False  # Disable for deterministic tests
        ),
        random_seed=42
    )


def create_production_config() -> SchedulerConfig:
    """Create a configuration suitable for production use."""
    return SchedulerConfig(
        evolution=EvolutionParameters(
            population_size=300,
            generations=1000,
            mutation_rate=0.05,
            crossover_type=CrossoverType.TWO_POINT,
            elite_size=3
        ),
        termination=TerminationConfig(
            stagnation_generations=150,
            max_runtime=timedelta(minutes=5)
        ),
        logging=LoggingConfig(
            log_interval=25,
            metrics_export=True
        )
    )
