"""
Population Management for the Timetable Genetic Algorithm.

This module manages the individuals of one generation: seeding, parent
selection, elitism, best-ever tracking and diversity statistics. All
comparisons use the lexicographic Fitness.rank_key.
"""

from typing import List, Optional, Dict, Any, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
import random

import numpy as np

from src.timetabling.core.chromosome import GeneDomain, RequiredBlock, ScheduleChromosome
from src.timetabling.core.config import SchedulerConfig
from src.timetabling.core.errors import RunFailure
from src.timetabling.fitness.base import Fitness


@dataclass
class Individual:
    """
    Represents an individual in the population.

    An individual wraps a chromosome and tracks its evaluated fitness,
    age and lineage.
    """

    chromosome: ScheduleChromosome
    fitness: Optional[Fitness] = None
    age: int = 0
    parent_ids: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    evaluated: bool = False

    @property
    def id(self) -> str:
        """Get the individual's unique identifier."""
        return self.chromosome.chromosome_id

    @property
    def rank_key(self):
        """Sort key where smaller is better; unevaluated individuals sort last."""
        if self.fitness is None:
            return (2, 0, 0.0)
        return self.fitness.rank_key

    def update_fitness(self, fitness: Fitness) -> None:
        """Update the individual's fitness."""
        self.fitness = fitness
        self.evaluated = True

    def increment_age(self) -> None:
        """Increment the individual's age by one generation."""
        self.age += 1

    def clone(self) -> "Individual":
        """Independent copy that keeps the evaluated fitness."""
        return Individual(
            chromosome=self.chromosome.clone(),
            fitness=self.fitness,
            age=self.age,
            parent_ids=list(self.parent_ids),
            created_at=self.created_at,
            evaluated=self.evaluated,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert individual to dictionary representation."""
        return {
            "chromosome": self.chromosome.to_dict(),
            "fitness": self.fitness.to_dict() if self.fitness else None,
            "age": self.age,
            "parent_ids": self.parent_ids,
            "created_at": self.created_at.isoformat(),
            "evaluated": self.evaluated
        }

    def __lt__(self, other: "Individual") -> bool:
        """An individual is 'less' when it ranks better."""
        return self.rank_key < other.rank_key


class Population:
    """
    Manages a population of individuals in the genetic algorithm.

    Handles seeding, selection, elitism, best-ever tracking and
    generation statistics. Randomness comes from the run's own generator.
    """

    def __init__(self, config: SchedulerConfig, rng: random.Random, generation: int = 0,
                 room_index: Optional[Mapping[str, int]] = None):
        """Initialize population with configuration."""
        self.config = config
        self.rng = rng
        self.individuals: List[Individual] = []
        self.generation = generation
        self.room_index = dict(room_index or {})
        self.best_individual: Optional[Individual] = None
        self.best_generation: int = 0
        self.generations_without_improvement: int = 0
        self.diversity_metrics: Dict[str, float] = {}
        self.statistics: Dict[str, Any] = {}
        self.history: List[Dict[str, Any]] = []

    def __len__(self) -> int:
        return len(self.individuals)

    def initialize_random(self, blocks: Sequence[RequiredBlock], domain: GeneDomain) -> None:
        """Initialize population with random individuals."""
        for _ in range(self.config.evolution.population_size):
            chromosome = ScheduleChromosome.random_init(blocks, domain, self.rng)
            chromosome.generation = self.generation
            self.individuals.append(Individual(chromosome=chromosome))

    def unevaluated(self) -> List[Individual]:
        return [ind for ind in self.individuals if not ind.evaluated]

    def ranked(self) -> List[Individual]:
        """Individuals from best to worst."""
        return sorted(self.individuals, key=lambda x: x.rank_key)

    def select_parents(self, num_parents: int) -> List[Individual]:
        """Select parents for reproduction using configured selection method."""
        if not self.individuals:
            raise RunFailure(
                "Population is empty at selection",
                details={"generation": self.generation},
            )

        method = self.config.evolution.selection_method

        if method == "tournament":
            return self._tournament_selection(num_parents)
        elif method == "roulette":
            return self._roulette_selection(num_parents)
        elif method == "rank":
            return self._rank_selection(num_parents)
        else:
            raise ValueError(f"Unknown selection method: {method}")

    def _tournament_selection(self, num_parents: int) -> List[Individual]:
        """Select parents using tournament selection."""
        parents = []
        tournament_size = min(self.config.evolution.tournament_size, len(self.individuals))

        for _ in range(num_parents):
            tournament = self.rng.sample(self.individuals, tournament_size)
            parents.append(min(tournament, key=lambda x: x.rank_key))

        return parents

    def _roulette_selection(self, num_parents: int) -> List[Individual]:
        """Select parents with probability proportional to their selection weight."""
        weights = [
            ind.fitness.selection_weight if ind.fitness else 1e-6
            for ind in self.individuals
        ]
        return self.rng.choices(self.individuals, weights=weights, k=num_parents)

    def _rank_selection(self, num_parents: int) -> List[Individual]:
        """Select parents using rank-based selection."""
        sorted_individuals = self.ranked()

        n = len(sorted_individuals)
        probabilities = [(2 - i / n) / n for i in range(n)]

        return self.rng.choices(sorted_individuals, weights=probabilities, k=num_parents)

    def get_elite(self) -> List[Individual]:
        """Get the elite individuals to carry over unchanged."""
        return [ind.clone() for ind in self.ranked()[:self.config.evolution.elite_size]]

    def replace_population(self, new_individuals: List[Individual]) -> None:
        """Replace current population with new individuals."""
        if not new_individuals:
            raise RunFailure(
                "Breeding produced an empty population",
                details={"generation": self.generation},
            )
        self.individuals = new_individuals

        self.generation += 1
        for ind in self.individuals:
            ind.chromosome.generation = self.generation
            ind.increment_age()

    def update_best_individual(self) -> bool:
        """
        Track the best individual ever seen.

        The best is stored as an independent clone so later breeding cannot
        alter it. Returns True when the best-ever improved.
        """
        evaluated = [ind for ind in self.individuals if ind.evaluated]
        if not evaluated:
            return False

        best = min(evaluated, key=lambda x: x.rank_key)
        if self.best_individual is None or best.rank_key < self.best_individual.rank_key:
            self.best_individual = best.clone()
            self.best_generation = self.generation
            self.generations_without_improvement = 0
            return True

        self.generations_without_improvement += 1
        return False

    def calculate_diversity(self) -> Dict[str, float]:
        """Calculate population diversity metrics."""
        if not self.individuals:
            return {}

        unique_ids = len(set(ind.id for ind in self.individuals))
        uniqueness_ratio = unique_ids / len(self.individuals)

        avg_distance = 0.0
        if len(self.individuals) > 1 and self.room_index and len(self.individuals[0].chromosome):
            sample_size = min(50, len(self.individuals))
            sample = self.rng.sample(self.individuals, sample_size)
            genes = np.stack([ind.chromosome.as_array(self.room_index) for ind in sample])
            # (k, k, n): gene differs in room or slot
            differs = (genes[:, None, :, :] != genes[None, :, :, :]).any(axis=-1)
            distances = differs.mean(axis=-1)
            upper = np.triu_indices(sample_size, k=1)
            avg_distance = float(distances[upper].mean())

        self.diversity_metrics = {
            "uniqueness_ratio": uniqueness_ratio,
            "avg_chromosome_distance": avg_distance,
            "unique_chromosomes": unique_ids
        }

        return self.diversity_metrics

    def calculate_statistics(self) -> Dict[str, Any]:
        """Calculate population statistics."""
        evaluated = [ind.fitness for ind in self.individuals if ind.fitness is not None]

        if not evaluated:
            return {}

        values = np.array([f.value for f in evaluated], dtype=float)
        hard = np.array([f.hard_violations for f in evaluated], dtype=int)
        best = min(evaluated, key=lambda f: f.rank_key)

        stats = {
            "generation": self.generation,
            "population_size": len(self.individuals),
            "evaluated_count": len(evaluated),
            "best_fitness": best.value,
            "best_hard_violations": best.hard_violations,
            "worst_fitness": float(values.min()),
            "avg_fitness": float(values.mean()),
            "median_fitness": float(np.median(values)),
            "fitness_std": float(values.std(ddof=1)) if len(values) > 1 else 0.0,
            "avg_hard_violations": float(hard.mean()),
            "feasible_count": int(sum(1 for f in evaluated if f.is_feasible)),
            "failed_count": int(sum(1 for f in evaluated if f.failed)),
        }

        ages = np.array([ind.age for ind in self.individuals])
        stats["avg_age"] = float(ages.mean())
        stats["max_age"] = int(ages.max())

        self.statistics = stats
        return stats

    def detect_stagnation(self, window: Optional[int]) -> bool:
        """True when the best-ever has not improved for `window` generations."""
        if window is None:
            return False
        return self.generations_without_improvement >= window

    def record_history(self) -> Dict[str, Any]:
        """Record current population state in history."""
        stats = self.calculate_statistics()
        diversity = self.calculate_diversity()

        history_entry = {
            **stats,
            **diversity,
            "timestamp": datetime.now().isoformat()
        }

        self.history.append(history_entry)

        max_history = 2000
        if len(self.history) > max_history:
            self.history = self.history[-max_history:]
        return history_entry
