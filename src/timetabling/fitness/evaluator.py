"""
Fitness Evaluator.

Scores a chromosome from the violations reported by the constraint
catalog. Hard violations and soft penalties are both normalised by the
chromosome length:

    value = 100 - conflict_weight * (hard / n) * 100
                - preference_weight * min(1, soft / n) * 100

clamped to [0, 100]. Ranking uses Fitness.rank_key so that the soft term
never masks infeasibility.
"""

from typing import Optional

import logfire

from src.timetabling.core.chromosome import ScheduleChromosome
from src.timetabling.core.context import ScheduleContext
from src.timetabling.core.errors import EvaluationError
from src.timetabling.fitness.base import Fitness, FitnessFunction, FitnessWeights
from src.timetabling.fitness.constraints import ConstraintCatalog


class FitnessEvaluator(FitnessFunction):
    """
    Fitness function backed by a ConstraintCatalog.

    Thread-safe: the catalog and context are read-only and scoring keeps no
    state between calls.
    """

    def __init__(self, catalog: ConstraintCatalog, weights: Optional[FitnessWeights] = None):
        self.catalog = catalog
        self.weights = weights or FitnessWeights()

    def score(self, chromosome: ScheduleChromosome, context: ScheduleContext) -> Fitness:
        try:
            violations = self.catalog.evaluate(chromosome, context)
        except EvaluationError as e:
            logfire.warn(
                "Chromosome evaluation failed",
                chromosome_id=chromosome.chromosome_id,
                error=e.message,
                details=e.details,
            )
            return Fitness.minimum(e.message)

        n_genes = max(1, len(chromosome))
        hard = sum(1 for v in violations if v.is_hard)
        soft = sum(v.penalty for v in violations if not v.is_hard)

        soft_ratio = min(1.0, soft / n_genes)
        value = (
            100.0
            - self.weights.conflict_weight * (hard / n_genes) * 100.0
            - self.weights.preference_weight * soft_ratio * 100.0
        )

        return Fitness(
            value=self.clamp(value),
            hard_violations=hard,
            soft_penalty=soft,
            violations=violations,
        )
