"""
Fitness evaluation for timetable chromosomes.

The constraint catalog detects violations; the evaluator turns them into a
score in [0, 100] with lexicographic ranking on hard violations.
"""

from src.timetabling.fitness.base import (
    ConstraintKind,
    Fitness,
    FitnessFunction,
    FitnessWeights,
    Severity,
    Violation,
    ViolationLevel
)
from src.timetabling.fitness.constraints import ConstraintCatalog, ConstraintScope, resolve_value
from src.timetabling.fitness.evaluator import FitnessEvaluator

__all__ = [
    "ConstraintKind",
    "Fitness",
    "FitnessFunction",
    "FitnessWeights",
    "Severity",
    "Violation",
    "ViolationLevel",
    "ConstraintCatalog",
    "ConstraintScope",
    "resolve_value",
    "FitnessEvaluator"
]
