"""Constraint implementations for the scheduler."""

from .base import ConstraintBase
from .evaluator import ConstraintEvaluator, Evaluation
from .hard import HardConstraints, Violation
from .soft import SoftConstraints

__all__ = [
    "ConstraintBase",
    "ConstraintEvaluator",
    "Evaluation",
    "HardConstraints",
    "SoftConstraints",
    "Violation",
]
