"""CP-SAT solver components."""

from .builder import ModelBuilder
from .extractor import SolutionExtractor
from .runner import CancelWatcher, CpSatStrategy

__all__ = [
    "ModelBuilder",
    "SolutionExtractor",
    "CpSatStrategy",
    "CancelWatcher",
]
