"""Base class for constraint implementations."""

from abc import ABC
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..availability import AvailabilityIndex
    from ..config import SchedulerConfig


class ConstraintBase(ABC):
    """Abstract base class for constraint implementations.

    Constraints read the availability index but never write to it; the
    engine reserves cells only after a candidate has been accepted.
    """

    def __init__(
        self,
        config: "SchedulerConfig",
        index: "AvailabilityIndex",
    ):
        """
        Initialize constraint handler.

        Args:
            config: Run configuration (capacity slack, soft weights).
            index: Availability index of the current run.
        """
        self.config = config
        self.index = index
