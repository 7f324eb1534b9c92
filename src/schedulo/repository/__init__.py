"""Data access for the scheduler."""

from .base import PersistResult, ScheduleRepository
from .files import FileRepository
from .sql import SQLRepository, metadata

__all__ = [
    "ScheduleRepository",
    "PersistResult",
    "FileRepository",
    "SQLRepository",
    "metadata",
]
