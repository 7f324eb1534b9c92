"""Schedulo - conflict-free weekly timetables for university course sections.

Given sections, rooms, faculty availability and a weekly grid of teaching
periods, the scheduler assigns every weekly session of every section to a
(day, period, room) without double-booking rooms, faculty or cohorts.

Example usage:
    from schedulo import FileRepository, SchedulerConfig, generate_schedule

    repository = FileRepository("data/")
    result = generate_schedule(1, 2024, "Fall 2024", SchedulerConfig(), repository)

    print(f"Status: {result.status.value}")
    for unplaced in result.unplaced:
        print(f"Section {unplaced.section_id}: {unplaced.last_failure_reason}")

    # Export to Excel
    from schedulo.exporters import ExcelExporter
    ExcelExporter().export(result, "timetable.xlsx")
"""

from .exceptions import (
    ConfigurationError,
    ConflictError,
    InsufficientDataError,
    RepositoryError,
    SchedulerError,
)
from .repository import FileRepository, PersistResult, ScheduleRepository, SQLRepository
from .scheduler import (
    ScheduleResult,
    ScheduleStatus,
    SchedulerConfig,
    TimetableScheduler,
    generate_many,
    generate_schedule,
)

__version__ = "0.1.0"

__all__ = [
    # Entry points
    "generate_schedule",
    "generate_many",
    "TimetableScheduler",
    "SchedulerConfig",
    "ScheduleResult",
    "ScheduleStatus",
    # Repositories
    "ScheduleRepository",
    "PersistResult",
    "FileRepository",
    "SQLRepository",
    # Exceptions
    "SchedulerError",
    "ConfigurationError",
    "InsufficientDataError",
    "ConflictError",
    "RepositoryError",
]
