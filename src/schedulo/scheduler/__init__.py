"""Weekly timetable generation.

Sessions are placed most-constrained first by a backtracking search (or,
with strategy="cpsat", by the OR-Tools CP-SAT solver) so that no room,
faculty member or cohort is double-booked and every room fits its class.

Main classes:
- TimetableScheduler: Loads entities from a repository and runs a generation
- SchedulerConfig: Budgets, tie-break seed, capacity slack, soft weights
- BacktrackingEngine: The constructive search

Usage:
    from schedulo.repository import FileRepository
    from schedulo.scheduler import SchedulerConfig, generate_schedule

    result = generate_schedule(1, 2024, "Fall", SchedulerConfig(), FileRepository("data"))
    print(result.status, len(result.assignments))
"""

from .availability import AvailabilityIndex
from .config import SchedulerConfig
from .conflicts import Conflict, find_conflicts
from .constants import (
    DAILY_PERIODS,
    SOFT_CONSTRAINT_WEIGHTS,
    STRATEGY_BACKTRACKING,
    STRATEGY_CPSAT,
    WORKING_DAYS,
)
from .constraints import ConstraintEvaluator
from .engine import BacktrackingEngine, SearchOutcome
from .models import (
    Assignment,
    Course,
    Day,
    Faculty,
    FailureReason,
    Room,
    RoomType,
    Schedule,
    ScheduleResult,
    ScheduleStatistics,
    ScheduleStatus,
    Section,
    SessionItem,
    StopReason,
    TimeSlot,
    UnplacedSection,
)
from .scheduler import (
    GenerationRequest,
    TimetableScheduler,
    generate_many,
    generate_schedule,
)
from .solver import CpSatStrategy
from .utils import build_time_grid

__all__ = [
    # Main classes
    "TimetableScheduler",
    "SchedulerConfig",
    "BacktrackingEngine",
    "CpSatStrategy",
    "AvailabilityIndex",
    "ConstraintEvaluator",
    "GenerationRequest",
    "generate_schedule",
    "generate_many",
    # Models
    "Assignment",
    "Course",
    "Day",
    "Faculty",
    "FailureReason",
    "Room",
    "RoomType",
    "Schedule",
    "ScheduleResult",
    "ScheduleStatistics",
    "ScheduleStatus",
    "SearchOutcome",
    "Section",
    "SessionItem",
    "StopReason",
    "TimeSlot",
    "UnplacedSection",
    # Audit
    "Conflict",
    "find_conflicts",
    # Constants
    "DAILY_PERIODS",
    "WORKING_DAYS",
    "SOFT_CONSTRAINT_WEIGHTS",
    "STRATEGY_BACKTRACKING",
    "STRATEGY_CPSAT",
    "build_time_grid",
]
