"""Data models for the timetable scheduling engine."""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any

from ..exceptions import SchedulerError
from .constants import get_day_name


class Day(IntEnum):
    """Days of the week, numbered as the persisted day_of_week column (1-7)."""

    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6
    SUNDAY = 7


class RoomType(str, Enum):
    """Type of teaching room."""

    LECTURE = "lecture"
    LAB = "lab"
    SEMINAR = "seminar"
    TUTORIAL = "tutorial"

    @classmethod
    def parse(cls, value: Any) -> "RoomType | None":
        """Parse a room type from free text.

        Empty values give None. The legacy 'classroom' value and the
        spelled-out 'lecture hall' both map to LECTURE.
        """
        if value is None:
            return None
        text = str(value).strip().lower().replace("_", " ")
        if not text or text == "nan":
            return None
        if text in ("classroom", "lecture hall", "hall"):
            return cls.LECTURE
        if text == "laboratory":
            return cls.LAB
        return cls(text)


class ResourceKind(str, Enum):
    """Kinds of entity tracked by the availability index."""

    ROOM = "room"
    FACULTY = "faculty"
    COHORT = "cohort"


class ScheduleStatus(str, Enum):
    """Outcome of a generation run."""

    SCHEDULED = "scheduled"
    PARTIAL = "partial"
    UNSATISFIABLE = "unsatisfiable"


class FailureReason(str, Enum):
    """Reasons why a section could not be (fully) placed."""

    CAPACITY_EXCEEDED = "capacity_exceeded"
    ROOM_TYPE_UNAVAILABLE = "room_type_unavailable"
    NO_FACULTY_AVAILABILITY = "no_faculty_availability"
    FACULTY_LOAD_EXCEEDED = "faculty_load_exceeded"
    COHORT_CONFLICT = "cohort_conflict"
    NO_ROOM_AVAILABLE = "no_room_available"
    NO_CONSECUTIVE_PERIODS = "no_consecutive_periods"
    MISSING_REFERENCE = "missing_reference"


class StopReason(str, Enum):
    """Why the search loop ended."""

    COMPLETED = "completed"
    EXHAUSTED = "exhausted"
    STEP_BUDGET = "step_budget"
    TIME_BUDGET = "time_budget"
    CANCELLED = "cancelled"
    SOLVER = "solver"


@dataclass(frozen=True)
class Course:
    """A course and its weekly meeting pattern."""

    id: int
    code: str
    name: str = ""
    credits: int = 3
    department: str = ""
    sessions_per_week: int = 1
    session_slots: int = 1
    required_room_type: RoomType | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Course":
        """Create a Course from a dictionary."""
        return cls(
            id=int(data["id"]),
            code=str(data.get("code", data["id"])),
            name=str(data.get("name", "")),
            credits=int(data.get("credits", 3)),
            department=str(data.get("department", "")),
            sessions_per_week=int(data.get("sessions_per_week", 1)),
            session_slots=int(data.get("session_slots", 1)),
            required_room_type=RoomType.parse(data.get("required_room_type")),
        )


@dataclass(frozen=True)
class Section:
    """One offering of a course taught to one cohort."""

    id: int
    course_id: int
    faculty_id: int | None
    cohort_size: int
    cohort: str = ""
    department: str = ""
    semester: int = 0
    year: int = 0

    @property
    def cohort_key(self) -> str:
        """Identifier used for cohort conflict checks."""
        return self.cohort or f"section-{self.id}"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Section":
        """Create a Section from a dictionary."""
        faculty_id = data.get("faculty_id")
        return cls(
            id=int(data["id"]),
            course_id=int(data["course_id"]),
            faculty_id=int(faculty_id) if faculty_id not in (None, "") else None,
            cohort_size=int(data.get("cohort_size", 0)),
            cohort=str(data.get("cohort") or ""),
            department=str(data.get("department", "")),
            semester=int(data.get("semester", 0)),
            year=int(data.get("year", 0)),
        )


@dataclass(frozen=True)
class Room:
    """A physical room."""

    id: int
    room_number: str
    capacity: int
    room_type: RoomType = RoomType.LECTURE
    building: str = ""

    def effective_capacity(self, slack: float = 0.0) -> int:
        """Capacity including the permitted overrun fraction."""
        # Tolerance keeps 100 * 0.15 at 15 seats
        return self.capacity + math.floor(self.capacity * slack + 1e-9)


@dataclass(frozen=True)
class Faculty:
    """A teaching staff member."""

    id: int
    name: str
    unavailable: frozenset[tuple[int, int]] = frozenset()
    max_weekly_load: int | None = None

    def is_blacked_out(self, day: int, slot: int) -> bool:
        """Check the explicit (day, period) blackout set."""
        return (int(day), slot) in self.unavailable


@dataclass(frozen=True)
class TimeSlot:
    """One period of the weekly grid."""

    day: int
    index: int
    start: str
    end: str

    @property
    def key(self) -> tuple[int, int]:
        return (self.day, self.index)


@dataclass(frozen=True)
class Assignment:
    """A placed session: the atomic output unit."""

    section_id: int
    course_id: int
    room_id: int
    faculty_id: int
    cohort: str
    day: int
    slot: int
    length: int = 1
    session_index: int = 0
    start_time: str = ""
    end_time: str = ""

    @property
    def slots(self) -> range:
        """Periods covered by this assignment."""
        return range(self.slot, self.slot + self.length)

    def to_dict(self) -> dict[str, Any]:
        """Convert assignment to dictionary."""
        return {
            "section_id": self.section_id,
            "course_id": self.course_id,
            "room_id": self.room_id,
            "faculty_id": self.faculty_id,
            "cohort": self.cohort,
            "day": int(self.day),
            "day_name": get_day_name(self.day),
            "slot": self.slot,
            "length": self.length,
            "session_index": self.session_index,
            "start_time": self.start_time,
            "end_time": self.end_time,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Assignment":
        """Create an Assignment from its dictionary form."""
        return cls(
            section_id=int(data["section_id"]),
            course_id=int(data["course_id"]),
            room_id=int(data["room_id"]),
            faculty_id=int(data["faculty_id"]),
            cohort=str(data.get("cohort", "")),
            day=int(data["day"]),
            slot=int(data["slot"]),
            length=int(data.get("length", 1)),
            session_index=int(data.get("session_index", 0)),
            start_time=str(data.get("start_time", "")),
            end_time=str(data.get("end_time", "")),
        )

    def to_row(self, timetable_id: int | None = None) -> dict[str, Any]:
        """Relational timetable_slots row for this assignment."""
        return {
            "timetable_id": timetable_id,
            "section_id": self.section_id,
            "course_id": self.course_id,
            "faculty_id": self.faculty_id,
            "room_id": self.room_id,
            "day_of_week": int(self.day),
            "start_time": self.start_time,
            "end_time": self.end_time,
        }


@dataclass(frozen=True)
class SessionItem:
    """One weekly session of a section waiting to be placed."""

    section: Section
    course: Course
    faculty: Faculty
    session_index: int = 0

    @property
    def key(self) -> tuple[int, int]:
        return (self.section.id, self.session_index)

    @property
    def length(self) -> int:
        return max(1, self.course.session_slots)


@dataclass(frozen=True)
class Candidate:
    """A legal (day, start period, room) placement with its soft cost."""

    day: int
    slot: int
    room: Room
    cost: float = 0.0

    def sort_key(self) -> tuple[float, int, int, int]:
        return (round(self.cost, 9), self.day, self.slot, self.room.id)


@dataclass
class UnplacedSection:
    """A section with at least one session that could not be placed."""

    section_id: int
    reason: FailureReason
    last_failure_reason: str
    missing_sessions: int = 1

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "section_id": self.section_id,
            "reason": self.reason.value,
            "last_failure_reason": self.last_failure_reason,
            "missing_sessions": self.missing_sessions,
        }


class Schedule:
    """Ordered assignments of one generation run.

    Grows and shrinks while the engine searches; frozen once the run ends.
    """

    def __init__(self, semester: int, year: int, name: str):
        self.semester = semester
        self.year = year
        self.name = name
        self._assignments: list[Assignment] = []
        self._frozen = False

    @property
    def assignments(self) -> list[Assignment]:
        return list(self._assignments)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def add(self, assignment: Assignment) -> None:
        if self._frozen:
            raise SchedulerError(f"Schedule '{self.name}' is frozen")
        self._assignments.append(assignment)

    def pop(self) -> Assignment:
        if self._frozen:
            raise SchedulerError(f"Schedule '{self.name}' is frozen")
        return self._assignments.pop()

    def freeze(self) -> None:
        self._frozen = True

    def __len__(self) -> int:
        return len(self._assignments)

    def __iter__(self):
        return iter(self._assignments)

    def to_dict(self) -> dict[str, Any]:
        return {
            "semester": self.semester,
            "year": self.year,
            "name": self.name,
            "assignments": [a.to_dict() for a in self._assignments],
        }


@dataclass
class ScheduleStatistics:
    """Statistics about a generation run."""

    total_sections: int = 0
    total_sessions: int = 0
    placed_count: int = 0
    unplaced_count: int = 0
    backtrack_count: int = 0
    steps: int = 0
    elapsed_ms: int = 0
    total_soft_cost: float = 0.0
    stop_reason: str = StopReason.COMPLETED.value
    by_day: dict[str, int] = field(default_factory=dict)
    room_utilization: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_sections": self.total_sections,
            "total_sessions": self.total_sessions,
            "placed_count": self.placed_count,
            "unplaced_count": self.unplaced_count,
            "placement_rate": (
                self.placed_count / self.total_sessions
                if self.total_sessions > 0
                else 0.0
            ),
            "backtrack_count": self.backtrack_count,
            "steps": self.steps,
            "elapsed_ms": self.elapsed_ms,
            "total_soft_cost": round(self.total_soft_cost, 4),
            "stop_reason": self.stop_reason,
            "by_day": self.by_day,
            "room_utilization": self.room_utilization,
        }


@dataclass
class ScheduleResult:
    """Result of one generation run."""

    status: ScheduleStatus
    schedule: Schedule
    unplaced: list[UnplacedSection] = field(default_factory=list)
    statistics: ScheduleStatistics = field(default_factory=ScheduleStatistics)
    strategy: str = "backtracking"
    generation_date: str = field(default_factory=lambda: datetime.now().isoformat())
    timetable_id: int | str | None = None

    @property
    def assignments(self) -> list[Assignment]:
        return self.schedule.assignments

    @property
    def http_status(self) -> int:
        """HTTP status the web layer should answer with."""
        if self.status == ScheduleStatus.UNSATISFIABLE:
            return 422
        return 200

    @property
    def warnings(self) -> list[str]:
        """One line per unplaced section."""
        return [
            f"Section {u.section_id}: {u.last_failure_reason}" for u in self.unplaced
        ]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "status": self.status.value,
            "semester": self.schedule.semester,
            "year": self.schedule.year,
            "name": self.schedule.name,
            "strategy": self.strategy,
            "generation_date": self.generation_date,
            "timetable_id": self.timetable_id,
            "assignments": [a.to_dict() for a in self.schedule],
            "unplaced": [u.to_dict() for u in self.unplaced],
            "stats": self.statistics.to_dict(),
        }

    def to_response(self) -> dict[str, Any]:
        """Response body for the web layer."""
        body = self.to_dict()
        if self.status == ScheduleStatus.PARTIAL:
            body["warnings"] = self.warnings
        elif self.status == ScheduleStatus.UNSATISFIABLE:
            body["error"] = "Timetable could not be completed"
        return body
