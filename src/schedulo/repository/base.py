"""Abstract interface between the scheduler and its data store."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from ..scheduler.models import (
    Course,
    Faculty,
    Room,
    ScheduleResult,
    Section,
    TimeSlot,
)


@dataclass
class PersistResult:
    """Where a timetable was stored."""

    timetable_id: int
    rows_written: int
    location: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "timetable_id": self.timetable_id,
            "rows_written": self.rows_written,
            "location": self.location,
        }


class ScheduleRepository(ABC):
    """Loads the entities for a run and stores finished timetables.

    A run reads everything it needs once, before the search starts.
    """

    @abstractmethod
    def load_sections(self, semester: int, year: int) -> list[Section]:
        """Sections offered in the given term."""

    @abstractmethod
    def load_courses(self) -> list[Course]:
        """All courses."""

    @abstractmethod
    def load_rooms(self) -> list[Room]:
        """All rooms."""

    @abstractmethod
    def load_faculty(self) -> list[Faculty]:
        """All faculty with their blackout periods."""

    @abstractmethod
    def load_time_slot_grid(self) -> list[TimeSlot]:
        """The weekly grid of teaching periods."""

    @abstractmethod
    def persist(self, result: ScheduleResult) -> PersistResult:
        """Store every assignment of a result, or none of them.

        Sets result.timetable_id on success.
        """
