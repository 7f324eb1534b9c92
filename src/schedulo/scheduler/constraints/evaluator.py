"""Candidate evaluation combining hard and soft constraints."""

from dataclasses import dataclass
from typing import TYPE_CHECKING

from ...exceptions import InsufficientDataError
from ..models import Candidate, FailureReason, Room, SessionItem, TimeSlot
from ..utils import consecutive_starts, periods_by_day
from .hard import HardConstraints, Violation
from .soft import SoftConstraints

if TYPE_CHECKING:
    from ..availability import AvailabilityIndex
    from ..config import SchedulerConfig


@dataclass(frozen=True)
class Evaluation:
    """Verdict on one candidate placement."""

    violation: Violation | None
    cost: float = 0.0

    @property
    def legal(self) -> bool:
        return self.violation is None


class ConstraintEvaluator:
    """Judges candidate placements against the current partial schedule.

    The evaluator only reads the availability index. Every method is a
    function of the index state and its arguments.
    """

    def __init__(
        self,
        config: "SchedulerConfig",
        index: "AvailabilityIndex",
        rooms: list[Room],
        grid: list[TimeSlot],
    ):
        self.config = config
        self.index = index
        self.rooms = sorted(rooms, key=lambda r: r.id)
        self.hard = HardConstraints(config, index)
        self.soft = SoftConstraints(config, index)
        self._periods = periods_by_day(grid)
        self._starts: dict[int, list[tuple[int, int]]] = {}

    def start_slots(self, length: int) -> list[tuple[int, int]]:
        """All (day, start period) pairs with room for `length` consecutive periods."""
        if length not in self._starts:
            self._starts[length] = consecutive_starts(self._periods, length)
        return self._starts[length]

    def period_bounds(self, day: int, slot: int, length: int) -> tuple[str, str]:
        """Start time of the first and end time of the last covered period."""
        day_periods = self._periods[day]
        return day_periods[slot].start, day_periods[slot + length - 1].end

    def evaluate(self, item: SessionItem, day: int, slot: int, room: Room) -> Evaluation:
        """Check a candidate and, if legal, price it."""
        violation = self.hard.check(item, day, slot, room)
        if violation is not None:
            return Evaluation(violation)
        return Evaluation(None, self.soft.cost(item, day, slot, room))

    def candidates(self, item: SessionItem) -> list[Candidate]:
        """Legal placements for an item, best first.

        Ordered by soft cost, then day, period and room id.
        """
        result = []
        for day, slot in self.start_slots(item.length):
            for room in self.rooms:
                evaluation = self.evaluate(item, day, slot, room)
                if evaluation.legal:
                    result.append(Candidate(day, slot, room, evaluation.cost))
        result.sort(key=Candidate.sort_key)
        return result

    def fitting_rooms(self, item: SessionItem) -> list[Room]:
        """Rooms that satisfy the item's capacity and type requirements."""
        return [r for r in self.rooms if self.hard.check_room(item, r) is None]

    def allowed_starts(self, item: SessionItem) -> list[tuple[int, int]]:
        """Start periods outside the faculty's blackout."""
        return [
            (day, slot)
            for day, slot in self.start_slots(item.length)
            if not self.hard.is_blacked_out(item, day, range(slot, slot + item.length))
        ]

    def static_domain_size(self, item: SessionItem) -> int:
        """Number of (start, room) pairs legal on an empty timetable."""
        return len(self.fitting_rooms(item)) * len(self.allowed_starts(item))

    def static_check(self, item: SessionItem) -> None:
        """Reject items that can never be placed, whatever else is scheduled.

        Raises:
            InsufficientDataError: If the loaded data rules the item out.
        """
        section_id = item.section.id
        if not self.fitting_rooms(item):
            violation = self.hard.diagnose(item, self.start_slots(item.length), self.rooms)
            raise InsufficientDataError(section_id, violation.reason.value, violation.details)

        if not self.start_slots(item.length):
            raise InsufficientDataError(
                section_id,
                FailureReason.NO_CONSECUTIVE_PERIODS.value,
                f"the grid has no {item.length} consecutive periods on any day",
            )

        cap = item.faculty.max_weekly_load
        if cap is not None and cap < item.length:
            raise InsufficientDataError(
                section_id,
                FailureReason.FACULTY_LOAD_EXCEEDED.value,
                f"faculty {item.faculty.id} may teach {cap} periods a week, "
                f"a session needs {item.length}",
            )

        if not self.allowed_starts(item):
            raise InsufficientDataError(
                section_id,
                FailureReason.NO_FACULTY_AVAILABILITY.value,
                f"faculty {item.faculty.id} has no free period in the week",
            )

    def diagnose(self, item: SessionItem) -> Violation:
        """Explain why an item has no legal candidate right now."""
        return self.hard.diagnose(item, self.start_slots(item.length), self.rooms)
