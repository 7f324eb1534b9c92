"""Soft constraint implementations for the scheduler.

Soft constraints are preferences used only to rank legal candidates.
They never reject a placement.
"""

from ..models import ResourceKind, Room, SessionItem
from .base import ConstraintBase


def count_gaps(slots: set[int]) -> int:
    """Number of idle periods between the first and last busy period."""
    if not slots:
        return 0
    return max(slots) - min(slots) + 1 - len(slots)


class SoftConstraints(ConstraintBase):
    """
    Implementation of soft constraints with weighted penalties.

    Soft Constraints:
    - SC-01: Room Capacity Waste (oversized rooms)
    - SC-02: Cohort Daily Load (spread classes across the week)
    - SC-03: Faculty Day Gaps (idle periods in a faculty's day)
    """

    def cost(self, item: SessionItem, day: int, slot: int, room: Room) -> float:
        """Total weighted cost of a placement (lower is better)."""
        return sum(self.breakdown(item, day, slot, room).values())

    def breakdown(self, item: SessionItem, day: int, slot: int, room: Room) -> dict[str, float]:
        """Weighted cost of a placement, per soft constraint."""
        return {
            "capacity_waste": self.config.weight("capacity_waste")
            * self.capacity_waste(item, room),
            "daily_load": self.config.weight("daily_load")
            * self.daily_load(item, day),
            "faculty_gap": self.config.weight("faculty_gap")
            * self.faculty_gap_delta(item, day, slot),
        }

    def capacity_waste(self, item: SessionItem, room: Room) -> float:
        """
        SC-01: Room Capacity Waste
        Share of the room left empty; zero when the room is fully used.
        """
        if room.capacity <= 0:
            return 0.0
        return max(0.0, (room.capacity - item.section.cohort_size) / room.capacity)

    def daily_load(self, item: SessionItem, day: int) -> int:
        """
        SC-02: Cohort Daily Load
        Periods the cohort already has on this day.
        """
        return self.index.daily_load(ResourceKind.COHORT, item.section.cohort_key, day)

    def faculty_gap_delta(self, item: SessionItem, day: int, slot: int) -> int:
        """
        SC-03: Faculty Day Gaps
        Change in the faculty's idle periods on this day. Filling an
        existing gap gives a negative value.
        """
        busy = self.index.reserved_slots(ResourceKind.FACULTY, item.faculty.id, day)
        before = count_gaps(busy)
        busy.update(range(slot, slot + item.length))
        return count_gaps(busy) - before
