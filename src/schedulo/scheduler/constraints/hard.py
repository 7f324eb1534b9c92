"""Hard constraint implementations for the scheduler.

Hard constraints are mandatory requirements that must never be violated.
A candidate placement violating any of them is rejected outright.
"""

from dataclasses import dataclass

from ..constants import (
    MSG_FACULTY_LOAD_CAP,
    MSG_NO_COHORT_AVAILABILITY,
    MSG_NO_FACULTY_AVAILABILITY,
    MSG_NO_ROOM_AVAILABLE,
)
from ..models import FailureReason, ResourceKind, Room, SessionItem
from .base import ConstraintBase


@dataclass(frozen=True)
class Violation:
    """A broken hard constraint."""

    reason: FailureReason
    details: str


class HardConstraints(ConstraintBase):
    """
    Implementation of all hard constraints.

    Hard Constraints:
    - HC-01: Room Single Allocation
    - HC-02: Faculty Single Allocation
    - HC-03: Cohort Single Allocation
    - HC-04: Room Capacity (with configured slack)
    - HC-05: Room Type Compatibility
    - HC-06: Faculty Blackout
    - HC-07: Faculty Weekly Load Cap
    """

    def check(self, item: SessionItem, day: int, slot: int, room: Room) -> Violation | None:
        """Return the first violated constraint for a placement, or None if legal."""
        violation = self.check_room(item, room)
        if violation:
            return violation

        slots = range(slot, slot + item.length)
        if self.is_blacked_out(item, day, slots):
            return Violation(
                FailureReason.NO_FACULTY_AVAILABILITY,
                f"faculty {item.faculty.id} is unavailable on day {day} period {slot}",
            )
        if not self.has_load_capacity(item):
            return Violation(FailureReason.FACULTY_LOAD_EXCEEDED, MSG_FACULTY_LOAD_CAP)
        if not self.index.are_free(ResourceKind.FACULTY, item.faculty.id, day, slots):
            return Violation(
                FailureReason.NO_FACULTY_AVAILABILITY,
                f"faculty {item.faculty.id} already teaches on day {day} period {slot}",
            )
        if not self.index.are_free(ResourceKind.COHORT, item.section.cohort_key, day, slots):
            return Violation(
                FailureReason.COHORT_CONFLICT,
                f"cohort '{item.section.cohort_key}' already has a class on day {day} period {slot}",
            )
        if not self.index.are_free(ResourceKind.ROOM, room.id, day, slots):
            return Violation(
                FailureReason.NO_ROOM_AVAILABLE,
                f"room {room.room_number} is occupied on day {day} period {slot}",
            )
        return None

    def check_room(self, item: SessionItem, room: Room) -> Violation | None:
        """
        HC-04 and HC-05: the room is large enough and of the required type.
        """
        required = item.course.required_room_type
        if required is not None and room.room_type != required:
            return Violation(
                FailureReason.ROOM_TYPE_UNAVAILABLE,
                f"room {room.room_number} is a {room.room_type.value}, "
                f"course {item.course.code} needs a {required.value}",
            )
        if room.effective_capacity(self.config.room_capacity_slack) < item.section.cohort_size:
            return Violation(
                FailureReason.CAPACITY_EXCEEDED,
                f"room {room.room_number} holds {room.capacity}, "
                f"cohort has {item.section.cohort_size} students",
            )
        return None

    def is_blacked_out(self, item: SessionItem, day: int, slots: range) -> bool:
        """HC-06: any covered period is in the faculty's blackout set."""
        return any(item.faculty.is_blacked_out(day, s) for s in slots)

    def has_load_capacity(self, item: SessionItem) -> bool:
        """HC-07: the faculty can take on another session this week."""
        cap = item.faculty.max_weekly_load
        if cap is None:
            return True
        load = self.index.weekly_load(ResourceKind.FACULTY, item.faculty.id)
        return load + item.length <= cap

    def diagnose(
        self,
        item: SessionItem,
        starts: list[tuple[int, int]],
        rooms: list[Room],
    ) -> Violation:
        """Explain why an item has no legal placement in the current state.

        Checks are applied as successive filters (rooms, periods, faculty,
        cohort, room occupancy); the first filter that empties the
        candidate set names the reason.

        Args:
            item: The session that could not be placed
            starts: Valid (day, start period) pairs for the item's length
            rooms: All rooms of the run

        Returns:
            The violation that explains the dead end
        """
        section = item.section
        if not rooms:
            return Violation(FailureReason.NO_ROOM_AVAILABLE, "no rooms are defined")

        required = item.course.required_room_type
        typed_rooms = [r for r in rooms if required is None or r.room_type == required]
        if not typed_rooms:
            return Violation(
                FailureReason.ROOM_TYPE_UNAVAILABLE,
                f"no {required.value} room exists for course {item.course.code}",
            )

        fitting_rooms = [r for r in typed_rooms if self.check_room(item, r) is None]
        if not fitting_rooms:
            largest = max(r.capacity for r in typed_rooms)
            return Violation(
                FailureReason.CAPACITY_EXCEEDED,
                f"room capacity exceeded: cohort of {section.cohort_size} students, "
                f"largest suitable room holds {largest}",
            )

        if not starts:
            return Violation(
                FailureReason.NO_CONSECUTIVE_PERIODS,
                f"the grid has no {item.length} consecutive periods on any day",
            )

        if not self.has_load_capacity(item):
            return Violation(
                FailureReason.FACULTY_LOAD_EXCEEDED,
                f"{MSG_FACULTY_LOAD_CAP} ({item.faculty.max_weekly_load} periods)",
            )

        faculty_starts = [
            (day, slot)
            for day, slot in starts
            if not self.is_blacked_out(item, day, range(slot, slot + item.length))
            and self.index.are_free(
                ResourceKind.FACULTY, item.faculty.id, day, range(slot, slot + item.length)
            )
        ]
        if not faculty_starts:
            return Violation(
                FailureReason.NO_FACULTY_AVAILABILITY,
                f"{MSG_NO_FACULTY_AVAILABILITY} for {item.faculty.name or item.faculty.id}",
            )

        cohort_starts = [
            (day, slot)
            for day, slot in faculty_starts
            if self.index.are_free(
                ResourceKind.COHORT, section.cohort_key, day, range(slot, slot + item.length)
            )
        ]
        if not cohort_starts:
            return Violation(
                FailureReason.COHORT_CONFLICT,
                f"{MSG_NO_COHORT_AVAILABILITY} for cohort '{section.cohort_key}' "
                "while the faculty is free",
            )

        return Violation(
            FailureReason.NO_ROOM_AVAILABLE,
            f"{MSG_NO_ROOM_AVAILABLE} whenever faculty and cohort are free",
        )
