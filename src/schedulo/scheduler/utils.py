"""Utility functions for schedule generation."""

from collections import defaultdict
from typing import TYPE_CHECKING

from .constants import DAILY_PERIODS, WORKING_DAYS, get_day_name
from .models import (
    Assignment,
    Course,
    Faculty,
    FailureReason,
    Room,
    Section,
    SessionItem,
    TimeSlot,
    UnplacedSection,
)

if TYPE_CHECKING:
    from .constraints import ConstraintEvaluator, Violation


def build_time_grid(
    days: list[int] | None = None,
    periods: list[dict] | None = None,
) -> list[TimeSlot]:
    """Build the weekly grid from teaching days and the daily periods.

    Args:
        days: ISO day numbers (defaults to Monday-Saturday)
        periods: Daily periods as {"index", "start", "end"} dicts

    Returns:
        TimeSlots ordered by (day, index)
    """
    days = WORKING_DAYS if days is None else days
    periods = DAILY_PERIODS if periods is None else periods
    return [
        TimeSlot(day=int(day), index=int(p["index"]), start=p["start"], end=p["end"])
        for day in sorted(days)
        for p in sorted(periods, key=lambda p: p["index"])
    ]


def periods_by_day(grid: list[TimeSlot]) -> dict[int, dict[int, TimeSlot]]:
    """Index the grid as day -> period index -> TimeSlot."""
    result: dict[int, dict[int, TimeSlot]] = defaultdict(dict)
    for time_slot in grid:
        result[time_slot.day][time_slot.index] = time_slot
    return dict(result)


def consecutive_starts(
    periods: dict[int, dict[int, TimeSlot]], length: int
) -> list[tuple[int, int]]:
    """Find (day, start) pairs followed by length-1 further periods on the same day.

    Args:
        periods: Grid indexed by periods_by_day()
        length: Number of consecutive periods required

    Returns:
        Sorted list of (day, start period) pairs
    """
    starts = []
    for day in sorted(periods):
        day_periods = periods[day]
        for index in sorted(day_periods):
            if all(index + k in day_periods for k in range(length)):
                starts.append((day, index))
    return starts


def expand_sessions(
    sections: list[Section],
    courses: list[Course],
    faculty: list[Faculty],
) -> tuple[list[SessionItem], list[UnplacedSection]]:
    """Turn sections into one queue item per required weekly session.

    Sections that reference an unknown course or faculty (or have no
    faculty assigned) cannot be scheduled and are returned as unplaced.

    Returns:
        Tuple of (session items, unplaced sections with missing references)
    """
    course_by_id = {c.id: c for c in courses}
    faculty_by_id = {f.id: f for f in faculty}

    items: list[SessionItem] = []
    missing: list[UnplacedSection] = []

    for section in sorted(sections, key=lambda s: s.id):
        course = course_by_id.get(section.course_id)
        if course is None:
            missing.append(
                UnplacedSection(
                    section_id=section.id,
                    reason=FailureReason.MISSING_REFERENCE,
                    last_failure_reason=f"course {section.course_id} does not exist",
                    missing_sessions=0,
                )
            )
            continue

        if section.faculty_id is None or section.faculty_id not in faculty_by_id:
            detail = (
                "no faculty assigned"
                if section.faculty_id is None
                else f"faculty {section.faculty_id} does not exist"
            )
            missing.append(
                UnplacedSection(
                    section_id=section.id,
                    reason=FailureReason.MISSING_REFERENCE,
                    last_failure_reason=detail,
                    missing_sessions=course.sessions_per_week,
                )
            )
            continue

        for session_index in range(course.sessions_per_week):
            items.append(
                SessionItem(
                    section=section,
                    course=course,
                    faculty=faculty_by_id[section.faculty_id],
                    session_index=session_index,
                )
            )

    return items, missing


def sort_items_by_priority(
    items: list[SessionItem], evaluator: "ConstraintEvaluator"
) -> list[SessionItem]:
    """Sort items most-constrained first.

    Priority order:
    1. Static domain size (ascending) - fewer legal (start, room) pairs first
    2. Section id (ascending)
    3. Session index (ascending)
    """
    sizes = {item.key: evaluator.static_domain_size(item) for item in items}
    return sorted(
        items,
        key=lambda i: (sizes[i.key], i.section.id, i.session_index),
    )


def collect_unplaced(
    items: list[SessionItem],
    failures: dict[tuple[int, int], "Violation"],
) -> list[UnplacedSection]:
    """Group failed items per section, keeping the last recorded reason.

    Args:
        items: Items that were not placed
        failures: Last violation per item key

    Returns:
        One UnplacedSection per section, ordered by section id
    """
    by_section: dict[int, UnplacedSection] = {}
    for item in sorted(items, key=lambda i: i.key):
        violation = failures[item.key]
        entry = by_section.get(item.section.id)
        if entry is None:
            by_section[item.section.id] = UnplacedSection(
                section_id=item.section.id,
                reason=violation.reason,
                last_failure_reason=violation.details,
                missing_sessions=1,
            )
        else:
            entry.reason = violation.reason
            entry.last_failure_reason = violation.details
            entry.missing_sessions += 1
    return [by_section[k] for k in sorted(by_section)]


def count_by_day(assignments: list[Assignment]) -> dict[str, int]:
    """Count placed sessions per day name."""
    counts: dict[str, int] = defaultdict(int)
    for assignment in assignments:
        counts[get_day_name(assignment.day)] += 1
    return dict(counts)


def calculate_room_utilization(
    assignments: list[Assignment],
    rooms: list[Room],
    grid: list[TimeSlot],
) -> dict[str, float]:
    """Share of grid periods each room is booked, keyed by room number."""
    if not grid:
        return {}
    used: dict[int, int] = defaultdict(int)
    for assignment in assignments:
        used[assignment.room_id] += assignment.length
    return {
        room.room_number: round(used[room.id] / len(grid), 4)
        for room in sorted(rooms, key=lambda r: r.id)
    }
