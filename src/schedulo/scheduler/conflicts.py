"""Conflict audit of a finished timetable."""

from collections import defaultdict
from dataclasses import dataclass
from typing import Any

from .models import Assignment, Course, Faculty, Room, Section


@dataclass(frozen=True)
class Conflict:
    """One violated hard rule in a timetable."""

    kind: str
    entity_id: Any
    day: int
    slot: int
    message: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "kind": self.kind,
            "entity_id": self.entity_id,
            "day": self.day,
            "slot": self.slot,
            "message": self.message,
        }


def find_conflicts(
    assignments: list[Assignment],
    sections: list[Section],
    rooms: list[Room],
    faculty: list[Faculty],
    slack: float = 0.0,
    courses: list[Course] | None = None,
) -> list[Conflict]:
    """Check a timetable against the hard rules.

    Detects double-booked room, faculty and cohort periods, cohorts larger
    than their room, sessions in a faculty blackout period and, when
    courses are given, rooms of the wrong type.

    Args:
        assignments: Timetable to audit
        sections: Sections referenced by the assignments
        rooms: Rooms referenced by the assignments
        faculty: Faculty referenced by the assignments
        slack: Permitted capacity overrun fraction
        courses: Optional courses for the room type check

    Returns:
        Conflicts ordered by (day, slot, kind)
    """
    section_by_id = {s.id: s for s in sections}
    room_by_id = {r.id: r for r in rooms}
    faculty_by_id = {f.id: f for f in faculty}
    course_by_id = {c.id: c for c in courses or []}

    conflicts: list[Conflict] = []
    # (kind, entity, day, slot) -> section ids booked there
    cells: dict[tuple[str, Any, int, int], list[int]] = defaultdict(list)

    for a in assignments:
        for slot in a.slots:
            cells[("room", a.room_id, a.day, slot)].append(a.section_id)
            cells[("faculty", a.faculty_id, a.day, slot)].append(a.section_id)
            cells[("cohort", a.cohort, a.day, slot)].append(a.section_id)

        room = room_by_id.get(a.room_id)
        section = section_by_id.get(a.section_id)
        if room is not None and section is not None:
            if section.cohort_size > room.effective_capacity(slack):
                conflicts.append(Conflict(
                    kind="capacity",
                    entity_id=room.id,
                    day=a.day,
                    slot=a.slot,
                    message=(
                        f"Section {section.id} has {section.cohort_size} students, "
                        f"room {room.room_number} holds {room.capacity}"
                    ),
                ))

        course = course_by_id.get(a.course_id)
        if room is not None and course is not None and course.required_room_type:
            if room.room_type != course.required_room_type:
                conflicts.append(Conflict(
                    kind="room_type",
                    entity_id=room.id,
                    day=a.day,
                    slot=a.slot,
                    message=(
                        f"Course {course.code} needs a {course.required_room_type.value} room, "
                        f"room {room.room_number} is {room.room_type.value}"
                    ),
                ))

        member = faculty_by_id.get(a.faculty_id)
        if member is not None:
            for slot in a.slots:
                if member.is_blacked_out(a.day, slot):
                    conflicts.append(Conflict(
                        kind="blackout",
                        entity_id=member.id,
                        day=a.day,
                        slot=slot,
                        message=f"{member.name or member.id} is unavailable on day {a.day} period {slot}",
                    ))

    for (kind, entity_id, day, slot), section_ids in cells.items():
        if len(section_ids) > 1:
            booked = ", ".join(str(s) for s in sorted(section_ids))
            conflicts.append(Conflict(
                kind=kind,
                entity_id=entity_id,
                day=day,
                slot=slot,
                message=f"{kind} '{entity_id}' is double-booked by sections {booked}",
            ))

    conflicts.sort(key=lambda c: (c.day, c.slot, c.kind, str(c.entity_id)))
    return conflicts
