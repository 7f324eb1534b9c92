"""Relational repository built on SQLAlchemy Core."""

import json
import logging
from collections import defaultdict

from sqlalchemy import (
    Column,
    Engine,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    exc,
    insert,
    select,
)

from ..exceptions import RepositoryError
from ..scheduler.models import (
    Course,
    Faculty,
    Room,
    RoomType,
    ScheduleResult,
    Section,
    TimeSlot,
)
from ..scheduler.utils import build_time_grid
from .base import PersistResult, ScheduleRepository

logger = logging.getLogger(__name__)

metadata = MetaData()

rooms_table = Table(
    "rooms",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("room_number", String(50), nullable=False),
    Column("capacity", Integer, nullable=False),
    Column("room_type", String(30), nullable=False, default="classroom"),
    Column("building", String(100), nullable=True),
)

courses_table = Table(
    "courses",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("code", String(20), nullable=False),
    Column("name", String(200), nullable=True),
    Column("credits", Integer, nullable=False, default=3),
    Column("department", String(50), nullable=True),
    Column("sessions_per_week", Integer, nullable=False, default=1),
    Column("session_slots", Integer, nullable=False, default=1),
    Column("required_room_type", String(30), nullable=True),
)

faculty_table = Table(
    "faculty",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(200), nullable=False),
    Column("max_weekly_load", Integer, nullable=True),
)

sections_table = Table(
    "sections",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("course_id", Integer, ForeignKey("courses.id"), nullable=False),
    Column("faculty_id", Integer, ForeignKey("faculty.id"), nullable=True),
    Column("cohort_size", Integer, nullable=False),
    Column("cohort", String(100), nullable=True),
    Column("department", String(50), nullable=True),
    Column("semester", Integer, nullable=False),
    Column("year", Integer, nullable=False),
)

faculty_unavailability_table = Table(
    "faculty_unavailability",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("faculty_id", Integer, ForeignKey("faculty.id"), nullable=False),
    Column("day_of_week", Integer, nullable=False),
    Column("slot_index", Integer, nullable=False),
)

timetables_table = Table(
    "timetables",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(200), nullable=False),
    Column("semester", Integer, nullable=False),
    Column("year", Integer, nullable=False),
    Column("status", String(20), nullable=False),
    Column("strategy", String(20), nullable=False),
    Column("generated_at", String(40), nullable=False),
    Column("stats", Text, nullable=True),
)

timetable_slots_table = Table(
    "timetable_slots",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("timetable_id", Integer, ForeignKey("timetables.id"), nullable=False),
    Column("section_id", Integer, ForeignKey("sections.id"), nullable=True),
    Column("course_id", Integer, ForeignKey("courses.id"), nullable=False),
    Column("faculty_id", Integer, ForeignKey("faculty.id"), nullable=False),
    Column("room_id", Integer, ForeignKey("rooms.id"), nullable=False),
    Column("day_of_week", Integer, nullable=False),
    Column("start_time", String(8), nullable=False),
    Column("end_time", String(8), nullable=False),
)


class SQLRepository(ScheduleRepository):
    """Loads entities from, and stores timetables in, a relational database.

    Args:
        database: SQLAlchemy URL or an existing Engine
        grid: Weekly grid; the database holds none, so the default
            Monday-Saturday grid is used unless one is given
    """

    def __init__(self, database: str | Engine, grid: list[TimeSlot] | None = None):
        try:
            self.engine = (
                create_engine(database) if isinstance(database, str) else database
            )
        except exc.ArgumentError as e:
            raise RepositoryError(f"Invalid database URL: {e}", source="sql") from e
        self.grid = grid

    def create_schema(self) -> None:
        """Create all tables that do not exist yet."""
        try:
            metadata.create_all(self.engine)
        except exc.SQLAlchemyError as e:
            raise RepositoryError(str(e), source="sql") from e

    def _fetch(self, query) -> list[dict]:
        try:
            with self.engine.connect() as connection:
                return [dict(row) for row in connection.execute(query).mappings()]
        except exc.SQLAlchemyError as e:
            raise RepositoryError(f"Database error: {e}", source="sql") from e

    def load_sections(self, semester: int, year: int) -> list[Section]:
        query = (
            select(sections_table)
            .where(sections_table.c.semester == semester)
            .where(sections_table.c.year == year)
            .order_by(sections_table.c.id)
        )
        return [Section.from_dict(_drop_nulls(row)) for row in self._fetch(query)]

    def load_courses(self) -> list[Course]:
        query = select(courses_table).order_by(courses_table.c.id)
        return [Course.from_dict(_drop_nulls(row)) for row in self._fetch(query)]

    def load_rooms(self) -> list[Room]:
        query = select(rooms_table).order_by(rooms_table.c.id)
        return [
            Room(
                id=row["id"],
                room_number=row["room_number"],
                capacity=row["capacity"],
                room_type=RoomType.parse(row["room_type"]) or RoomType.LECTURE,
                building=row["building"] or "",
            )
            for row in self._fetch(query)
        ]

    def load_faculty(self) -> list[Faculty]:
        blackouts: dict[int, set[tuple[int, int]]] = defaultdict(set)
        for row in self._fetch(select(faculty_unavailability_table)):
            blackouts[row["faculty_id"]].add((row["day_of_week"], row["slot_index"]))

        query = select(faculty_table).order_by(faculty_table.c.id)
        return [
            Faculty(
                id=row["id"],
                name=row["name"],
                unavailable=frozenset(blackouts.get(row["id"], ())),
                max_weekly_load=row["max_weekly_load"],
            )
            for row in self._fetch(query)
        ]

    def load_time_slot_grid(self) -> list[TimeSlot]:
        return list(self.grid) if self.grid is not None else build_time_grid()

    def persist(self, result: ScheduleResult) -> PersistResult:
        """Insert the timetable header and all slot rows in one transaction."""
        schedule = result.schedule
        try:
            with self.engine.begin() as connection:
                inserted = connection.execute(
                    insert(timetables_table).values(
                        name=schedule.name,
                        semester=schedule.semester,
                        year=schedule.year,
                        status=result.status.value,
                        strategy=result.strategy,
                        generated_at=result.generation_date,
                        stats=json.dumps(result.statistics.to_dict()),
                    )
                )
                timetable_id = inserted.inserted_primary_key[0]
                rows = [a.to_row(timetable_id) for a in schedule]
                if rows:
                    connection.execute(insert(timetable_slots_table), rows)
        except exc.SQLAlchemyError as e:
            raise RepositoryError(f"Could not save timetable: {e}", source="sql") from e

        result.timetable_id = timetable_id
        logger.info(f"Saved timetable {timetable_id} with {len(rows)} slots")
        return PersistResult(timetable_id, len(rows), str(self.engine.url))

    def load_timetable_rows(self, timetable_id: int) -> list[dict]:
        """Slot rows of a stored timetable, ordered by day and start time."""
        query = (
            select(timetable_slots_table)
            .where(timetable_slots_table.c.timetable_id == timetable_id)
            .order_by(
                timetable_slots_table.c.day_of_week,
                timetable_slots_table.c.start_time,
                timetable_slots_table.c.room_id,
            )
        )
        return [
            {k: v for k, v in row.items() if k != "id"} for row in self._fetch(query)
        ]


def _drop_nulls(row: dict) -> dict:
    return {k: v for k, v in row.items() if v is not None}
