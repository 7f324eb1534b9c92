"""Test fixtures for scheduler tests."""

import pytest

from schedulo.repository import PersistResult, ScheduleRepository
from schedulo.scheduler import (
    Course,
    Faculty,
    Room,
    RoomType,
    SchedulerConfig,
    Section,
    build_time_grid,
)
from schedulo.scheduler.constants import DAILY_PERIODS, WORKING_DAYS

SEMESTER = 1
YEAR = 2024


def free_only(*cells: tuple[int, int]) -> frozenset[tuple[int, int]]:
    """Blackout set covering the whole default grid except the given cells."""
    free = set(cells)
    return frozenset(
        (day, p["index"])
        for day in WORKING_DAYS
        for p in DAILY_PERIODS
        if (day, p["index"]) not in free
    )


class InMemoryRepository(ScheduleRepository):
    """Repository holding entities in lists."""

    def __init__(self, sections, courses, rooms, faculty, grid=None):
        self.sections = list(sections)
        self.courses = list(courses)
        self.rooms = list(rooms)
        self.faculty = list(faculty)
        self.grid = build_time_grid() if grid is None else grid
        self.saved = []

    def load_sections(self, semester, year):
        return [s for s in self.sections if s.semester == semester and s.year == year]

    def load_courses(self):
        return list(self.courses)

    def load_rooms(self):
        return list(self.rooms)

    def load_faculty(self):
        return list(self.faculty)

    def load_time_slot_grid(self):
        return list(self.grid)

    def persist(self, result):
        self.saved.append(result)
        result.timetable_id = len(self.saved)
        return PersistResult(len(self.saved), len(result.assignments), "memory")


def make_section(section_id, course_id=1, faculty_id=1, cohort_size=20, cohort=""):
    return Section(
        id=section_id,
        course_id=course_id,
        faculty_id=faculty_id,
        cohort_size=cohort_size,
        cohort=cohort,
        semester=SEMESTER,
        year=YEAR,
    )


@pytest.fixture
def config():
    """Default configuration with a short time budget."""
    return SchedulerConfig(time_budget_ms=5_000)


@pytest.fixture
def lecture_room():
    return Room(id=1, room_number="101", capacity=30, room_type=RoomType.LECTURE)


@pytest.fixture
def sample_rooms():
    """Two lecture rooms and one lab."""
    return [
        Room(id=1, room_number="101", capacity=30, room_type=RoomType.LECTURE),
        Room(id=2, room_number="102", capacity=60, room_type=RoomType.LECTURE),
        Room(id=3, room_number="L1", capacity=25, room_type=RoomType.LAB),
    ]


@pytest.fixture
def sample_courses():
    return [
        Course(id=1, code="CS101", name="Programming", sessions_per_week=2),
        Course(id=2, code="MA101", name="Calculus", sessions_per_week=3),
        Course(
            id=3,
            code="CS102L",
            name="Programming Lab",
            session_slots=2,
            required_room_type=RoomType.LAB,
        ),
    ]


@pytest.fixture
def sample_faculty():
    return [
        Faculty(id=1, name="Ada Lovelace"),
        Faculty(id=2, name="Alan Turing", unavailable=frozenset({(1, 1), (1, 2)})),
        Faculty(id=3, name="Grace Hopper", max_weekly_load=10),
    ]


@pytest.fixture
def sample_sections():
    return [
        make_section(1, course_id=1, faculty_id=1, cohort_size=28, cohort="CSE-1"),
        make_section(2, course_id=2, faculty_id=2, cohort_size=28, cohort="CSE-1"),
        make_section(3, course_id=3, faculty_id=3, cohort_size=20, cohort="CSE-1"),
        make_section(4, course_id=1, faculty_id=1, cohort_size=55, cohort="ECE-1"),
        make_section(5, course_id=2, faculty_id=3, cohort_size=50, cohort="ECE-1"),
    ]


@pytest.fixture
def sample_repository(sample_sections, sample_courses, sample_rooms, sample_faculty):
    return InMemoryRepository(sample_sections, sample_courses, sample_rooms, sample_faculty)


@pytest.fixture
def monday_only_repository(lecture_room):
    """Three sections, one room, one faculty free on Monday periods 1-2 only."""
    faculty = Faculty(id=1, name="Ada Lovelace", unavailable=free_only((1, 1), (1, 2)))
    course = Course(id=1, code="CS101", sessions_per_week=1)
    sections = [make_section(i, cohort_size=20) for i in (1, 2, 3)]
    return InMemoryRepository(sections, [course], [lecture_room], [faculty])


@pytest.fixture
def data_dir(tmp_path):
    """Directory with the CSV tables the file repository reads."""
    (tmp_path / "courses.csv").write_text(
        "id,code,name,credits,department,sessions_per_week,session_slots,required_room_type\n"
        "1,CS101,Programming,3,CSE,2,1,\n"
        "2,CS102L,Programming Lab,1,CSE,1,2,lab\n",
        encoding="utf-8",
    )
    (tmp_path / "sections.csv").write_text(
        "id,course_id,faculty_id,cohort_size,cohort,department,semester,year\n"
        "1,1,1,28,CSE-1,CSE,1,2024\n"
        "2,2,2,20,CSE-1,CSE,1,2024\n"
        "3,1,1,40,ECE-1,ECE,1,2024\n"
        "4,1,,25,ME-1,ME,1,2024\n"
        "5,1,1,30,CSE-2,CSE,2,2024\n",
        encoding="utf-8",
    )
    (tmp_path / "rooms.csv").write_text(
        "id,room_number,capacity,room_type,building\n"
        "1,101,30,classroom,Main\n"
        "2,201,60,lecture,Main\n"
        "3,L1,25,lab,Annex\n",
        encoding="utf-8",
    )
    (tmp_path / "faculty.csv").write_text(
        "id,name,max_weekly_load\n"
        "1,Ada Lovelace,\n"
        "2,Alan Turing,12\n",
        encoding="utf-8",
    )
    (tmp_path / "faculty_unavailability.csv").write_text(
        "faculty_id,day,slot\n"
        "2,1,1\n"
        "2,1,2\n",
        encoding="utf-8",
    )
    return tmp_path


@pytest.fixture
def repository_factory():
    """Build an InMemoryRepository from entity lists."""
    return InMemoryRepository


@pytest.fixture
def section_factory():
    """Build a Section for the test term."""
    return make_section


@pytest.fixture
def blackout_except():
    """Build a blackout set leaving only the given (day, period) cells free."""
    return free_only
