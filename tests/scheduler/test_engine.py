"""Tests for the backtracking engine."""

import itertools
import threading

import pytest

from schedulo.scheduler.availability import AvailabilityIndex
from schedulo.scheduler.config import SchedulerConfig
from schedulo.scheduler.constraints import ConstraintEvaluator
from schedulo.scheduler.engine import BacktrackingEngine
from schedulo.scheduler.models import (
    Course,
    Faculty,
    FailureReason,
    ResourceKind,
    Room,
    Schedule,
    StopReason,
)
from schedulo.scheduler.utils import build_time_grid, expand_sessions, sort_items_by_priority


def build_engine(sections, courses, faculty, rooms, max_backtrack_steps=100, time_budget_ms=5_000, **kwargs):
    config = SchedulerConfig(max_backtrack_steps=max_backtrack_steps, time_budget_ms=time_budget_ms)
    index = AvailabilityIndex()
    evaluator = ConstraintEvaluator(config, index, rooms, build_time_grid())
    schedule = Schedule(1, 2024, "Test")
    items, _ = expand_sessions(sections, courses, faculty)
    engine = BacktrackingEngine(
        evaluator, index, schedule, max_backtrack_steps, time_budget_ms, **kwargs
    )
    return engine, sort_items_by_priority(items, evaluator)


@pytest.fixture
def trap(section_factory, blackout_except):
    """Three sessions in one room where the first greedy choice is a dead end.

    Section 1 may use periods 1 or 2, sections 2 and 3 periods 1 or 3 (Monday).
    """
    faculty = [
        Faculty(id=1, name="A", unavailable=blackout_except((1, 1), (1, 2))),
        Faculty(id=2, name="B", unavailable=blackout_except((1, 1), (1, 3))),
        Faculty(id=3, name="C", unavailable=blackout_except((1, 1), (1, 3))),
    ]
    sections = [section_factory(i, faculty_id=i) for i in (1, 2, 3)]
    courses = [Course(id=1, code="CS101")]
    rooms = [Room(id=1, room_number="101", capacity=30)]
    return sections, courses, faculty, rooms


def placements(schedule):
    return sorted((a.section_id, a.day, a.slot) for a in schedule)


class TestBacktrackingEngine:
    """Tests for BacktrackingEngine.run()."""

    def test_places_everything(self, sample_sections, sample_courses, sample_faculty, sample_rooms):
        engine, items = build_engine(sample_sections, sample_courses, sample_faculty, sample_rooms)
        outcome = engine.run(items)
        assert outcome.stop_reason == StopReason.COMPLETED
        assert outcome.unplaced_items == []
        assert len(engine.schedule) == len(items)
        assert outcome.steps == len(items)

    def test_backtracks_out_of_dead_end(self, trap):
        engine, items = build_engine(*trap)
        outcome = engine.run(items)
        assert outcome.stop_reason == StopReason.COMPLETED
        assert outcome.backtrack_count == 2
        assert placements(engine.schedule) == [(1, 1, 2), (2, 1, 1), (3, 1, 3)]

    def test_index_matches_schedule(self, trap):
        engine, items = build_engine(*trap)
        engine.run(items)
        # Every placed period reserves a room, faculty and cohort cell
        assert engine.index.reservation_count() == 3 * len(engine.schedule)
        for a in engine.schedule:
            assert not engine.index.is_free(ResourceKind.ROOM, a.room_id, a.day, a.slot)

    def test_step_budget_zero(self, trap):
        engine, items = build_engine(*trap, max_backtrack_steps=0)
        outcome = engine.run(items)
        assert outcome.stop_reason == StopReason.STEP_BUDGET
        assert outcome.backtrack_count == 0
        assert [i.section.id for i in outcome.unplaced_items] == [3]
        assert outcome.failures[(3, 0)].reason == FailureReason.NO_ROOM_AVAILABLE
        assert placements(engine.schedule) == [(1, 1, 1), (2, 1, 3)]

    @pytest.mark.parametrize("limit", [0, 1, 2, 5])
    def test_backtrack_bound_respected(self, trap, limit):
        engine, items = build_engine(*trap, max_backtrack_steps=limit)
        outcome = engine.run(items)
        assert outcome.backtrack_count <= limit

    def test_time_budget(self, trap):
        ticks = itertools.count()
        engine, items = build_engine(*trap, time_budget_ms=1_500, clock=lambda: float(next(ticks)))
        outcome = engine.run(items)
        assert outcome.stop_reason == StopReason.TIME_BUDGET
        assert not outcome.proven
        # Best prefix restored, then filled greedily
        assert len(engine.schedule) + len(outcome.unplaced_items) == len(items)

    def test_cancellation(self, trap):
        event = threading.Event()
        event.set()
        engine, items = build_engine(*trap, cancel_event=event)
        outcome = engine.run(items)
        assert outcome.stop_reason == StopReason.CANCELLED
        assert outcome.backtrack_count == 0
        assert len(engine.schedule) + len(outcome.unplaced_items) == len(items)

    def test_exhausted_root(self, section_factory, blackout_except):
        faculty = [Faculty(id=1, name="Ada", unavailable=blackout_except((1, 1), (1, 2)))]
        sections = [section_factory(i) for i in (1, 2, 3)]
        engine, items = build_engine(
            sections, [Course(id=1, code="CS101")], faculty, [Room(id=1, room_number="101", capacity=30)]
        )
        outcome = engine.run(items)
        assert outcome.stop_reason == StopReason.EXHAUSTED
        assert outcome.proven
        assert len(engine.schedule) == 2
        assert len(outcome.unplaced_items) == 1
        failure = outcome.failures[outcome.unplaced_items[0].key]
        assert failure.reason == FailureReason.NO_FACULTY_AVAILABILITY
        assert "no faculty availability remaining" in failure.details

    def test_deterministic(self, sample_sections, sample_courses, sample_faculty, sample_rooms):
        first, items = build_engine(sample_sections, sample_courses, sample_faculty, sample_rooms)
        first.run(items)
        second, items = build_engine(sample_sections, sample_courses, sample_faculty, sample_rooms)
        second.run(items)
        assert first.schedule.assignments == second.schedule.assignments

    def test_multi_period_assignment_times(self, section_factory):
        course = Course(id=1, code="CS102L", session_slots=2)
        engine, items = build_engine(
            [section_factory(1)], [course], [Faculty(id=1, name="Ada")],
            [Room(id=1, room_number="L1", capacity=30)],
        )
        engine.run(items)
        assignment = engine.schedule.assignments[0]
        assert (assignment.slot, assignment.length) == (1, 2)
        assert (assignment.start_time, assignment.end_time) == ("09:00", "10:50")

    def test_empty_queue(self, sample_rooms):
        engine, items = build_engine([], [], [], sample_rooms)
        outcome = engine.run(items)
        assert outcome.stop_reason == StopReason.COMPLETED
        assert outcome.steps == 0

    def test_soft_cost_accumulates(self, sample_sections, sample_courses, sample_faculty, sample_rooms):
        engine, items = build_engine(sample_sections, sample_courses, sample_faculty, sample_rooms)
        outcome = engine.run(items)
        # Section 4 (55 students) and 5 (50) waste part of the 60-seat room
        assert outcome.total_cost > 0
