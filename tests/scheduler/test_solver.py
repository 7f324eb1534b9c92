"""Tests for the CP-SAT strategy."""

import threading

import pytest
from ortools.sat.python import cp_model

from schedulo.scheduler import (
    Course,
    Faculty,
    FailureReason,
    Room,
    ScheduleStatus,
    SchedulerConfig,
    StopReason,
    generate_schedule,
)
from schedulo.scheduler.availability import AvailabilityIndex
from schedulo.scheduler.constraints import ConstraintEvaluator
from schedulo.scheduler.models import Schedule
from schedulo.scheduler.solver import CancelWatcher, CpSatStrategy, ModelBuilder
from schedulo.scheduler.utils import build_time_grid, expand_sessions


def cpsat(**kwargs):
    return SchedulerConfig(strategy="cpsat", time_budget_ms=10_000, **kwargs)


@pytest.fixture
def trap_repository(repository_factory, section_factory, blackout_except):
    faculty = [
        Faculty(id=1, name="A", unavailable=blackout_except((1, 1), (1, 2))),
        Faculty(id=2, name="B", unavailable=blackout_except((1, 1), (1, 3))),
        Faculty(id=3, name="C", unavailable=blackout_except((1, 1), (1, 3))),
    ]
    return repository_factory(
        [section_factory(i, faculty_id=i) for i in (1, 2, 3)],
        [Course(id=1, code="CS101")],
        [Room(id=1, room_number="101", capacity=30)],
        faculty,
    )


class TestModelBuilder:
    """Tests for ModelBuilder."""

    def test_variables_follow_static_domains(self, sample_sections, sample_courses, sample_faculty, sample_rooms):
        evaluator = ConstraintEvaluator(
            SchedulerConfig(), AvailabilityIndex(), sample_rooms, build_time_grid()
        )
        items, _ = expand_sessions(sample_sections, sample_courses, sample_faculty)
        builder = ModelBuilder(evaluator, items)
        builder.build()
        variables = builder.get_variables()
        assert len(variables) == sum(evaluator.static_domain_size(i) for i in items)
        # Blacked-out periods never get a variable
        turing = [i for i, item in enumerate(items) if item.faculty.id == 2]
        assert not any((idx, 1, 1, room) in variables for idx in turing for room in (1, 2, 3))

    def test_unplaceable_item_has_no_variables(self, section_factory, sample_rooms):
        evaluator = ConstraintEvaluator(
            SchedulerConfig(), AvailabilityIndex(), sample_rooms, build_time_grid()
        )
        items, _ = expand_sessions(
            [section_factory(1, cohort_size=500)], [Course(id=1, code="CS101")], [Faculty(id=1, name="Ada")]
        )
        builder = ModelBuilder(evaluator, items)
        builder.build()
        assert builder.get_variables() == {}


class TestCpSatStrategy:
    """Tests for generation with strategy='cpsat'."""

    def test_places_everything(self, sample_repository):
        result = generate_schedule(1, 2024, "Test", cpsat(), sample_repository)
        assert result.status == ScheduleStatus.SCHEDULED
        assert result.statistics.placed_count == 11
        assert result.statistics.backtrack_count == 0
        assert result.strategy == "cpsat"

    def test_solves_greedy_trap(self, trap_repository):
        result = generate_schedule(1, 2024, "Test", cpsat(), trap_repository)
        assert result.status == ScheduleStatus.SCHEDULED
        placed = {a.section_id: a.slot for a in result.assignments}
        assert placed[1] == 2
        assert {placed[2], placed[3]} == {1, 3}

    def test_proves_infeasibility(self, monday_only_repository):
        result = generate_schedule(1, 2024, "Test", cpsat(), monday_only_repository)
        assert result.status == ScheduleStatus.UNSATISFIABLE
        assert result.statistics.stop_reason == StopReason.EXHAUSTED.value
        assert len(result.assignments) == 2
        assert result.unplaced[0].reason == FailureReason.NO_FACULTY_AVAILABILITY

    def test_deterministic(self, sample_repository):
        first = generate_schedule(1, 2024, "Test", cpsat(), sample_repository)
        second = generate_schedule(1, 2024, "Test", cpsat(), sample_repository)
        assert first.assignments == second.assignments

    def test_respects_faculty_load_cap(self, repository_factory, section_factory, lecture_room):
        faculty = Faculty(id=1, name="Ada", max_weekly_load=2)
        repository = repository_factory(
            [section_factory(i, cohort=f"C{i}") for i in (1, 2, 3)],
            [Course(id=1, code="CS101")],
            [lecture_room],
            [faculty],
        )
        result = generate_schedule(1, 2024, "Test", cpsat(), repository)
        assert len(result.assignments) == 2
        assert result.unplaced[0].reason == FailureReason.FACULTY_LOAD_EXCEEDED

    def test_cancelled_before_solving(self, trap_repository):
        event = threading.Event()
        event.set()
        result = generate_schedule(1, 2024, "Test", cpsat(), trap_repository, cancel_event=event)
        assert result.statistics.stop_reason == StopReason.CANCELLED.value
        assert result.status == ScheduleStatus.PARTIAL

    def test_cancelled_during_solve(self, trap_repository, monkeypatch):
        """A cancellation that arrives mid-solve still yields a partial timetable."""
        event = threading.Event()

        def interrupted_solve(solver, model, *args, **kwargs):
            event.set()
            return cp_model.UNKNOWN

        monkeypatch.setattr(cp_model.CpSolver, "Solve", interrupted_solve)
        result = generate_schedule(1, 2024, "Test", cpsat(), trap_repository, cancel_event=event)
        assert result.statistics.stop_reason == StopReason.CANCELLED.value
        assert result.status == ScheduleStatus.PARTIAL
        assert len(result.assignments) + len(result.unplaced) == 3

    def test_strategy_commits_into_schedule(self, sample_sections, sample_courses, sample_faculty, sample_rooms):
        index = AvailabilityIndex()
        evaluator = ConstraintEvaluator(SchedulerConfig(), index, sample_rooms, build_time_grid())
        schedule = Schedule(1, 2024, "Test")
        items, _ = expand_sessions(sample_sections, sample_courses, sample_faculty)
        outcome = CpSatStrategy(evaluator, index, schedule, time_budget_ms=10_000).run(items)
        assert outcome.unplaced_items == []
        assert len(schedule) == len(items)
        assert index.reservation_count() == 3 * sum(a.length for a in schedule)


class _RecordingSolver:
    def __init__(self):
        self.stopped = threading.Event()

    def stop_search(self):
        self.stopped.set()


class TestCancelWatcher:
    """Tests for stopping a running search on cancellation."""

    def test_stops_search_when_cancelled(self):
        solver = _RecordingSolver()
        event = threading.Event()
        with CancelWatcher(solver, event, interval=0.01):
            event.set()
            assert solver.stopped.wait(timeout=5)

    def test_leaves_search_alone_otherwise(self):
        solver = _RecordingSolver()
        with CancelWatcher(solver, threading.Event(), interval=0.01):
            pass
        assert not solver.stopped.is_set()
