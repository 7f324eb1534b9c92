"""Timetable generation entry points."""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..exceptions import ConfigurationError, ConflictError, InsufficientDataError
from .availability import AvailabilityIndex
from .config import SchedulerConfig
from .conflicts import find_conflicts
from .constants import STRATEGY_CPSAT
from .constraints import ConstraintEvaluator
from .engine import BacktrackingEngine, CancellationToken, SearchOutcome
from .models import (
    Course,
    Faculty,
    FailureReason,
    Room,
    Schedule,
    ScheduleResult,
    ScheduleStatistics,
    ScheduleStatus,
    Section,
    SessionItem,
    TimeSlot,
    UnplacedSection,
)
from .solver import CpSatStrategy
from .utils import (
    calculate_room_utilization,
    collect_unplaced,
    count_by_day,
    expand_sessions,
    sort_items_by_priority,
)

if TYPE_CHECKING:
    from ..repository import ScheduleRepository

logger = logging.getLogger(__name__)


@dataclass
class Snapshot:
    """Entities read for one run."""

    sections: list[Section]
    courses: list[Course]
    rooms: list[Room]
    faculty: list[Faculty]
    grid: list[TimeSlot]


class TimetableScheduler:
    """Generates weekly timetables from the entities of a repository.

    Every call to generate() builds its own availability index and
    schedule, so one scheduler may serve concurrent runs.
    """

    def __init__(
        self,
        repository: "ScheduleRepository",
        config: SchedulerConfig | None = None,
    ):
        self.repository = repository
        self.config = config if config is not None else SchedulerConfig()

    def load(self, semester: int, year: int) -> Snapshot:
        """Read everything a run needs from the repository."""
        snapshot = Snapshot(
            sections=self.repository.load_sections(semester, year),
            courses=self.repository.load_courses(),
            rooms=self.repository.load_rooms(),
            faculty=self.repository.load_faculty(),
            grid=self.repository.load_time_slot_grid(),
        )
        if not snapshot.grid:
            raise ConfigurationError("time slot grid is empty", field="time_slots")

        logger.info(
            f"Loaded {len(snapshot.sections)} sections, {len(snapshot.courses)} courses, "
            f"{len(snapshot.rooms)} rooms, {len(snapshot.faculty)} faculty, "
            f"{len(snapshot.grid)} periods"
        )
        return snapshot

    def _prepare(
        self, snapshot: Snapshot, evaluator: ConstraintEvaluator
    ) -> tuple[list[SessionItem], list[SessionItem], list[UnplacedSection]]:
        """Expand sections into sessions and drop the ones that can never be placed.

        Returns:
            Tuple of (placeable items, all items, unplaced sections)
        """
        items, unplaced = expand_sessions(snapshot.sections, snapshot.courses, snapshot.faculty)

        placeable = []
        rejected: dict[int, UnplacedSection] = {}
        for item in items:
            try:
                evaluator.static_check(item)
            except InsufficientDataError as e:
                entry = rejected.get(e.section_id)
                if entry is None:
                    rejected[e.section_id] = UnplacedSection(
                        section_id=e.section_id,
                        reason=FailureReason(e.reason),
                        last_failure_reason=e.details,
                    )
                else:
                    entry.missing_sessions += 1
                continue
            placeable.append(item)

        return placeable, items, unplaced + list(rejected.values())

    def validate(self, semester: int, year: int) -> list[UnplacedSection]:
        """Report sections that cannot be placed even on an empty timetable."""
        self.config.validate()
        snapshot = self.load(semester, year)
        evaluator = ConstraintEvaluator(
            self.config, AvailabilityIndex(), snapshot.rooms, snapshot.grid
        )
        _, _, unplaced = self._prepare(snapshot, evaluator)
        return sorted(unplaced, key=lambda u: u.section_id)

    def generate(
        self,
        semester: int,
        year: int,
        name: str,
        cancel_event: CancellationToken | None = None,
        persist: bool = False,
    ) -> ScheduleResult:
        """
        Generate a timetable for one term.

        Args:
            semester: Semester number
            year: Academic year
            name: Timetable name
            cancel_event: Optional token checked between placement steps
            persist: Store the result through the repository

        Returns:
            ScheduleResult with status, assignments and diagnostics

        Raises:
            ConfigurationError: If the configuration or the grid is unusable.
            ConflictError: If the finished timetable breaks a hard rule.
        """
        config = self.config.validate()
        started = time.monotonic()
        snapshot = self.load(semester, year)

        index = AvailabilityIndex()
        evaluator = ConstraintEvaluator(config, index, snapshot.rooms, snapshot.grid)
        schedule = Schedule(semester, year, name)

        placeable, items, unplaced = self._prepare(snapshot, evaluator)
        queue = sort_items_by_priority(placeable, evaluator)
        outcome = self._search(config, evaluator, index, schedule, queue, cancel_event)
        schedule.freeze()

        self._audit(schedule, snapshot, config)

        unplaced = sorted(
            unplaced + collect_unplaced(outcome.unplaced_items, outcome.failures),
            key=lambda u: u.section_id,
        )
        for entry in unplaced:
            logger.warning(f"Section {entry.section_id} not placed: {entry.last_failure_reason}")

        total_sessions = len(items) + sum(
            u.missing_sessions for u in unplaced if u.reason == FailureReason.MISSING_REFERENCE
        )
        statistics = ScheduleStatistics(
            total_sections=len(snapshot.sections),
            total_sessions=total_sessions,
            placed_count=len(schedule),
            unplaced_count=total_sessions - len(schedule),
            backtrack_count=outcome.backtrack_count,
            steps=outcome.steps,
            elapsed_ms=int((time.monotonic() - started) * 1000),
            total_soft_cost=outcome.total_cost,
            stop_reason=outcome.stop_reason.value,
            by_day=count_by_day(schedule.assignments),
            room_utilization=calculate_room_utilization(
                schedule.assignments, snapshot.rooms, snapshot.grid
            ),
        )

        result = ScheduleResult(
            status=self._status(outcome, unplaced, len(placeable) < len(items)),
            schedule=schedule,
            unplaced=unplaced,
            statistics=statistics,
            strategy=config.strategy,
        )
        logger.info(
            f"Timetable '{name}': {result.status.value}, placed {statistics.placed_count} "
            f"of {total_sessions} sessions in {statistics.elapsed_ms} ms"
        )

        if persist:
            self.repository.persist(result)
        return result

    def _search(
        self,
        config: SchedulerConfig,
        evaluator: ConstraintEvaluator,
        index: AvailabilityIndex,
        schedule: Schedule,
        queue: list[SessionItem],
        cancel_event: CancellationToken | None,
    ) -> SearchOutcome:
        if config.strategy == STRATEGY_CPSAT:
            strategy = CpSatStrategy(
                evaluator,
                index,
                schedule,
                time_budget_ms=config.time_budget_ms,
                random_seed=config.tie_break_seed,
                cancel_event=cancel_event,
            )
        else:
            strategy = BacktrackingEngine(
                evaluator,
                index,
                schedule,
                max_backtrack_steps=config.max_backtrack_steps,
                time_budget_ms=config.time_budget_ms,
                cancel_event=cancel_event,
            )
        return strategy.run(queue)

    def _audit(self, schedule: Schedule, snapshot: Snapshot, config: SchedulerConfig) -> None:
        """Re-check the finished timetable against the hard rules."""
        conflicts = find_conflicts(
            schedule.assignments,
            snapshot.sections,
            snapshot.rooms,
            snapshot.faculty,
            slack=config.room_capacity_slack,
            courses=snapshot.courses,
        )
        if conflicts:
            first = conflicts[0]
            raise ConflictError(
                first.kind,
                first.entity_id,
                first.day,
                first.slot,
                f"Generated timetable has {len(conflicts)} conflicts, first: {first.message}",
            )

    @staticmethod
    def _status(
        outcome: SearchOutcome,
        unplaced: list[UnplacedSection],
        rejected_statically: bool,
    ) -> ScheduleStatus:
        if not unplaced:
            return ScheduleStatus.SCHEDULED
        if outcome.proven or rejected_statically:
            return ScheduleStatus.UNSATISFIABLE
        if any(u.reason == FailureReason.MISSING_REFERENCE for u in unplaced):
            return ScheduleStatus.UNSATISFIABLE
        return ScheduleStatus.PARTIAL


def generate_schedule(
    semester: int,
    year: int,
    name: str,
    config: SchedulerConfig | None,
    repository: "ScheduleRepository",
    cancel_event: CancellationToken | None = None,
    persist: bool = False,
) -> ScheduleResult:
    """Generate one timetable. See TimetableScheduler.generate()."""
    scheduler = TimetableScheduler(repository, config)
    return scheduler.generate(semester, year, name, cancel_event=cancel_event, persist=persist)


@dataclass
class GenerationRequest:
    """Arguments of one independent generate_schedule() call."""

    semester: int
    year: int
    name: str
    repository: "ScheduleRepository"
    config: SchedulerConfig | None = None
    persist: bool = False


def generate_many(
    requests: list[GenerationRequest],
    max_workers: int = 4,
    cancel_event: CancellationToken | None = None,
) -> list[ScheduleResult]:
    """Run independent generations in parallel.

    Returns:
        Results in the order of the requests
    """
    def run(request: GenerationRequest) -> ScheduleResult:
        return generate_schedule(
            request.semester,
            request.year,
            request.name,
            request.config,
            request.repository,
            cancel_event=cancel_event,
            persist=request.persist,
        )

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        return list(executor.map(run, requests))
