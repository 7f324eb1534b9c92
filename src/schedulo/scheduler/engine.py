"""Constructive search with chronological backtracking."""

import logging
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Protocol

from .availability import AvailabilityIndex
from .constraints import ConstraintEvaluator, Violation
from .models import (
    Assignment,
    Candidate,
    ResourceKind,
    Schedule,
    SessionItem,
    StopReason,
)

logger = logging.getLogger(__name__)


class CancellationToken(Protocol):
    """Anything with an is_set() method, e.g. threading.Event."""

    def is_set(self) -> bool: ...


@dataclass
class _Frame:
    """Decision point for one queue item.

    Candidates are ranked once when the item is reached. Advancing
    `position` excludes every candidate already tried for this item; the
    frame is discarded (and the exclusions forgotten) when the search
    backtracks past it.
    """

    item: SessionItem
    candidates: list[Candidate]
    position: int = 0
    committed: Candidate | None = None


@dataclass
class SearchOutcome:
    """What the engine reports besides the schedule itself."""

    stop_reason: StopReason
    backtrack_count: int = 0
    steps: int = 0
    total_cost: float = 0.0
    unplaced_items: list[SessionItem] = field(default_factory=list)
    failures: dict[tuple[int, int], Violation] = field(default_factory=dict)

    @property
    def proven(self) -> bool:
        """True when the search finished without hitting a budget."""
        return self.stop_reason in (StopReason.COMPLETED, StopReason.EXHAUSTED)


class BacktrackingEngine:
    """Places session items one by one, undoing earlier choices on dead ends.

    The engine exclusively owns the availability index and the schedule
    it is given for the duration of run().
    """

    def __init__(
        self,
        evaluator: ConstraintEvaluator,
        index: AvailabilityIndex,
        schedule: Schedule,
        max_backtrack_steps: int,
        time_budget_ms: int,
        cancel_event: CancellationToken | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.evaluator = evaluator
        self.index = index
        self.schedule = schedule
        self.max_backtrack_steps = max_backtrack_steps
        self.time_budget_ms = time_budget_ms
        self.cancel_event = cancel_event
        self.clock = clock

        self.backtrack_count = 0
        self.steps = 0
        self._costs: list[float] = []

    def run(self, items: list[SessionItem]) -> SearchOutcome:
        """
        Search for a complete placement of `items` in the given order.

        Returns:
            SearchOutcome; the schedule holds the placed assignments.
        """
        deadline = self.clock() + self.time_budget_ms / 1000.0
        frames: list[_Frame] = []
        best: list[tuple[SessionItem, Candidate]] = []
        stop_reason = StopReason.COMPLETED

        logger.info(
            f"Searching {len(items)} sessions "
            f"(max {self.max_backtrack_steps} backtracks, {self.time_budget_ms} ms)"
        )

        depth = 0
        while depth < len(items):
            if self.cancel_event is not None and self.cancel_event.is_set():
                stop_reason = StopReason.CANCELLED
                break
            if self.clock() >= deadline:
                stop_reason = StopReason.TIME_BUDGET
                break

            if depth == len(frames):
                item = items[depth]
                frames.append(_Frame(item, self.evaluator.candidates(item)))

            frame = frames[depth]
            if frame.position < len(frame.candidates):
                candidate = frame.candidates[frame.position]
                frame.position += 1
                self._commit(frame.item, candidate)
                frame.committed = candidate
                depth += 1
                if depth > len(best):
                    best = [(f.item, f.committed) for f in frames[:depth]]
                continue

            # Dead end: no untried legal candidate for this item
            if not frame.candidates:
                logger.debug(f"No candidates for section {frame.item.section.id} "
                             f"session {frame.item.session_index}")
            frames.pop()
            if depth == 0:
                stop_reason = StopReason.EXHAUSTED
                break
            if self.backtrack_count >= self.max_backtrack_steps:
                stop_reason = StopReason.STEP_BUDGET
                break

            self.backtrack_count += 1
            depth -= 1
            self._undo(frames[depth])
            logger.debug(
                f"Backtrack #{self.backtrack_count} to section "
                f"{frames[depth].item.section.id} (depth {depth})"
            )

        if stop_reason == StopReason.COMPLETED:
            logger.info(
                f"Placed all {len(items)} sessions after {self.backtrack_count} backtracks"
            )
            return SearchOutcome(
                stop_reason=stop_reason,
                backtrack_count=self.backtrack_count,
                steps=self.steps,
                total_cost=sum(self._costs),
            )

        logger.warning(
            f"Search stopped ({stop_reason.value}) after {self.backtrack_count} backtracks; "
            f"best partial placed {len(best)} of {len(items)} sessions"
        )
        for frame in reversed(frames):
            if frame.committed is not None:
                self._undo(frame)
        return self.restore_and_fill(items, best, stop_reason)

    def restore_and_fill(
        self,
        items: list[SessionItem],
        placements: list[tuple[SessionItem, Candidate]],
        stop_reason: StopReason,
    ) -> SearchOutcome:
        """Commit known placements, then greedily add the items that still fit.

        Placements are re-priced against the state they are committed into.

        Items with no legal candidate left get a diagnosis in the final state.
        Expects an empty schedule and index.
        """
        placed_keys = set()
        for item, candidate in placements:
            cost = self.evaluator.soft.cost(item, candidate.day, candidate.slot, candidate.room)
            self._commit(item, replace(candidate, cost=cost))
            placed_keys.add(item.key)

        unplaced: list[SessionItem] = []
        failures: dict[tuple[int, int], Violation] = {}
        for item in items:
            if item.key in placed_keys:
                continue
            candidates = self.evaluator.candidates(item)
            if candidates:
                self._commit(item, candidates[0])
            else:
                failures[item.key] = self.evaluator.diagnose(item)
                unplaced.append(item)

        return SearchOutcome(
            stop_reason=stop_reason,
            backtrack_count=self.backtrack_count,
            steps=self.steps,
            total_cost=sum(self._costs),
            unplaced_items=unplaced,
            failures=failures,
        )

    def _commit(self, item: SessionItem, candidate: Candidate) -> Assignment:
        """Reserve the candidate's cells and append its assignment."""
        section = item.section
        slots = range(candidate.slot, candidate.slot + item.length)
        for slot in slots:
            self.index.reserve(ResourceKind.ROOM, candidate.room.id, candidate.day, slot)
            self.index.reserve(ResourceKind.FACULTY, item.faculty.id, candidate.day, slot)
            self.index.reserve(ResourceKind.COHORT, section.cohort_key, candidate.day, slot)

        start_time, end_time = self.evaluator.period_bounds(
            candidate.day, candidate.slot, item.length
        )
        assignment = Assignment(
            section_id=section.id,
            course_id=item.course.id,
            room_id=candidate.room.id,
            faculty_id=item.faculty.id,
            cohort=section.cohort_key,
            day=candidate.day,
            slot=candidate.slot,
            length=item.length,
            session_index=item.session_index,
            start_time=start_time,
            end_time=end_time,
        )
        self.schedule.add(assignment)
        self._costs.append(candidate.cost)
        self.steps += 1
        return assignment

    def _undo(self, frame: _Frame) -> None:
        """Pop the frame's assignment and release its cells."""
        assignment = self.schedule.pop()
        self._costs.pop()
        for slot in assignment.slots:
            self.index.release(ResourceKind.ROOM, assignment.room_id, assignment.day, slot)
            self.index.release(ResourceKind.FACULTY, assignment.faculty_id, assignment.day, slot)
            self.index.release(ResourceKind.COHORT, assignment.cohort, assignment.day, slot)
        frame.committed = None
