"""CP-SAT search strategy."""

import logging
import threading
from contextlib import nullcontext

from ortools.sat.python import cp_model

from ...exceptions import SchedulerError
from ..availability import AvailabilityIndex
from ..constraints import ConstraintEvaluator
from ..engine import BacktrackingEngine, CancellationToken, SearchOutcome
from ..models import Schedule, SessionItem, StopReason
from .builder import ModelBuilder
from .extractor import SolutionExtractor

logger = logging.getLogger(__name__)


class CancelWatcher:
    """Stops a running CP-SAT search once the cancellation token is set.

    Polls the token from a daemon thread while `solver.Solve` blocks.
    """

    def __init__(
        self,
        solver: cp_model.CpSolver,
        cancel_event: CancellationToken,
        interval: float = 0.05,
    ):
        self.solver = solver
        self.cancel_event = cancel_event
        self.interval = interval
        self._done = threading.Event()
        self._thread = threading.Thread(target=self._watch, daemon=True)

    def _watch(self) -> None:
        while not self._done.wait(self.interval):
            if self.cancel_event.is_set():
                logger.warning("Cancellation requested, stopping CP-SAT search")
                self.solver.stop_search()
                return

    def __enter__(self) -> "CancelWatcher":
        self._thread.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self._done.set()
        self._thread.join()


class CpSatStrategy:
    """Solves the placement problem as one CP-SAT model.

    Runs with a single worker and a fixed seed so that the same input
    always gives the same timetable.
    """

    def __init__(
        self,
        evaluator: ConstraintEvaluator,
        index: AvailabilityIndex,
        schedule: Schedule,
        time_budget_ms: int,
        random_seed: int = 0,
        cancel_event: CancellationToken | None = None,
    ):
        self.evaluator = evaluator
        self.index = index
        self.schedule = schedule
        self.time_limit = time_budget_ms / 1000.0
        self.random_seed = random_seed
        self.cancel_event = cancel_event

    def run(self, items: list[SessionItem]) -> SearchOutcome:
        """Solve, then commit the solution through the backtracking engine."""
        engine = BacktrackingEngine(
            self.evaluator,
            self.index,
            self.schedule,
            max_backtrack_steps=0,
            time_budget_ms=max(1, int(self.time_limit * 1000)),
        )

        if self.cancel_event is not None and self.cancel_event.is_set():
            logger.warning("Cancelled before solving")
            return engine.restore_and_fill(items, [], StopReason.CANCELLED)

        builder = ModelBuilder(self.evaluator, items)
        model = builder.build()
        variables = builder.get_variables()
        logger.info(f"Built CP-SAT model with {len(variables)} placement variables")

        solver = cp_model.CpSolver()
        solver.parameters.max_time_in_seconds = self.time_limit
        solver.parameters.num_workers = 1
        solver.parameters.random_seed = self.random_seed
        solver.parameters.log_search_progress = False

        watcher = (
            CancelWatcher(solver, self.cancel_event) if self.cancel_event is not None else nullcontext()
        )
        logger.info("Starting CP-SAT solver...")
        with watcher:
            status = solver.Solve(model)
        cancelled = self.cancel_event is not None and self.cancel_event.is_set()

        if status == cp_model.OPTIMAL:
            logger.info("Found optimal solution")
            stop_reason = StopReason.COMPLETED
        elif status == cp_model.FEASIBLE:
            logger.info("Found feasible solution (may not be optimal)")
            stop_reason = StopReason.CANCELLED if cancelled else StopReason.SOLVER
        elif status == cp_model.UNKNOWN and cancelled:
            logger.warning("Cancelled before CP-SAT found a solution")
            return engine.restore_and_fill(items, [], StopReason.CANCELLED)
        elif status == cp_model.UNKNOWN:
            logger.warning(f"No solution within {self.time_limit}s")
            return engine.restore_and_fill(items, [], StopReason.TIME_BUDGET)
        else:
            raise SchedulerError(f"CP-SAT solver returned status: {solver.StatusName(status)}")

        placements = SolutionExtractor(
            solver, variables, items, self.evaluator.rooms
        ).extract()
        outcome = engine.restore_and_fill(items, placements, stop_reason)

        # An optimal solution that leaves sessions out proves they cannot all fit
        if stop_reason == StopReason.COMPLETED and outcome.unplaced_items:
            outcome.stop_reason = StopReason.EXHAUSTED
        return outcome
