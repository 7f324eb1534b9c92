"""Solution extraction from CP-SAT solver."""

from ortools.sat.python import cp_model

from ..models import Candidate, Room, SessionItem
from .builder import VarKey


class SolutionExtractor:
    """Turns selected CP-SAT variables back into session placements."""

    def __init__(
        self,
        solver: cp_model.CpSolver,
        variables: dict[VarKey, cp_model.IntVar],
        items: list[SessionItem],
        rooms: list[Room],
    ):
        self.solver = solver
        self.variables = variables
        self.items = items
        self._room_by_id = {r.id: r for r in rooms}

    def extract(self) -> list[tuple[SessionItem, Candidate]]:
        """
        Extract placements in queue order.

        Sessions the solver left out are simply absent from the result.
        """
        chosen: dict[int, Candidate] = {}
        for (idx, day, slot, room_id), var in sorted(self.variables.items()):
            if self.solver.Value(var) == 1:
                chosen[idx] = Candidate(day, slot, self._room_by_id[room_id])

        return [(self.items[idx], chosen[idx]) for idx in sorted(chosen)]
