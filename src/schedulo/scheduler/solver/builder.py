"""CP-SAT model construction."""

from collections import defaultdict

from ortools.sat.python import cp_model

from ..constants import CPSAT_COST_SCALE, CPSAT_PLACEMENT_REWARD
from ..constraints import ConstraintEvaluator
from ..models import SessionItem

# x[(item_idx, day, start, room_id)] = BoolVar
VarKey = tuple[int, int, int, int]


class ModelBuilder:
    """Builds a CP-SAT model equivalent to the backtracking search problem.

    Domain reduction applies the static hard constraints (capacity, room
    type, faculty blackout, consecutive periods); the model adds the
    single-allocation and load constraints and the soft-cost objective.
    """

    def __init__(self, evaluator: ConstraintEvaluator, items: list[SessionItem]):
        self.evaluator = evaluator
        self.items = items
        self.model = cp_model.CpModel()
        self.x: dict[VarKey, cp_model.IntVar] = {}
        self._penalties: list[tuple[cp_model.LinearExprT, int]] = []

    def build(self) -> cp_model.CpModel:
        """Build the complete CP-SAT model."""
        self._create_variables()
        self._apply_single_placement()
        self._apply_cell_allocation()
        self._apply_faculty_load_caps()
        self._apply_daily_load_penalty()
        self._apply_faculty_gap_penalty()
        self._add_objective()
        return self.model

    def get_variables(self) -> dict[VarKey, cp_model.IntVar]:
        """Get the assignment variables."""
        return self.x

    def _create_variables(self) -> None:
        """Create x variables with domain reduction."""
        waste_weight = self.evaluator.config.weight("capacity_waste")
        for idx, item in enumerate(self.items):
            rooms = self.evaluator.fitting_rooms(item)
            for day, slot in self.evaluator.allowed_starts(item):
                for room in rooms:
                    var = self.model.NewBoolVar(f"x_{idx}_{day}_{slot}_{room.id}")
                    self.x[(idx, day, slot, room.id)] = var
                    waste = waste_weight * self.evaluator.soft.capacity_waste(item, room)
                    cost = int(round(waste * CPSAT_COST_SCALE))
                    if cost:
                        self._penalties.append((var, cost))

    def _vars_by_item(self) -> dict[int, list[cp_model.IntVar]]:
        by_item: dict[int, list[cp_model.IntVar]] = defaultdict(list)
        for (idx, _day, _slot, _room), var in self.x.items():
            by_item[idx].append(var)
        return by_item

    def _apply_single_placement(self) -> None:
        """Each session is placed at most once; unplaced sessions are penalized."""
        by_item = self._vars_by_item()
        for idx in range(len(self.items)):
            item_vars = by_item.get(idx, [])
            if item_vars:
                self.model.AddAtMostOne(item_vars)
            # Penalty of (1 - placed) expressed through the negated sum
            placed = sum(item_vars) if item_vars else 0
            self._penalties.append((1 - placed, CPSAT_PLACEMENT_REWARD))

    def _apply_cell_allocation(self) -> None:
        """
        A room, faculty member or cohort holds at most one session per period.
        """
        cells: dict[tuple[str, object, int, int], list[cp_model.IntVar]] = defaultdict(list)
        for (idx, day, slot, room_id), var in self.x.items():
            item = self.items[idx]
            for period in range(slot, slot + item.length):
                cells[("room", room_id, day, period)].append(var)
                cells[("faculty", item.faculty.id, day, period)].append(var)
                cells[("cohort", item.section.cohort_key, day, period)].append(var)

        for var_list in cells.values():
            if len(var_list) > 1:
                self.model.AddAtMostOne(var_list)

    def _apply_faculty_load_caps(self) -> None:
        """Weekly periods per faculty stay within the configured cap."""
        load_terms: dict[int, list[cp_model.LinearExprT]] = defaultdict(list)
        caps: dict[int, int] = {}
        for (idx, _day, _slot, _room), var in self.x.items():
            item = self.items[idx]
            if item.faculty.max_weekly_load is None:
                continue
            caps[item.faculty.id] = item.faculty.max_weekly_load
            load_terms[item.faculty.id].append(var * item.length)

        for faculty_id, terms in load_terms.items():
            self.model.Add(sum(terms) <= caps[faculty_id])

    def _day_periods(self) -> dict[tuple[str, object, int, int], list[cp_model.IntVar]]:
        """Variables covering each (kind, entity, day, period)."""
        covering: dict[tuple[str, object, int, int], list[cp_model.IntVar]] = defaultdict(list)
        for (idx, day, slot, _room), var in self.x.items():
            item = self.items[idx]
            for period in range(slot, slot + item.length):
                covering[("cohort", item.section.cohort_key, day, period)].append(var)
                covering[("faculty", item.faculty.id, day, period)].append(var)
        return covering

    def _apply_daily_load_penalty(self) -> None:
        """
        Spread each cohort's periods across the week.
        Every period beyond the first on a day is penalized.
        """
        weight = self.evaluator.config.weight("daily_load")
        cost = int(round(weight * CPSAT_COST_SCALE))
        if cost == 0:
            return

        per_day: dict[tuple[str, int], list[cp_model.IntVar]] = defaultdict(list)
        for (kind, entity, day, _period), var_list in self._day_periods().items():
            if kind == "cohort":
                per_day[(entity, day)].extend(var_list)

        for (cohort, day), var_list in sorted(per_day.items(), key=lambda kv: (str(kv[0][0]), kv[0][1])):
            if len(var_list) < 2:
                continue
            excess = self.model.NewIntVar(0, len(var_list), f"excess_{cohort}_{day}")
            self.model.Add(excess >= sum(var_list) - 1)
            self._penalties.append((excess, cost))

    def _apply_faculty_gap_penalty(self) -> None:
        """
        Penalize single idle periods between two busy periods of a faculty day.
        """
        weight = self.evaluator.config.weight("faculty_gap")
        cost = int(round(weight * CPSAT_COST_SCALE))
        if cost == 0:
            return

        busy_vars: dict[tuple[object, int], dict[int, list[cp_model.IntVar]]] = defaultdict(
            lambda: defaultdict(list)
        )
        for (kind, entity, day, period), var_list in self._day_periods().items():
            if kind == "faculty":
                busy_vars[(entity, day)][period].extend(var_list)

        for (faculty_id, day), periods in sorted(busy_vars.items(), key=lambda kv: (str(kv[0][0]), kv[0][1])):
            busy = {}
            for period, var_list in periods.items():
                busy[period] = self.model.NewBoolVar(f"busy_{faculty_id}_{day}_{period}")
                self.model.AddMaxEquality(busy[period], var_list)

            for period in sorted(busy):
                prev_p, next_p = period - 1, period + 1
                if prev_p not in busy or next_p not in busy:
                    continue
                gap = self.model.NewBoolVar(f"gap_{faculty_id}_{day}_{period}")
                # gap >= prev AND next AND NOT current
                self.model.AddBoolOr(
                    [busy[prev_p].Not(), busy[next_p].Not(), busy[period], gap]
                )
                self._penalties.append((gap, cost))

    def _add_objective(self) -> None:
        """Minimize unplaced sessions first, then soft costs."""
        if self._penalties:
            self.model.Minimize(sum(expr * weight for expr, weight in self._penalties))
