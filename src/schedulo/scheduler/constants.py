"""Constants for timetable generation."""

# Daily period grid. Each period is 50 minutes; lunch break after period 4.
DAILY_PERIODS = [
    {"index": 1, "start": "09:00", "end": "09:50"},
    {"index": 2, "start": "10:00", "end": "10:50"},
    {"index": 3, "start": "11:00", "end": "11:50"},
    {"index": 4, "start": "12:00", "end": "12:50"},
    {"index": 5, "start": "14:00", "end": "14:50"},
    {"index": 6, "start": "15:00", "end": "15:50"},
    {"index": 7, "start": "16:00", "end": "16:50"},
]

# Teaching days (ISO numbering, Monday = 1)
WORKING_DAYS = [1, 2, 3, 4, 5, 6]

DAY_NAMES = {
    1: "monday",
    2: "tuesday",
    3: "wednesday",
    4: "thursday",
    5: "friday",
    6: "saturday",
    7: "sunday",
}

# Search budgets
DEFAULT_MAX_BACKTRACK_STEPS = 10_000
DEFAULT_TIME_BUDGET_MS = 30_000
DEFAULT_TIE_BREAK_SEED = 0
DEFAULT_ROOM_CAPACITY_SLACK = 0.0

# Solver strategies
STRATEGY_BACKTRACKING = "backtracking"
STRATEGY_CPSAT = "cpsat"
STRATEGIES = (STRATEGY_BACKTRACKING, STRATEGY_CPSAT)

# Soft constraint weights (lower total cost is better)
# - capacity_waste: multiplied by (capacity - cohort) / capacity
# - daily_load: multiplied by periods the cohort already has that day
# - faculty_gap: multiplied by idle periods added to the faculty's day
SOFT_CONSTRAINT_WEIGHTS = {
    "capacity_waste": 10.0,
    "daily_load": 4.0,
    "faculty_gap": 2.0,
}

# CP-SAT objective: integer scale for soft costs and reward per placed session.
# The reward must dominate any achievable soft cost of a single session.
CPSAT_COST_SCALE = 100
CPSAT_PLACEMENT_REWARD = 1_000_000

# Human-readable failure messages
MSG_NO_FACULTY_AVAILABILITY = "no faculty availability remaining"
MSG_FACULTY_LOAD_CAP = "faculty weekly load cap reached"
MSG_NO_COHORT_AVAILABILITY = "cohort has no free period left"
MSG_NO_ROOM_AVAILABLE = "all suitable rooms are occupied"


def get_period_info(index: int) -> dict | None:
    """Get period info by its 1-based index."""
    for period in DAILY_PERIODS:
        if period["index"] == index:
            return period
    return None


def get_period_time_range(index: int) -> str:
    """Get time range string for a period (e.g., '09:00-09:50')."""
    period = get_period_info(index)
    if period:
        return f"{period['start']}-{period['end']}"
    return ""


def get_day_name(day: int) -> str:
    """Get lowercase day name for an ISO day number."""
    return DAY_NAMES.get(int(day), str(day))
