"""Run configuration for the scheduler."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..exceptions import ConfigurationError
from .constants import (
    DEFAULT_MAX_BACKTRACK_STEPS,
    DEFAULT_ROOM_CAPACITY_SLACK,
    DEFAULT_TIE_BREAK_SEED,
    DEFAULT_TIME_BUDGET_MS,
    SOFT_CONSTRAINT_WEIGHTS,
    STRATEGIES,
    STRATEGY_BACKTRACKING,
)

# Keys of the web-facing (camelCase) configuration format
_CAMEL_CASE_KEYS = {
    "maxBacktrackSteps": "max_backtrack_steps",
    "timeBudgetMs": "time_budget_ms",
    "tieBreakSeed": "tie_break_seed",
    "roomCapacitySlack": "room_capacity_slack",
    "softWeights": "soft_weights",
}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass
class SchedulerConfig:
    """Budgets and tuning for one generation run."""

    max_backtrack_steps: int = DEFAULT_MAX_BACKTRACK_STEPS
    time_budget_ms: int = DEFAULT_TIME_BUDGET_MS
    tie_break_seed: int = DEFAULT_TIE_BREAK_SEED
    room_capacity_slack: float = DEFAULT_ROOM_CAPACITY_SLACK
    strategy: str = STRATEGY_BACKTRACKING
    soft_weights: dict[str, float] = field(
        default_factory=lambda: dict(SOFT_CONSTRAINT_WEIGHTS)
    )

    def validate(self) -> "SchedulerConfig":
        """Check the configuration, raising ConfigurationError on the first problem."""
        if not isinstance(self.max_backtrack_steps, int) or self.max_backtrack_steps < 0:
            raise ConfigurationError(
                f"must be a non-negative integer, got {self.max_backtrack_steps!r}",
                field="max_backtrack_steps",
            )
        if not isinstance(self.time_budget_ms, int) or self.time_budget_ms <= 0:
            raise ConfigurationError(
                f"must be a positive integer, got {self.time_budget_ms!r}",
                field="time_budget_ms",
            )
        if not isinstance(self.tie_break_seed, int) or self.tie_break_seed < 0:
            raise ConfigurationError(
                f"must be a non-negative integer, got {self.tie_break_seed!r}",
                field="tie_break_seed",
            )
        if not _is_number(self.room_capacity_slack) or self.room_capacity_slack < 0:
            raise ConfigurationError(
                f"must be a non-negative number, got {self.room_capacity_slack!r}",
                field="room_capacity_slack",
            )
        if self.strategy not in STRATEGIES:
            raise ConfigurationError(
                f"unknown strategy '{self.strategy}'. Use one of: {', '.join(STRATEGIES)}",
                field="strategy",
            )
        if not isinstance(self.soft_weights, dict):
            raise ConfigurationError(
                f"must be a mapping of weight names, got {self.soft_weights!r}",
                field="soft_weights",
            )
        unknown = set(self.soft_weights) - set(SOFT_CONSTRAINT_WEIGHTS)
        if unknown:
            raise ConfigurationError(
                f"unknown weights: {', '.join(sorted(unknown))}", field="soft_weights"
            )
        for name, weight in self.soft_weights.items():
            if not _is_number(weight) or weight < 0:
                raise ConfigurationError(
                    f"weight '{name}' must be a non-negative number, got {weight!r}",
                    field="soft_weights",
                )
        return self

    def weight(self, name: str) -> float:
        """Get a soft-constraint weight, falling back to the default."""
        return float(self.soft_weights.get(name, SOFT_CONSTRAINT_WEIGHTS[name]))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SchedulerConfig":
        """Create a config from snake_case or camelCase keys."""
        values: dict[str, Any] = {}
        for key, value in data.items():
            name = _CAMEL_CASE_KEYS.get(key, key)
            if name not in cls.__dataclass_fields__:
                raise ConfigurationError(f"unknown option '{key}'")
            values[name] = value

        if "soft_weights" in values:
            given = values["soft_weights"] or {}
            if not isinstance(given, dict):
                raise ConfigurationError(
                    f"must be a mapping of weight names, got {given!r}",
                    field="soft_weights",
                )
            weights = dict(SOFT_CONSTRAINT_WEIGHTS)
            weights.update(given)
            values["soft_weights"] = weights

        return cls(**values)

    @classmethod
    def from_json(cls, path: str | Path) -> "SchedulerConfig":
        """Load a config from a JSON file."""
        path = Path(path)
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"cannot read {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"{path} must contain a JSON object")
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "max_backtrack_steps": self.max_backtrack_steps,
            "time_budget_ms": self.time_budget_ms,
            "tie_break_seed": self.tie_break_seed,
            "room_capacity_slack": self.room_capacity_slack,
            "strategy": self.strategy,
            "soft_weights": dict(self.soft_weights),
        }
