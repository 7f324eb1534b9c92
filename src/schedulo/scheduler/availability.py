"""Availability tracking for schedule generation."""

from collections import defaultdict
from typing import Hashable

from ..exceptions import ConflictError
from .models import ResourceKind


class AvailabilityIndex:
    """Tracks which (entity, day, period) cells are reserved.

    One index belongs to exactly one generation run. Cells are kept per
    (kind, entity, day) so that daily loads and gaps are cheap to read:
    - _busy: (kind, entity_id, day) -> set of reserved periods
    - _weekly: (kind, entity_id) -> number of reserved periods in the week
    """

    def __init__(self) -> None:
        self._busy: dict[tuple[ResourceKind, Hashable, int], set[int]] = defaultdict(set)
        self._weekly: dict[tuple[ResourceKind, Hashable], int] = defaultdict(int)

    def is_free(self, kind: ResourceKind, entity_id: Hashable, day: int, slot: int) -> bool:
        """Check whether a cell is unreserved."""
        cells = self._busy.get((kind, entity_id, int(day)))
        return not cells or slot not in cells

    def are_free(
        self,
        kind: ResourceKind,
        entity_id: Hashable,
        day: int,
        slots: range | list[int],
    ) -> bool:
        """Check whether every period in slots is unreserved."""
        cells = self._busy.get((kind, entity_id, int(day)))
        if not cells:
            return True
        return not any(slot in cells for slot in slots)

    def reserve(self, kind: ResourceKind, entity_id: Hashable, day: int, slot: int) -> None:
        """Reserve a cell.

        Raises:
            ConflictError: If the cell is already reserved.
        """
        cells = self._busy[(kind, entity_id, int(day))]
        if slot in cells:
            raise ConflictError(kind.value, entity_id, int(day), slot)
        cells.add(slot)
        self._weekly[(kind, entity_id)] += 1

    def release(self, kind: ResourceKind, entity_id: Hashable, day: int, slot: int) -> None:
        """Release a cell. Releasing an unreserved cell does nothing."""
        key = (kind, entity_id, int(day))
        cells = self._busy.get(key)
        if not cells or slot not in cells:
            return
        cells.discard(slot)
        if not cells:
            del self._busy[key]
        self._weekly[(kind, entity_id)] -= 1

    def reserved_slots(self, kind: ResourceKind, entity_id: Hashable, day: int) -> set[int]:
        """Get a copy of the reserved periods of an entity on a day."""
        return set(self._busy.get((kind, entity_id, int(day)), ()))

    def daily_load(self, kind: ResourceKind, entity_id: Hashable, day: int) -> int:
        """Number of reserved periods of an entity on a day."""
        return len(self._busy.get((kind, entity_id, int(day)), ()))

    def weekly_load(self, kind: ResourceKind, entity_id: Hashable) -> int:
        """Number of reserved periods of an entity over the week."""
        return self._weekly.get((kind, entity_id), 0)

    def reservation_count(self) -> int:
        """Total number of reserved cells across all kinds."""
        return sum(len(cells) for cells in self._busy.values())
