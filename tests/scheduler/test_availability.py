"""Tests for AvailabilityIndex class."""

import pytest

from schedulo.exceptions import ConflictError
from schedulo.scheduler.availability import AvailabilityIndex
from schedulo.scheduler.models import Day, ResourceKind


class TestAvailabilityIndex:
    """Tests for AvailabilityIndex class."""

    def test_cell_initially_free(self):
        index = AvailabilityIndex()
        assert index.is_free(ResourceKind.ROOM, 1, Day.MONDAY, 1)

    def test_cell_busy_after_reservation(self):
        index = AvailabilityIndex()
        index.reserve(ResourceKind.ROOM, 1, Day.MONDAY, 1)
        assert not index.is_free(ResourceKind.ROOM, 1, Day.MONDAY, 1)

    def test_kinds_are_independent(self):
        index = AvailabilityIndex()
        index.reserve(ResourceKind.ROOM, 1, Day.MONDAY, 1)
        assert index.is_free(ResourceKind.FACULTY, 1, Day.MONDAY, 1)
        assert index.is_free(ResourceKind.COHORT, 1, Day.MONDAY, 1)

    def test_different_day_and_slot_no_conflict(self):
        index = AvailabilityIndex()
        index.reserve(ResourceKind.FACULTY, 7, Day.MONDAY, 1)
        assert index.is_free(ResourceKind.FACULTY, 7, Day.TUESDAY, 1)
        assert index.is_free(ResourceKind.FACULTY, 7, Day.MONDAY, 2)

    def test_double_reservation_raises(self):
        index = AvailabilityIndex()
        index.reserve(ResourceKind.COHORT, "CSE-1", Day.MONDAY, 3)
        with pytest.raises(ConflictError) as exc_info:
            index.reserve(ResourceKind.COHORT, "CSE-1", Day.MONDAY, 3)
        assert exc_info.value.kind == "cohort"
        assert exc_info.value.entity_id == "CSE-1"
        assert exc_info.value.slot == 3

    def test_release_frees_cell(self):
        index = AvailabilityIndex()
        index.reserve(ResourceKind.ROOM, 1, Day.MONDAY, 1)
        index.release(ResourceKind.ROOM, 1, Day.MONDAY, 1)
        assert index.is_free(ResourceKind.ROOM, 1, Day.MONDAY, 1)
        assert index.reservation_count() == 0

    def test_release_is_idempotent(self):
        index = AvailabilityIndex()
        index.release(ResourceKind.ROOM, 1, Day.MONDAY, 1)
        index.reserve(ResourceKind.ROOM, 1, Day.MONDAY, 1)
        index.release(ResourceKind.ROOM, 1, Day.MONDAY, 1)
        index.release(ResourceKind.ROOM, 1, Day.MONDAY, 1)
        assert index.weekly_load(ResourceKind.ROOM, 1) == 0

    def test_are_free_checks_every_slot(self):
        index = AvailabilityIndex()
        index.reserve(ResourceKind.ROOM, 1, Day.MONDAY, 3)
        assert index.are_free(ResourceKind.ROOM, 1, Day.MONDAY, range(1, 3))
        assert not index.are_free(ResourceKind.ROOM, 1, Day.MONDAY, range(2, 4))

    def test_daily_and_weekly_load(self):
        index = AvailabilityIndex()
        index.reserve(ResourceKind.COHORT, "CSE-1", Day.MONDAY, 1)
        index.reserve(ResourceKind.COHORT, "CSE-1", Day.MONDAY, 2)
        index.reserve(ResourceKind.COHORT, "CSE-1", Day.TUESDAY, 1)
        assert index.daily_load(ResourceKind.COHORT, "CSE-1", Day.MONDAY) == 2
        assert index.daily_load(ResourceKind.COHORT, "CSE-1", Day.WEDNESDAY) == 0
        assert index.weekly_load(ResourceKind.COHORT, "CSE-1") == 3

    def test_reserved_slots_returns_copy(self):
        index = AvailabilityIndex()
        index.reserve(ResourceKind.FACULTY, 1, Day.MONDAY, 2)
        slots = index.reserved_slots(ResourceKind.FACULTY, 1, Day.MONDAY)
        slots.add(5)
        assert index.reserved_slots(ResourceKind.FACULTY, 1, Day.MONDAY) == {2}

    def test_int_and_enum_days_are_the_same_cell(self):
        index = AvailabilityIndex()
        index.reserve(ResourceKind.ROOM, 1, 1, 1)
        assert not index.is_free(ResourceKind.ROOM, 1, Day.MONDAY, 1)
