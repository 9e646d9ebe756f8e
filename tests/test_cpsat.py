"""Tests for the CP-SAT slot selector."""

import pytest

from studioplanner.domain.models import WeeklyScheduleState
from studioplanner.scheduling.cpsat_solver import CPSATSlotSelector, SelectionResult

from conftest import KENKERE, KWALITY, make_assignment


@pytest.fixture
def selector(rules):
    return CPSATSlotSelector(rules)


class TestCPSATSlotSelector:
    """Tests for CPSATSlotSelector."""

    def test_empty_input(self, selector):
        """No candidates is trivially optimal."""
        result = selector.select([], [], WeeklyScheduleState())
        assert result.is_optimal
        assert result.selected == []

    def test_one_class_per_slot(self, selector):
        """Only the better of two candidates for one slot is chosen."""
        candidates = [
            make_assignment(instructor="Pranjali Jain"),
            make_assignment(instructor="Reshma Sharma"),
        ]
        result = selector.select(candidates, [3.0, 8.0], WeeklyScheduleState())

        assert result.is_feasible
        assert result.selected == [1]

    def test_studio_capacity(self, selector):
        """Overlapping classes at one location stop at its studio count."""
        candidates = [
            make_assignment(start_time="09:00", instructor="Pranjali Jain"),
            make_assignment(start_time="09:15", instructor="Reshma Sharma"),
            make_assignment(start_time="09:30", instructor="Rohan Dahima"),
        ]
        result = selector.select(candidates, [5.0, 5.0, 5.0], WeeklyScheduleState())
        assert len(result.selected) == 2

    def test_existing_classes_use_capacity(self, selector):
        """Committed classes count against studio capacity."""
        state = WeeklyScheduleState(
            [
                make_assignment(instructor="Anisha Shah"),
                make_assignment(instructor="Karan Bhatia"),
            ]
        )
        candidates = [make_assignment(start_time="09:30", instructor="Reshma Sharma")]

        result = selector.select(candidates, [9.0], state)

        assert result.is_feasible
        assert result.selected == []

    def test_instructor_overlap(self, selector):
        """An instructor is never booked twice at once."""
        candidates = [
            make_assignment(start_time="09:00"),
            make_assignment(start_time="09:30"),
        ]
        result = selector.select(candidates, [5.0, 6.0], WeeklyScheduleState())
        assert result.selected == [1]

    def test_one_location_per_day(self, selector):
        """An instructor works at one location per day."""
        candidates = [
            make_assignment(start_time="07:00"),
            make_assignment(location=KWALITY, start_time="18:00"),
        ]
        result = selector.select(candidates, [5.0, 6.0], WeeklyScheduleState())
        assert result.selected == [1]

    def test_committed_location_is_fixed(self, selector):
        """A committed class pins the instructor's location for the day."""
        state = WeeklyScheduleState([make_assignment(start_time="07:00")])
        candidates = [
            make_assignment(location=KWALITY, start_time="18:00"),
            make_assignment(location=KENKERE, start_time="18:00"),
        ]
        result = selector.select(candidates, [9.0, 1.0], state)
        assert result.selected == [1]

    def test_weekly_hour_goal(self, selector):
        """A lower weekly goal limits the hours selected."""
        candidates = [
            make_assignment(day=day, start_time="10:00")
            for day in ("Monday", "Tuesday", "Wednesday")
        ]
        result = selector.select(candidates, [1.0, 2.0, 3.0], WeeklyScheduleState(), weekly_cap=2.0)
        assert result.selected == [1, 2]

    def test_priority_bonus(self, selector):
        """Priority candidates win over higher-scoring ones."""
        candidates = [
            make_assignment(instructor="Pranjali Jain"),
            make_assignment(instructor="Reshma Sharma", is_priority=True),
        ]
        result = selector.select(candidates, [9.0, 1.0], WeeklyScheduleState())
        assert result.selected == [1]

    def test_sunday_limit(self, selector):
        """Sunday classes stop at the location's limit."""
        times = ["07:00", "08:00", "09:00", "10:00", "11:00", "17:00", "18:00"]
        candidates = [
            make_assignment(location=KWALITY, day="Sunday", start_time=t, instructor=f"Coach {i}")
            for i, t in enumerate(times)
        ]
        result = selector.select(candidates, [5.0] * len(times), WeeklyScheduleState())
        assert len(result.selected) == 5


class TestSelectionResult:
    """Tests for SelectionResult flags."""

    def test_feasible_statuses(self):
        """Optimal and feasible are both usable."""
        assert SelectionResult(status="OPTIMAL").is_feasible
        assert SelectionResult(status="FEASIBLE").is_feasible
        assert not SelectionResult(status="FEASIBLE").is_optimal
        assert not SelectionResult(status="INFEASIBLE").is_feasible
