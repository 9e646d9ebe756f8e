"""OR-Tools CP-SAT selector for whole-week class placement.

The greedy generator fills slots one at a time in a fixed order. This
module instead formulates the choice among ranked slot candidates as a
constraint programming problem and lets CP-SAT pick the subset that
maximizes total score while respecting capacity, instructor and hour
constraints. The chosen subset is still committed through the
ConstraintValidator by the caller.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Optional, Sequence

from ortools.sat.python import cp_model

from studioplanner.domain.models import (
    ScheduledClassAssignment,
    WeeklyScheduleState,
)
from studioplanner.domain.policies import StudioRules
from studioplanner.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class SolverConfig:
    """Configuration for the CP-SAT selector.

    Attributes:
        time_limit_seconds: Maximum solver runtime.
        num_workers: Parallel search workers. A single worker keeps
            results reproducible for a given input.
        score_scale: Multiplier turning float scores into integer weights.
        priority_bonus: Extra weight for candidates flagged as priority.
    """

    time_limit_seconds: float = 10.0
    num_workers: int = 1
    score_scale: int = 100
    priority_bonus: int = 1000


@dataclass
class SelectionResult:
    """Result from the CP-SAT selector.

    Attributes:
        selected: Indices of chosen candidates, in input order.
        status: Solver status (OPTIMAL, FEASIBLE, etc.).
        objective_value: Final objective value.
        solve_time_seconds: Time taken to solve.
    """

    selected: list[int] = field(default_factory=list)
    status: str = "UNKNOWN"
    objective_value: int = 0
    solve_time_seconds: float = 0.0

    @property
    def is_optimal(self) -> bool:
        return self.status == "OPTIMAL"

    @property
    def is_feasible(self) -> bool:
        return self.status in ("OPTIMAL", "FEASIBLE")


class CPSATSlotSelector:
    """Chooses a feasible, high-scoring subset of class candidates.

    Modelled constraints:
    - At most one new class per (location, day, start time)
    - Studio capacity per 15-minute quantum, counting existing classes
    - No instructor overlap, one location per instructor per day
    - Daily class count, daily hours and weekly hour caps
    - Sunday class limit per location

    The back-to-back run limit is left to the validator at commit time.
    """

    def __init__(self, rules: Optional[StudioRules] = None, config: Optional[SolverConfig] = None):
        self.rules = rules or StudioRules()
        self.config = config or SolverConfig()

    def select(
        self,
        candidates: Sequence[ScheduledClassAssignment],
        scores: Sequence[float],
        state: WeeklyScheduleState,
        weekly_cap: Optional[float] = None,
    ) -> SelectionResult:
        """Solve the selection problem.

        Args:
            candidates: Proposed assignments, already filtered for
                eligibility.
            scores: Objective score for each candidate.
            state: Classes already committed; they consume capacity.
            weekly_cap: Weekly hour goal replacing the configured cap
                when lower.

        Returns:
            SelectionResult with chosen indices and solver statistics.
        """
        if not candidates:
            return SelectionResult(status="OPTIMAL")

        rules = self.rules
        model = cp_model.CpModel()
        ledger = state.ledger()

        # Decision variables: x[i] = 1 if candidate i is placed
        x = [model.NewBoolVar(f"x_{i}") for i in range(len(candidates))]

        by_slot: dict[tuple[str, str, str], list[int]] = defaultdict(list)
        by_room_quantum: dict[tuple[str, str, int], list[int]] = defaultdict(list)
        by_instructor_quantum: dict[tuple[str, str, int], list[int]] = defaultdict(list)
        by_instructor_day: dict[tuple[str, str], list[int]] = defaultdict(list)
        by_instructor: dict[str, list[int]] = defaultdict(list)
        by_sunday_location: dict[str, list[int]] = defaultdict(list)

        for i, candidate in enumerate(candidates):
            by_slot[(candidate.location, candidate.day, candidate.start_time)].append(i)
            for quantum in candidate.quanta:
                by_room_quantum[(candidate.location, candidate.day, quantum)].append(i)
                by_instructor_quantum[(candidate.instructor, candidate.day, quantum)].append(i)
            by_instructor_day[(candidate.instructor, candidate.day)].append(i)
            by_instructor[candidate.instructor].append(i)
            if candidate.day == "Sunday":
                by_sunday_location[candidate.location].append(i)

        # Constraint 1: one new class per slot
        for indices in by_slot.values():
            model.AddAtMostOne(x[i] for i in indices)

        # Constraint 2: studio capacity per quantum
        room_usage: dict[tuple[str, str, int], int] = defaultdict(int)
        instructor_busy: set[tuple[str, str, int]] = set()
        for existing in state:
            for quantum in existing.quanta:
                room_usage[(existing.location, existing.day, quantum)] += 1
                instructor_busy.add((existing.instructor, existing.day, quantum))

        for (location, day, quantum), indices in by_room_quantum.items():
            remaining = max(0, rules.capacity(location) - room_usage[(location, day, quantum)])
            model.Add(sum(x[i] for i in indices) <= remaining)

        # Constraint 3: instructor in one place at a time
        for key, indices in by_instructor_quantum.items():
            limit = 0 if key in instructor_busy else 1
            model.Add(sum(x[i] for i in indices) <= limit)

        # Constraint 4: one location per instructor per day, plus daily load
        for (instructor, day), indices in by_instructor_day.items():
            fixed = ledger.location_on(instructor, day)
            locations = sorted({candidates[i].location for i in indices})
            at_location = {
                loc: model.NewBoolVar(f"loc_{instructor}_{day}_{loc}") for loc in locations
            }
            model.AddAtMostOne(at_location.values())
            for loc, var in at_location.items():
                if fixed is not None and loc != fixed:
                    model.Add(var == 0)
            for i in indices:
                model.AddImplication(x[i], at_location[candidates[i].location])

            model.Add(
                sum(x[i] for i in indices)
                <= max(0, rules.max_daily_classes - ledger.day_count(instructor, day))
            )
            daily_minutes = round((rules.max_daily_hours - ledger.day_hours(instructor, day)) * 60)
            model.Add(
                sum(x[i] * round(candidates[i].duration * 60) for i in indices)
                <= max(0, daily_minutes)
            )

        # Constraint 5: weekly hour cap
        for instructor, indices in by_instructor.items():
            cap = rules.weekly_cap(instructor)
            if weekly_cap is not None:
                cap = min(cap, weekly_cap)
            weekly_minutes = round((cap - ledger.hours(instructor)) * 60)
            model.Add(
                sum(x[i] * round(candidates[i].duration * 60) for i in indices)
                <= max(0, weekly_minutes)
            )

        # Constraint 6: Sunday class limit
        for location, indices in by_sunday_location.items():
            remaining = max(0, rules.sunday_limit(location) - len(state.at(location, "Sunday")))
            model.Add(sum(x[i] for i in indices) <= remaining)

        objective_terms = []
        for i, candidate in enumerate(candidates):
            weight = round(scores[i] * self.config.score_scale)
            if candidate.is_priority:
                weight += self.config.priority_bonus
            objective_terms.append(x[i] * weight)
        model.Maximize(sum(objective_terms))

        solver = cp_model.CpSolver()
        solver.parameters.max_time_in_seconds = self.config.time_limit_seconds
        if self.config.num_workers > 0:
            solver.parameters.num_workers = self.config.num_workers

        status = solver.Solve(model)

        status_map = {
            cp_model.OPTIMAL: "OPTIMAL",
            cp_model.FEASIBLE: "FEASIBLE",
            cp_model.INFEASIBLE: "INFEASIBLE",
            cp_model.MODEL_INVALID: "MODEL_INVALID",
            cp_model.UNKNOWN: "UNKNOWN",
        }
        status_str = status_map.get(status, "UNKNOWN")

        if status not in (cp_model.OPTIMAL, cp_model.FEASIBLE):
            logger.warning("CP-SAT selection finished with status %s", status_str)
            return SelectionResult(status=status_str, solve_time_seconds=solver.WallTime())

        selected = [i for i in range(len(candidates)) if solver.Value(x[i]) == 1]
        logger.info(
            "CP-SAT selected %d of %d candidates (%s, %.2fs)",
            len(selected),
            len(candidates),
            status_str,
            solver.WallTime(),
        )
        return SelectionResult(
            selected=selected,
            status=status_str,
            objective_value=int(solver.ObjectiveValue()),
            solve_time_seconds=solver.WallTime(),
        )
