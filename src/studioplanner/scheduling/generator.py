"""Full-week schedule generation.

This module provides the ScheduleGenerator, which fills an empty or
partially filled week with classes drawn from historical performance:

- Phase A places caller-named must-include formats at their best
  historical slots.
- Phase B visits every location, day and slot in a fixed order and
  commits the best candidate that passes the ConstraintValidator.

Runs are deterministic for a given input and seed.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Sequence, Union

from studioplanner.analytics.performance_index import HistoricalPerformanceIndex
from studioplanner.domain.models import (
    WEEKDAYS,
    HistoricalClassRecord,
    InstructorLedger,
    Objective,
    ScheduledClassAssignment,
    WeeklyScheduleState,
    day_time_key,
    time_to_minutes,
)
from studioplanner.domain.policies import StudioRules
from studioplanner.scheduling.cpsat_solver import CPSATSlotSelector, SolverConfig
from studioplanner.utils.logger import get_logger
from studioplanner.validation.validator import ConstraintValidator

logger = get_logger(__name__)

History = Union[HistoricalPerformanceIndex, Iterable[HistoricalClassRecord]]


class SolverType(Enum):
    """Type of solver to use for the exhaustive fill."""

    HEURISTIC = "heuristic"  # Fixed-order greedy fill
    CPSAT = "cpsat"  # OR-Tools CP-SAT selection over ranked candidates
    HYBRID = "hybrid"  # CP-SAT, then greedy fill of whatever is left


@dataclass
class GenerationConfig:
    """Configuration for schedule generation.

    Attributes:
        solver_type: Which solver performs Phase B.
        solver_config: Configuration for the CP-SAT selector.
        candidates_per_slot: Ranked candidates tried per slot before
            moving on.
        random_pick_pool: Size of the pool the seeded choice draws from
            when a slot has no history of its own.
        must_include_attempts: Historical instances tried per
            must-include format.
    """

    solver_type: SolverType = SolverType.HEURISTIC
    solver_config: SolverConfig = field(default_factory=SolverConfig)
    candidates_per_slot: int = 5
    random_pick_pool: int = 3
    must_include_attempts: int = 3


@dataclass(frozen=True)
class SlotCandidate:
    """A (format, instructor) proposal for one slot."""

    class_format: str
    instructor: str
    avg_checked_in: float
    avg_revenue: float
    is_priority: bool = False
    from_slot_history: bool = True

    def score(self, objective: Objective, rules: StudioRules) -> float:
        """Objective score used for ranking and CP-SAT weights."""
        if objective is Objective.REVENUE:
            return self.avg_revenue / 100
        if objective is Objective.ATTENDANCE:
            return self.avg_checked_in
        weights = rules.score_weights
        return (
            weights.instructor_attendance * self.avg_checked_in
            + weights.instructor_revenue * (self.avg_revenue / 1000)
        )


@dataclass
class GenerationResult:
    """Result from a generation run.

    Attributes:
        schedule: The generated schedule, existing classes included.
        stats: Counters describing the run.
    """

    schedule: WeeklyScheduleState
    stats: dict[str, object] = field(default_factory=dict)


@dataclass
class _Run:
    """Mutable bookkeeping for one generation run."""

    state: WeeklyScheduleState
    ledger: InstructorLedger
    weekly_cap: float
    objective: Objective
    priority_formats: frozenset[str]
    rng: random.Random
    used_ids: set[str]
    next_id: int = 0
    stats: dict[str, int] = field(
        default_factory=lambda: {
            "must_include_committed": 0,
            "slots_visited": 0,
            "candidates_rejected": 0,
            "candidates_skipped": 0,
            "classes_added": 0,
        }
    )

    def new_id(self) -> str:
        while True:
            candidate = f"gen-{self.next_id:04d}"
            self.next_id += 1
            if candidate not in self.used_ids:
                self.used_ids.add(candidate)
                return candidate


class ScheduleGenerator:
    """Fills a week with classes from historical performance.

    The generator never places a class the ConstraintValidator rejects,
    and treats soft warnings as rejections since no person is present
    to confirm them.

    Example:
        >>> generator = ScheduleGenerator(rules)
        >>> schedule = generator.generate(records, seed=7)
    """

    def __init__(
        self,
        rules: Optional[StudioRules] = None,
        validator: Optional[ConstraintValidator] = None,
        config: Optional[GenerationConfig] = None,
    ):
        self.rules = rules or StudioRules()
        self.validator = validator or ConstraintValidator(self.rules)
        self.config = config or GenerationConfig()

    def _as_index(self, history: History) -> HistoricalPerformanceIndex:
        if isinstance(history, HistoricalPerformanceIndex):
            return history
        return HistoricalPerformanceIndex(history, self.rules)

    def generate(
        self,
        history: History,
        existing: Optional[WeeklyScheduleState] = None,
        must_include: Sequence[str] = (),
        priority_formats: Optional[Sequence[str]] = None,
        target_day: Optional[str] = None,
        weekly_hour_goal: Optional[float] = None,
        seed: int = 0,
        objective: Objective = Objective.BALANCED,
    ) -> WeeklyScheduleState:
        """Generate a weekly schedule.

        Args:
            history: Historical records, or an index built over them.
            existing: Schedule to extend (gap-fill mode). Not modified.
            must_include: Formats to place first, in order.
            priority_formats: Formats preferred over raw score. Defaults to
                the configured ``rules.priority_formats``; pass an empty
                sequence to rank by score alone.
            target_day: Restrict Phase B to one day.
            weekly_hour_goal: Weekly hours per instructor to aim for.
                Never raises an instructor above their configured cap.
            seed: Seed for the choice among near-equal fallbacks.
            objective: Objective weighting for candidate ranking.

        Returns:
            A new WeeklyScheduleState.
        """
        return self.generate_with_stats(
            history,
            existing=existing,
            must_include=must_include,
            priority_formats=priority_formats,
            target_day=target_day,
            weekly_hour_goal=weekly_hour_goal,
            seed=seed,
            objective=objective,
        ).schedule

    def generate_with_stats(
        self,
        history: History,
        existing: Optional[WeeklyScheduleState] = None,
        must_include: Sequence[str] = (),
        priority_formats: Optional[Sequence[str]] = None,
        target_day: Optional[str] = None,
        weekly_hour_goal: Optional[float] = None,
        seed: int = 0,
        objective: Objective = Objective.BALANCED,
    ) -> GenerationResult:
        """Generate a weekly schedule and report run statistics.

        Takes the same arguments as ``generate``.
        """
        index = self._as_index(history)
        state = existing.copy() if existing is not None else WeeklyScheduleState()
        run = _Run(
            state=state,
            ledger=state.ledger(),
            weekly_cap=(
                weekly_hour_goal if weekly_hour_goal is not None else self.rules.standard_weekly_cap
            ),
            objective=objective,
            priority_formats=frozenset(
                self.rules.priority_formats if priority_formats is None else priority_formats
            ),
            rng=random.Random(seed),
            used_ids={a.id for a in state},
        )
        days = [target_day] if target_day else list(WEEKDAYS)

        logger.info(
            "Generating schedule: %d records, %d existing classes, objective=%s, seed=%s",
            len(index),
            len(state),
            objective.value,
            seed,
        )

        self._place_must_include(index, run, must_include, days)

        solver_status = None
        if self.config.solver_type in (SolverType.CPSAT, SolverType.HYBRID):
            solver_status = self._fill_with_cpsat(index, run, days)
        if self.config.solver_type is not SolverType.CPSAT or solver_status not in (
            "OPTIMAL",
            "FEASIBLE",
        ):
            self._fill_greedy(index, run, days)

        stats: dict[str, object] = dict(run.stats)
        stats["total_classes"] = len(run.state)
        stats["solver"] = self.config.solver_type.value
        if solver_status is not None:
            stats["solver_status"] = solver_status

        logger.info(
            "Generated %d new classes (%d total)",
            run.stats["classes_added"],
            len(run.state),
        )
        return GenerationResult(schedule=run.state, stats=stats)

    def _skip_reason(
        self,
        class_format: str,
        instructor: str,
        location: str,
        day: str,
        start_time: str,
        average: float,
    ) -> Optional[str]:
        """Why a candidate must not be generated, or None if it may be."""
        rules = self.rules
        if average < rules.min_generation_average:
            return "below minimum average"
        if "hosted" in class_format.lower():
            return "hosted class"
        if rules.is_recovery_blocked(class_format, day):
            return "recovery early in the week"
        if rules.is_denylisted(instructor):
            return "denylisted instructor"
        if not rules.is_format_allowed(class_format, location):
            return "format not allowed at location"
        if not rules.can_teach_format(instructor, class_format):
            return "format not eligible for new instructor"
        if rules.is_time_restricted(start_time, day):
            return "private-only window"
        return None

    def _make_assignment(
        self,
        run: _Run,
        location: str,
        day: str,
        start_time: str,
        candidate: SlotCandidate,
        is_priority: Optional[bool] = None,
    ) -> ScheduledClassAssignment:
        return ScheduledClassAssignment(
            id=run.new_id(),
            location=location,
            day=day,
            start_time=start_time,
            class_format=candidate.class_format,
            instructor=candidate.instructor,
            duration=self.rules.class_duration(candidate.class_format),
            participants=round(candidate.avg_checked_in),
            revenue=round(candidate.avg_revenue, 2),
            is_top_performer=candidate.avg_checked_in >= self.rules.top_performer_threshold,
            is_priority=(
                candidate.is_priority if is_priority is None else is_priority
            ),
        )

    def _try_commit(self, run: _Run, assignment: ScheduledClassAssignment) -> bool:
        result = self.validator.check(
            assignment,
            run.state,
            ledger=run.ledger,
            weekly_cap=run.weekly_cap,
            strict=True,
        )
        if not result.valid:
            run.stats["candidates_rejected"] += 1
            logger.debug("Rejected %s: %s", assignment.class_format, result.hard_error)
            return False

        run.state.add(assignment)
        run.ledger.record(assignment)
        run.stats["classes_added"] += 1
        logger.debug(
            "Placed %s with %s at %s on %s %s",
            assignment.class_format,
            assignment.instructor,
            assignment.location,
            assignment.day,
            assignment.start_time,
        )
        return True

    def _sunday_full(self, run: _Run, location: str, day: str) -> bool:
        if day != "Sunday":
            return False
        return len(run.state.at(location, day)) >= self.rules.sunday_limit(location)

    def _place_must_include(
        self,
        index: HistoricalPerformanceIndex,
        run: _Run,
        must_include: Sequence[str],
        days: Sequence[str],
    ) -> None:
        """Phase A: place each must-include format at a proven slot."""
        for class_format in must_include:
            instances = [
                r
                for r in index.format_instances(
                    class_format, min_checked_in=self.rules.min_participants_threshold
                )
                if r.day in days
            ]
            for record in instances[: self.config.must_include_attempts]:
                if run.state.is_slot_filled(record.location, record.day, record.start_time):
                    continue
                if self._sunday_full(run, record.location, record.day):
                    continue
                if self._skip_reason(
                    class_format,
                    record.instructor,
                    record.location,
                    record.day,
                    record.start_time,
                    record.checked_in,
                ):
                    run.stats["candidates_skipped"] += 1
                    continue

                candidate = SlotCandidate(
                    class_format=class_format,
                    instructor=record.instructor,
                    avg_checked_in=record.checked_in,
                    avg_revenue=record.revenue,
                )
                assignment = self._make_assignment(
                    run, record.location, record.day, record.start_time, candidate, is_priority=True
                )
                if self._try_commit(run, assignment):
                    run.stats["must_include_committed"] += 1
                    logger.info(
                        "Must-include %s placed with %s at %s on %s %s",
                        class_format,
                        record.instructor,
                        record.location,
                        record.day,
                        record.start_time,
                    )
                    break
            else:
                logger.info("Must-include %s could not be placed", class_format)

    def slots_to_visit(
        self, index: HistoricalPerformanceIndex, location: str, day: str
    ) -> list[str]:
        """Slots with history at this location/day plus business-hour slots."""
        slots = set(index.slots_with_history(location, day)) | set(self.rules.business_slots())
        return sorted(slots, key=time_to_minutes)

    def slot_candidates(
        self,
        index: HistoricalPerformanceIndex,
        location: str,
        day: str,
        start_time: str,
        objective: Objective,
        priority_formats: frozenset[str],
        rng: random.Random,
    ) -> list[SlotCandidate]:
        """Ranked proposals for one slot.

        Uses the slot's own history when it has any. Otherwise falls back
        to the strongest classes held anywhere at this location on this
        day, with the first pick drawn from the top few by ``rng``.
        """
        combos = index.combinations(location, day, start_time)
        if combos:
            candidates = [
                SlotCandidate(
                    class_format=c.class_format,
                    instructor=c.instructor,
                    avg_checked_in=c.avg_checked_in,
                    avg_revenue=c.avg_revenue,
                    is_priority=c.class_format in priority_formats,
                )
                for c in combos
            ]
            candidates.sort(key=lambda c: self._rank_key(c, objective))
            return candidates[: self.config.candidates_per_slot]

        performers = index.top_performing(
            location=location, day=day, min_average=self.rules.min_generation_average
        )
        fallback = [
            SlotCandidate(
                class_format=p.class_format,
                instructor=p.instructor,
                avg_checked_in=p.avg_checked_in,
                avg_revenue=p.avg_revenue,
                is_priority=p.class_format in priority_formats,
                from_slot_history=False,
            )
            for p in performers
        ]
        # Same (format, instructor) can appear at several times of day
        unique: dict[tuple[str, str], SlotCandidate] = {}
        for candidate in sorted(fallback, key=lambda c: self._rank_key(c, objective)):
            unique.setdefault((candidate.class_format, candidate.instructor), candidate)
        ranked = list(unique.values())
        if not ranked:
            return []

        pool_size = min(self.config.random_pick_pool, len(ranked))
        pick = rng.randrange(pool_size)
        ordered = [ranked[pick]] + [c for i, c in enumerate(ranked) if i != pick]
        return ordered[: self.config.candidates_per_slot]

    def _rank_key(self, candidate: SlotCandidate, objective: Objective) -> tuple:
        return (
            0 if candidate.is_priority else 1,
            -candidate.score(objective, self.rules),
            -candidate.avg_checked_in,
            candidate.class_format,
            candidate.instructor,
        )

    def _fill_greedy(
        self, index: HistoricalPerformanceIndex, run: _Run, days: Sequence[str]
    ) -> None:
        """Phase B: visit every slot in fixed order and fill what passes."""
        for location in self.rules.locations:
            for day in days:
                for start_time in self.slots_to_visit(index, location, day):
                    if self._sunday_full(run, location, day):
                        break
                    run.stats["slots_visited"] += 1
                    if run.state.is_slot_filled(location, day, start_time):
                        continue

                    for candidate in self.slot_candidates(
                        index,
                        location,
                        day,
                        start_time,
                        run.objective,
                        run.priority_formats,
                        run.rng,
                    ):
                        if self._skip_reason(
                            candidate.class_format,
                            candidate.instructor,
                            location,
                            day,
                            start_time,
                            candidate.avg_checked_in,
                        ):
                            run.stats["candidates_skipped"] += 1
                            continue
                        assignment = self._make_assignment(
                            run, location, day, start_time, candidate
                        )
                        if self._try_commit(run, assignment):
                            break

    def _fill_with_cpsat(
        self, index: HistoricalPerformanceIndex, run: _Run, days: Sequence[str]
    ) -> str:
        """Phase B via CP-SAT: select among every open slot's candidates at once."""
        pool: list[ScheduledClassAssignment] = []
        scores: list[float] = []
        for location in self.rules.locations:
            for day in days:
                for start_time in self.slots_to_visit(index, location, day):
                    run.stats["slots_visited"] += 1
                    if run.state.is_slot_filled(location, day, start_time):
                        continue
                    for candidate in self.slot_candidates(
                        index,
                        location,
                        day,
                        start_time,
                        run.objective,
                        run.priority_formats,
                        run.rng,
                    ):
                        if self._skip_reason(
                            candidate.class_format,
                            candidate.instructor,
                            location,
                            day,
                            start_time,
                            candidate.avg_checked_in,
                        ):
                            run.stats["candidates_skipped"] += 1
                            continue
                        pool.append(
                            self._make_assignment(run, location, day, start_time, candidate)
                        )
                        scores.append(candidate.score(run.objective, self.rules))

        selector = CPSATSlotSelector(self.rules, self.config.solver_config)
        result = selector.select(pool, scores, run.state, weekly_cap=run.weekly_cap)
        if not result.is_feasible:
            return result.status

        chosen = sorted((pool[i] for i in result.selected), key=day_time_key)
        for assignment in chosen:
            self._try_commit(run, assignment)
        return result.status

    def fill_empty_slots(
        self,
        history: History,
        state: WeeklyScheduleState,
        max_new_classes: int = 5,
        buffer_hours: float = 0.5,
    ) -> WeeklyScheduleState:
        """Add a few classes for instructors with spare weekly hours.

        Instructors already on the schedule with more than ``buffer_hours``
        left under their cap are served least-loaded first, each with their
        three best formats by historical attendance (4+ check-ins).

        Args:
            history: Historical records, or an index built over them.
            state: Schedule to extend. Not modified.
            max_new_classes: Upper bound on classes added.
            buffer_hours: Minimum spare hours an instructor needs.

        Returns:
            A new WeeklyScheduleState.
        """
        index = self._as_index(history)
        run = _Run(
            state=state.copy(),
            ledger=state.ledger(),
            weekly_cap=self.rules.standard_weekly_cap,
            objective=Objective.ATTENDANCE,
            priority_formats=frozenset(),
            rng=random.Random(0),
            used_ids={a.id for a in state},
        )

        available = sorted(
            (
                (run.ledger.hours(name), name)
                for name in state.instructors()
                if not self.rules.is_denylisted(name)
                and run.ledger.hours(name) < self.rules.weekly_cap(name) - buffer_hours
            ),
        )
        slots = self.rules.business_slots()

        for _, instructor in available:
            best_formats = index.instructor_formats(instructor, min_checked_in=4)[:3]
            if not best_formats:
                continue
            for location in self.rules.locations:
                for day in WEEKDAYS:
                    for start_time in slots:
                        if run.stats["classes_added"] >= max_new_classes:
                            logger.info("Filled %d extra classes", run.stats["classes_added"])
                            return run.state
                        if run.state.is_slot_filled(location, day, start_time):
                            continue
                        if self._sunday_full(run, location, day):
                            continue
                        for stats in best_formats:
                            if self._skip_reason(
                                stats.class_format,
                                instructor,
                                location,
                                day,
                                start_time,
                                stats.avg_checked_in,
                            ):
                                continue
                            candidate = SlotCandidate(
                                class_format=stats.class_format,
                                instructor=instructor,
                                avg_checked_in=stats.avg_checked_in,
                                avg_revenue=stats.avg_revenue,
                            )
                            assignment = self._make_assignment(
                                run, location, day, start_time, candidate
                            )
                            if self._try_commit(run, assignment):
                                break

        logger.info("Filled %d extra classes", run.stats["classes_added"])
        return run.state
