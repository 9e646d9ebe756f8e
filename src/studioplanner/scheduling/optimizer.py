"""Multi-strategy weekly schedule optimization.

Produces one candidate week per objective (revenue, attendance and a
balanced blend) so a person can compare them side by side. Each strategy
asks the remote collaborator first and falls back to the local
ScheduleGenerator, so iterations are always returned.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from studioplanner.analytics.performance_index import HistoricalPerformanceIndex
from studioplanner.domain.models import (
    Objective,
    OptimizationIteration,
    ScheduledClassAssignment,
    ScheduleMetrics,
    TrainerAssignmentSummary,
    WeeklyScheduleState,
    day_index,
    day_time_key,
)
from studioplanner.domain.policies import StudioRules
from studioplanner.exceptions import RemoteInferenceFailure
from studioplanner.inference.client import (
    InferenceClient,
    InferenceKind,
    InferenceRequest,
    RemoteInferenceClient,
    rules_text,
)
from studioplanner.inference.payloads import assignment_to_payload, parse_schedule
from studioplanner.scheduling.generator import History, ScheduleGenerator
from studioplanner.utils.logger import get_logger
from studioplanner.validation.validator import ConstraintValidator

logger = get_logger(__name__)


@dataclass(frozen=True)
class Strategy:
    """One optimization strategy."""

    id: str
    name: str
    description: str
    objective: Objective


STRATEGIES = (
    Strategy(
        id="revenue-maximizer",
        name="Revenue Maximizer",
        description="Premium formats and top-earning instructors in peak slots",
        objective=Objective.REVENUE,
    ),
    Strategy(
        id="attendance-maximizer",
        name="Attendance Maximizer",
        description="Popular formats and proven combinations in every open slot",
        objective=Objective.ATTENDANCE,
    ),
    Strategy(
        id="balanced-schedule",
        name="Balanced Schedule",
        description="Balances revenue, attendance and instructor workload",
        objective=Objective.BALANCED,
    ),
)


class MultiStrategyOptimizer:
    """Builds competing full-week schedules, one per objective.

    Schedules returned by the remote collaborator are replayed through the
    ConstraintValidator, so every iteration satisfies the hard constraints
    whatever the remote proposes. Classes marked ``is_locked`` in the
    current schedule are kept in every iteration.
    """

    def __init__(
        self,
        rules: Optional[StudioRules] = None,
        generator: Optional[ScheduleGenerator] = None,
        client: Optional[InferenceClient] = None,
    ):
        self.rules = rules or StudioRules()
        self.validator = ConstraintValidator(self.rules)
        self.generator = generator or ScheduleGenerator(self.rules, self.validator)
        self.client = client

    def _client_ready(self) -> bool:
        if self.client is None:
            return False
        if isinstance(self.client, RemoteInferenceClient):
            return self.client.config.is_configured
        return True

    def optimize(
        self,
        history: History,
        current: Optional[WeeklyScheduleState] = None,
        seed: int = 0,
    ) -> list[OptimizationIteration]:
        """Produce one iteration per strategy.

        Args:
            history: Historical records, or an index built over them.
            current: The schedule being optimized. Sent to the remote
                collaborator; its locked classes are preserved.
            seed: Seed forwarded to the local generator.

        Returns:
            Iterations in strategy order: revenue, attendance, balanced.
        """
        if isinstance(history, HistoricalPerformanceIndex):
            index = history
        else:
            index = HistoricalPerformanceIndex(history, self.rules)

        current = current or WeeklyScheduleState()
        locked = WeeklyScheduleState([a for a in current if a.is_locked])

        iterations = []
        for strategy in STRATEGIES:
            schedule, source = None, "local"
            if self._client_ready():
                try:
                    schedule = self._optimize_remote(index, current, locked, strategy)
                except RemoteInferenceFailure as exc:
                    logger.warning(
                        "Remote optimization failed for %s, using local generator: %s",
                        strategy.id,
                        exc,
                    )
                else:
                    if schedule is None:
                        logger.warning(
                            "Remote optimization for %s had no valid classes, "
                            "using local generator",
                            strategy.id,
                        )
                    else:
                        source = "remote"

            if schedule is None:
                schedule = self.generator.generate(
                    index, existing=locked, seed=seed, objective=strategy.objective
                )

            iterations.append(
                OptimizationIteration(
                    id=strategy.id,
                    name=strategy.name,
                    description=strategy.description,
                    objective=strategy.objective,
                    schedule=schedule,
                    metrics=self.compute_metrics(schedule),
                    trainer_assignments=self.trainer_assignments(schedule),
                    source=source,
                )
            )
            logger.info(
                "Iteration %s (%s): %d classes", strategy.id, source, len(schedule)
            )
        return iterations

    def _optimize_remote(
        self,
        index: HistoricalPerformanceIndex,
        current: WeeklyScheduleState,
        locked: WeeklyScheduleState,
        strategy: Strategy,
    ) -> Optional[WeeklyScheduleState]:
        request = InferenceRequest(
            kind=InferenceKind.OPTIMIZATION,
            historical_summary=index.summary(),
            rules=rules_text(self.rules),
            objective=strategy.objective,
            schedule=tuple(assignment_to_payload(a) for a in sorted(current, key=day_time_key)),
        )
        payload = self.client.complete(request)
        proposed = parse_schedule(payload, self.rules, id_prefix=strategy.id)

        schedule = locked.copy()
        ledger = schedule.ledger()
        accepted = 0
        for assignment in sorted(proposed, key=day_time_key):
            if schedule.is_slot_filled(assignment.location, assignment.day, assignment.start_time):
                continue
            result = self.validator.check(assignment, schedule, ledger=ledger, strict=True)
            if not result.valid:
                logger.debug("Dropped remote class %s: %s", assignment.id, result.hard_error)
                continue
            schedule.add(assignment)
            ledger.record(assignment)
            accepted += 1

        if accepted == 0:
            return None
        return schedule

    def compute_metrics(self, schedule: WeeklyScheduleState) -> ScheduleMetrics:
        """Comparison metrics for a schedule."""
        classes = len(schedule)
        total_revenue = sum(a.revenue for a in schedule)
        total_attendance = sum(a.participants for a in schedule)
        total_hours = schedule.total_hours
        instructors = len(schedule.instructors())

        utilization = (
            total_hours / (instructors * self.rules.standard_weekly_cap) if instructors else 0.0
        )
        fill_rate = (
            total_attendance / (classes * self.rules.nominal_class_capacity) if classes else 0.0
        )
        efficiency = total_revenue / total_hours if total_hours else 0.0

        return ScheduleMetrics(
            total_revenue=round(total_revenue, 2),
            total_attendance=total_attendance,
            instructor_utilization=round(utilization, 4),
            fill_rate=round(fill_rate, 4),
            efficiency=round(efficiency, 2),
        )

    def trainer_assignments(
        self, schedule: WeeklyScheduleState
    ) -> dict[str, TrainerAssignmentSummary]:
        """Hours, shifts, locations and longest back-to-back run per instructor."""
        summaries = {}
        for instructor in schedule.instructors():
            classes = schedule.for_instructor(instructor)
            shifts = sorted(
                {(a.day, a.shift) for a in classes},
                key=lambda pair: (day_index(pair[0]), pair[1] != "morning"),
            )
            summaries[instructor] = TrainerAssignmentSummary(
                hours=round(sum(a.duration for a in classes), 2),
                shifts=tuple(f"{day} {shift}" for day, shift in shifts),
                locations=tuple(sorted({a.location for a in classes})),
                consecutive_classes=max(
                    (self.validator.consecutive_run(a, schedule) for a in classes),
                    default=0,
                ),
            )
        return summaries
