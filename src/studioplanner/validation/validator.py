"""Constraint validation for class assignments.

This module is the single source of truth for placement constraints.
Every generator, optimizer and suggestion path commits assignments only
after they pass ``ConstraintValidator.check``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from studioplanner.domain.models import (
    InstructorLedger,
    ScheduledClassAssignment,
    WeeklyScheduleState,
    day_time_key,
    minutes_to_time,
)
from studioplanner.domain.policies import StudioRules
from studioplanner.exceptions import PolicyWarning, ScheduleValidationError


class ConstraintViolation(Enum):
    """Types of constraint violations."""

    DENYLISTED_INSTRUCTOR = "denylisted_instructor"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    INSTRUCTOR_OVERLAP = "instructor_overlap"
    LOCATION_CONFLICT = "location_conflict"
    CONSECUTIVE_LIMIT = "consecutive_limit"
    DAILY_CLASS_LIMIT = "daily_class_limit"
    DAILY_HOURS_LIMIT = "daily_hours_limit"
    WEEKLY_HOURS_EXCEEDED = "weekly_hours_exceeded"
    WEEKLY_HOURS_NEAR_CAP = "weekly_hours_near_cap"  # Soft


@dataclass
class ConstraintCheckResult:
    """Outcome of checking one candidate.

    Attributes:
        valid: False when a hard constraint failed.
        hard_error: Message for the failed hard constraint. Never overridable.
        soft_warning: Message for a soft constraint. A person may confirm it;
            automated callers treat it as a rejection.
        violation: Which constraint produced the error or warning.
    """

    valid: bool
    hard_error: Optional[str] = None
    soft_warning: Optional[str] = None
    violation: Optional[ConstraintViolation] = None

    @classmethod
    def ok(cls) -> "ConstraintCheckResult":
        return cls(valid=True)

    @classmethod
    def error(cls, violation: ConstraintViolation, message: str) -> "ConstraintCheckResult":
        return cls(valid=False, hard_error=message, violation=violation)

    def is_acceptable(self, confirm_warning: bool = False) -> bool:
        """Whether the candidate may be committed.

        Args:
            confirm_warning: True when a person has explicitly confirmed
                the soft warning.
        """
        return self.valid and (self.soft_warning is None or confirm_warning)

    def raise_for_error(self, confirm_warning: bool = False) -> None:
        """Raise the typed failure for this result, if any."""
        if not self.valid:
            raise ScheduleValidationError(self.hard_error or "Invalid assignment", self.violation)
        if self.soft_warning is not None and not confirm_warning:
            raise PolicyWarning(self.soft_warning)


@dataclass
class ValidationIssue:
    """A single problem found while auditing a whole schedule."""

    violation: ConstraintViolation
    message: str
    assignment_id: Optional[str] = None

    def __str__(self) -> str:
        parts = [f"[{self.violation.value}]"]
        if self.assignment_id:
            parts.append(f"Class {self.assignment_id}:")
        parts.append(self.message)
        return " ".join(parts)


@dataclass
class ValidationReport:
    """Result of auditing a full schedule."""

    is_valid: bool = True
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def add_error(self, issue: ValidationIssue) -> None:
        """Add an error and mark as invalid."""
        self.errors.append(issue)
        self.is_valid = False

    def add_warning(self, warning: str) -> None:
        """Add a warning (doesn't affect validity)."""
        self.warnings.append(warning)


class ConstraintValidator:
    """Checks candidate assignments against the accumulated schedule.

    Checks are pure: the state is never modified.

    Example:
        >>> validator = ConstraintValidator(rules)
        >>> result = validator.check(candidate, state)
        >>> if result.is_acceptable():
        ...     state.add(candidate)
    """

    def __init__(self, rules: Optional[StudioRules] = None):
        self.rules = rules or StudioRules()

    def check(
        self,
        candidate: ScheduledClassAssignment,
        state: WeeklyScheduleState,
        ledger: Optional[InstructorLedger] = None,
        weekly_cap: Optional[float] = None,
        strict: bool = False,
    ) -> ConstraintCheckResult:
        """Check whether a candidate can be added to a schedule.

        Args:
            candidate: The proposed assignment.
            state: Schedule the candidate would join.
            ledger: Precomputed ledger for ``state``. Built when omitted.
            weekly_cap: Lower weekly hour goal to apply instead of the
                instructor's configured cap. Never raises the cap.
            strict: Treat a soft warning as a rejection. Batch callers
                set this because no person is present to confirm.

        Returns:
            ConstraintCheckResult describing the outcome.
        """
        if ledger is None:
            ledger = state.ledger()

        for step in (
            self._check_denylist,
            self._check_capacity,
            self._check_instructor_overlap,
            self._check_location,
            self._check_consecutive,
            self._check_daily_load,
        ):
            result = step(candidate, state, ledger)
            if result is not None:
                return result

        result = self._check_weekly_hours(candidate, ledger, weekly_cap)
        if strict and result.soft_warning is not None:
            return ConstraintCheckResult(
                valid=False,
                hard_error=result.soft_warning,
                violation=result.violation,
            )
        return result

    def _check_denylist(
        self,
        candidate: ScheduledClassAssignment,
        state: WeeklyScheduleState,
        ledger: InstructorLedger,
    ) -> Optional[ConstraintCheckResult]:
        if self.rules.is_denylisted(candidate.instructor):
            return ConstraintCheckResult.error(
                ConstraintViolation.DENYLISTED_INSTRUCTOR,
                f"{candidate.instructor} is excluded and cannot be assigned to classes",
            )
        return None

    def _check_capacity(
        self,
        candidate: ScheduledClassAssignment,
        state: WeeklyScheduleState,
        ledger: InstructorLedger,
    ) -> Optional[ConstraintCheckResult]:
        capacity = self.rules.capacity(candidate.location)
        same_room_day = [
            set(a.quanta) for a in state.at(candidate.location, candidate.day)
        ]
        for quantum in candidate.quanta:
            in_use = sum(1 for quanta in same_room_day if quantum in quanta)
            if in_use >= capacity:
                return ConstraintCheckResult.error(
                    ConstraintViolation.CAPACITY_EXCEEDED,
                    f"Studio capacity exceeded at {candidate.location} on {candidate.day} "
                    f"{minutes_to_time(quantum)} ({in_use}/{capacity} studios occupied)",
                )
        return None

    def _check_instructor_overlap(
        self,
        candidate: ScheduledClassAssignment,
        state: WeeklyScheduleState,
        ledger: InstructorLedger,
    ) -> Optional[ConstraintCheckResult]:
        for existing in state.for_instructor(candidate.instructor, candidate.day):
            if existing.overlaps(candidate):
                return ConstraintCheckResult.error(
                    ConstraintViolation.INSTRUCTOR_OVERLAP,
                    f"{candidate.instructor} already teaches {existing.class_format} at "
                    f"{existing.start_time} on {candidate.day}",
                )
        return None

    def _check_location(
        self,
        candidate: ScheduledClassAssignment,
        state: WeeklyScheduleState,
        ledger: InstructorLedger,
    ) -> Optional[ConstraintCheckResult]:
        assigned = ledger.location_on(candidate.instructor, candidate.day)
        if assigned is not None and assigned != candidate.location:
            return ConstraintCheckResult.error(
                ConstraintViolation.LOCATION_CONFLICT,
                f"{candidate.instructor} is already assigned to {assigned} on {candidate.day}",
            )
        return None

    def _check_consecutive(
        self,
        candidate: ScheduledClassAssignment,
        state: WeeklyScheduleState,
        ledger: InstructorLedger,
    ) -> Optional[ConstraintCheckResult]:
        run = self.consecutive_run(candidate, state)
        if run > self.rules.max_consecutive_classes:
            return ConstraintCheckResult.error(
                ConstraintViolation.CONSECUTIVE_LIMIT,
                f"{candidate.instructor} would have {run} consecutive classes "
                f"(max {self.rules.max_consecutive_classes} allowed)",
            )
        return None

    def _check_daily_load(
        self,
        candidate: ScheduledClassAssignment,
        state: WeeklyScheduleState,
        ledger: InstructorLedger,
    ) -> Optional[ConstraintCheckResult]:
        name, day = candidate.instructor, candidate.day
        count = ledger.day_count(name, day) + 1
        if count > self.rules.max_daily_classes:
            return ConstraintCheckResult.error(
                ConstraintViolation.DAILY_CLASS_LIMIT,
                f"{name} would have {count} classes on {day} "
                f"(max {self.rules.max_daily_classes} allowed)",
            )
        hours = round(ledger.day_hours(name, day) + candidate.duration, 2)
        if hours > self.rules.max_daily_hours:
            return ConstraintCheckResult.error(
                ConstraintViolation.DAILY_HOURS_LIMIT,
                f"{name} would teach {hours}h on {day} (max {self.rules.max_daily_hours}h)",
            )
        return None

    def _check_weekly_hours(
        self,
        candidate: ScheduledClassAssignment,
        ledger: InstructorLedger,
        weekly_cap: Optional[float],
    ) -> ConstraintCheckResult:
        name = candidate.instructor
        cap = self.rules.weekly_cap(name)
        if weekly_cap is not None:
            cap = min(cap, weekly_cap)

        total = round(ledger.hours(name) + candidate.duration, 2)
        if total > cap:
            return ConstraintCheckResult.error(
                ConstraintViolation.WEEKLY_HOURS_EXCEEDED,
                f"{name} would exceed {cap:g}h limit ({total:g}h total)",
            )
        # Landing exactly on the cap is a full week, not a warning
        if cap - self.rules.soft_warning_margin < total < cap:
            return ConstraintCheckResult(
                valid=True,
                soft_warning=f"{name} approaching {cap:g}h limit ({total:g}h total)",
                violation=ConstraintViolation.WEEKLY_HOURS_NEAR_CAP,
            )
        return ConstraintCheckResult.ok()

    def consecutive_run(
        self, candidate: ScheduledClassAssignment, state: WeeklyScheduleState
    ) -> int:
        """Length of the back-to-back run the candidate would belong to.

        Two classes are back-to-back when the next one starts within the
        configured tolerance of the previous one's end.
        """
        day_classes = [
            a for a in state.for_instructor(candidate.instructor, candidate.day) if a.id != candidate.id
        ]
        day_classes.append(candidate)
        day_classes.sort(key=lambda a: a.start_minutes)

        position = next(i for i, a in enumerate(day_classes) if a is candidate)
        tolerance = self.rules.consecutive_tolerance_minutes

        def linked(prev: ScheduledClassAssignment, nxt: ScheduledClassAssignment) -> bool:
            return abs(nxt.start_minutes - prev.end_minutes) <= tolerance

        start = position
        while start > 0 and linked(day_classes[start - 1], day_classes[start]):
            start -= 1
        end = position
        while end < len(day_classes) - 1 and linked(day_classes[end], day_classes[end + 1]):
            end += 1
        return end - start + 1

    def validate_schedule(self, state: WeeklyScheduleState) -> ValidationReport:
        """Audit a complete schedule against every constraint.

        Assignments are replayed in day/time order; each one is checked
        against those accepted before it. Format and time-window rules are
        reported as warnings.

        Args:
            state: The schedule to audit.

        Returns:
            ValidationReport with is_valid flag, errors and warnings.
        """
        report = ValidationReport()
        replay = WeeklyScheduleState()
        ledger = InstructorLedger()

        for assignment in sorted(state, key=day_time_key):
            result = self.check(assignment, replay, ledger=ledger)
            if not result.valid:
                report.add_error(
                    ValidationIssue(
                        violation=result.violation or ConstraintViolation.CAPACITY_EXCEEDED,
                        message=result.hard_error or "",
                        assignment_id=assignment.id,
                    )
                )
                continue
            replay.add(assignment)
            ledger.record(assignment)

            if not self.rules.is_format_allowed(assignment.class_format, assignment.location):
                report.add_warning(
                    f"{assignment.class_format} is not allowed at {assignment.location}"
                )
            if not assignment.is_private and self.rules.is_time_restricted(
                assignment.start_time, assignment.day
            ):
                report.add_warning(
                    f"{assignment.class_format} on {assignment.day} {assignment.start_time} "
                    "is in a private-only window"
                )

        for location in state.locations():
            sunday = len(state.at(location, "Sunday"))
            limit = self.rules.sunday_limit(location)
            if sunday > limit:
                report.add_warning(
                    f"{location} has {sunday} Sunday classes (limit {limit})"
                )

        return report
