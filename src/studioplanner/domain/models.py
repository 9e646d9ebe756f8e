"""Core domain models for the studio class scheduling system.

This module defines the fundamental data structures used throughout the
scheduling engine: historical class records, derived slot statistics,
scheduled class assignments, weekly schedule state, and the per-instructor
ledger derived from it.

Times are "HH:MM" strings on a 15-minute grid. Durations are hours
(0.5, 0.75, 1.0). Days are full English weekday names.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterator, Mapping, Optional

WEEKDAYS = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)
WEEKEND_DAYS = ("Saturday", "Sunday")

SLOT_MINUTES = 15  # Quantized time unit
SHIFT_SPLIT_MINUTES = 14 * 60  # Classes starting before 14:00 are "morning"


def time_to_minutes(value: str) -> int:
    """Convert an "HH:MM" string to minutes since midnight."""
    hours, minutes = value.split(":")[:2]
    return int(hours) * 60 + int(minutes)


def minutes_to_time(minutes: int) -> str:
    """Convert minutes since midnight to an "HH:MM" string."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def normalize_time(value: str) -> str:
    """Normalize a loosely formatted time ("9:00", "09:00:00") to "HH:MM".

    Returns an empty string when the value cannot be parsed.
    """
    value = (value or "").strip()
    if ":" not in value:
        return ""
    try:
        return minutes_to_time(time_to_minutes(value))
    except ValueError:
        return ""


def occupied_quanta(start_time: str, duration_hours: float) -> list[int]:
    """Get every 15-minute unit (as minutes since midnight) a class occupies.

    Args:
        start_time: Class start time ("HH:MM").
        duration_hours: Class length in hours.

    Returns:
        Start minute of each occupied quantum, in order.
    """
    start = time_to_minutes(start_time)
    duration_minutes = round(duration_hours * 60)
    return [start + offset for offset in range(0, duration_minutes, SLOT_MINUTES)]


def day_index(day: str) -> int:
    """Position of a day in the week; unknown days sort last."""
    return WEEKDAYS.index(day) if day in WEEKDAYS else len(WEEKDAYS)


def day_time_key(assignment: "ScheduledClassAssignment") -> tuple[int, int]:
    """Sort key ordering assignments by day, then start time."""
    return (day_index(assignment.day), assignment.start_minutes)


class Objective(Enum):
    """Objective weighting for generation and optimization."""

    REVENUE = "revenue"
    ATTENDANCE = "attendance"
    BALANCED = "balanced"


def _coerce_int(value: Any) -> int:
    try:
        return int(float(str(value).strip()))
    except (TypeError, ValueError):
        return 0


def _coerce_float(value: Any) -> float:
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return 0.0


@dataclass(frozen=True)
class HistoricalClassRecord:
    """One past occurrence of a class.

    Records are the source of truth for every statistic and are never
    mutated once built.

    Attributes:
        location: Studio location name.
        day: Day of the week.
        start_time: Start time ("HH:MM").
        class_format: Cleaned class format name.
        instructor: Full instructor name.
        checked_in: Members who actually attended.
        participants: Members who registered.
        revenue: Total revenue for the class.
        late_cancellations: Late cancels for the class.
        comps: Complimentary spots.
        tip: Tips received.
        non_paid_customers: Attendees who did not pay.
        class_date: Original date string, informational only.
    """

    location: str
    day: str
    start_time: str
    class_format: str
    instructor: str
    checked_in: int = 0
    participants: int = 0
    revenue: float = 0.0
    late_cancellations: int = 0
    comps: int = 0
    tip: float = 0.0
    non_paid_customers: int = 0
    class_date: str = ""

    @property
    def is_hosted(self) -> bool:
        return "hosted" in self.class_format.lower()

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "HistoricalClassRecord":
        """Build a record from a loosely shaped tabular row.

        Header keys are normalized (lowercased, whitespace removed) so that
        "Checked In", "checkedIn" and "checked_in" all resolve. Numeric fields
        that are missing or unparseable become 0.

        Args:
            row: Mapping of column header to raw cell value.

        Returns:
            A typed, immutable HistoricalClassRecord.
        """
        normalized = {
            "".join(str(key).lower().split()).replace("_", ""): value
            for key, value in row.items()
        }

        def text(*keys: str) -> str:
            for key in keys:
                value = normalized.get(key)
                if value is not None and str(value).strip():
                    return str(value).strip()
            return ""

        instructor = text("teachername", "instructor")
        if not instructor:
            instructor = " ".join(
                part for part in (text("teacherfirstname"), text("teacherlastname")) if part
            )

        return cls(
            location=text("location"),
            day=text("dayoftheweek", "dayofweek", "day"),
            start_time=normalize_time(text("classtime", "time", "starttime")),
            class_format=text("cleanedclass", "classformat", "format"),
            instructor=instructor,
            checked_in=_coerce_int(normalized.get("checkedin")),
            participants=_coerce_int(normalized.get("participants")),
            revenue=_coerce_float(normalized.get("totalrevenue", normalized.get("revenue"))),
            late_cancellations=_coerce_int(normalized.get("latecancellations")),
            comps=_coerce_int(normalized.get("comps")),
            tip=_coerce_float(normalized.get("tip")),
            non_paid_customers=_coerce_int(normalized.get("nonpaidcustomers")),
            class_date=text("classdate", "date"),
        )


@dataclass(frozen=True)
class InstructorRanking:
    """An instructor's weighted standing at a slot."""

    instructor: str
    weighted_average: float
    class_count: int


@dataclass(frozen=True)
class CombinationStats:
    """Averages for one (format, instructor) pairing over a set of records."""

    class_format: str
    instructor: str
    avg_checked_in: float
    avg_revenue: float
    count: int


@dataclass(frozen=True)
class SlotPerformanceProfile:
    """Aggregate statistics for a slot, optionally narrowed by format/instructor.

    A profile only exists when at least one record matches; an absent
    profile means "no history", not "zero attendance".
    """

    location: str
    day: str
    start_time: str
    class_format: Optional[str]
    instructor: Optional[str]
    total_classes: int
    total_checked_in: int
    total_participants: int
    empty_classes: int
    avg_attendance: float
    avg_attendance_without_empty: float
    total_revenue: float
    revenue_per_class: float
    avg_late_cancels: float
    tips_per_class: float
    fill_rate: float
    revenue_per_seat: float
    late_cancel_rate: float
    non_paid_rate: float
    adjusted_score: float
    top_instructors: tuple[InstructorRanking, ...] = ()
    combinations: tuple[CombinationStats, ...] = ()

    @property
    def non_empty_classes(self) -> int:
        return self.total_classes - self.empty_classes

    @property
    def best_combination(self) -> Optional[CombinationStats]:
        return self.combinations[0] if self.combinations else None


@dataclass(frozen=True)
class ScheduledClassAssignment:
    """A committed or proposed class occupying a studio for a time range.

    Attributes:
        location: Studio location.
        day: Day of the week.
        start_time: Start time ("HH:MM").
        class_format: Class format name.
        instructor: Full instructor name.
        duration: Length in hours.
        participants: Expected attendance.
        revenue: Expected revenue.
        is_top_performer: Historical average of 6 or more.
        is_private: Private booking, exempt from restricted-hour rules.
        is_hosted: Hosted (external client) class.
        is_locked: Pinned by a person; generators must not move it.
        is_priority: Placed because it is a priority or must-include format.
        id: Stable identifier used by suggestion application.
    """

    location: str
    day: str
    start_time: str
    class_format: str
    instructor: str
    duration: float = 1.0
    participants: int = 0
    revenue: float = 0.0
    is_top_performer: bool = False
    is_private: bool = False
    is_hosted: bool = False
    is_locked: bool = False
    is_priority: bool = False
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.start_time)

    @property
    def end_minutes(self) -> int:
        return self.start_minutes + round(self.duration * 60)

    @property
    def quanta(self) -> list[int]:
        return occupied_quanta(self.start_time, self.duration)

    @property
    def shift(self) -> str:
        return "morning" if self.start_minutes < SHIFT_SPLIT_MINUTES else "evening"

    def overlaps(self, other: "ScheduledClassAssignment") -> bool:
        """Check whether two assignments share any quantum on the same day."""
        if self.day != other.day:
            return False
        return bool(set(self.quanta) & set(other.quanta))

    def with_changes(self, **changes: Any) -> "ScheduledClassAssignment":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)


@dataclass
class InstructorLedger:
    """Per-instructor totals derived from a WeeklyScheduleState.

    The ledger is never stored on its own; build it from a state with
    ``from_state`` and keep it current with ``record`` as assignments
    are committed.
    """

    weekly_hours: dict[str, float] = field(default_factory=dict)
    daily_hours: dict[str, dict[str, float]] = field(default_factory=dict)
    daily_counts: dict[str, dict[str, int]] = field(default_factory=dict)
    daily_location: dict[str, dict[str, str]] = field(default_factory=dict)

    @classmethod
    def from_state(cls, state: "WeeklyScheduleState") -> "InstructorLedger":
        ledger = cls()
        for assignment in state:
            ledger.record(assignment)
        return ledger

    def record(self, assignment: ScheduledClassAssignment) -> None:
        """Add one committed assignment to the running totals."""
        name = assignment.instructor
        day = assignment.day
        self.weekly_hours[name] = round(self.weekly_hours.get(name, 0.0) + assignment.duration, 4)

        day_hours = self.daily_hours.setdefault(name, {})
        day_hours[day] = round(day_hours.get(day, 0.0) + assignment.duration, 4)

        day_counts = self.daily_counts.setdefault(name, {})
        day_counts[day] = day_counts.get(day, 0) + 1

        # First assignment of the day fixes the location
        self.daily_location.setdefault(name, {}).setdefault(day, assignment.location)

    def hours(self, instructor: str) -> float:
        return self.weekly_hours.get(instructor, 0.0)

    def day_hours(self, instructor: str, day: str) -> float:
        return self.daily_hours.get(instructor, {}).get(day, 0.0)

    def day_count(self, instructor: str, day: str) -> int:
        return self.daily_counts.get(instructor, {}).get(day, 0)

    def location_on(self, instructor: str, day: str) -> Optional[str]:
        return self.daily_location.get(instructor, {}).get(day)


@dataclass
class WeeklyScheduleState:
    """All scheduled classes for one or more locations across a week.

    This is the aggregate every validator and generator reasons against.
    Operations that produce a changed schedule return a new state via
    ``copy``; in-place ``add`` is reserved for the owner building it.
    """

    assignments: list[ScheduledClassAssignment] = field(default_factory=list)

    def __iter__(self) -> Iterator[ScheduledClassAssignment]:
        return iter(self.assignments)

    def __len__(self) -> int:
        return len(self.assignments)

    def copy(self) -> "WeeklyScheduleState":
        return WeeklyScheduleState(assignments=list(self.assignments))

    def add(self, assignment: ScheduledClassAssignment) -> None:
        self.assignments.append(assignment)

    def get(self, assignment_id: str) -> Optional[ScheduledClassAssignment]:
        for assignment in self.assignments:
            if assignment.id == assignment_id:
                return assignment
        return None

    def remove(self, assignment_id: str) -> bool:
        """Remove an assignment by id. Returns True if something was removed."""
        before = len(self.assignments)
        self.assignments = [a for a in self.assignments if a.id != assignment_id]
        return len(self.assignments) != before

    def replace(self, assignment_id: str, assignment: ScheduledClassAssignment) -> bool:
        """Replace an assignment by id, keeping its position."""
        for idx, existing in enumerate(self.assignments):
            if existing.id == assignment_id:
                self.assignments[idx] = assignment
                return True
        return False

    def without(self, assignment_id: str) -> "WeeklyScheduleState":
        """Return a copy of this state with one assignment left out."""
        return WeeklyScheduleState(
            assignments=[a for a in self.assignments if a.id != assignment_id]
        )

    def at(self, location: str, day: str) -> list[ScheduledClassAssignment]:
        return [a for a in self.assignments if a.location == location and a.day == day]

    def at_slot(self, location: str, day: str, start_time: str) -> list[ScheduledClassAssignment]:
        return [a for a in self.at(location, day) if a.start_time == start_time]

    def is_slot_filled(self, location: str, day: str, start_time: str) -> bool:
        return bool(self.at_slot(location, day, start_time))

    def for_instructor(
        self, instructor: str, day: Optional[str] = None
    ) -> list[ScheduledClassAssignment]:
        """Get an instructor's assignments, sorted by start time."""
        matches = [
            a
            for a in self.assignments
            if a.instructor == instructor and (day is None or a.day == day)
        ]
        return sorted(matches, key=day_time_key)

    def instructors(self) -> list[str]:
        return sorted({a.instructor for a in self.assignments})

    def locations(self) -> list[str]:
        return sorted({a.location for a in self.assignments})

    @property
    def total_hours(self) -> float:
        return sum(a.duration for a in self.assignments)

    def ledger(self) -> InstructorLedger:
        return InstructorLedger.from_state(self)


@dataclass(frozen=True)
class ScheduleMetrics:
    """Comparison metrics attached to an optimization iteration."""

    total_revenue: float
    total_attendance: int
    instructor_utilization: float
    fill_rate: float
    efficiency: float


@dataclass(frozen=True)
class TrainerAssignmentSummary:
    """Per-instructor summary of one candidate schedule."""

    hours: float
    shifts: tuple[str, ...]
    locations: tuple[str, ...]
    consecutive_classes: int


@dataclass(frozen=True)
class OptimizationIteration:
    """A candidate full-week schedule paired with its metrics.

    Attributes:
        id: Stable strategy identifier, e.g. "revenue-maximizer".
        name: Human readable strategy name.
        description: What the strategy optimizes for.
        objective: Objective weighting used.
        schedule: The candidate schedule.
        metrics: Computed comparison metrics.
        trainer_assignments: Summary per instructor.
        source: "remote" when produced by the inference collaborator,
            "local" when produced by the ScheduleGenerator.
    """

    id: str
    name: str
    description: str
    objective: Objective
    schedule: WeeklyScheduleState
    metrics: ScheduleMetrics
    trainer_assignments: dict[str, TrainerAssignmentSummary]
    source: str = "local"


@dataclass(frozen=True)
class Recommendation:
    """Ranked suggestion for filling a single slot. Never persisted."""

    class_format: str
    instructor: str
    confidence: float
    expected_participants: int
    expected_revenue: float
    priority: int
    rationale: str
    location: str = ""
    start_time: str = ""


class SuggestionType(Enum):
    """Kinds of post-hoc schedule suggestions."""

    TEACHER_CHANGE = "teacher_change"
    TIME_CHANGE = "time_change"
    MAKE_PRIVATE = "make_private"  # same slot, booked as a private class
    FORMAT_CHANGE = "format_change"
    NEW_CLASS = "new_class"


@dataclass(frozen=True)
class OptimizationSuggestion:
    """A single independently appliable change to a committed schedule."""

    suggestion_type: SuggestionType
    suggested: ScheduledClassAssignment
    reason: str
    impact: str
    priority: int
    original: Optional[ScheduledClassAssignment] = None
