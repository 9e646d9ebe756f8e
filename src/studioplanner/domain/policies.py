"""Policy definitions for studio scheduling rules.

This module contains the configurable rules that govern class placement:
studio capacities, instructor hour caps, the denylist, location format
rules and time restrictions. Rules are plain values injected into each
component, so the engine never reads configuration from global state.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Mapping, Optional

from studioplanner.domain.models import (
    SLOT_MINUTES,
    WEEKEND_DAYS,
    minutes_to_time,
    time_to_minutes,
)
from studioplanner.exceptions import ConfigurationError

DEFAULT_LOCATIONS = (
    "Kwality House, Kemps Corner",
    "Supreme HQ, Bandra",
    "Kenkere House",
)

FALLBACK_FORMAT = "Studio Barre 57"


class ClassDurationPolicy(ABC):
    """Abstract base class for class length policies."""

    @abstractmethod
    def duration_hours(self, class_format: str) -> float:
        """Get the length of a class format in hours."""
        pass


@dataclass(frozen=True)
class DefaultClassDurationPolicy(ClassDurationPolicy):
    """Default duration policy.

    Formats are matched by keyword, first match wins:
    - "express": 45 minutes
    - "recovery": 30 minutes
    - "foundations": 45 minutes
    - anything else: 60 minutes
    """

    keyword_durations: tuple[tuple[str, float], ...] = (
        ("express", 0.75),
        ("recovery", 0.5),
        ("foundations", 0.75),
    )
    default_hours: float = 1.0

    def duration_hours(self, class_format: str) -> float:
        lowered = class_format.lower()
        for keyword, hours in self.keyword_durations:
            if keyword in lowered:
                return hours
        return self.default_hours


@dataclass(frozen=True)
class ScoreWeights:
    """Weights for the slot adjusted score and instructor ranking.

    These are empirical tuning values and are kept configurable.
    """

    attendance: float = 0.4
    revenue: float = 0.3
    late_cancel: float = 0.2
    fill_rate: float = 0.1
    instructor_attendance: float = 0.6
    instructor_revenue: float = 0.4


@dataclass(frozen=True)
class TimeWindow:
    """Half-open [start, end) window of the day."""

    start: str
    end: str

    def contains(self, time: str) -> bool:
        minutes = time_to_minutes(time)
        return time_to_minutes(self.start) <= minutes < time_to_minutes(self.end)

    def slots(self) -> list[str]:
        """Every 15-minute start time inside the window."""
        return [
            minutes_to_time(m)
            for m in range(time_to_minutes(self.start), time_to_minutes(self.end), SLOT_MINUTES)
        ]


@dataclass(frozen=True)
class LocationFormatRule:
    """Which formats a location may host.

    Attributes:
        allowed_formats: Preferred formats; the first is used as the
            substitute when a restricted format is found.
        restricted_keywords: Lowercase keywords; a format containing any
            of them is not allowed at the location.
    """

    allowed_formats: tuple[str, ...] = ()
    restricted_keywords: tuple[str, ...] = ()


def _default_location_rules() -> dict[str, LocationFormatRule]:
    no_cycle = LocationFormatRule(restricted_keywords=("powercycle", "power cycle"))
    return {
        "Supreme HQ, Bandra": LocationFormatRule(
            allowed_formats=("Studio powerCycle", "Studio powerCycle (Express)"),
            restricted_keywords=("hiit", "amped up"),
        ),
        "Kwality House, Kemps Corner": no_cycle,
        "Kenkere House": no_cycle,
    }


@dataclass
class StudioRules:
    """The complete rule set for one scheduling invocation.

    Attributes:
        locations: Locations visited by generators, in visiting order.
        capacities: Parallel studios per location.
        default_capacity: Capacity of a location missing from capacities.
        standard_weekly_cap: Weekly hour cap for regular instructors.
        new_instructor_weekly_cap: Weekly hour cap for the new cohort.
        soft_warning_margin: Hours below the cap that trigger a warning.
        max_daily_hours: Max teaching hours per instructor per day.
        max_daily_classes: Max classes per instructor per day.
        max_consecutive_classes: Longest allowed back-to-back run.
        consecutive_tolerance_minutes: Gap at or below which two classes
            count as back-to-back.
        denylist: Excluded instructors, matched case-insensitively as a
            substring of the full name.
        new_instructors: First names of the new-instructor cohort.
        new_instructor_formats: Formats the new cohort may teach.
        priority_instructors: First names of priority instructors.
        priority_formats: Formats preferred during generation.
        sunday_class_limits: Max Sunday classes per location.
        default_sunday_limit: Sunday limit for unlisted locations.
        business_windows: Windows whose slots generators always visit.
        weekday_restricted_window: Private-only window Monday to Friday.
        weekend_restricted_window: Private-only window at the weekend.
        location_rules: Format rules per location.
        early_week_days: Days on which recovery classes are not scheduled.
        min_generation_average: Minimum historical average to schedule.
        min_participants_threshold: "Proven" class threshold.
        top_performer_threshold: Average at which a class is flagged.
        nominal_class_capacity: Seats assumed per class for fill rate.
        score_weights: Adjusted score and instructor ranking weights.
        duration_policy: Class length policy.
    """

    locations: tuple[str, ...] = DEFAULT_LOCATIONS
    capacities: dict[str, int] = field(
        default_factory=lambda: {
            "Kwality House, Kemps Corner": 2,
            "Supreme HQ, Bandra": 3,
            "Kenkere House": 2,
        }
    )
    default_capacity: int = 1
    standard_weekly_cap: float = 15.0
    new_instructor_weekly_cap: float = 10.0
    soft_warning_margin: float = 2.0
    max_daily_hours: float = 4.0
    max_daily_classes: int = 4
    max_consecutive_classes: int = 2
    consecutive_tolerance_minutes: int = 15
    denylist: tuple[str, ...] = ("Nishanth", "Saniya")
    new_instructors: tuple[str, ...] = ("Kabir", "Simonelle", "Karan")
    new_instructor_formats: tuple[str, ...] = (
        "Studio Barre 57",
        "Studio Barre 57 (Express)",
        "Studio powerCycle",
        "Studio powerCycle (Express)",
        "Studio Cardio Barre",
    )
    priority_instructors: tuple[str, ...] = (
        "Anisha",
        "Vivaran",
        "Mrigakshi",
        "Pranjali",
        "Atulan",
        "Cauveri",
        "Rohan",
        "Reshma",
        "Richard",
        "Karan",
        "Karanvir",
    )
    priority_formats: tuple[str, ...] = (
        "Studio Barre 57",
        "Studio powerCycle",
        "Studio Mat 57",
        "Studio FIT",
        "Studio Cardio Barre",
        "Studio Amped Up!",
        "Studio Cardio Barre Plus",
        "Studio Back Body Blaze",
    )
    sunday_class_limits: dict[str, int] = field(
        default_factory=lambda: {
            "Kwality House, Kemps Corner": 5,
            "Supreme HQ, Bandra": 7,
            "Kenkere House": 6,
        }
    )
    default_sunday_limit: int = 6
    business_windows: tuple[TimeWindow, ...] = (
        TimeWindow("07:00", "12:00"),
        TimeWindow("16:00", "21:00"),
    )
    weekday_restricted_window: TimeWindow = TimeWindow("12:00", "17:00")
    weekend_restricted_window: TimeWindow = TimeWindow("12:00", "16:00")
    location_rules: dict[str, LocationFormatRule] = field(default_factory=_default_location_rules)
    early_week_days: tuple[str, ...] = ("Monday", "Tuesday", "Wednesday")
    min_generation_average: float = 3.0
    min_participants_threshold: float = 5.0
    top_performer_threshold: float = 6.0
    nominal_class_capacity: int = 15
    score_weights: ScoreWeights = field(default_factory=ScoreWeights)
    duration_policy: ClassDurationPolicy = field(default_factory=DefaultClassDurationPolicy)

    def capacity(self, location: str) -> int:
        return self.capacities.get(location, self.default_capacity)

    def is_denylisted(self, instructor: str) -> bool:
        lowered = instructor.lower()
        return any(name.lower() in lowered for name in self.denylist)

    def is_new_instructor(self, instructor: str) -> bool:
        return _first_name(instructor) in {n.lower() for n in self.new_instructors}

    def is_priority_instructor(self, instructor: str) -> bool:
        return _first_name(instructor) in {n.lower() for n in self.priority_instructors}

    def weekly_cap(self, instructor: str) -> float:
        if self.is_new_instructor(instructor):
            return self.new_instructor_weekly_cap
        return self.standard_weekly_cap

    def can_teach_format(self, instructor: str, class_format: str) -> bool:
        """New-cohort instructors may only teach their eligible formats."""
        if not self.is_new_instructor(instructor):
            return True
        return class_format in self.new_instructor_formats

    def is_format_allowed(self, class_format: str, location: str) -> bool:
        rule = self.location_rules.get(location)
        if rule is None:
            return True
        lowered = class_format.lower()
        return not any(keyword in lowered for keyword in rule.restricted_keywords)

    def substitute_format(self, location: str) -> str:
        """Format to use in place of one the location does not allow."""
        rule = self.location_rules.get(location)
        if rule and rule.allowed_formats:
            return rule.allowed_formats[0]
        return FALLBACK_FORMAT

    def substitute_formats(self, location: str) -> list[str]:
        """All replacement formats for a location, preferred first.

        The location's allowed formats come first, then the fallback
        format. Anything the location restricts is left out.
        """
        rule = self.location_rules.get(location)
        formats = list(rule.allowed_formats) if rule else []
        if FALLBACK_FORMAT not in formats:
            formats.append(FALLBACK_FORMAT)
        return [f for f in formats if self.is_format_allowed(f, location)]

    def is_time_restricted(self, time: str, day: str) -> bool:
        window = (
            self.weekend_restricted_window
            if day in WEEKEND_DAYS
            else self.weekday_restricted_window
        )
        return window.contains(time)

    def is_recovery_blocked(self, class_format: str, day: str) -> bool:
        return day in self.early_week_days and "recovery" in class_format.lower()

    def sunday_limit(self, location: str) -> int:
        return self.sunday_class_limits.get(location, self.default_sunday_limit)

    def business_slots(self) -> list[str]:
        slots: list[str] = []
        for window in self.business_windows:
            slots.extend(window.slots())
        return sorted(set(slots), key=time_to_minutes)

    def class_duration(self, class_format: str) -> float:
        return self.duration_policy.duration_hours(class_format)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible mapping (duration policy excluded)."""
        data = asdict(self)
        data.pop("duration_policy", None)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StudioRules":
        """Build rules from a persisted mapping, e.g. a saved JSON document.

        Missing keys keep their defaults. Unknown keys raise
        ConfigurationError so typos do not silently fall back.

        Args:
            data: Mapping of StudioRules field names to values.

        Returns:
            A new StudioRules value.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown rule keys: {', '.join(sorted(unknown))}")

        kwargs: dict[str, Any] = {}
        try:
            for key, value in data.items():
                if key == "score_weights":
                    kwargs[key] = ScoreWeights(**value)
                elif key == "business_windows":
                    kwargs[key] = tuple(_window(w) for w in value)
                elif key in ("weekday_restricted_window", "weekend_restricted_window"):
                    kwargs[key] = _window(value)
                elif key == "location_rules":
                    kwargs[key] = {
                        loc: LocationFormatRule(
                            allowed_formats=tuple(rule.get("allowed_formats", ())),
                            restricted_keywords=tuple(
                                k.lower() for k in rule.get("restricted_keywords", ())
                            ),
                        )
                        for loc, rule in value.items()
                    }
                elif key in ("capacities", "sunday_class_limits"):
                    kwargs[key] = {loc: int(v) for loc, v in value.items()}
                elif key == "duration_policy":
                    if not isinstance(value, ClassDurationPolicy):
                        raise ConfigurationError("duration_policy must be a ClassDurationPolicy")
                    kwargs[key] = value
                elif isinstance(value, list):
                    kwargs[key] = tuple(value)
                else:
                    kwargs[key] = value
        except (TypeError, ValueError, KeyError, AttributeError) as exc:
            raise ConfigurationError(f"Invalid value for rule '{key}': {exc}") from exc

        return cls(**kwargs)


def _first_name(instructor: str) -> str:
    parts = instructor.strip().split()
    return parts[0].lower() if parts else ""


def _window(value: Any) -> TimeWindow:
    if isinstance(value, TimeWindow):
        return value
    if isinstance(value, Mapping):
        return TimeWindow(start=value["start"], end=value["end"])
    start, end = value
    return TimeWindow(start=start, end=end)
