"""Translation between core types and the remote JSON shapes."""

from __future__ import annotations

import math
from typing import Any, Mapping, Optional

from studioplanner.domain.models import (
    WEEKDAYS,
    Recommendation,
    ScheduledClassAssignment,
    normalize_time,
)
from studioplanner.domain.policies import StudioRules
from studioplanner.exceptions import RemoteInferenceFailure
from studioplanner.utils.logger import get_logger

logger = get_logger(__name__)


def assignment_to_payload(assignment: ScheduledClassAssignment) -> dict[str, Any]:
    first, _, last = assignment.instructor.partition(" ")
    return {
        "day": assignment.day,
        "time": assignment.start_time,
        "location": assignment.location,
        "classFormat": assignment.class_format,
        "teacherFirstName": first,
        "teacherLastName": last,
        "duration": f"{assignment.duration:g}",
        "participants": assignment.participants,
    }


def _number(value: Any, default: float = 0.0) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def _items(payload: Mapping[str, Any], key: str) -> list[Mapping[str, Any]]:
    items = payload.get(key)
    if not isinstance(items, list):
        raise RemoteInferenceFailure(f"Inference response has no '{key}' array")
    return [item for item in items if isinstance(item, Mapping)]


def parse_recommendations(
    payload: Mapping[str, Any],
    rules: StudioRules,
    location: str,
    time: str,
) -> list[Recommendation]:
    """Turn a ``recommendations`` payload into Recommendation values.

    Entries naming a denylisted instructor, a hosted format, or missing a
    format are dropped, as are entries whose values cannot be coerced.
    Confidence is clamped to [0, 1] and priority to [1, 5].

    Raises:
        RemoteInferenceFailure: If the payload has no recommendations array.
    """
    recommendations = []
    for item in _items(payload, "recommendations"):
        class_format = str(item.get("classFormat") or "").strip()
        instructor = str(item.get("teacher") or "").strip()
        if not class_format or "hosted" in class_format.lower():
            continue
        if rules.is_denylisted(instructor):
            continue
        try:
            recommendation = Recommendation(
                class_format=class_format,
                instructor=instructor,
                confidence=min(1.0, max(0.0, _number(item.get("confidence"), 0.5))),
                expected_participants=round(_number(item.get("expectedParticipants"))),
                expected_revenue=round(_number(item.get("expectedRevenue"))),
                priority=int(min(5, max(1, round(_number(item.get("priority"), 3))))),
                rationale=str(item.get("reasoning") or ""),
                location=location,
                start_time=time,
            )
        except (TypeError, ValueError, OverflowError) as exc:
            logger.debug("Dropped remote recommendation %s: %s", class_format, exc)
            continue
        recommendations.append(recommendation)
    recommendations.sort(key=lambda r: (-r.priority, -r.confidence))
    return recommendations


def _schedule_skip_reason(
    rules: StudioRules,
    location: str,
    day: str,
    start_time: str,
    class_format: str,
    instructor: str,
    duration: float,
) -> Optional[str]:
    if day not in WEEKDAYS:
        return "unknown day"
    if location not in rules.locations:
        return "unknown location"
    if not 0 < duration <= rules.max_daily_hours:
        return "duration out of range"
    if "hosted" in class_format.lower():
        return "hosted class"
    if rules.is_denylisted(instructor):
        return "denylisted instructor"
    if rules.is_recovery_blocked(class_format, day):
        return "recovery early in the week"
    if not rules.is_format_allowed(class_format, location):
        return "format not allowed at location"
    if not rules.can_teach_format(instructor, class_format):
        return "format not eligible for new instructor"
    if rules.is_time_restricted(start_time, day):
        return "private-only window"
    return None


def parse_schedule(
    payload: Mapping[str, Any],
    rules: StudioRules,
    id_prefix: str = "remote",
) -> list[ScheduledClassAssignment]:
    """Turn an ``optimizedSchedule`` payload into candidate assignments.

    Entries are dropped when they name an unknown day or location, have a
    duration outside (0, max daily hours], or break a placement rule the
    generator also enforces: hosted formats, denylisted instructors,
    recovery early in the week, formats the location does not allow,
    formats a new instructor may not teach, and the private-only windows.
    The result is otherwise unvalidated; callers commit it through the
    ConstraintValidator.

    Raises:
        RemoteInferenceFailure: If the payload has no optimizedSchedule array.
    """
    assignments = []
    for idx, item in enumerate(_items(payload, "optimizedSchedule")):
        class_format = str(item.get("classFormat") or "").strip()
        instructor = str(item.get("teacher") or "").strip() or " ".join(
            part
            for part in (
                str(item.get("teacherFirstName") or "").strip(),
                str(item.get("teacherLastName") or "").strip(),
            )
            if part
        )
        start_time = normalize_time(str(item.get("time") or ""))
        location = str(item.get("location") or "").strip()
        day = str(item.get("day") or "").strip()
        if not (class_format and instructor and start_time and location and day):
            continue

        duration = _number(item.get("duration"), 0.0) or rules.class_duration(class_format)
        reason = _schedule_skip_reason(
            rules, location, day, start_time, class_format, instructor, duration
        )
        if reason is not None:
            logger.debug("Dropped remote class %s-%d: %s", id_prefix, idx, reason)
            continue

        try:
            participants = round(_number(item.get("expectedParticipants")))
            assignment = ScheduledClassAssignment(
                id=f"{id_prefix}-{idx}",
                location=location,
                day=day,
                start_time=start_time,
                class_format=class_format,
                instructor=instructor,
                duration=duration,
                participants=participants,
                revenue=_number(item.get("expectedRevenue")),
                is_top_performer=bool(item.get("isTopPerformer"))
                or participants >= rules.top_performer_threshold,
            )
        except (TypeError, ValueError, OverflowError) as exc:
            logger.debug("Dropped remote class %s-%d: %s", id_prefix, idx, exc)
            continue
        assignments.append(assignment)
    return assignments
