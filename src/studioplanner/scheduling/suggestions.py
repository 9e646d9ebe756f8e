"""Post-hoc improvement suggestions for a committed schedule.

The SuggestionEngine inspects a schedule a person has already built and
proposes independent fixes:

- Overloaded instructors hand classes to colleagues with spare hours
- Underused priority instructors get new classes in open slots
- Weak instructor/slot pairings are swapped for the slot's best instructor
- Public classes in private-only windows become private
- Formats a location does not allow are replaced

Each suggestion is valid on its own against the unmodified schedule.
Applying several at once may produce a schedule the validator rejects.
"""

from __future__ import annotations

from typing import Iterable, Optional

from studioplanner.analytics.performance_index import HistoricalPerformanceIndex
from studioplanner.domain.models import (
    WEEKDAYS,
    OptimizationSuggestion,
    ScheduledClassAssignment,
    SuggestionType,
    WeeklyScheduleState,
    day_time_key,
)
from studioplanner.domain.policies import StudioRules
from studioplanner.scheduling.generator import History
from studioplanner.utils.logger import get_logger
from studioplanner.validation.validator import ConstraintValidator

logger = get_logger(__name__)

MAX_SUGGESTIONS = 15
UNDERUSE_MARGIN_HOURS = 3.0
MAX_BACKFILL_CLASSES = 2
MISMATCH_MIN_CLASS_AVERAGE = 5.0
MISMATCH_GAP = 2.0


class SuggestionEngine:
    """Scans a committed schedule and proposes ranked changes.

    ``suggest`` has no side effects. ``apply`` returns a new schedule.

    Example:
        >>> engine = SuggestionEngine(rules)
        >>> suggestions = engine.suggest(records, schedule)
        >>> improved = engine.apply(schedule, suggestions[:1])
    """

    def __init__(
        self,
        rules: Optional[StudioRules] = None,
        validator: Optional[ConstraintValidator] = None,
    ):
        self.rules = rules or StudioRules()
        self.validator = validator or ConstraintValidator(self.rules)

    def suggest(
        self, history: History, state: WeeklyScheduleState
    ) -> list[OptimizationSuggestion]:
        """Propose changes to a schedule, highest priority first.

        Args:
            history: Historical records, or an index built over them.
            state: The committed schedule. Not modified.

        Returns:
            At most 15 suggestions sorted by priority, descending.
        """
        if isinstance(history, HistoricalPerformanceIndex):
            index = history
        else:
            index = HistoricalPerformanceIndex(history, self.rules)

        suggestions: list[OptimizationSuggestion] = []
        suggestions.extend(self._overload_redistribution(index, state))
        suggestions.extend(self._underutilization_backfill(index, state))
        suggestions.extend(self._performance_mismatch(index, state))
        suggestions.extend(self._time_restriction(state))
        suggestions.extend(self._location_format(state))

        # Stable sort keeps detection order within a priority
        suggestions.sort(key=lambda s: -s.priority)
        logger.info("Found %d suggestions", len(suggestions))
        return suggestions[:MAX_SUGGESTIONS]

    def apply(
        self,
        state: WeeklyScheduleState,
        suggestions: Iterable[OptimizationSuggestion],
    ) -> WeeklyScheduleState:
        """Apply suggestions to a copy of ``state``.

        Replacements target the original assignment's id; new-class
        suggestions are appended. A replacement whose original is no longer
        present is ignored. The result is not re-validated.
        """
        updated = state.copy()
        for suggestion in suggestions:
            if suggestion.suggestion_type is SuggestionType.NEW_CLASS or suggestion.original is None:
                updated.add(suggestion.suggested)
            elif not updated.replace(suggestion.original.id, suggestion.suggested):
                logger.warning(
                    "Suggestion target %s is not in the schedule, skipping",
                    suggestion.original.id,
                )
        return updated

    def _overload_redistribution(
        self, index: HistoricalPerformanceIndex, state: WeeklyScheduleState
    ) -> list[OptimizationSuggestion]:
        suggestions = []
        ledger = state.ledger()
        pool = sorted(set(index.instructors()) | set(state.instructors()))

        for instructor in state.instructors():
            cap = self.rules.weekly_cap(instructor)
            hours = ledger.hours(instructor)
            excess = round(hours - cap, 4)
            if excess <= 0:
                continue

            alternatives = sorted(
                (
                    name
                    for name in pool
                    if name != instructor and not self.rules.is_denylisted(name)
                ),
                key=lambda name: (-index.instructor_average(name), name),
            )
            for original in reversed(state.for_instructor(instructor)):
                if excess <= 0:
                    break
                if original.is_locked:
                    continue
                for name in alternatives:
                    if not self.rules.can_teach_format(name, original.class_format):
                        continue
                    moved = original.with_changes(instructor=name)
                    base = state.without(original.id)
                    if not self.validator.check(moved, base, strict=True).valid:
                        continue
                    excess = round(excess - original.duration, 4)
                    suggestions.append(
                        OptimizationSuggestion(
                            suggestion_type=SuggestionType.TEACHER_CHANGE,
                            original=original,
                            suggested=moved,
                            reason=(
                                f"{instructor} is scheduled for {hours:g}h against a "
                                f"{cap:g}h limit"
                            ),
                            impact=f"Moves {original.duration:g}h to {name}",
                            priority=9,
                        )
                    )
                    break
        return suggestions

    def _underutilization_backfill(
        self, index: HistoricalPerformanceIndex, state: WeeklyScheduleState
    ) -> list[OptimizationSuggestion]:
        suggestions = []
        ledger = state.ledger()
        slots = self.rules.business_slots()
        candidates = sorted(
            set(index.instructors()) | set(state.instructors())
        )

        for instructor in candidates:
            if not self.rules.is_priority_instructor(instructor):
                continue
            if self.rules.is_denylisted(instructor):
                continue
            hours = ledger.hours(instructor)
            cap = self.rules.weekly_cap(instructor)
            if hours >= cap - UNDERUSE_MARGIN_HOURS:
                continue

            best_formats = index.instructor_formats(
                instructor, min_checked_in=self.rules.min_participants_threshold
            )[:3]
            working = state.copy()
            added = 0
            for stats in best_formats:
                if added >= MAX_BACKFILL_CLASSES:
                    break
                proposal = self._open_slot_for(
                    working, instructor, stats.class_format, slots
                )
                if proposal is None:
                    continue
                proposal = proposal.with_changes(
                    participants=round(stats.avg_checked_in),
                    revenue=round(stats.avg_revenue, 2),
                    is_top_performer=stats.avg_checked_in >= self.rules.top_performer_threshold,
                )
                working.add(proposal)
                added += 1
                suggestions.append(
                    OptimizationSuggestion(
                        suggestion_type=SuggestionType.NEW_CLASS,
                        suggested=proposal,
                        reason=(
                            f"{instructor} is a priority instructor with only {hours:g}h "
                            f"of {cap:g}h scheduled"
                        ),
                        impact=(
                            f"Adds {stats.class_format}, averaging "
                            f"{stats.avg_checked_in:.1f} check-ins"
                        ),
                        priority=7,
                    )
                )
        return suggestions

    def _open_slot_for(
        self,
        state: WeeklyScheduleState,
        instructor: str,
        class_format: str,
        slots: list[str],
    ) -> Optional[ScheduledClassAssignment]:
        """First open business-hour slot where the class would be accepted."""
        duration = self.rules.class_duration(class_format)
        ledger = state.ledger()
        for day in WEEKDAYS:
            if self.rules.is_recovery_blocked(class_format, day):
                continue
            for location in self.rules.locations:
                if not self.rules.is_format_allowed(class_format, location):
                    continue
                if not self.rules.can_teach_format(instructor, class_format):
                    continue
                if day == "Sunday" and len(state.at(location, day)) >= self.rules.sunday_limit(
                    location
                ):
                    continue
                for start_time in slots:
                    if state.is_slot_filled(location, day, start_time):
                        continue
                    if self.rules.is_time_restricted(start_time, day):
                        continue
                    proposal = ScheduledClassAssignment(
                        location=location,
                        day=day,
                        start_time=start_time,
                        class_format=class_format,
                        instructor=instructor,
                        duration=duration,
                    )
                    if self.validator.check(proposal, state, ledger=ledger, strict=True).valid:
                        return proposal
        return None

    def _performance_mismatch(
        self, index: HistoricalPerformanceIndex, state: WeeklyScheduleState
    ) -> list[OptimizationSuggestion]:
        suggestions = []
        for original in sorted(state, key=day_time_key):
            if original.is_locked:
                continue
            class_avg, count = index.slot_average(
                original.class_format, original.location, original.day, original.start_time
            )
            if count == 0 or class_avg <= MISMATCH_MIN_CLASS_AVERAGE:
                continue

            own_avg, own_count = index.slot_average(
                original.class_format,
                original.location,
                original.day,
                original.start_time,
                instructor=original.instructor,
            )
            if own_count == 0:
                own_avg = index.instructor_average(original.instructor)
            if own_avg >= class_avg - MISMATCH_GAP:
                continue

            best = index.best_instructor(
                original.class_format, original.location, original.day, original.start_time
            )
            if best is None or best == original.instructor:
                continue
            if not self.rules.can_teach_format(best, original.class_format):
                continue
            swapped = original.with_changes(instructor=best)
            if not self.validator.check(swapped, state.without(original.id), strict=True).valid:
                continue
            suggestions.append(
                OptimizationSuggestion(
                    suggestion_type=SuggestionType.TEACHER_CHANGE,
                    original=original,
                    suggested=swapped,
                    reason=(
                        f"{original.instructor} averages {own_avg:.1f} here against a class "
                        f"average of {class_avg:.1f}"
                    ),
                    impact=f"{best} has the strongest history for this slot",
                    priority=8,
                )
            )
        return suggestions

    def _time_restriction(self, state: WeeklyScheduleState) -> list[OptimizationSuggestion]:
        suggestions = []
        for original in sorted(state, key=day_time_key):
            if original.is_private:
                continue
            if not self.rules.is_time_restricted(original.start_time, original.day):
                continue
            suggestions.append(
                OptimizationSuggestion(
                    suggestion_type=SuggestionType.MAKE_PRIVATE,
                    original=original,
                    suggested=original.with_changes(is_private=True),
                    reason=(
                        f"{original.start_time} on {original.day} is reserved for "
                        "private classes"
                    ),
                    impact="Keeps the slot for private bookings",
                    priority=8,
                )
            )
        return suggestions

    def _location_format(self, state: WeeklyScheduleState) -> list[OptimizationSuggestion]:
        suggestions = []
        for original in sorted(state, key=day_time_key):
            if self.rules.is_format_allowed(original.class_format, original.location):
                continue
            base = state.without(original.id)
            for substitute in self.rules.substitute_formats(original.location):
                if not self.rules.can_teach_format(original.instructor, substitute):
                    continue
                suggested = original.with_changes(
                    class_format=substitute,
                    duration=self.rules.class_duration(substitute),
                )
                if not self.validator.check(suggested, base, strict=True).valid:
                    continue
                suggestions.append(
                    OptimizationSuggestion(
                        suggestion_type=SuggestionType.FORMAT_CHANGE,
                        original=original,
                        suggested=suggested,
                        reason=f"{original.class_format} is not offered at {original.location}",
                        impact=f"Replaced with {substitute}",
                        priority=9,
                    )
                )
                break
            else:
                logger.debug("No valid substitute format for %s", original.id)
        return suggestions
