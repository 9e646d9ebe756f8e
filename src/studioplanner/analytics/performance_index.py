"""Historical performance aggregation.

This module turns raw historical class records into queryable per-slot
statistics. Every public read is pure: the index never mutates its
records, and slot profiles are memoized so that repeated queries against
unchanged data return the identical object.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from studioplanner.domain.models import (
    CombinationStats,
    HistoricalClassRecord,
    InstructorRanking,
    SlotPerformanceProfile,
    normalize_time,
    time_to_minutes,
)
from studioplanner.domain.policies import StudioRules

ProfileKey = tuple[str, str, str, Optional[str], Optional[str]]

TOP_INSTRUCTOR_COUNT = 3


@dataclass(frozen=True)
class TopPerformer:
    """A (format, location, day, time) combination with strong history."""

    class_format: str
    location: str
    day: str
    start_time: str
    instructor: str
    avg_checked_in: float
    avg_revenue: float
    frequency: int


@dataclass(frozen=True)
class FormatStats:
    """Per-format averages over some subset of history."""

    class_format: str
    avg_checked_in: float
    avg_revenue: float
    frequency: int
    best_instructor: str = ""


class HistoricalPerformanceIndex:
    """Queryable statistics over historical class records.

    Records taught by denylisted instructors and hosted-class records are
    dropped on construction, so no statistic ever reflects them.

    Example:
        >>> index = HistoricalPerformanceIndex(records, rules)
        >>> profile = index.query("Kenkere House", "Monday", "09:00")
        >>> if profile is not None:
        ...     print(profile.adjusted_score)
    """

    def __init__(
        self,
        records: Iterable[HistoricalClassRecord],
        rules: Optional[StudioRules] = None,
    ):
        self.rules = rules or StudioRules()
        self._records: tuple[HistoricalClassRecord, ...] = tuple(
            r
            for r in records
            if not r.is_hosted and not self.rules.is_denylisted(r.instructor)
        )

        self._by_slot: dict[tuple[str, str, str], list[HistoricalClassRecord]] = defaultdict(list)
        self._by_location_day: dict[tuple[str, str], list[HistoricalClassRecord]] = defaultdict(list)
        for record in self._records:
            self._by_slot[(record.location, record.day, record.start_time)].append(record)
            self._by_location_day[(record.location, record.day)].append(record)

        self._profile_cache: dict[ProfileKey, Optional[SlotPerformanceProfile]] = {}

    @property
    def records(self) -> tuple[HistoricalClassRecord, ...]:
        return self._records

    def __len__(self) -> int:
        return len(self._records)

    def slot_records(self, location: str, day: str, time: str) -> list[HistoricalClassRecord]:
        return list(self._by_slot.get((location, day, normalize_time(time)), ()))

    def query(
        self,
        location: str,
        day: str,
        time: str,
        class_format: Optional[str] = None,
        instructor: Optional[str] = None,
    ) -> Optional[SlotPerformanceProfile]:
        """Get the performance profile for a slot.

        Args:
            location: Studio location.
            day: Day of the week.
            time: Slot start time ("HH:MM").
            class_format: Optional format to narrow the records to.
            instructor: Optional instructor to narrow the records to.

        Returns:
            The profile, or None when no record matches.
        """
        key: ProfileKey = (location, day, normalize_time(time), class_format, instructor)
        if key not in self._profile_cache:
            matching = [
                r
                for r in self._by_slot.get(key[:3], ())
                if (class_format is None or r.class_format == class_format)
                and (instructor is None or r.instructor == instructor)
            ]
            self._profile_cache[key] = self._build_profile(key, matching) if matching else None
        return self._profile_cache[key]

    def _build_profile(
        self, key: ProfileKey, records: Sequence[HistoricalClassRecord]
    ) -> SlotPerformanceProfile:
        weights = self.rules.score_weights
        location, day, time, class_format, instructor = key

        total = len(records)
        total_checked_in = sum(r.checked_in for r in records)
        total_participants = sum(r.participants for r in records)
        non_empty = [r for r in records if r.checked_in > 0]
        total_revenue = sum(r.revenue for r in records)
        total_late = sum(r.late_cancellations for r in records)
        total_non_paid = sum(r.non_paid_customers for r in records)
        total_tips = sum(r.tip for r in records)

        avg_attendance = total_checked_in / total
        revenue_per_class = total_revenue / total

        if total_participants > 0:
            fill_rate = total_checked_in / total_participants * 100
            late_cancel_rate = total_late / total_participants * 100
            non_paid_rate = total_non_paid / total_participants * 100
        else:
            fill_rate = late_cancel_rate = non_paid_rate = 0.0

        adjusted_score = (
            weights.attendance * avg_attendance
            + weights.revenue * (revenue_per_class / 100)
            + weights.late_cancel * ((100 - late_cancel_rate) / 100)
            + weights.fill_rate * (fill_rate / 100)
        )

        return SlotPerformanceProfile(
            location=location,
            day=day,
            start_time=time,
            class_format=class_format,
            instructor=instructor,
            total_classes=total,
            total_checked_in=total_checked_in,
            total_participants=total_participants,
            empty_classes=total - len(non_empty),
            avg_attendance=avg_attendance,
            avg_attendance_without_empty=(
                sum(r.checked_in for r in non_empty) / len(non_empty) if non_empty else 0.0
            ),
            total_revenue=total_revenue,
            revenue_per_class=revenue_per_class,
            avg_late_cancels=total_late / total,
            tips_per_class=total_tips / total,
            fill_rate=fill_rate,
            revenue_per_seat=total_revenue / total_checked_in if total_checked_in > 0 else 0.0,
            late_cancel_rate=late_cancel_rate,
            non_paid_rate=non_paid_rate,
            adjusted_score=adjusted_score,
            top_instructors=tuple(self._rank_instructors(records)),
            combinations=tuple(_combination_stats(records)),
        )

    def _rank_instructors(
        self, records: Sequence[HistoricalClassRecord]
    ) -> list[InstructorRanking]:
        weights = self.rules.score_weights
        grouped: dict[str, list[HistoricalClassRecord]] = defaultdict(list)
        for record in records:
            grouped[record.instructor].append(record)

        rankings = []
        for name, items in grouped.items():
            count = len(items)
            avg_checked_in = sum(r.checked_in for r in items) / count
            avg_revenue = sum(r.revenue for r in items) / count
            rankings.append(
                InstructorRanking(
                    instructor=name,
                    weighted_average=(
                        weights.instructor_attendance * avg_checked_in
                        + weights.instructor_revenue * (avg_revenue / 1000)
                    ),
                    class_count=count,
                )
            )
        rankings.sort(key=lambda r: (-r.weighted_average, r.instructor))
        return rankings[:TOP_INSTRUCTOR_COUNT]

    def combinations(self, location: str, day: str, time: str) -> list[CombinationStats]:
        """(format, instructor) averages at one slot, best attendance first."""
        profile = self.query(location, day, time)
        return list(profile.combinations) if profile else []

    def slot_average(
        self,
        class_format: str,
        location: str,
        day: str,
        time: str,
        instructor: Optional[str] = None,
    ) -> tuple[float, int]:
        """Mean checked-in attendance and sample size for a format at a slot."""
        profile = self.query(location, day, time, class_format, instructor)
        if profile is None:
            return 0.0, 0
        return profile.avg_attendance, profile.total_classes

    def best_instructor(
        self, class_format: str, location: str, day: str, time: str
    ) -> Optional[str]:
        """Instructor with the highest mean attendance for a format at a slot."""
        best = [
            c for c in self.combinations(location, day, time) if c.class_format == class_format
        ]
        return best[0].instructor if best else None

    def top_performing(
        self,
        location: Optional[str] = None,
        day: Optional[str] = None,
        min_average: float = 5.0,
    ) -> list[TopPerformer]:
        """Strongest (format, location, day, time) combinations.

        The instructor reported for each combination is the one with the
        most total check-ins there.

        Args:
            location: Restrict to one location.
            day: Restrict to one day.
            min_average: Minimum mean checked-in attendance to keep.

        Returns:
            Combinations sorted by mean attendance, descending.
        """
        if location is not None and day is not None:
            pool: Iterable[HistoricalClassRecord] = self._by_location_day.get((location, day), ())
        else:
            pool = (
                r
                for r in self._records
                if (location is None or r.location == location)
                and (day is None or r.day == day)
            )

        grouped: dict[tuple[str, str, str, str], list[HistoricalClassRecord]] = defaultdict(list)
        for record in pool:
            grouped[(record.class_format, record.location, record.day, record.start_time)].append(
                record
            )

        performers = []
        for (class_format, loc, d, time), items in grouped.items():
            count = len(items)
            avg_checked_in = round(sum(r.checked_in for r in items) / count, 1)
            if avg_checked_in < min_average:
                continue
            per_instructor: dict[str, int] = defaultdict(int)
            for record in items:
                per_instructor[record.instructor] += record.checked_in
            best = sorted(per_instructor.items(), key=lambda kv: (-kv[1], kv[0]))[0][0]
            performers.append(
                TopPerformer(
                    class_format=class_format,
                    location=loc,
                    day=d,
                    start_time=time,
                    instructor=best,
                    avg_checked_in=avg_checked_in,
                    avg_revenue=sum(r.revenue for r in items) / count,
                    frequency=count,
                )
            )

        performers.sort(
            key=lambda p: (-p.avg_checked_in, p.location, p.day, time_to_minutes(p.start_time), p.class_format)
        )
        return performers

    def format_stats(self, location: Optional[str] = None) -> list[FormatStats]:
        """Per-format averages, optionally for one location, best first."""
        pool = [r for r in self._records if location is None or r.location == location]
        return _format_stats(pool)

    def instructor_formats(
        self, instructor: str, min_checked_in: int = 0
    ) -> list[FormatStats]:
        """An instructor's formats ranked by their mean attendance.

        Only classes with at least ``min_checked_in`` attendees count.
        """
        pool = [
            r
            for r in self._records
            if r.instructor == instructor and r.checked_in >= min_checked_in
        ]
        return _format_stats(pool)

    def format_instances(
        self, class_format: str, min_checked_in: int = 0
    ) -> list[HistoricalClassRecord]:
        """Individual occurrences of a format, highest attendance first."""
        matches = [
            r
            for r in self._records
            if r.class_format == class_format and r.checked_in >= min_checked_in
        ]
        # Stable sort keeps input order among equal attendance
        return sorted(matches, key=lambda r: -r.checked_in)

    def slots_with_history(self, location: str, day: str) -> list[str]:
        times = {r.start_time for r in self._by_location_day.get((location, day), ())}
        return sorted(times, key=time_to_minutes)

    def instructors(self) -> list[str]:
        return sorted({r.instructor for r in self._records if r.instructor})

    def instructor_average(self, instructor: str) -> float:
        """Mean attendance across everything an instructor has taught."""
        items = [r for r in self._records if r.instructor == instructor]
        if not items:
            return 0.0
        return sum(r.checked_in for r in items) / len(items)

    def summary(self, limit: int = 10) -> dict[str, list[dict[str, object]]]:
        """Compact statistics for a remote inference request."""
        per_instructor: dict[str, list[HistoricalClassRecord]] = defaultdict(list)
        per_location: dict[str, list[HistoricalClassRecord]] = defaultdict(list)
        for record in self._records:
            per_instructor[record.instructor].append(record)
            per_location[record.location].append(record)

        instructors = sorted(
            (
                {
                    "instructor": name,
                    "avgCheckedIn": round(sum(r.checked_in for r in items) / len(items), 1),
                    "classes": len(items),
                }
                for name, items in per_instructor.items()
            ),
            key=lambda row: (-row["avgCheckedIn"], row["instructor"]),
        )
        locations = [
            {
                "location": loc,
                "avgCheckedIn": round(sum(r.checked_in for r in items) / len(items), 1),
                "avgRevenue": round(sum(r.revenue for r in items) / len(items)),
                "classes": len(items),
            }
            for loc, items in sorted(per_location.items())
        ]
        formats = [
            {
                "classFormat": s.class_format,
                "avgCheckedIn": round(s.avg_checked_in, 1),
                "avgRevenue": round(s.avg_revenue),
                "classes": s.frequency,
            }
            for s in self.format_stats()[:limit]
        ]
        return {
            "formats": formats,
            "instructors": instructors[:limit],
            "locations": locations,
        }


def _combination_stats(records: Sequence[HistoricalClassRecord]) -> list[CombinationStats]:
    grouped: dict[tuple[str, str], list[HistoricalClassRecord]] = defaultdict(list)
    for record in records:
        grouped[(record.class_format, record.instructor)].append(record)

    stats = [
        CombinationStats(
            class_format=class_format,
            instructor=instructor,
            avg_checked_in=sum(r.checked_in for r in items) / len(items),
            avg_revenue=sum(r.revenue for r in items) / len(items),
            count=len(items),
        )
        for (class_format, instructor), items in grouped.items()
    ]
    stats.sort(key=lambda c: (-c.avg_checked_in, -c.avg_revenue, c.class_format, c.instructor))
    return stats


def _format_stats(records: Sequence[HistoricalClassRecord]) -> list[FormatStats]:
    grouped: dict[str, list[HistoricalClassRecord]] = defaultdict(list)
    for record in records:
        grouped[record.class_format].append(record)

    stats = []
    for class_format, items in grouped.items():
        count = len(items)
        per_instructor: dict[str, list[int]] = defaultdict(list)
        for record in items:
            per_instructor[record.instructor].append(record.checked_in)
        best = sorted(
            per_instructor.items(), key=lambda kv: (-sum(kv[1]) / len(kv[1]), kv[0])
        )[0][0]
        stats.append(
            FormatStats(
                class_format=class_format,
                avg_checked_in=sum(r.checked_in for r in items) / count,
                avg_revenue=sum(r.revenue for r in items) / count,
                frequency=count,
                best_instructor=best,
            )
        )
    stats.sort(key=lambda s: (-s.avg_checked_in, s.class_format))
    return stats
