"""Ranked class recommendations for a single open slot."""

from __future__ import annotations

from typing import Optional

from studioplanner.analytics.performance_index import FormatStats, HistoricalPerformanceIndex
from studioplanner.domain.models import Recommendation, normalize_time
from studioplanner.domain.policies import StudioRules
from studioplanner.exceptions import RemoteInferenceFailure
from studioplanner.inference.client import (
    InferenceClient,
    InferenceKind,
    InferenceRequest,
    RemoteInferenceClient,
    rules_text,
)
from studioplanner.inference.payloads import parse_recommendations
from studioplanner.scheduling.generator import History
from studioplanner.utils.logger import get_logger

logger = get_logger(__name__)

MAX_RECOMMENDATIONS = 5


class RecommendationService:
    """Suggests (format, instructor) pairs for one slot.

    Recommendations come from the remote collaborator when one is
    configured and the slot has history, and from local statistics
    otherwise. ``recommend`` never raises for remote failures.

    Example:
        >>> service = RecommendationService(rules)
        >>> for rec in service.recommend(records, "Kenkere House", "Monday", "09:00"):
        ...     print(rec.class_format, rec.instructor, rec.priority)
    """

    def __init__(
        self,
        rules: Optional[StudioRules] = None,
        client: Optional[InferenceClient] = None,
    ):
        self.rules = rules or StudioRules()
        self.client = client

    def _client_ready(self) -> bool:
        if self.client is None:
            return False
        if isinstance(self.client, RemoteInferenceClient):
            return self.client.config.is_configured
        return True

    def recommend(
        self,
        history: History,
        location: str,
        day: str,
        time: str,
    ) -> list[Recommendation]:
        """Recommend up to five classes for a slot, best first.

        Args:
            history: Historical records, or an index built over them.
            location: Studio location.
            day: Day of the week.
            time: Slot start time.

        Returns:
            Ranked recommendations. Empty when there is no usable history.
        """
        if isinstance(history, HistoricalPerformanceIndex):
            index = history
        else:
            index = HistoricalPerformanceIndex(history, self.rules)
        time = normalize_time(time) or time
        slot_records = index.slot_records(location, day, time)

        if self._client_ready() and slot_records:
            try:
                remote = self._recommend_remote(index, location, day, time)
            except RemoteInferenceFailure as exc:
                logger.warning(
                    "Remote recommendations unavailable for %s %s %s, using local statistics: %s",
                    location,
                    day,
                    time,
                    exc,
                )
            else:
                remote = [
                    r for r in remote if self.rules.is_format_allowed(r.class_format, location)
                ]
                if remote:
                    return remote[:MAX_RECOMMENDATIONS]
                logger.warning("Remote recommendations were empty, using local statistics")

        if slot_records:
            stats = _slot_format_stats(index, location, day, time)
        else:
            stats = index.format_stats(location) or index.format_stats()
        return self._from_stats(stats, location, time)

    def _recommend_remote(
        self,
        index: HistoricalPerformanceIndex,
        location: str,
        day: str,
        time: str,
    ) -> list[Recommendation]:
        request = InferenceRequest(
            kind=InferenceKind.RECOMMENDATION,
            historical_summary={
                "slot": [
                    {
                        "classFormat": c.class_format,
                        "teacher": c.instructor,
                        "avgCheckedIn": round(c.avg_checked_in, 1),
                        "avgRevenue": round(c.avg_revenue),
                        "classes": c.count,
                    }
                    for c in index.combinations(location, day, time)
                ],
                **index.summary(),
            },
            rules=rules_text(self.rules),
            target={"location": location, "day": day, "time": time},
        )
        payload = self.client.complete(request)
        return parse_recommendations(payload, self.rules, location, time)

    def _from_stats(
        self, stats: list[FormatStats], location: str, time: str
    ) -> list[Recommendation]:
        recommendations = []
        for stat in stats:
            if len(recommendations) >= MAX_RECOMMENDATIONS:
                break
            if "hosted" in stat.class_format.lower():
                continue
            if not self.rules.is_format_allowed(stat.class_format, location):
                continue
            if not stat.best_instructor or self.rules.is_denylisted(stat.best_instructor):
                continue
            recommendations.append(
                Recommendation(
                    class_format=stat.class_format,
                    instructor=stat.best_instructor,
                    confidence=min(0.9, stat.frequency / 10),
                    expected_participants=round(stat.avg_checked_in),
                    expected_revenue=round(stat.avg_revenue),
                    priority=MAX_RECOMMENDATIONS - len(recommendations),
                    rationale=(
                        f"Historical average of {stat.avg_checked_in:.1f} check-ins "
                        f"over {stat.frequency} classes"
                    ),
                    location=location,
                    start_time=time,
                )
            )
        return recommendations


def _slot_format_stats(
    index: HistoricalPerformanceIndex, location: str, day: str, time: str
) -> list[FormatStats]:
    """Per-format stats at one slot, each with its best instructor there."""
    by_format: dict[str, list] = {}
    for combo in index.combinations(location, day, time):
        by_format.setdefault(combo.class_format, []).append(combo)

    stats = []
    for class_format, combos in by_format.items():
        count = sum(c.count for c in combos)
        best = max(combos, key=lambda c: (c.avg_checked_in, c.avg_revenue, -c.count))
        stats.append(
            FormatStats(
                class_format=class_format,
                avg_checked_in=sum(c.avg_checked_in * c.count for c in combos) / count,
                avg_revenue=sum(c.avg_revenue * c.count for c in combos) / count,
                frequency=count,
                best_instructor=best.instructor,
            )
        )
    stats.sort(key=lambda s: (-s.avg_checked_in, s.class_format))
    return stats
