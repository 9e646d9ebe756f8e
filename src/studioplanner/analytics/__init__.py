"""Historical performance analytics."""

from studioplanner.analytics.performance_index import (
    FormatStats,
    HistoricalPerformanceIndex,
    TopPerformer,
)

__all__ = [
    "FormatStats",
    "HistoricalPerformanceIndex",
    "TopPerformer",
]
