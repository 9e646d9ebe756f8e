"""Weekly class scheduling engine for multi-location fitness studios."""

from studioplanner.analytics import HistoricalPerformanceIndex
from studioplanner.domain import (
    HistoricalClassRecord,
    Objective,
    ScheduledClassAssignment,
    StudioRules,
    WeeklyScheduleState,
    load_history_csv,
)
from studioplanner.scheduling import (
    MultiStrategyOptimizer,
    RecommendationService,
    ScheduleGenerator,
    SuggestionEngine,
)
from studioplanner.validation import ConstraintValidator

__version__ = "0.1.0"

__all__ = [
    "ConstraintValidator",
    "HistoricalClassRecord",
    "HistoricalPerformanceIndex",
    "MultiStrategyOptimizer",
    "Objective",
    "RecommendationService",
    "ScheduleGenerator",
    "ScheduledClassAssignment",
    "StudioRules",
    "SuggestionEngine",
    "WeeklyScheduleState",
    "load_history_csv",
]
