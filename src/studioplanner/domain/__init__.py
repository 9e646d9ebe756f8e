"""Domain models and business rules for studio scheduling."""

from studioplanner.domain.ingest import load_history_csv, records_from_rows
from studioplanner.domain.models import (
    WEEKDAYS,
    CombinationStats,
    HistoricalClassRecord,
    InstructorLedger,
    InstructorRanking,
    Objective,
    OptimizationIteration,
    OptimizationSuggestion,
    Recommendation,
    ScheduledClassAssignment,
    ScheduleMetrics,
    SlotPerformanceProfile,
    SuggestionType,
    TrainerAssignmentSummary,
    WeeklyScheduleState,
)
from studioplanner.domain.policies import (
    ClassDurationPolicy,
    DefaultClassDurationPolicy,
    LocationFormatRule,
    ScoreWeights,
    StudioRules,
    TimeWindow,
)

__all__ = [
    # Models
    "WEEKDAYS",
    "CombinationStats",
    "HistoricalClassRecord",
    "InstructorLedger",
    "InstructorRanking",
    "Objective",
    "OptimizationIteration",
    "OptimizationSuggestion",
    "Recommendation",
    "ScheduledClassAssignment",
    "ScheduleMetrics",
    "SlotPerformanceProfile",
    "SuggestionType",
    "TrainerAssignmentSummary",
    "WeeklyScheduleState",
    # Ingestion
    "load_history_csv",
    "records_from_rows",
    # Policies
    "ClassDurationPolicy",
    "DefaultClassDurationPolicy",
    "LocationFormatRule",
    "ScoreWeights",
    "StudioRules",
    "TimeWindow",
]
