"""Scheduling engine for generating and improving weekly class schedules."""

from studioplanner.scheduling.cpsat_solver import (
    CPSATSlotSelector,
    SelectionResult,
    SolverConfig,
)
from studioplanner.scheduling.generator import (
    GenerationConfig,
    GenerationResult,
    ScheduleGenerator,
    SlotCandidate,
    SolverType,
)
from studioplanner.scheduling.optimizer import STRATEGIES, MultiStrategyOptimizer, Strategy
from studioplanner.scheduling.recommender import RecommendationService
from studioplanner.scheduling.suggestions import SuggestionEngine

__all__ = [
    # Generation
    "ScheduleGenerator",
    "GenerationConfig",
    "GenerationResult",
    "SlotCandidate",
    "SolverType",
    # CP-SAT selection
    "CPSATSlotSelector",
    "SelectionResult",
    "SolverConfig",
    # Optimization
    "MultiStrategyOptimizer",
    "Strategy",
    "STRATEGIES",
    # Slot recommendations
    "RecommendationService",
    # Post-hoc suggestions
    "SuggestionEngine",
]
