"""Exception types raised by the scheduling core."""

from __future__ import annotations

from typing import Optional


class StudioPlannerError(Exception):
    """Base class for all studioplanner errors."""


class ScheduleValidationError(StudioPlannerError):
    """Raised when a candidate assignment violates a hard constraint.

    Hard errors are never overridable: capacity exceeded, double-booking,
    cross-location assignment, denylisted instructor and so on.
    """

    def __init__(self, message: str, violation: Optional[object] = None):
        super().__init__(message)
        self.violation = violation


class PolicyWarning(StudioPlannerError):
    """Raised when a soft constraint is hit and the caller has not confirmed it."""


class RemoteInferenceFailure(StudioPlannerError):
    """Raised when the remote inference collaborator cannot produce a usable answer.

    Covers network errors, timeouts, non-2xx responses and payloads that do
    not decode into the expected JSON shape. Always recoverable.
    """


class ConfigurationError(StudioPlannerError):
    """Raised when a rules mapping cannot be turned into StudioRules."""
