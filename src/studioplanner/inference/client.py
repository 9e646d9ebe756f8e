"""Remote inference collaborator.

The scheduling core talks to a hosted text-generation model through one
narrow contract: an ``InferenceRequest`` goes in, a decoded JSON object
comes out, or ``RemoteInferenceFailure`` is raised. Callers never see
transport details and never retry; a failure means "use local
statistics instead".
"""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

import requests

from studioplanner.domain.models import Objective
from studioplanner.domain.policies import StudioRules
from studioplanner.exceptions import RemoteInferenceFailure
from studioplanner.utils.logger import get_logger

logger = get_logger(__name__)

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)

OBJECTIVE_GOALS = {
    Objective.REVENUE: "Maximize total revenue: premium formats in peak hours with the "
    "highest-earning instructor pairings.",
    Objective.ATTENDANCE: "Maximize total attendance: popular formats and proven "
    "instructor combinations in every open slot.",
    Objective.BALANCED: "Balance revenue, attendance and instructor workload while "
    "complying with every rule.",
}


class InferenceKind(Enum):
    """What the remote model is asked to produce."""

    RECOMMENDATION = "recommendation"  # Expects a "recommendations" array
    OPTIMIZATION = "optimization"  # Expects an "optimizedSchedule" array


@dataclass(frozen=True)
class ProviderConfig:
    """Connection settings for a chat-completions style provider.

    Attributes:
        name: Provider family: "openai", "anthropic", "deepseek" or "groq".
        api_key: Secret key. An empty key means "not configured".
        endpoint: Full URL of the completion endpoint.
        model: Model identifier sent in the request body.
        timeout_seconds: Bound on the whole HTTP call.
        temperature: Sampling temperature (ignored by anthropic).
        max_tokens: Completion token limit.
    """

    name: str = "openai"
    api_key: str = ""
    endpoint: str = "https://api.openai.com/v1/chat/completions"
    model: str = "gpt-4"
    timeout_seconds: float = 20.0
    temperature: float = 0.7
    max_tokens: int = 4000

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key.strip()) and bool(self.endpoint)


@dataclass(frozen=True)
class InferenceRequest:
    """Typed request for the remote collaborator.

    Attributes:
        kind: Recommendation for one slot, or a full-week optimization.
        historical_summary: Aggregated statistics from the performance index.
        rules: The fixed rule list, one rule per entry.
        objective: Objective weighting for the answer.
        target: Slot being filled (location, day, time) for recommendations.
        schedule: Current schedule entries for optimizations.
    """

    kind: InferenceKind
    historical_summary: dict[str, Any]
    rules: tuple[str, ...]
    objective: Objective = Objective.BALANCED
    target: Optional[dict[str, str]] = None
    schedule: tuple[dict[str, Any], ...] = field(default_factory=tuple)

    def to_prompt(self) -> str:
        """Render the request as a single prompt string."""
        lines = [
            "You are a scheduling assistant for a multi-location fitness studio.",
            "",
            "SCHEDULING RULES (NON-NEGOTIABLE):",
        ]
        lines.extend(f"{i}. {rule}" for i, rule in enumerate(self.rules, start=1))
        lines.extend(
            [
                "",
                f"OBJECTIVE: {OBJECTIVE_GOALS[self.objective]}",
                "",
                "HISTORICAL PERFORMANCE SUMMARY:",
                json.dumps(self.historical_summary, sort_keys=True),
            ]
        )

        if self.kind is InferenceKind.RECOMMENDATION:
            target = self.target or {}
            lines.extend(
                [
                    "",
                    f"Recommend up to 5 classes for {target.get('location', '')} on "
                    f"{target.get('day', '')} at {target.get('time', '')}.",
                    'Respond with JSON only: {"recommendations": [{"classFormat": str, '
                    '"teacher": str, "reasoning": str, "confidence": float, '
                    '"expectedParticipants": int, "expectedRevenue": float, '
                    '"priority": int}]}',
                ]
            )
        else:
            lines.extend(
                [
                    "",
                    "CURRENT SCHEDULE:",
                    json.dumps(list(self.schedule), sort_keys=True),
                    "",
                    "Produce a complete weekly schedule.",
                    'Respond with JSON only: {"optimizedSchedule": [{"day": str, '
                    '"time": "HH:MM", "location": str, "classFormat": str, '
                    '"teacherFirstName": str, "teacherLastName": str, "duration": str, '
                    '"expectedParticipants": int, "expectedRevenue": float, '
                    '"isTopPerformer": bool}]}',
                ]
            )
        return "\n".join(lines)


def rules_text(rules: StudioRules) -> tuple[str, ...]:
    """Render the injected rule set as the fixed rule list sent to the model."""
    capacities = ", ".join(f"{loc} ({cap} studios)" for loc, cap in rules.capacities.items())
    sunday = ", ".join(f"{loc} ({n} classes)" for loc, n in rules.sunday_class_limits.items())
    location_rules = "; ".join(
        f"{loc}: no formats containing {', '.join(rule.restricted_keywords)}"
        for loc, rule in rules.location_rules.items()
        if rule.restricted_keywords
    )
    weekday = rules.weekday_restricted_window
    weekend = rules.weekend_restricted_window
    return (
        f"Studio capacity (parallel classes): {capacities}",
        f"Private classes only between {weekday.start} and {weekday.end} on weekdays "
        f"and between {weekend.start} and {weekend.end} at weekends",
        f"Location format rules: {location_rules}",
        f"Max {rules.standard_weekly_cap:g} hours/week per instructor, "
        f"max {rules.max_daily_hours:g} hours/day, max {rules.max_daily_classes} classes/day",
        f"Max {rules.max_consecutive_classes} consecutive classes per instructor",
        "An instructor works at only one location per day",
        "Never schedule hosted classes",
        "No recovery classes on " + ", ".join(rules.early_week_days),
        f"Sunday limits: {sunday}",
        f"Excluded instructors, never assign: {', '.join(rules.denylist)}",
        f"New instructors ({', '.join(rules.new_instructors)}): max "
        f"{rules.new_instructor_weekly_cap:g} hours/week and only "
        f"{', '.join(rules.new_instructor_formats)}",
        f"Priority instructors: {', '.join(rules.priority_instructors)}",
    )


def extract_json(text: str) -> dict[str, Any]:
    """Decode the JSON object in a model reply.

    Models often wrap JSON in a fenced code block or surround it with
    prose; the first fenced block wins, then the outermost braces.

    Raises:
        RemoteInferenceFailure: If no JSON object can be decoded.
    """
    if not text or not text.strip():
        raise RemoteInferenceFailure("Empty response from inference provider")

    match = _FENCED_JSON.search(text)
    candidate = match.group(1) if match else text
    if not match:
        start, end = text.find("{"), text.rfind("}")
        if start != -1 and end > start:
            candidate = text[start : end + 1]

    try:
        decoded = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise RemoteInferenceFailure(f"Malformed JSON in inference response: {exc}") from exc
    if not isinstance(decoded, dict):
        raise RemoteInferenceFailure("Inference response is not a JSON object")
    return decoded


class InferenceClient(ABC):
    """Abstract base class for inference collaborators."""

    @abstractmethod
    def complete(self, request: InferenceRequest) -> dict[str, Any]:
        """Answer a request with a decoded JSON object.

        Raises:
            RemoteInferenceFailure: For any failure to produce an answer.
        """
        pass


class RemoteInferenceClient(InferenceClient):
    """Inference client backed by a hosted chat-completions API.

    Makes exactly one HTTP request per call with a bounded timeout.

    Example:
        >>> client = RemoteInferenceClient(ProviderConfig(api_key="sk-..."))
        >>> payload = client.complete(request)
    """

    def __init__(self, config: ProviderConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()

    def _build_call(self, prompt: str) -> tuple[dict[str, str], dict[str, Any]]:
        name = self.config.name.lower()
        headers = {"Content-Type": "application/json"}
        body: dict[str, Any] = {
            "model": self.config.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": self.config.max_tokens,
        }
        if name == "anthropic":
            headers["x-api-key"] = self.config.api_key
            headers["anthropic-version"] = "2023-06-01"
        elif name in ("openai", "deepseek", "groq"):
            headers["Authorization"] = f"Bearer {self.config.api_key}"
            body["temperature"] = self.config.temperature
        else:
            raise RemoteInferenceFailure(f"Unsupported inference provider: {self.config.name}")
        return headers, body

    def complete(self, request: InferenceRequest) -> dict[str, Any]:
        if not self.config.is_configured:
            raise RemoteInferenceFailure("Inference provider is not configured")

        headers, body = self._build_call(request.to_prompt())
        try:
            response = self.session.post(
                self.config.endpoint,
                headers=headers,
                json=body,
                timeout=self.config.timeout_seconds,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as exc:
            raise RemoteInferenceFailure(f"Inference request failed: {exc}") from exc
        except ValueError as exc:
            raise RemoteInferenceFailure(f"Inference response is not JSON: {exc}") from exc

        text = self._message_text(data)
        logger.debug("Inference provider %s answered %d chars", self.config.name, len(text))
        return extract_json(text)

    def _message_text(self, data: Any) -> str:
        try:
            if self.config.name.lower() == "anthropic":
                return str(data["content"][0]["text"])
            return str(data["choices"][0]["message"]["content"])
        except (KeyError, IndexError, TypeError) as exc:
            raise RemoteInferenceFailure(f"Unexpected inference response shape: {exc}") from exc
