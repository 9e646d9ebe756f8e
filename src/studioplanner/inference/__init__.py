"""Remote inference collaborator and its payload shapes."""

from studioplanner.inference.client import (
    InferenceClient,
    InferenceKind,
    InferenceRequest,
    ProviderConfig,
    RemoteInferenceClient,
    extract_json,
    rules_text,
)
from studioplanner.inference.payloads import (
    assignment_to_payload,
    parse_recommendations,
    parse_schedule,
)

__all__ = [
    "InferenceClient",
    "InferenceKind",
    "InferenceRequest",
    "ProviderConfig",
    "RemoteInferenceClient",
    "assignment_to_payload",
    "extract_json",
    "parse_recommendations",
    "parse_schedule",
    "rules_text",
]
