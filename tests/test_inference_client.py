"""Tests for the remote inference client and payload translation."""

import json

import pytest
import requests

from studioplanner.domain.models import Objective
from studioplanner.exceptions import RemoteInferenceFailure
from studioplanner.inference.client import (
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

from conftest import KENKERE, SUPREME, make_assignment


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, data, status_code=200):
        self.data = data
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def json(self):
        if isinstance(self.data, Exception):
            raise self.data
        return self.data


class FakeSession:
    """Records posted calls and returns a canned response."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, headers=None, json=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


def _openai_reply(content):
    return {"choices": [{"message": {"content": content}}]}


@pytest.fixture
def request_(rules):
    return InferenceRequest(
        kind=InferenceKind.RECOMMENDATION,
        historical_summary={"topInstructors": []},
        rules=rules_text(rules),
        target={"location": KENKERE, "day": "Monday", "time": "09:00"},
    )


class TestExtractJson:
    """Tests for pulling JSON out of model replies."""

    def test_plain_object(self):
        """A bare JSON object decodes directly."""
        assert extract_json('{"recommendations": []}') == {"recommendations": []}

    def test_fenced_block(self):
        """A fenced json block wins over surrounding prose."""
        text = 'Here you go:\n```json\n{"a": 1}\n```\nThanks {not json}'
        assert extract_json(text) == {"a": 1}

    def test_prose_around_braces(self):
        """The outermost braces are decoded when there is no fence."""
        assert extract_json('Sure! {"a": {"b": 2}} Hope that helps.') == {"a": {"b": 2}}

    @pytest.mark.parametrize("text", ["", "   ", "no json here", "{broken", "[1, 2]"])
    def test_unusable_text(self, text):
        """Empty, malformed or non-object replies are failures."""
        with pytest.raises(RemoteInferenceFailure):
            extract_json(text)


class TestRemoteInferenceClient:
    """Tests for the HTTP transport."""

    def test_unconfigured_raises_without_request(self, request_):
        """No API key means no HTTP call."""
        session = FakeSession()
        client = RemoteInferenceClient(ProviderConfig(api_key="  "), session=session)

        with pytest.raises(RemoteInferenceFailure, match="not configured"):
            client.complete(request_)
        assert session.calls == []

    def test_openai_call(self, request_):
        """OpenAI-style providers use a bearer token and a choices reply."""
        session = FakeSession(FakeResponse(_openai_reply('{"recommendations": []}')))
        config = ProviderConfig(api_key="sk-test", timeout_seconds=7.5)

        payload = RemoteInferenceClient(config, session=session).complete(request_)

        assert payload == {"recommendations": []}
        call = session.calls[0]
        assert call["url"] == config.endpoint
        assert call["headers"]["Authorization"] == "Bearer sk-test"
        assert call["timeout"] == 7.5
        assert call["json"]["model"] == "gpt-4"
        assert call["json"]["temperature"] == 0.7
        assert "Kenkere House" in call["json"]["messages"][0]["content"]

    def test_anthropic_call(self, request_):
        """Anthropic uses its own headers and content blocks."""
        session = FakeSession(FakeResponse({"content": [{"text": '{"ok": true}'}]}))
        config = ProviderConfig(
            name="anthropic",
            api_key="key",
            endpoint="https://api.anthropic.com/v1/messages",
            model="claude-3-haiku-20240307",
        )

        payload = RemoteInferenceClient(config, session=session).complete(request_)

        assert payload == {"ok": True}
        headers = session.calls[0]["headers"]
        assert headers["x-api-key"] == "key"
        assert "anthropic-version" in headers
        assert "Authorization" not in headers
        assert "temperature" not in session.calls[0]["json"]

    def test_timeout_is_failure(self, request_):
        """A transport timeout surfaces as RemoteInferenceFailure."""
        session = FakeSession(error=requests.Timeout("read timed out"))
        client = RemoteInferenceClient(ProviderConfig(api_key="k"), session=session)
        with pytest.raises(RemoteInferenceFailure, match="request failed"):
            client.complete(request_)

    def test_http_error_is_failure(self, request_):
        """Non-success status codes surface as RemoteInferenceFailure."""
        session = FakeSession(FakeResponse({}, status_code=503))
        client = RemoteInferenceClient(ProviderConfig(api_key="k"), session=session)
        with pytest.raises(RemoteInferenceFailure):
            client.complete(request_)

    def test_non_json_body_is_failure(self, request_):
        """A body that is not JSON surfaces as RemoteInferenceFailure."""
        session = FakeSession(FakeResponse(ValueError("Expecting value")))
        client = RemoteInferenceClient(ProviderConfig(api_key="k"), session=session)
        with pytest.raises(RemoteInferenceFailure, match="not JSON"):
            client.complete(request_)

    def test_unexpected_shape_is_failure(self, request_):
        """A reply without the expected fields surfaces as RemoteInferenceFailure."""
        session = FakeSession(FakeResponse({"choices": []}))
        client = RemoteInferenceClient(ProviderConfig(api_key="k"), session=session)
        with pytest.raises(RemoteInferenceFailure, match="shape"):
            client.complete(request_)

    def test_unsupported_provider(self, request_):
        """Unknown provider families are rejected before any call."""
        session = FakeSession()
        client = RemoteInferenceClient(ProviderConfig(name="mystery", api_key="k"), session=session)
        with pytest.raises(RemoteInferenceFailure, match="Unsupported"):
            client.complete(request_)
        assert session.calls == []

    def test_default_session(self):
        """A requests session is created when none is given."""
        client = RemoteInferenceClient(ProviderConfig())
        assert isinstance(client.session, requests.Session)


class TestPrompt:
    """Tests for prompt rendering."""

    def test_rules_are_numbered(self, request_, rules):
        """Every rule appears once, numbered from one."""
        prompt = request_.to_prompt()
        for i, rule in enumerate(rules_text(rules), start=1):
            assert f"{i}. {rule}" in prompt

    def test_rules_reflect_injected_values(self, rules):
        """Rule text follows the injected rule set."""
        text = "\n".join(rules_text(rules))
        assert "Nishanth" in text
        assert "Kenkere House (2 studios)" in text
        assert "12:00 and 17:00" in text

    def test_optimization_prompt_includes_schedule(self, rules):
        """Optimization prompts carry the current schedule and objective."""
        request = InferenceRequest(
            kind=InferenceKind.OPTIMIZATION,
            historical_summary={},
            rules=rules_text(rules),
            objective=Objective.REVENUE,
            schedule=(assignment_to_payload(make_assignment()),),
        )
        prompt = request.to_prompt()
        assert "optimizedSchedule" in prompt
        assert "Maximize total revenue" in prompt
        assert json.dumps([assignment_to_payload(make_assignment())], sort_keys=True) in prompt


class TestPayloads:
    """Tests for translating remote payloads."""

    def test_assignment_payload_splits_name(self):
        """Instructor names are split into first and last names."""
        payload = assignment_to_payload(make_assignment(instructor="Richard D'Costa", duration=0.75))
        assert payload["teacherFirstName"] == "Richard"
        assert payload["teacherLastName"] == "D'Costa"
        assert payload["duration"] == "0.75"

    def test_parse_recommendations_clamps_and_sorts(self, rules):
        """Priority and confidence are clamped, then sorted."""
        recs = parse_recommendations(
            {
                "recommendations": [
                    {"classFormat": "Studio FIT", "teacher": "Pranjali Jain", "priority": -2},
                    {"classFormat": "Studio Mat 57", "teacher": "Reshma Sharma", "priority": "7", "confidence": -1},
                    {"classFormat": "", "teacher": "Anisha Shah"},
                    "not an object",
                ]
            },
            rules,
            KENKERE,
            "09:00",
        )

        assert [r.class_format for r in recs] == ["Studio Mat 57", "Studio FIT"]
        assert recs[0].priority == 5
        assert recs[0].confidence == 0.0
        assert recs[1].priority == 1
        assert recs[1].confidence == 0.5

    def test_parse_recommendations_requires_array(self, rules):
        """A payload without the array is a failure."""
        with pytest.raises(RemoteInferenceFailure):
            parse_recommendations({"answer": "Barre"}, rules, KENKERE, "09:00")

    def test_parse_schedule(self, rules):
        """Schedule entries become assignments; unusable ones are dropped."""
        assignments = parse_schedule(
            {
                "optimizedSchedule": [
                    {
                        "day": "Friday",
                        "time": "7:30",
                        "location": KENKERE,
                        "classFormat": "Studio Recovery",
                        "teacherFirstName": "Richard",
                        "teacherLastName": "D'Costa",
                        "expectedParticipants": 7,
                    },
                    {"day": "Friday", "time": "", "location": KENKERE, "classFormat": "Studio FIT", "teacher": "Pranjali Jain"},
                    {"day": "Friday", "time": "08:00", "location": KENKERE, "classFormat": "Studio FIT", "teacher": "Saniya Rao"},
                    {"day": "Friday", "time": "09:00", "location": KENKERE, "classFormat": "Studio Hosted Class", "teacher": "Anisha Shah"},
                ]
            },
            rules,
            id_prefix="balanced-schedule",
        )

        assert len(assignments) == 1
        only = assignments[0]
        assert only.id == "balanced-schedule-0"
        assert only.start_time == "07:30"
        assert only.instructor == "Richard D'Costa"
        assert only.duration == 0.5
        assert only.participants == 7
        assert only.is_top_performer

    def test_parse_recommendations_non_finite_numbers(self, rules):
        """NaN and infinite numbers fall back to defaults instead of raising."""
        recs = parse_recommendations(
            {
                "recommendations": [
                    {
                        "classFormat": "Studio FIT",
                        "teacher": "Pranjali Jain",
                        "expectedParticipants": float("nan"),
                        "expectedRevenue": "inf",
                        "priority": float("-inf"),
                        "confidence": "nan",
                    },
                ]
            },
            rules,
            KENKERE,
            "09:00",
        )

        assert len(recs) == 1
        assert recs[0].expected_participants == 0
        assert recs[0].expected_revenue == 0
        assert recs[0].priority == 3
        assert recs[0].confidence == 0.5

    def test_parse_schedule_non_finite_numbers(self, rules):
        """Non-finite participant counts are read as zero."""
        assignments = parse_schedule(
            {
                "optimizedSchedule": [
                    {
                        "day": "Friday",
                        "time": "18:00",
                        "location": KENKERE,
                        "classFormat": "Studio FIT",
                        "teacher": "Pranjali Jain",
                        "expectedParticipants": "nan",
                        "expectedRevenue": float("inf"),
                        "duration": float("nan"),
                    },
                ]
            },
            rules,
        )

        assert len(assignments) == 1
        assert assignments[0].participants == 0
        assert assignments[0].revenue == 0.0
        assert assignments[0].duration == rules.class_duration("Studio FIT")

    @pytest.mark.parametrize(
        "entry",
        [
            {"day": "Funday"},
            {"location": "Nowhere Studio"},
            {"duration": "-3"},
            {"duration": 9},
            {"location": SUPREME, "classFormat": "Studio HIIT"},
            {"time": "13:00"},
            {"classFormat": "Studio Recovery", "day": "Monday"},
            {"teacher": "Karan Bhatia", "classFormat": "Studio HIIT"},
        ],
    )
    def test_parse_schedule_drops_rule_breaking_entries(self, rules, entry):
        """Entries the generator would never place are dropped."""
        item = {
            "day": "Friday",
            "time": "18:00",
            "location": KENKERE,
            "classFormat": "Studio FIT",
            "teacher": "Pranjali Jain",
        }
        item.update(entry)

        assert parse_schedule({"optimizedSchedule": [item]}, rules) == []
