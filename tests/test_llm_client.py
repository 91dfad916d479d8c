"""
Vertex client and reply service tests, without network access.
"""
import asyncio
import json

import pytest

from voice_interview.config import REPLY_TEMPERATURE
from voice_interview.infrastructure.llm import VertexAPIError, VertexRestClient, extract_json_object
from voice_interview.interview.models import InterviewProblem
from voice_interview.interview.scheduler import Intent
from voice_interview.interview.schemas import ConversationContext
from voice_interview.interview.services import VertexReplyService
from voice_interview.interview.testing import MockLLMClient, create_test_results, mock_evaluation_payload


class FakeResponse:

    def __init__(self, status_code, payload=None):
        self.status_code = status_code
        self._payload = payload or {}
        self.text = json.dumps(self._payload)

    def json(self):
        return self._payload


class FakeSession:

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, headers=None, json=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "json": json})
        return self.responses.pop(0)


def candidate_payload(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def make_client(responses, monkeypatch):
    session = FakeSession(responses)
    client = VertexRestClient(project="demo-project", session=session)
    tokens = []

    def fake_token(force_refresh=False):
        tokens.append(force_refresh)
        return "token-refreshed" if force_refresh else "token"

    monkeypatch.setattr(client, "_access_token", fake_token)
    return client, session, tokens


def test_generate_content(monkeypatch):
    client, session, _ = make_client([FakeResponse(200, candidate_payload("What is the complexity?"))], monkeypatch)

    text = client.generate_content("prompt", temperature=0.4)

    assert text == "What is the complexity?"
    body = session.calls[0]["json"]
    assert body["generationConfig"]["temperature"] == 0.4
    assert body["contents"][0]["parts"][0]["text"] == "prompt"
    assert session.calls[0]["url"].endswith(":generateContent")
    assert "projects/demo-project" in session.calls[0]["url"]


def test_rejected_token_is_refreshed_once(monkeypatch):
    client, session, tokens = make_client(
        [FakeResponse(401, {"error": "expired"}), FakeResponse(200, candidate_payload("Hello"))],
        monkeypatch,
    )

    assert client.generate_content("prompt") == "Hello"
    assert tokens == [False, True]
    assert session.calls[1]["headers"]["Authorization"] == "Bearer token-refreshed"


def test_error_status_raises(monkeypatch):
    client, _, _ = make_client([FakeResponse(500, {"error": "boom"})], monkeypatch)

    with pytest.raises(VertexAPIError) as excinfo:
        client.generate_content("prompt")
    assert excinfo.value.status_code == 500


def test_generate_json_requests_json_output(monkeypatch):
    payload = candidate_payload("```json\n" + json.dumps(mock_evaluation_payload()) + "\n```")
    client, session, _ = make_client([FakeResponse(200, payload)], monkeypatch)

    result = client.generate_json("Evaluate")

    assert result["totalScore"] == 8.0
    assert session.calls[0]["json"]["generationConfig"]["responseMimeType"] == "application/json"


def test_extract_text_handles_blocked_answers():
    assert VertexRestClient.extract_text({"promptFeedback": {"blockReason": "SAFETY"}}) == ""
    assert VertexRestClient.extract_text({"candidates": [{"content": {}}]}) == ""
    two_parts = {"candidates": [{"content": {"parts": [{"text": "Hello "}, {"text": "there"}]}}]}
    assert VertexRestClient.extract_text(two_parts) == "Hello there"


def test_extract_json_object():
    assert extract_json_object('{"a": 1}') == {"a": 1}
    assert extract_json_object('Sure! {"a": {"b": 2}} Done.') == {"a": {"b": 2}}
    with pytest.raises(ValueError):
        extract_json_object("no json")
    with pytest.raises(ValueError):
        extract_json_object("[1, 2]")


def make_context(intent):
    return ConversationContext(
        intent=intent,
        problem=InterviewProblem("Two Sum"),
        history=[],
        latest_input="I would use a hash map",
    )


def test_reply_service_uses_reply_prompt():
    llm = MockLLMClient(["Interviewer: Why a hash map?"])
    service = VertexReplyService(llm)

    text = asyncio.run(service.generate_reply(make_context(Intent.PROBING)))

    assert text == "Interviewer: Why a hash map?"
    request = llm.request_history[0]
    assert request["temperature"] == REPLY_TEMPERATURE
    assert "I would use a hash map" in request["prompt"]


def test_reply_service_evaluation():
    llm = MockLLMClient([json.dumps(mock_evaluation_payload())])
    service = VertexReplyService(llm)
    context = make_context(Intent.FINAL_EVALUATION)
    results = create_test_results(passed=1, failed=1)

    evaluation = asyncio.run(service.generate_evaluation(context, "def f(): ...", results))

    assert evaluation["grade"] == "good"
    assert context.code == "def f(): ..."
    assert "50%" in llm.request_history[0]["prompt"]
