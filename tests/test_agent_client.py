import json

import pytest
import requests

import config
from examgen_cbt.services import agent_client
from examgen_cbt.services.agent_client import (
    AgentError,
    GenerationOptions,
    generate_exam,
    grade_exam,
    unwrap_envelope,
)


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


@pytest.fixture
def fake_post(monkeypatch):
    calls = []
    responses = []

    def _post(url, json=None, headers=None, timeout=None):
        calls.append({"url": url, "json": json, "timeout": timeout})
        return responses.pop(0)

    monkeypatch.setattr(agent_client.requests, "post", _post)
    return calls, responses


EXAM_DOC = {
    "exam_title": "Cells",
    "time_suggested_minutes": 20,
    "sections": {
        "mcq": {"section_title": "MC", "questions": [{"question_number": 1, "question_text": "q", "options": {"A": "x"}}]},
    },
}


def test_generate_exam_uses_result_field(fake_post):
    calls, responses = fake_post
    responses.append(FakeResponse({"success": True, "response": {"result": EXAM_DOC}}))

    exam = generate_exam("Cells divide by mitosis.", "Cells", GenerationOptions(mcq_count=12, difficulty="Hard"))

    assert exam.exam_title == "Cells"
    assert calls[0]["json"]["agent_id"] == config.GENERATION_AGENT_ID
    message = calls[0]["json"]["message"]
    assert "Cells divide by mitosis." in message
    assert "Multiple choice questions: 12" in message
    assert "Difficulty: Hard" in message


def test_response_without_result_is_used_directly(fake_post):
    _, responses = fake_post
    responses.append(FakeResponse({"success": True, "response": EXAM_DOC}))

    assert generate_exam("notes", "Cells").time_suggested_minutes == 20


def test_string_payload_is_parsed():
    payload = unwrap_envelope({"success": True, "response": {"result": "```json\n{\"a\": 1}\n```"}})

    assert payload == {"a": 1}


@pytest.mark.parametrize("topic, content", [("", "notes"), ("Cells", "   ")])
def test_input_validation_makes_no_network_call(fake_post, topic, content):
    calls, _ = fake_post

    with pytest.raises(ValueError):
        generate_exam(content, topic)
    assert calls == []


@pytest.mark.parametrize(
    "payload",
    [
        {"success": False, "response": EXAM_DOC},
        {"success": True},
        {"success": True, "response": {"result": "not json at all"}},
        ["unexpected"],
    ],
)
def test_bad_envelope_raises_agent_error(fake_post, payload):
    _, responses = fake_post
    responses.append(FakeResponse(payload))

    with pytest.raises(AgentError):
        generate_exam("notes", "Cells")


def test_malformed_exam_raises_agent_error(fake_post):
    _, responses = fake_post
    responses.append(FakeResponse({"success": True, "response": {"result": {"exam_title": "x", "sections": {}}}}))

    with pytest.raises(AgentError):
        generate_exam("notes", "Cells")


def test_transport_error_raises_agent_error(monkeypatch):
    def boom(*args, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(agent_client.requests, "post", boom)

    with pytest.raises(AgentError):
        generate_exam("notes", "Cells")


def test_http_error_raises_agent_error(fake_post):
    _, responses = fake_post
    responses.append(FakeResponse({}, status_code=500))

    with pytest.raises(AgentError):
        generate_exam("notes", "Cells")


def test_grade_exam_sends_exam_and_answers(fake_post, exam_factory, result_payload):
    calls, responses = fake_post
    responses.append(FakeResponse({"success": True, "response": {"result": result_payload}}))
    answers = {"mcq": {"1": "A"}, "fill_blank": {}}

    result = grade_exam(exam_factory(), answers)

    assert result.score_summary.total_marks_obtained == 8
    assert calls[0]["json"]["agent_id"] == config.GRADING_AGENT_ID
    message = calls[0]["json"]["message"]
    assert json.dumps(answers) in message
    assert '"exam_title": "Test Exam"' in message


def test_grade_exam_without_score_summary_is_malformed(fake_post):
    _, responses = fake_post
    responses.append(FakeResponse({"success": True, "response": {"result": {"statistics": {}}}}))

    with pytest.raises(AgentError):
        grade_exam({"exam_title": "x"}, {})


def test_generation_options_bounds():
    with pytest.raises(ValueError):
        GenerationOptions(mcq_count=25)
