import asyncio

import pytest
from fastapi.testclient import TestClient

import api.session as session
from api import routes
from api.app import SESSION_COOKIE, create_app
from examgen_cbt.models.result_model import ExamResult
from examgen_cbt.services.agent_client import AgentError
from examgen_cbt.services.history_log import HistoryLog


@pytest.fixture
def client(monkeypatch, tmp_path):
    monkeypatch.setattr(routes, "history", HistoryLog(str(tmp_path / "history.json")))
    with TestClient(create_app()) as c:
        yield c


def _session_state(client):
    return session.get_session(client.cookies.get(SESSION_COOKIE))


def _go_last(client):
    total = client.get("/api/exam-state").json()["total"]
    client.post("/api/navigate", json={"index": total - 1})


def test_exam_endpoints_require_loaded_exam(client):
    assert client.get("/api/exam-state").status_code == 404
    assert client.get("/api/history").json()["total_exams"] == 0


def test_sample_exam_flow(client, monkeypatch, result_payload):
    r = client.post("/api/start-sample-exam")
    assert r.json() == {"title": "Photosynthesis Basics", "total": 8, "ok": True}

    exam = client.get("/api/exam").json()
    assert exam["section_counts"] == {"mcq": 3, "fill_blank": 2, "true_false": 2, "short_answer": 1}
    assert [q["type"] for q in exam["questions"]][:4] == ["mcq", "mcq", "mcq", "fill_blank"]

    assert client.post("/api/save-answer", json={"answer": "b"}).json()["answered_count"] == 1
    q0 = client.get("/api/question/0").json()
    assert q0["saved_answer"] == "B"
    assert q0["options"]["B"] == "Chloroplast"

    assert client.post("/api/next").json()["index"] == 1
    assert client.post("/api/previous").json()["index"] == 0
    assert client.post("/api/navigate", json={"index": 100}).json()["index"] == 7

    state = client.get("/api/exam-state").json()
    assert state["phase"] == "in_progress"
    assert state["is_complete"] is True
    assert state["progress"] == 100.0
    assert 800 < state["remaining_seconds"] <= 900

    captured = {}

    def fake_grade(exam, answers):
        captured["answers"] = answers
        return ExamResult.model_validate(result_payload)

    monkeypatch.setattr(routes, "grade_exam", fake_grade)

    assert client.post("/api/submit-exam", json={"confirm": False}).status_code == 400
    r = client.post("/api/submit-exam", json={"confirm": True})
    assert r.status_code == 200
    assert r.json()["percentage"] == 80.0
    assert captured["answers"]["mcq"] == {"1": "B"}

    results = client.get("/api/results").json()
    assert results["band"] == "high"
    assert results["review"][0]["section"] == "mcq"

    history = client.get("/api/history").json()
    assert history["total_exams"] == 1
    assert history["entries"][0]["topic"] == "Biology: Photosynthesis"
    assert history["entries"][0]["totalMarks"] == 10

    assert client.post("/api/submit-exam", json={"confirm": True}).status_code == 409


def test_submit_before_last_question_is_rejected(client):
    client.post("/api/start-sample-exam")

    assert client.post("/api/submit-exam", json={"confirm": True}).status_code == 409


def test_grading_failure_allows_retry(client, monkeypatch, result_payload):
    client.post("/api/start-sample-exam")
    _go_last(client)

    def failing(exam, answers):
        raise AgentError("채점 실패")

    monkeypatch.setattr(routes, "grade_exam", failing)
    r = client.post("/api/submit-exam", json={"confirm": True})
    assert r.status_code == 502
    state = client.get("/api/exam-state").json()
    assert state["phase"] == "in_progress"
    assert state["last_error"] == "채점 실패"

    monkeypatch.setattr(routes, "grade_exam", lambda e, a: ExamResult.model_validate(result_payload))
    assert client.post("/api/submit-exam", json={"confirm": True}).status_code == 200


def test_invalid_answer_shape(client):
    client.post("/api/start-sample-exam")

    r = client.post("/api/save-answer", json={"answer": "Z"})

    assert r.status_code == 422


def test_generate_exam_validation_and_success(client, monkeypatch, exam_factory):
    r = client.post("/api/generate-exam", json={"topic": "", "content": "notes"})
    assert r.status_code == 400
    assert client.post("/api/generate-exam", json={"topic": "Bio", "content": "notes", "mcq_count": 25}).status_code == 422

    captured = {}

    def fake_generate(content, topic, options):
        captured.update(content=content, topic=topic, options=options)
        return exam_factory(mcq=3, fill_blank=2)

    monkeypatch.setattr(routes, "generate_exam", fake_generate)
    r = client.post("/api/generate-exam", json={"topic": " Bio ", "content": "notes", "mcq_count": 7})

    assert r.json() == {"title": "Test Exam", "total": 5, "ok": True}
    assert captured["options"].mcq_count == 7
    assert client.post("/api/generate-exam", json={"topic": "Bio", "content": "notes"}).status_code == 409


def test_generate_exam_agent_failure(client, monkeypatch):
    def failing(content, topic, options):
        raise AgentError("AI 서비스 오류")

    monkeypatch.setattr(routes, "generate_exam", failing)

    r = client.post("/api/generate-exam", json={"topic": "Bio", "content": "notes"})

    assert r.status_code == 502
    assert client.get("/api/exam-state").status_code == 404


def test_upload_text_content_is_used_for_generation(client, monkeypatch, exam_factory):
    r = client.post("/api/upload-content", files={"file": ("notes.txt", b"Mitosis has four phases.", "text/plain")})
    assert r.json()["chars"] == len("Mitosis has four phases.")

    captured = {}

    def fake_generate(content, topic, options):
        captured["content"] = content
        return exam_factory()

    monkeypatch.setattr(routes, "generate_exam", fake_generate)
    client.post("/api/generate-exam", json={"topic": "Cells"})

    assert captured["content"] == "Mitosis has four phases."


def test_upload_rejects_unknown_format(client):
    r = client.post("/api/upload-content", files={"file": ("notes.docx", b"PK..", "application/octet-stream")})

    assert r.status_code == 422


def test_retry_and_retake(client):
    client.post("/api/start-sample-exam")
    client.post("/api/save-answer", json={"answer": "A"})

    assert client.post("/api/retry-exam").json()["total"] == 8
    assert client.get("/api/exam-state").json()["answered_count"] == 0

    assert client.post("/api/retake").json()["phase"] == "configuring"
    assert client.get("/api/exam-state").status_code == 404


def test_agent_gateway_route(client, monkeypatch):
    monkeypatch.setattr(
        routes, "handle_agent_request",
        lambda message, agent_id: {"success": True, "response": {"result": {"echo": message}}},
    )

    r = client.post("/api/agent", json={"message": "hi", "agent_id": "x"})

    assert r.json() == {"success": True, "response": {"result": {"echo": "hi"}}}


def test_set_api_key_validation(client, monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "unset")

    assert client.post("/api/set-api-key", json={"api_key": "abc"}).status_code == 400
    assert client.post("/api/set-api-key", json={"api_key": "sk-test"}).json() == {"ok": True}


def test_session_status_reflects_upload_and_phase(client):
    assert client.get("/api/session-status").json()["phase"] == "configuring"

    client.post("/api/upload-content", files={"file": ("notes.md", b"# Cells", "text/markdown")})
    client.post("/api/start-sample-exam")
    status = client.get("/api/session-status").json()

    assert status["uploaded_file_name"] == "notes.md"
    assert status["content_chars"] == len("# Cells")
    assert status["phase"] == "in_progress"
    assert status["generating"] is False


def test_generate_is_rejected_while_generation_runs(client, monkeypatch):
    client.get("/api/session-status")
    _session_state(client)["generating"] = True
    calls = []
    monkeypatch.setattr(routes, "generate_exam", lambda *args: calls.append(args))

    r = client.post("/api/generate-exam", json={"topic": "Bio", "content": "notes"})

    assert r.status_code == 409
    assert calls == []


def test_unexpected_grading_error_leaves_submitting(client, monkeypatch, result_payload):
    client.post("/api/start-sample-exam")
    _go_last(client)

    def broken(exam, answers):
        raise RuntimeError("boom")

    monkeypatch.setattr(routes, "grade_exam", broken)
    with pytest.raises(RuntimeError):
        client.post("/api/submit-exam", json={"confirm": True})

    assert client.get("/api/exam-state").json()["phase"] == "in_progress"
    monkeypatch.setattr(routes, "grade_exam", lambda e, a: ExamResult.model_validate(result_payload))
    assert client.post("/api/submit-exam", json={"confirm": True}).status_code == 200


def test_retry_and_retake_cancel_timer_task(client):
    client.post("/api/start-sample-exam")
    state = _session_state(client)
    first = state["timer_task"]

    client.post("/api/retry-exam")
    second = state["timer_task"]
    client.get("/api/exam-state")

    assert first.cancelled()
    assert second is not first and not second.done()

    client.post("/api/retake")
    client.get("/api/session-status")

    assert state["timer_task"] is None
    assert second.cancelled()


def test_session_expiry_cancels_timer_task(client):
    client.post("/api/start-sample-exam")
    sid = client.cookies.get(SESSION_COOKIE)
    state = session.get_session(sid)
    task = state["timer_task"]
    session._timestamps[sid] = 0

    assert client.portal.call(session.cleanup_expired) == 1

    client.portal.call(asyncio.sleep, 0)
    assert state["timer_task"] is None
    assert task.cancelled()
    assert not state["exam_session"].timer.running
    assert session.get_session(sid) is None
