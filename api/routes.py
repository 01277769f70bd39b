"""
api/routes.py — FastAPI 엔드포인트
"""

import asyncio
import logging
import os
from typing import Any

from fastapi import APIRouter, File, HTTPException, Request, UploadFile
from pydantic import BaseModel, ValidationError

import config
import api.session as session
from api.sample_exam import SAMPLE_EXAM, SAMPLE_TOPIC

from examgen_cbt.models.exam_model import FlattenedQuestion
from examgen_cbt.models.session_state import SessionPhase
from examgen_cbt.services.agent_client import AgentError, GenerationOptions, generate_exam, grade_exam
from examgen_cbt.services.agent_gateway import handle_agent_request
from examgen_cbt.services.content_loader import extract_text
from examgen_cbt.services.exam_service import build_history_entry, performance_band, summarize_history
from examgen_cbt.services.exam_session import ExamSession, SessionStateError
from examgen_cbt.services.history_log import HistoryLog
from examgen_cbt.services.sequencer import section_question_counts
from examgen_cbt.services.timer import format_time

logger = logging.getLogger(__name__)

router = APIRouter()

# 프로세스 전역 응시 이력 (앱 시작 시 load)
history = HistoryLog(config.HISTORY_FILE)

# ── Pydantic request bodies ──────────────────────────────────────────────────

class ApiKeyBody(BaseModel):
    api_key: str

class GenerateExamBody(GenerationOptions):
    topic: str = ""
    content: str = ""

class SaveAnswerBody(BaseModel):
    answer: Any

class NavigateBody(BaseModel):
    index: int = 0

class SubmitBody(BaseModel):
    confirm: bool = False

class AgentBody(BaseModel):
    message: str = ""
    agent_id: str = ""


# ── 헬퍼 ─────────────────────────────────────────────────────────────────────

def _state(request: Request) -> dict:
    state = session.get_session(request.state.session_id)
    if state is None:
        raise HTTPException(status_code=404, detail="세션이 만료되었습니다.")
    return state


def _exam_session(request: Request) -> ExamSession:
    exam_session: ExamSession = _state(request)["exam_session"]
    if exam_session.exam is None:
        raise HTTPException(status_code=404, detail="시험 세션이 없습니다.")
    return exam_session


def _start_timer(state: dict) -> None:
    """세션 타이머를 이벤트 루프에서 구동 (기존 태스크는 취소)."""
    session.cancel_timer_task(state)
    state["timer_task"] = asyncio.create_task(state["exam_session"].timer.run())


def _question_to_dict(q: FlattenedQuestion, exam_session: ExamSession) -> dict:
    return {
        "type": q.type,
        "section_title": q.section_title,
        "question_number": q.question_number,
        "text": q.display_text,
        "options": dict(q.option_items),
        "difficulty": q.difficulty,
        "expected_length": q.expected_length,
        "answered": exam_session.answers.is_answered(q.type, q.question_number),
    }


def _state_to_dict(exam_session: ExamSession) -> dict:
    return {
        "phase": exam_session.phase.value,
        "current_index": exam_session.current_index,
        "total": exam_session.total,
        "progress": exam_session.progress(),
        "is_complete": exam_session.is_complete(),
        "remaining_seconds": exam_session.timer.remaining_seconds,
        "time_display": format_time(exam_session.timer.remaining_seconds),
        "time_expired": exam_session.timer.expired,
        "answered_count": exam_session.answers.answered_count(),
        "unanswered_count": exam_session.unanswered_count(),
        "answers": exam_session.answers.snapshot(),
        "last_error": exam_session.last_error,
    }


def _load_exam(state: dict, exam, topic: str) -> ExamSession:
    exam_session: ExamSession = state["exam_session"]
    try:
        exam_session.load(exam, topic)
    except SessionStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    _start_timer(state)
    return exam_session


# ── 엔드포인트 ───────────────────────────────────────────────────────────────

@router.post("/api/set-api-key")
async def set_api_key(request: Request, body: ApiKeyBody):
    key = body.api_key.strip()
    if not key:
        raise HTTPException(status_code=400, detail="API 키가 비어 있습니다.")
    if not key.startswith(("sk-", "sk-proj-")):
        raise HTTPException(status_code=400, detail="올바른 OpenAI API 키 형식이 아닙니다 (sk-... 형식).")
    session.put(request.state.session_id, "api_key", key)
    os.environ["OPENAI_API_KEY"] = key
    return {"ok": True}


@router.post("/api/upload-content")
async def upload_content(request: Request, file: UploadFile = File(...)):
    file_bytes = await file.read()
    if len(file_bytes) > config.MAX_UPLOAD_SIZE:
        raise HTTPException(status_code=413, detail="파일이 너무 큽니다 (최대 50MB).")
    try:
        text = await asyncio.to_thread(extract_text, file.filename, file_bytes)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    sid = request.state.session_id
    session.put(sid, "content", text)
    session.put(sid, "uploaded_file_name", file.filename)
    return {"file_name": file.filename, "chars": len(text), "ok": True}


@router.get("/api/session-status")
async def session_status(request: Request):
    state = _state(request)
    return {
        "uploaded_file_name": state["uploaded_file_name"],
        "content_chars": len(state["content"]),
        "api_key_set": bool(state["api_key"]),
        "phase": state["exam_session"].phase.value,
        "generating": state["generating"],
    }


@router.post("/api/generate-exam")
async def api_generate_exam(request: Request, body: GenerateExamBody):
    state = _state(request)
    if state["generating"]:
        raise HTTPException(status_code=409, detail="이미 시험을 생성하는 중입니다.")
    if state["exam_session"].phase in (SessionPhase.IN_PROGRESS, SessionPhase.SUBMITTING):
        raise HTTPException(status_code=409, detail="이미 진행 중인 시험이 있습니다.")

    content = body.content if body.content.strip() else state["content"]
    options = GenerationOptions.model_validate(body.model_dump(include=set(GenerationOptions.model_fields)))

    state["generating"] = True
    try:
        exam = await asyncio.to_thread(generate_exam, content, body.topic, options)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AgentError as e:
        raise HTTPException(status_code=502, detail=str(e))
    finally:
        state["generating"] = False

    exam_session = _load_exam(state, exam, body.topic.strip())
    return {"title": exam.exam_title, "total": exam_session.total, "ok": True}


@router.post("/api/start-sample-exam")
async def start_sample_exam(request: Request):
    exam_session = _load_exam(_state(request), SAMPLE_EXAM, SAMPLE_TOPIC)
    return {"title": SAMPLE_EXAM.exam_title, "total": exam_session.total, "ok": True}


@router.get("/api/exam")
async def get_exam(request: Request):
    exam_session = _exam_session(request)
    exam = exam_session.exam
    return {
        "title": exam.exam_title,
        "topic": exam_session.topic,
        "difficulty": exam.difficulty_level,
        "total_marks": exam.total_marks,
        "time_suggested_minutes": exam.time_suggested_minutes,
        "section_counts": section_question_counts(exam),
        "questions": [_question_to_dict(q, exam_session) for q in exam_session.questions],
    }


@router.get("/api/question/{index}")
async def get_question(request: Request, index: int):
    exam_session = _exam_session(request)
    if not (0 <= index < exam_session.total):
        raise HTTPException(status_code=404, detail="문제를 찾을 수 없습니다.")

    q = exam_session.questions[index]
    d = _question_to_dict(q, exam_session)
    d.update({
        "saved_answer": exam_session.saved_answer(q),
        "index": index,
        "total": exam_session.total,
    })
    return d


@router.get("/api/exam-state")
async def get_exam_state(request: Request):
    return _state_to_dict(_exam_session(request))


@router.post("/api/save-answer")
async def save_answer(request: Request, body: SaveAnswerBody):
    exam_session = _exam_session(request)
    try:
        exam_session.record_answer(body.answer)
    except SessionStateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ValidationError as e:
        q = exam_session.current_question
        raise HTTPException(
            status_code=422,
            detail=f"답안 형식이 올바르지 않습니다 ({q.type if q else '-'}): {e.errors()[0]['msg']}",
        )
    return {"ok": True, "answered_count": exam_session.answers.answered_count()}


@router.post("/api/navigate")
async def navigate(request: Request, body: NavigateBody):
    idx = _exam_session(request).go_to(body.index)
    return {"index": idx, "ok": True}


@router.post("/api/next")
async def navigate_next(request: Request):
    return {"index": _exam_session(request).next(), "ok": True}


@router.post("/api/previous")
async def navigate_previous(request: Request):
    return {"index": _exam_session(request).previous(), "ok": True}


@router.post("/api/submit-exam")
async def submit_exam(request: Request, body: SubmitBody):
    exam_session = _exam_session(request)
    if not body.confirm:
        raise HTTPException(status_code=400, detail="제출 확인이 필요합니다.")
    try:
        payload = exam_session.begin_submission(body.confirm)
    except SessionStateError as e:
        raise HTTPException(status_code=409, detail=str(e))

    try:
        result = await asyncio.to_thread(grade_exam, payload["exam"], payload["answers"])
    except AgentError as e:
        exam_session.fail_submission(e)
        raise HTTPException(status_code=502, detail=str(e))
    except BaseException as e:
        # 예상치 못한 오류나 취소 시에도 SUBMITTING 에 머물지 않도록 복귀
        exam_session.fail_submission(e)
        raise

    exam_session.complete_submission(result)
    session.cancel_timer_task(_state(request))

    entry = build_history_entry(exam_session.topic, result)
    try:
        history.append(entry)
    except OSError as e:
        logger.error(f"응시 이력 저장 실패: {e}")

    return {
        "score": result.score_summary.total_marks_obtained,
        "total_marks": result.score_summary.total_marks_possible,
        "percentage": result.score_summary.percentage,
        "ok": True,
    }


@router.get("/api/results")
async def get_results(request: Request):
    exam_session = _exam_session(request)
    if exam_session.phase != SessionPhase.REVIEWED or exam_session.result is None:
        raise HTTPException(status_code=400, detail="시험이 아직 제출되지 않았습니다.")

    result = exam_session.result
    data = result.model_dump(mode="json")
    data.update({
        "topic": exam_session.topic,
        "title": exam_session.exam.exam_title,
        "band": performance_band(result.score_summary.percentage),
        "review": [
            {"section": section, **qr.model_dump(mode="json")}
            for section, qr in result.iter_question_results()
        ],
    })
    return data


@router.post("/api/retry-exam")
async def retry_exam(request: Request):
    state = _state(request)
    exam_session = _exam_session(request)
    try:
        exam_session.restart()
    except SessionStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    _start_timer(state)
    return {"total": exam_session.total, "ok": True}


@router.post("/api/retake")
async def retake(request: Request):
    state = _state(request)
    exam_session: ExamSession = state["exam_session"]
    if exam_session.phase == SessionPhase.SUBMITTING:
        raise HTTPException(status_code=409, detail="채점 중에는 초기화할 수 없습니다.")
    exam_session.reset()
    session.cancel_timer_task(state)
    return {"phase": exam_session.phase.value, "ok": True}


@router.get("/api/history")
async def get_history():
    entries = history.all()
    return {
        "entries": [e.to_record() for e in entries],
        **summarize_history(entries),
    }


@router.post("/api/agent")
async def agent(body: AgentBody):
    return await asyncio.to_thread(handle_agent_request, body.message, body.agent_id)


@router.post("/api/reset")
async def reset_session(request: Request):
    session.reset(request.state.session_id)
    return {"ok": True}
