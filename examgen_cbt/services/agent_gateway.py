"""
services/agent_gateway.py

/api/agent 엔드포인트의 에이전트 구현 (OpenAI Chat API, JSON 모드).
agent_id 로 시스템 프롬프트(생성 / 채점)를 선택하고,
결과를 {"success", "response": {"result"}} 봉투에 담아 반환한다.

설계 원칙:
- Rate Limit / 일시적 API 오류는 지수 백오프 재시도
- 실패는 예외 대신 {"success": False, "error": ...} 봉투로 반환
"""

import json
import logging
import os
import time
from typing import Any, Dict, Optional

from openai import APIError, OpenAI, RateLimitError

import config
from examgen_cbt.services.agent_client import clean_json_response

logger = logging.getLogger(__name__)

# ── 상수 ─────────────────────────────────────────────────────────────────────
_MAX_API_RETRIES = 3
_BACKOFF_BASE = 1.0
_RATE_LIMIT_MAX_RETRIES = 5
_RATE_LIMIT_BACKOFF_BASE = 2.0


def _make_client(api_key: str) -> Optional[OpenAI]:
    """API 키로 OpenAI 클라이언트를 생성."""
    if not api_key:
        logger.warning("API 키가 제공되지 않았습니다.")
        return None
    try:
        return OpenAI(api_key=api_key)
    except Exception as e:
        logger.error(f"OpenAI 클라이언트 초기화 실패: {e}")
        return None


def system_prompt_for(agent_id: str) -> Optional[str]:
    if agent_id == config.GENERATION_AGENT_ID:
        return _build_generation_system_prompt()
    if agent_id == config.GRADING_AGENT_ID:
        return _build_grading_system_prompt()
    return None


def handle_agent_request(
    message: str,
    agent_id: str,
    client: Optional[OpenAI] = None,
) -> Dict[str, Any]:
    """에이전트 요청 1건 처리. 항상 봉투 dict 를 반환한다."""
    system_prompt = system_prompt_for(agent_id)
    if system_prompt is None:
        return {"success": False, "error": f"알 수 없는 에이전트: {agent_id}"}
    if not message or not message.strip():
        return {"success": False, "error": "메시지가 비어 있습니다."}

    client = client or _make_client(os.getenv("OPENAI_API_KEY", ""))
    if client is None:
        return {"success": False, "error": "OpenAI API 키가 설정되지 않았습니다."}

    raw = _call_openai(system_prompt, message, client)
    result = _parse_json(raw)
    if result is None:
        # 재시도
        raw = _call_openai(
            system_prompt + "\n\nIMPORTANT: respond with a single valid JSON object only.",
            message, client,
        )
        result = _parse_json(raw)
    if result is None:
        logger.error(f"에이전트 응답 파싱 실패: {agent_id}")
        return {"success": False, "error": "AI 응답을 JSON으로 해석하지 못했습니다."}

    return {"success": True, "response": {"result": result}}


def _parse_json(raw: Optional[str]) -> Optional[dict]:
    cleaned = clean_json_response(raw or "")
    if not cleaned:
        return None
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


# ══════════════════════════════════════════════════════════════════════════════
# 시스템 프롬프트
# ══════════════════════════════════════════════════════════════════════════════

def _build_generation_system_prompt() -> str:
    """시험 생성 에이전트 프롬프트."""
    return (
        "You are an exam author. Build an exam strictly from the study notes the user provides.\n"
        "\n"
        "[Output]\n"
        "Respond with ONE JSON object only. No markdown, no commentary.\n"
        "{\n"
        '  "exam_title": str,\n'
        '  "total_questions": int,\n'
        '  "total_marks": number,\n'
        '  "time_suggested_minutes": int,\n'
        '  "difficulty_level": "Easy" | "Medium" | "Hard" | "Mixed",\n'
        '  "sections": {\n'
        '    "mcq": {"section_title", "marks_per_question", "total_marks",\n'
        '            "questions": [{"question_number", "question_text",\n'
        '                           "options": {"A", "B", "C", "D"}, "difficulty"}]},\n'
        '    "fill_blank": {"section_title", "marks_per_question", "total_marks",\n'
        '                   "questions": [{"question_number", "question_text", "difficulty"}]},\n'
        '    "true_false": {"section_title", "marks_per_question", "total_marks",\n'
        '                   "questions": [{"question_number", "statement", "difficulty"}]},\n'
        '    "short_answer": {"section_title", "marks_per_question", "total_marks",\n'
        '                     "questions": [{"question_number", "question_text", "expected_length"}]},\n'
        '    "matching": {"section_title", "column_a_header", "column_b_header",\n'
        '                 "items": [{"item_a", "item_b_id"}], "column_b_options": [{"id", "text"}]}\n'
        "  },\n"
        '  "answer_key": {section: {question_number: answer}}\n'
        "}\n"
        "\n"
        "[Rules]\n"
        "1. question_number starts at 1 inside every section.\n"
        "2. Use exactly the question counts and difficulty requested in the message.\n"
        "3. Fill-in-the-blank questions mark the blank with '_____'.\n"
        "4. total_questions is the sum of all section question counts.\n"
        "5. Never invent facts that are not supported by the notes."
    )


def _build_grading_system_prompt() -> str:
    """채점 에이전트 프롬프트."""
    return (
        "You are an exam grader. The message contains the exam (with answer_key) and the "
        "user's answers keyed by section and question_number. Missing answers are unanswered.\n"
        "\n"
        "[Output]\n"
        "Respond with ONE JSON object only. No markdown, no commentary.\n"
        "{\n"
        '  "score_summary": {"total_marks_obtained", "total_marks_possible", "percentage",\n'
        '                    "grade", "grade_description"},\n'
        '  "section_scores": {section: {"marks_obtained", "marks_possible", "percentage"}},\n'
        '  "question_results": {section: [{"question_number", "question_text", "user_answer",\n'
        '                        "correct_answer", "is_correct", "marks_awarded", "marks_possible",\n'
        '                        "feedback", "explanation", "key_points_covered", "key_points_missed"}]},\n'
        '  "performance_analysis": {"strongest_sections", "weakest_sections", "topics_to_review",\n'
        '                           "overall_assessment", "improvement_suggestions", "encouragement"},\n'
        '  "statistics": {"questions_attempted", "questions_unanswered", "correct_answers",\n'
        '                 "incorrect_answers", "accuracy_rate"}\n'
        "}\n"
        "\n"
        "[Rules]\n"
        "1. Fill-in-the-blank answers are correct when they match the key ignoring case and spacing.\n"
        "2. Short answers may earn partial marks; list covered and missed key points.\n"
        "3. Unanswered questions earn 0 marks and count as unanswered, not incorrect."
    )


# ══════════════════════════════════════════════════════════════════════════════
# OpenAI API 호출
# ══════════════════════════════════════════════════════════════════════════════

def _call_openai(
    system_prompt: str,
    user_content: str,
    client: Optional[OpenAI] = None,
    max_retries: int = _MAX_API_RETRIES,
) -> Optional[str]:
    """OpenAI Chat API 호출 + 지수 백오프 재시도."""
    if client is None:
        return None

    last_exception: Optional[Exception] = None
    effective_retries = max_retries
    attempt = 0

    # Rate Limit 발생 시 재시도 한도가 늘어나므로 while 로 매 회 한도를 다시 확인
    while attempt < effective_retries:
        attempt += 1
        try:
            response = client.chat.completions.create(
                model=config.MODEL_NAME,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_content},
                ],
                temperature=0.3,
                response_format={"type": "json_object"},
                max_tokens=16384,
            )
            return response.choices[0].message.content
        except RateLimitError as e:
            last_exception = e
            effective_retries = max(effective_retries, _RATE_LIMIT_MAX_RETRIES)
            if attempt < effective_retries:
                wait = _RATE_LIMIT_BACKOFF_BASE * (2 ** (attempt - 1))
                logger.warning(f"Rate Limit, {wait:.1f}초 후 재시도 ({attempt}/{effective_retries})")
                time.sleep(wait)
            else:
                logger.error("Rate Limit 최대 재시도 초과.")
                break
        except APIError as e:
            last_exception = e
            error_str = str(e).lower()
            is_transient = any(
                k in error_str
                for k in ("timeout", "connection", "unavailable")
            )
            if getattr(e, "status_code", None) in (500, 502, 503, 504):
                is_transient = True
            if attempt < effective_retries and is_transient:
                wait = _BACKOFF_BASE * (2 ** (attempt - 1))
                logger.warning(f"API 오류, {wait:.1f}초 후 재시도 ({attempt}/{effective_retries})")
                time.sleep(wait)
            else:
                logger.error(f"API 오류: {e}")
                break
        except Exception as e:
            last_exception = e
            logger.error(f"예상치 못한 오류: {type(e).__name__}: {e}")
            break

    logger.error(f"API 최종 실패: {last_exception}")
    return None
