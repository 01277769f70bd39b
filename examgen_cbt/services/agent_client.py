"""
services/agent_client.py

외부 AI 에이전트 호출 (시험 생성 / 채점).
Public API:
  - generate_exam(content, topic, options) -> Exam
  - grade_exam(exam, answers) -> ExamResult
  - call_agent(message, agent_id) -> dict      : 봉투(envelope) 해제된 페이로드

요청:  POST {"message": 프롬프트, "agent_id": 에이전트 ID}
응답:  {"success": bool, "response": {"result"?: ...}}
       result 가 있으면 result, 없으면 response 자체를 사용.

네트워크 오류, 실패 봉투, 형식이 맞지 않는 페이로드는 모두 AgentError 로 변환한다.
"""

import json
import logging
import re
from typing import Any, Dict, Literal, Optional, Union

import requests
from pydantic import BaseModel, Field, ValidationError

import config
from examgen_cbt.models.exam_model import Exam
from examgen_cbt.models.result_model import ExamResult

logger = logging.getLogger(__name__)


class AgentError(RuntimeError):
    """에이전트 호출 실패 (전송 오류 또는 응답 파싱 실패). 재시도 가능."""


class GenerationOptions(BaseModel):
    """시험 생성 설정."""

    mcq_count: int = Field(default=10, ge=5, le=20)
    fill_blank_count: int = Field(default=5, ge=3, le=10)
    short_answer_count: int = Field(default=3, ge=2, le=5)
    difficulty: Literal["Easy", "Medium", "Hard", "Mixed"] = "Mixed"


# ══════════════════════════════════════════════════════════════════════════════
# Public API
# ══════════════════════════════════════════════════════════════════════════════

def generate_exam(
    content: str,
    topic: str,
    options: Optional[GenerationOptions] = None,
) -> Exam:
    """
    학습 자료 → 시험지.
    주제나 본문이 비어 있으면 네트워크 호출 없이 ValueError.
    """
    if not topic or not topic.strip():
        raise ValueError("주제명을 입력해 주세요.")
    if not content or not content.strip():
        raise ValueError("학습 자료를 업로드하거나 붙여넣어 주세요.")

    options = options or GenerationOptions()
    message = build_generation_prompt(content, options)
    payload = call_agent(message, config.GENERATION_AGENT_ID)
    try:
        exam = Exam.model_validate(payload)
    except ValidationError as e:
        logger.error(f"시험지 형식 오류: {e}")
        raise AgentError("생성된 시험지 형식이 올바르지 않습니다. 다시 시도해 주세요.") from e

    logger.info(f"시험 생성 완료: '{topic}' — 섹션 {exam.sections.present()}")
    return exam


def grade_exam(exam: Union[Exam, Dict[str, Any]], answers: Dict[str, Any]) -> ExamResult:
    """시험지 + 답안지 스냅샷 → 채점 결과."""
    if isinstance(exam, Exam):
        exam = exam.model_dump(mode="json", exclude_none=True)
    message = build_grading_prompt(exam, answers)
    payload = call_agent(message, config.GRADING_AGENT_ID)
    try:
        return ExamResult.model_validate(payload)
    except ValidationError as e:
        logger.error(f"채점 결과 형식 오류: {e}")
        raise AgentError("채점 결과 형식이 올바르지 않습니다. 다시 제출해 주세요.") from e


def call_agent(
    message: str,
    agent_id: str,
    url: Optional[str] = None,
    timeout: Optional[float] = None,
) -> Dict[str, Any]:
    """에이전트 엔드포인트 호출 후 봉투를 해제한 dict 를 반환."""
    url = url or config.AGENT_API_URL
    timeout = timeout if timeout is not None else config.AGENT_TIMEOUT
    try:
        r = requests.post(
            url,
            json={"message": message, "agent_id": agent_id},
            headers={"Content-Type": "application/json"},
            timeout=timeout,
        )
        r.raise_for_status()
        data = r.json()
    except requests.RequestException as e:
        logger.error(f"에이전트 호출 실패 ({agent_id}): {e}")
        raise AgentError("AI 서비스에 연결하지 못했습니다. 잠시 후 다시 시도해 주세요.") from e
    except ValueError as e:
        logger.error(f"에이전트 응답 JSON 파싱 실패 ({agent_id}): {e}")
        raise AgentError("AI 서비스 응답을 해석하지 못했습니다.") from e

    return unwrap_envelope(data)


def unwrap_envelope(data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict) or not data.get("success") or not data.get("response"):
        detail = data.get("error") if isinstance(data, dict) else None
        logger.warning(f"에이전트 실패 응답: {detail or data!r}")
        raise AgentError("AI 서비스가 요청을 처리하지 못했습니다. 다시 시도해 주세요.")

    response = data["response"]
    payload = response.get("result") if isinstance(response, dict) else None
    if not payload:
        payload = response

    if isinstance(payload, str):
        cleaned = clean_json_response(payload)
        try:
            payload = json.loads(cleaned) if cleaned else None
        except json.JSONDecodeError:
            payload = None

    if not isinstance(payload, dict):
        raise AgentError("AI 서비스 응답 형식이 올바르지 않습니다.")
    return payload


# ══════════════════════════════════════════════════════════════════════════════
# 프롬프트
# ══════════════════════════════════════════════════════════════════════════════

def build_generation_prompt(content: str, options: GenerationOptions) -> str:
    return (
        "Generate a comprehensive exam based on these notes. "
        "Return ONLY valid JSON with the exact structure specified.\n\n"
        f"Multiple choice questions: {options.mcq_count}\n"
        f"Fill in the blank questions: {options.fill_blank_count}\n"
        f"Short answer questions: {options.short_answer_count}\n"
        f"Difficulty: {options.difficulty}\n\n"
        f"Notes:\n{content}"
    )


def build_grading_prompt(exam: Dict[str, Any], answers: Dict[str, Any]) -> str:
    return (
        "Evaluate this exam submission. "
        "Return ONLY valid JSON with the exact structure specified.\n\n"
        f"Exam Data: {json.dumps(exam, ensure_ascii=False)}\n\n"
        f"User Answers: {json.dumps(answers, ensure_ascii=False)}"
    )


def clean_json_response(response_text: str) -> str:
    """LLM 응답에서 순수 JSON을 추출."""
    if not response_text:
        return ""

    text = re.sub(r"```(?:json)?\s*", "", response_text, flags=re.IGNORECASE)
    text = re.sub(r"```", "", text)
    text = text.strip()

    if text.startswith("{") or text.startswith("["):
        return text

    match = re.search(r"[{[].*[}\]]", text, re.DOTALL)
    if match:
        return match.group(0).strip()

    return ""
