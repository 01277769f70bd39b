"""
services/exam_session.py

시험 세션 상태 머신.
문제 시퀀스 + 답안지 + 타이머를 묶어 탐색, 답안 기록, 진행률, 제출을 담당한다.

    CONFIGURING ─load─▶ IN_PROGRESS ─begin_submission─▶ SUBMITTING
                              ▲                              │
                              └──── fail_submission ─────────┤
                                                             ▼
                                        complete_submission ─▶ REVIEWED
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from examgen_cbt.models.answer_model import AnswerStore, parse_answer
from examgen_cbt.models.exam_model import Exam, FlattenedQuestion
from examgen_cbt.models.result_model import ExamResult
from examgen_cbt.models.session_state import SessionPhase
from examgen_cbt.services.sequencer import flatten_questions
from examgen_cbt.services.timer import SessionTimer

logger = logging.getLogger(__name__)


class SessionStateError(RuntimeError):
    """현재 단계에서 허용되지 않는 세션 조작."""


class ExamSession:
    def __init__(self, timer: Optional[SessionTimer] = None):
        self.timer = timer or SessionTimer()
        self.timer.on_expire = self._on_time_expired
        self.phase = SessionPhase.CONFIGURING
        self.exam: Optional[Exam] = None
        self.topic = ""
        self.questions: List[FlattenedQuestion] = []
        self.answers = AnswerStore()
        self.current_index = 0
        self.result: Optional[ExamResult] = None
        self.last_error: Optional[str] = None

    # ── 수명 주기 ──────────────────────────────────────────────────────────

    def load(self, exam: Exam, topic: str = "") -> None:
        """새 시험지를 적재하고 타이머를 시작한다. 시퀀스는 여기서 한 번만 계산."""
        if self.phase in (SessionPhase.IN_PROGRESS, SessionPhase.SUBMITTING):
            raise SessionStateError("이미 진행 중인 시험이 있습니다.")
        self.exam = exam
        self.topic = topic
        self.questions = flatten_questions(exam)
        self._begin()
        logger.info(
            f"시험 시작: '{exam.exam_title}' — {len(self.questions)}문제, "
            f"{exam.time_suggested_minutes:g}분"
        )

    def restart(self) -> None:
        """같은 시험지로 다시 응시 (답안/타이머 초기화)."""
        if self.exam is None:
            raise SessionStateError("다시 응시할 시험이 없습니다.")
        if self.phase == SessionPhase.SUBMITTING:
            raise SessionStateError("채점 중에는 다시 시작할 수 없습니다.")
        self.timer.stop()
        self._begin()

    def reset(self) -> None:
        """세션을 버리고 CONFIGURING 으로 되돌린다."""
        self.abandon()
        self.phase = SessionPhase.CONFIGURING
        self.exam = None
        self.topic = ""
        self.questions = []
        self.answers = AnswerStore()
        self.current_index = 0
        self.result = None
        self.last_error = None

    def abandon(self) -> None:
        """진행 중인 타이머 정지 (화면 이탈/세션 만료 시)."""
        self.timer.stop()

    def _begin(self) -> None:
        self.answers = AnswerStore()
        self.current_index = 0
        self.result = None
        self.last_error = None
        self.phase = SessionPhase.IN_PROGRESS
        self.timer.start(int(round(self.exam.time_suggested_minutes * 60)))

    def _on_time_expired(self) -> None:
        # 자동 제출하지 않음 (소프트 제한)
        logger.info(f"시간 종료: '{self.topic}' — 제출은 사용자 확인 후 진행")

    # ── 탐색 ───────────────────────────────────────────────────────────────

    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> Optional[FlattenedQuestion]:
        if not self.questions:
            return None
        return self.questions[self.current_index]

    def go_to(self, index: int) -> int:
        if self.questions:
            self.current_index = max(0, min(index, self.total - 1))
        return self.current_index

    def next(self) -> int:
        return self.go_to(self.current_index + 1)

    def previous(self) -> int:
        return self.go_to(self.current_index - 1)

    # ── 답안 ───────────────────────────────────────────────────────────────

    def record_answer(self, value: Any) -> None:
        """
        현재 문제의 (섹션 유형, 문제 번호) 에 답안을 기록한다.

        Raises:
            pydantic.ValidationError: 섹션 유형에 맞지 않는 값 (ValueError 하위 클래스).
            SessionStateError:        채점 완료 후 기록 시도.
        """
        q = self.current_question
        if q is None:
            return
        if self.phase not in (SessionPhase.IN_PROGRESS, SessionPhase.SUBMITTING):
            raise SessionStateError("진행 중인 시험이 아닙니다.")
        answer = parse_answer(q.type, value)
        self.answers.set(q.type, q.question_number, answer.value)

    def saved_answer(self, question: FlattenedQuestion) -> Optional[Any]:
        return self.answers.get(question.type, question.question_number)

    # ── 파생 상태 ──────────────────────────────────────────────────────────

    def progress(self) -> float:
        if not self.questions:
            return 0.0
        return (self.current_index + 1) / self.total * 100

    def is_complete(self) -> bool:
        return bool(self.questions) and self.current_index == self.total - 1

    def unanswered_count(self) -> int:
        return sum(1 for q in self.questions if not self.answers.is_answered(q.type, q.question_number))

    # ── 제출 ───────────────────────────────────────────────────────────────

    def begin_submission(self, confirmed: bool) -> Dict[str, Any]:
        """
        제출 확인 후 SUBMITTING 으로 전환하고 채점 요청 페이로드를 만든다.

        Returns:
            {"exam": 시험지 dict, "answers": 답안지 스냅샷}
        """
        if not confirmed:
            raise SessionStateError("제출 확인이 필요합니다.")
        if self.phase == SessionPhase.SUBMITTING:
            raise SessionStateError("이미 채점 요청 중입니다.")
        if self.phase != SessionPhase.IN_PROGRESS:
            raise SessionStateError("제출할 수 있는 시험이 없습니다.")
        if not self.is_complete():
            raise SessionStateError("마지막 문제에서만 제출할 수 있습니다.")

        self.phase = SessionPhase.SUBMITTING
        self.last_error = None
        logger.info(f"채점 요청: '{self.topic}' — 응답 {self.answers.answered_count()}/{self.total}")
        return {
            "exam": self.exam.model_dump(mode="json", exclude_none=True),
            "answers": self.answers.snapshot(),
        }

    def complete_submission(self, result: ExamResult) -> None:
        if self.phase != SessionPhase.SUBMITTING:
            raise SessionStateError("채점 요청 중이 아닙니다.")
        self.result = result
        self.phase = SessionPhase.REVIEWED
        self.timer.stop()
        logger.info(
            f"채점 완료: '{self.topic}' — "
            f"{result.score_summary.total_marks_obtained}/{result.score_summary.total_marks_possible}"
        )

    def fail_submission(self, error: Exception) -> None:
        """채점 실패 — IN_PROGRESS 로 복귀, 재시도 가능."""
        if self.phase == SessionPhase.SUBMITTING:
            self.phase = SessionPhase.IN_PROGRESS
        self.last_error = str(error)
        logger.warning(f"채점 실패: {error}")

    def submit(self, grade: Callable[[Dict[str, Any], Dict[str, Any]], ExamResult], confirmed: bool) -> ExamResult:
        """
        동기식 제출. grade(exam, answers) 는 정확히 한 번 호출된다.
        실패 시 예외를 그대로 전달하고 세션은 IN_PROGRESS 로 돌아간다.
        """
        payload = self.begin_submission(confirmed)
        try:
            result = grade(payload["exam"], payload["answers"])
        except Exception as e:
            self.fail_submission(e)
            raise
        self.complete_submission(result)
        return result
