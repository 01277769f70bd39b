"""
models/exam_model.py

생성 에이전트가 반환하는 시험지(Exam) 문서 모델.
Pydantic v2 적용 — 필드명은 에이전트 JSON 그대로 사용.

섹션 유형:
  mcq | fill_blank | true_false | short_answer | matching
matching 섹션은 questions 대신 items / column_b_options 를 사용한다.
"""

from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

SectionType = Literal["mcq", "fill_blank", "true_false", "short_answer", "matching"]

SECTION_TYPES: Tuple[str, ...] = ("mcq", "fill_blank", "true_false", "short_answer", "matching")

# 문제 단위 탐색 대상 섹션 (matching 제외, 순서 고정)
NAVIGABLE_SECTION_TYPES: Tuple[str, ...] = ("mcq", "fill_blank", "true_false", "short_answer")


class Question(BaseModel):
    """
    섹션 내 단일 문제.
    question_number 는 섹션 내에서만 고유하다 (전역 식별자는 (섹션 유형, 번호) 쌍).
    """
    model_config = ConfigDict(extra="allow")

    question_number: int = Field(
        ...,
        description="문제 번호 (섹션 내 고유)"
    )
    question_text: Optional[str] = Field(
        None,
        description="문제 본문 (true_false 는 statement 를 사용)"
    )
    statement: Optional[str] = Field(
        None,
        description="진위형 문제 진술문"
    )
    options: Optional[Dict[str, str]] = Field(
        None,
        description="객관식 보기 {A: ..., B: ..., C: ..., D: ...}"
    )
    difficulty: Optional[str] = None
    expected_length: Optional[str] = None

    @property
    def display_text(self) -> str:
        return self.question_text or self.statement or ""

    @property
    def option_items(self) -> List[Tuple[str, str]]:
        """보기가 없으면 빈 리스트 (렌더링 측에서 빈 화면으로 처리)."""
        return list((self.options or {}).items())


class MatchingItem(BaseModel):
    item_a: str
    item_b_id: str


class MatchingOption(BaseModel):
    id: str
    text: str


class Section(BaseModel):
    model_config = ConfigDict(extra="allow")

    section_title: str = ""
    marks_per_question: Optional[float] = None
    total_marks: Optional[float] = None
    column_a_header: Optional[str] = None
    column_b_header: Optional[str] = None
    questions: Optional[List[Question]] = None
    items: Optional[List[MatchingItem]] = None
    column_b_options: Optional[List[MatchingOption]] = None


class ExamSections(BaseModel):
    model_config = ConfigDict(extra="allow")

    mcq: Optional[Section] = None
    fill_blank: Optional[Section] = None
    true_false: Optional[Section] = None
    short_answer: Optional[Section] = None
    matching: Optional[Section] = None

    def get(self, section_type: str) -> Optional[Section]:
        if section_type not in SECTION_TYPES:
            return None
        return getattr(self, section_type)

    def present(self) -> List[str]:
        return [t for t in SECTION_TYPES if getattr(self, t) is not None]


class Exam(BaseModel):
    """
    시험지 문서 전체.
    answer_key 등 알 수 없는 필드는 그대로 보존되어 채점 요청에 함께 전달된다.
    """
    model_config = ConfigDict(extra="allow")

    exam_title: str = ""
    total_questions: int = Field(
        default=0,
        description="전체 문제 수 (참고용, 섹션 합계와 일치 여부는 검증하지 않음)"
    )
    total_marks: float = 0
    time_suggested_minutes: float = Field(
        default=30,
        ge=0,
        description="권장 풀이 시간 (분). 타이머 초기값 = 이 값 × 60"
    )
    difficulty_level: str = ""
    sections: ExamSections
    answer_key: Optional[Any] = None

    @model_validator(mode="after")
    def validate_has_section(self) -> "Exam":
        """섹션이 하나도 없는 문서는 잘못된 응답으로 본다."""
        if not self.sections.present():
            raise ValueError("시험지에 섹션이 하나도 없습니다.")
        return self


class FlattenedQuestion(Question):
    """평탄화된 문제 시퀀스의 원소. 출처 섹션 유형과 제목을 함께 가진다."""

    type: SectionType
    section_title: str = ""