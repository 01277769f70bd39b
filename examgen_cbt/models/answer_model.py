"""
models/answer_model.py

답안 모델.
  - 섹션 유형별 답안 값(tagged union): 객관식 보기 키 / 주관식 텍스트 / 진위 bool
  - AnswerStore: (섹션 유형, 문제 번호) → 답안 값 답안지

AnswerStore 자체는 값의 타입을 검사하지 않는다.
타입 검증은 parse_answer() 를 거쳐 호출 측에서 수행한다.
"""

from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from examgen_cbt.models.exam_model import SECTION_TYPES


class McqAnswer(BaseModel):
    type: Literal["mcq"] = "mcq"
    value: Literal["A", "B", "C", "D"]

    @field_validator("value", mode="before")
    @classmethod
    def normalize_option_key(cls, v: Any) -> Any:
        # "a", " B " 등 입력 보정
        if isinstance(v, str):
            return v.strip().upper()
        return v


class FillBlankAnswer(BaseModel):
    type: Literal["fill_blank"] = "fill_blank"
    value: str


class TrueFalseAnswer(BaseModel):
    type: Literal["true_false"] = "true_false"
    value: bool


class ShortAnswer(BaseModel):
    type: Literal["short_answer"] = "short_answer"
    value: str


Answer = Annotated[
    Union[McqAnswer, FillBlankAnswer, TrueFalseAnswer, ShortAnswer],
    Field(discriminator="type"),
]

_ANSWER_ADAPTER: TypeAdapter = TypeAdapter(Answer)


def parse_answer(section_type: str, raw: Any) -> Answer:
    """
    섹션 유형에 맞는 답안 변형으로 검증/변환한다.

    Raises:
        pydantic.ValidationError: 유형이 matching 이거나 값 형태가 맞지 않는 경우.
    """
    return _ANSWER_ADAPTER.validate_python({"type": section_type, "value": raw})


class AnswerStore(BaseModel):
    """
    사용자 답안지.

    entries: {섹션 유형: {문제 번호: 답안 값}}
    - 키가 없으면 미응답
    - 한 번 기록된 항목은 삭제되지 않고 덮어쓰기만 된다
    - 섹션 유형이 다르면 같은 문제 번호라도 별개의 항목
    """

    entries: Dict[str, Dict[int, Any]] = Field(default_factory=dict)

    def set(self, section_type: str, question_number: int, value: Any) -> None:
        self.entries.setdefault(section_type, {})[question_number] = value

    def get(self, section_type: str, question_number: int) -> Optional[Any]:
        return self.entries.get(section_type, {}).get(question_number)

    def is_answered(self, section_type: str, question_number: int) -> bool:
        return question_number in self.entries.get(section_type, {})

    def count(self, section_type: str) -> int:
        return len(self.entries.get(section_type, {}))

    def answered_count(self) -> int:
        return sum(len(v) for v in self.entries.values())

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """채점 요청용 JSON 직렬화 가능한 사본. 다섯 섹션 유형 키를 모두 포함."""
        snap: Dict[str, Dict[str, Any]] = {t: {} for t in SECTION_TYPES}
        for section_type, answers in self.entries.items():
            snap.setdefault(section_type, {})
            for number, value in answers.items():
                snap[section_type][str(number)] = value
        return snap
