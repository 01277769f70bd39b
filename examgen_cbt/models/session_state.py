"""
models/session_state.py

시험 세션 단계(phase)와 응시 이력 항목 모델.
UI 코드 없음.
"""

from enum import Enum
from typing import Union

from pydantic import BaseModel, ConfigDict, Field


class SessionPhase(str, Enum):
    """
    시험 세션 상태 머신.

        CONFIGURING → IN_PROGRESS → SUBMITTING → REVIEWED
                           ↑             │
                           └── 채점 실패 ─┘
    """

    CONFIGURING = "configuring"
    IN_PROGRESS = "in_progress"
    SUBMITTING = "submitting"
    REVIEWED = "reviewed"


class HistoryEntry(BaseModel):
    """
    응시 이력 한 건. 저장 형식: {id, topic, date, score, totalMarks}

    Attributes:
        id:          시각 기반 고유 ID (밀리초 타임스탬프 문자열).
        topic:       사용자가 입력한 주제명.
        date:        표시용 날짜 (M/D/YYYY).
        score:       획득 점수.
        total_marks: 만점 (직렬화 시 totalMarks).
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    topic: str
    date: str
    score: Union[int, float] = 0
    total_marks: Union[int, float] = Field(default=0, alias="totalMarks")

    @property
    def percentage(self) -> float:
        if not self.total_marks:
            return 0.0
        return self.score / self.total_marks * 100

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True)
