"""
models/result_model.py

채점 에이전트 응답(ExamResult) 모델.
score_summary 가 없으면 잘못된 응답으로 간주하고, 나머지는 기본값으로 보완한다.
"""

from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class ScoreSummary(BaseModel):
    model_config = ConfigDict(extra="allow")

    # 정수 점수는 정수 그대로 이력에 기록
    total_marks_obtained: Union[int, float] = 0
    total_marks_possible: Union[int, float] = 0
    percentage: float = 0
    grade: str = ""
    grade_description: str = ""


class PerformanceAnalysis(BaseModel):
    model_config = ConfigDict(extra="allow")

    strongest_sections: List[str] = Field(default_factory=list)
    weakest_sections: List[str] = Field(default_factory=list)
    topics_to_review: List[str] = Field(default_factory=list)
    overall_assessment: str = ""
    improvement_suggestions: List[str] = Field(default_factory=list)
    encouragement: str = ""


class Statistics(BaseModel):
    model_config = ConfigDict(extra="allow")

    questions_attempted: int = 0
    questions_unanswered: int = 0
    correct_answers: int = 0
    incorrect_answers: int = 0
    accuracy_rate: float = 0


class QuestionResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    question_number: Optional[int] = None
    question_text: Optional[str] = None
    statement: Optional[str] = None
    user_answer: Optional[Any] = None
    correct_answer: Optional[Any] = None
    is_correct: Optional[bool] = None
    marks_awarded: float = 0
    marks_possible: float = 0
    feedback: Optional[str] = None
    explanation: Optional[str] = None
    key_points_covered: Optional[List[str]] = None
    key_points_missed: Optional[List[str]] = None


class ExamResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    score_summary: ScoreSummary
    section_scores: Dict[str, Any] = Field(default_factory=dict)
    question_results: Dict[str, Any] = Field(default_factory=dict)
    performance_analysis: PerformanceAnalysis = Field(default_factory=PerformanceAnalysis)
    statistics: Statistics = Field(default_factory=Statistics)

    def iter_question_results(self) -> Iterator[Tuple[str, QuestionResult]]:
        """
        섹션별 문제 결과를 순회한다.
        리스트가 아닌 섹션 값, 형식이 맞지 않는 항목은 건너뛴다 (matching 등).
        """
        for section, items in self.question_results.items():
            if not isinstance(items, list):
                continue
            for item in items:
                if not isinstance(item, dict):
                    continue
                try:
                    yield section, QuestionResult.model_validate(item)
                except ValidationError:
                    continue
