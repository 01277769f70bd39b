"""
services/sequencer.py

섹션별 문제를 하나의 탐색 시퀀스로 평탄화한다.
순수 함수 — 전역 상태 변경 없음.
"""

from typing import Dict, List

from examgen_cbt.models.exam_model import Exam, FlattenedQuestion, NAVIGABLE_SECTION_TYPES


def flatten_questions(exam: Exam) -> List[FlattenedQuestion]:
    """
    mcq → fill_blank → true_false → short_answer 순으로 문제를 이어 붙인다.

    - 없는 섹션, questions 가 없는 섹션은 0개로 취급
    - matching 섹션은 문제 단위 탐색 대상이 아니므로 제외
    - 섹션 내 순서는 원본 순서 유지
    """
    flattened: List[FlattenedQuestion] = []
    for section_type in NAVIGABLE_SECTION_TYPES:
        section = exam.sections.get(section_type)
        if section is None:
            continue
        for q in section.questions or []:
            data = q.model_dump()
            data.update(type=section_type, section_title=section.section_title)
            flattened.append(FlattenedQuestion(**data))
    return flattened


def section_question_counts(exam: Exam) -> Dict[str, int]:
    """탐색 대상 섹션별 문제 수."""
    counts: Dict[str, int] = {}
    for section_type in NAVIGABLE_SECTION_TYPES:
        section = exam.sections.get(section_type)
        counts[section_type] = len(section.questions or []) if section else 0
    return counts
