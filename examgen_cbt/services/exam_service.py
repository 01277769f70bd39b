"""
services/exam_service.py

채점 결과 → 응시 이력 변환 및 대시보드 통계.
순수 Python 함수로 구성 — 전역 상태 변경 없음.
"""

from datetime import datetime
from typing import Dict, List, Optional

from examgen_cbt.models.result_model import ExamResult
from examgen_cbt.models.session_state import HistoryEntry
from examgen_cbt.services.history_log import format_display_date, make_entry_id


def build_history_entry(
    topic: str,
    result: ExamResult,
    when: Optional[datetime] = None,
) -> HistoryEntry:
    """
    채점 결과 한 건을 이력 항목으로 변환한다.

    Args:
        topic:  응시 주제명.
        result: 채점 에이전트 응답.
        when:   응시 시각 (기본값: 현재 시각).
    """
    summary = result.score_summary
    return HistoryEntry(
        id=make_entry_id(),
        topic=topic,
        date=format_display_date(when),
        score=summary.total_marks_obtained,
        total_marks=summary.total_marks_possible,
    )


def summarize_history(entries: List[HistoryEntry]) -> Dict[str, float]:
    """
    대시보드 통계.

    Returns:
        {"total_exams": int, "average_percentage": float, "best_percentage": float}
        이력이 없으면 모두 0.
        백분율은 소수점 첫째 자리 반올림.
    """
    if not entries:
        return {"total_exams": 0, "average_percentage": 0.0, "best_percentage": 0.0}

    percentages = [e.percentage for e in entries]
    return {
        "total_exams": len(entries),
        "average_percentage": round(sum(percentages) / len(percentages), 1),
        "best_percentage": round(max(percentages), 1),
    }


def performance_band(percentage: float) -> str:
    """
    점수 구간.
      80 이상: "high" / 60 이상: "medium" / 그 외: "low"
    """
    if percentage >= 80:
        return "high"
    if percentage >= 60:
        return "medium"
    return "low"
