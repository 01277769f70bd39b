import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from examgen_cbt.models.exam_model import Exam  # noqa: E402


def make_exam(mcq=3, fill_blank=2, true_false=0, short_answer=0, matching=False, minutes=10):
    sections = {}
    if mcq:
        sections["mcq"] = {
            "section_title": "Multiple Choice",
            "marks_per_question": 1,
            "questions": [
                {
                    "question_number": n,
                    "question_text": f"MCQ {n}",
                    "options": {"A": "a", "B": "b", "C": "c", "D": "d"},
                }
                for n in range(1, mcq + 1)
            ],
        }
    if fill_blank:
        sections["fill_blank"] = {
            "section_title": "Fill in the Blanks",
            "questions": [
                {"question_number": n, "question_text": f"Blank {n} _____"}
                for n in range(1, fill_blank + 1)
            ],
        }
    if true_false:
        sections["true_false"] = {
            "section_title": "True or False",
            "questions": [
                {"question_number": n, "statement": f"Statement {n}"}
                for n in range(1, true_false + 1)
            ],
        }
    if short_answer:
        sections["short_answer"] = {
            "section_title": "Short Answer",
            "questions": [
                {"question_number": n, "question_text": f"Explain {n}", "expected_length": "2 sentences"}
                for n in range(1, short_answer + 1)
            ],
        }
    if matching:
        sections["matching"] = {
            "section_title": "Matching",
            "items": [{"item_a": "Chlorophyll", "item_b_id": "1"}],
            "column_b_options": [{"id": "1", "text": "Green pigment"}],
        }
    return Exam.model_validate({
        "exam_title": "Test Exam",
        "total_questions": mcq + fill_blank + true_false + short_answer,
        "total_marks": 10,
        "time_suggested_minutes": minutes,
        "difficulty_level": "Mixed",
        "sections": sections,
        "answer_key": {"mcq": {"1": "A"}},
    })


RESULT_PAYLOAD = {
    "score_summary": {
        "total_marks_obtained": 8,
        "total_marks_possible": 10,
        "percentage": 80.0,
        "grade": "B",
        "grade_description": "Good work",
    },
    "section_scores": {"mcq": {"percentage": 100.0}},
    "question_results": {
        "mcq": [
            {"question_number": 1, "user_answer": "A", "correct_answer": "A", "is_correct": True,
             "marks_awarded": 1, "marks_possible": 1, "feedback": "Correct"},
        ],
        "matching": "not graded",
    },
    "performance_analysis": {
        "overall_assessment": "Solid",
        "improvement_suggestions": ["Review the Calvin cycle"],
        "encouragement": "Keep going",
    },
    "statistics": {"questions_attempted": 3, "questions_unanswered": 2, "correct_answers": 3},
}


@pytest.fixture
def exam_factory():
    return make_exam


@pytest.fixture
def result_payload():
    return {k: (dict(v) if isinstance(v, dict) else v) for k, v in RESULT_PAYLOAD.items()}
