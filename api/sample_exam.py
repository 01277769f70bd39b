"""
api/sample_exam.py — API 키 없이 체험할 수 있는 샘플 시험지
"""

from examgen_cbt.models.exam_model import Exam

SAMPLE_TOPIC = "Biology: Photosynthesis"

SAMPLE_EXAM: Exam = Exam.model_validate({
    "exam_title": "Photosynthesis Basics",
    "total_questions": 8,
    "total_marks": 14,
    "time_suggested_minutes": 15,
    "difficulty_level": "Mixed",
    "sections": {
        "mcq": {
            "section_title": "Multiple Choice",
            "marks_per_question": 1,
            "total_marks": 3,
            "questions": [
                {
                    "question_number": 1,
                    "question_text": "Where in the plant cell does photosynthesis take place?",
                    "options": {"A": "Mitochondria", "B": "Chloroplast", "C": "Nucleus", "D": "Ribosome"},
                    "difficulty": "Easy",
                },
                {
                    "question_number": 2,
                    "question_text": "Which gas is released as a by-product of photosynthesis?",
                    "options": {"A": "Carbon dioxide", "B": "Nitrogen", "C": "Oxygen", "D": "Hydrogen"},
                    "difficulty": "Easy",
                },
                {
                    "question_number": 3,
                    "question_text": "The Calvin cycle takes place in the:",
                    "options": {"A": "Thylakoid membrane", "B": "Stroma", "C": "Cytoplasm", "D": "Cell wall"},
                    "difficulty": "Medium",
                },
            ],
        },
        "fill_blank": {
            "section_title": "Fill in the Blanks",
            "marks_per_question": 1,
            "total_marks": 2,
            "questions": [
                {"question_number": 1, "question_text": "The green pigment in leaves is called _____."},
                {"question_number": 2, "question_text": "Light reactions produce ATP and _____."},
            ],
        },
        "true_false": {
            "section_title": "True or False",
            "marks_per_question": 1,
            "total_marks": 2,
            "questions": [
                {"question_number": 1, "statement": "Photosynthesis converts light energy into chemical energy."},
                {"question_number": 2, "statement": "Plants absorb oxygen during photosynthesis."},
            ],
        },
        "short_answer": {
            "section_title": "Short Answer",
            "marks_per_question": 7,
            "total_marks": 7,
            "questions": [
                {
                    "question_number": 1,
                    "question_text": "Describe how light intensity affects the rate of photosynthesis.",
                    "expected_length": "3-4 sentences",
                },
            ],
        },
    },
    "answer_key": {
        "mcq": {"1": "B", "2": "C", "3": "B"},
        "fill_blank": {"1": "chlorophyll", "2": "NADPH"},
        "true_false": {"1": True, "2": False},
        "short_answer": {
            "1": "Rate rises with light intensity until another factor such as CO2 or temperature becomes limiting.",
        },
    },
})
