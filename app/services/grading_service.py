"""
Quiz grading

Multiple-choice only: a question is correct when the submitted letter
equals the stored correct letter exactly. Grading is a pure function of
(questions, answers).
"""
from dataclasses import dataclass, field
from typing import Dict, Mapping, Sequence

from app.schemas.quiz import Question


@dataclass(frozen=True)
class GradeOutcome:
    score: int
    correct_count: int
    total_questions: int
    correct_answers: Dict[str, str] = field(default_factory=dict)
    explanations: Dict[str, str] = field(default_factory=dict)


def percentage_score(correct: int, total: int) -> int:
    """
    Integer percentage rounded half up

    (200 * correct + total) // (2 * total) == floor(100 * correct / total + 0.5)
    without floating point error. An empty quiz scores 0.
    """
    if total <= 0:
        return 0
    return (200 * correct + total) // (2 * total)


def grade(questions: Sequence[Question], answers: Mapping[str, str]) -> GradeOutcome:
    """
    Grade a submission

    Args:
        questions: The quiz's questions
        answers: {question_id: letter}; missing ids count as incorrect

    Returns:
        GradeOutcome with maps ordered by question position
    """
    ordered = sorted(questions, key=lambda q: q.position)

    correct_answers: Dict[str, str] = {}
    explanations: Dict[str, str] = {}
    correct_count = 0

    for question in ordered:
        correct_answers[question.id] = question.correct_answer
        explanations[question.id] = question.explanation

        if answers.get(question.id) == question.correct_answer:
            correct_count += 1

    return GradeOutcome(
        score=percentage_score(correct_count, len(ordered)),
        correct_count=correct_count,
        total_questions=len(ordered),
        correct_answers=correct_answers,
        explanations=explanations,
    )
