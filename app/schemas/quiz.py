"""
Pydantic schemas for quiz-related records, requests and responses
"""
from datetime import datetime
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator

from app.config import settings


AnswerLetter = Literal["A", "B", "C", "D"]

OPTION_COUNT = 4


class Difficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class QuizStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


def _require_text(value: str) -> str:
    if not value.strip():
        raise ValueError("must be a non-empty string")
    return value


NonEmptyStr = Annotated[str, AfterValidator(_require_text)]


class GeneratedQuestion(BaseModel):
    """One item as returned by a generation provider"""
    question: NonEmptyStr
    options: List[NonEmptyStr]
    correct_answer: AnswerLetter
    explanation: NonEmptyStr

    @field_validator("options")
    @classmethod
    def check_options(cls, value: List[str]) -> List[str]:
        if len(value) != OPTION_COUNT:
            raise ValueError(f"exactly {OPTION_COUNT} options are required")
        return value


class GenerateQuizResponse(BaseModel):
    """Provider payload: {"questions": [...]}"""
    questions: List[GeneratedQuestion]


class Question(BaseModel):
    """Question record; drafts carry a temporary id and an empty quiz_id"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    quiz_id: str = ""
    question_text: NonEmptyStr
    options: List[NonEmptyStr]
    correct_answer: AnswerLetter
    explanation: NonEmptyStr
    position: int = Field(..., ge=1)
    created_at: Optional[datetime] = None

    @field_validator("options")
    @classmethod
    def check_options(cls, value: List[str]) -> List[str]:
        if len(value) != OPTION_COUNT:
            raise ValueError(f"exactly {OPTION_COUNT} options are required")
        return value


class QuizCreate(BaseModel):
    """Instructor-supplied quiz metadata"""
    title: str
    description: str = ""
    lesson_id: Optional[str] = None
    status: QuizStatus = QuizStatus.PUBLISHED


class Quiz(BaseModel):
    """Quiz record"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str = ""
    lesson_id: Optional[str] = None
    created_by: str
    created_at: Optional[datetime] = None
    status: QuizStatus
    question_count: int
    estimated_time: int  # minutes


class QuizWithQuestions(Quiz):
    questions: List[Question]


class QuizAttempt(BaseModel):
    """Stored learner submission"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    quiz_id: str
    user_id: str
    answers: Dict[str, str]
    score: int = Field(..., ge=0, le=100)
    completed_at: datetime
    time_spent: int = 0  # seconds


class QuizResult(BaseModel):
    """Transient grading outcome returned on submission"""
    score: int
    total_questions: int
    correct_count: int
    correct_answers: Dict[str, str]
    explanations: Dict[str, str]
    time_spent: int = 0
    attempt_id: Optional[str] = None


# Requests

class QuizGenerateRequest(BaseModel):
    """Request schema for question generation"""
    lesson_content: str = Field(..., description="Free-text lesson content")
    difficulty: Difficulty = Difficulty.INTERMEDIATE
    question_count: int = Field(
        settings.DEFAULT_QUESTION_COUNT,
        ge=1,
        le=settings.MAX_QUESTION_COUNT,
        description="Number of questions to generate",
    )


class QuizGenerateResponse(BaseModel):
    questions: List[Question]
    total_questions: int


class QuizSaveRequest(BaseModel):
    """Metadata plus the reviewed draft questions"""
    quiz: QuizCreate
    questions: List[Question]


class QuizSaveResponse(BaseModel):
    quiz_id: str


class QuizSubmission(BaseModel):
    """Schema for quiz submission; the score is never accepted from clients"""
    answers: Dict[str, str]
    time_spent: int = Field(0, ge=0, description="Elapsed time in seconds")


class QuizStatusUpdate(BaseModel):
    status: QuizStatus
