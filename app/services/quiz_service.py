"""
Quiz lifecycle: generate → save → fetch → submit → score

The only component with domain authority. Storage and provider errors
are logged here and re-raised as stable error kinds.
"""
import logging
import math
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from pydantic import ValidationError

from app.config import settings
from app.database import SessionLocal
from app.exceptions import (
    NotFound,
    PermissionDenied,
    PersistenceFailed,
    ValidationFailed,
)
from app.schemas.quiz import (
    Difficulty,
    Question,
    Quiz,
    QuizAttempt,
    QuizCreate,
    QuizResult,
    QuizStatus,
    QuizWithQuestions,
)
from app.services.document_store import DocumentStore, SQLDocumentStore, StoreError
from app.services.generation_service import QuestionGenerationService, generation_service
from app.services.grading_service import grade

logger = logging.getLogger(__name__)

QUIZZES = "quizzes"
QUESTIONS = "questions"
ATTEMPTS = "quiz_attempts"

# Owner-driven status moves; nothing leaves archived
ALLOWED_TRANSITIONS = {
    QuizStatus.DRAFT: {QuizStatus.PUBLISHED, QuizStatus.ARCHIVED},
    QuizStatus.PUBLISHED: {QuizStatus.ARCHIVED},
    QuizStatus.ARCHIVED: set(),
}


def estimate_minutes(question_count: int) -> int:
    return math.ceil(question_count * settings.MINUTES_PER_QUESTION)


def question_record_id(quiz_id: str, position: int) -> str:
    return f"{quiz_id}_q_{position}"


class QuizService:
    """Orchestrates the quiz lifecycle over a document store"""

    def __init__(self, store: DocumentStore, generator: QuestionGenerationService):
        self.store = store
        self.generator = generator

    async def generate(
        self,
        lesson_content: str,
        difficulty: Difficulty = Difficulty.INTERMEDIATE,
        question_count: int = None,
    ) -> List[Question]:
        """
        Generate draft questions for instructor review

        Drafts carry a temporary id and an empty quiz_id until saved.

        Raises:
            EmptyLessonContent: lesson content is empty
            GenerationFailed: providers exhausted or payload invalid
        """
        generated = await self.generator.generate(lesson_content, difficulty, question_count)

        stamp = int(time.time() * 1000)
        now = datetime.now(timezone.utc)

        return [
            Question(
                id=f"temp_{stamp}_{index}",
                quiz_id="",
                question_text=item.question,
                options=list(item.options),
                correct_answer=item.correct_answer,
                explanation=item.explanation,
                position=index + 1,
                created_at=now,
            )
            for index, item in enumerate(generated)
        ]

    async def save(
        self,
        metadata: QuizCreate,
        draft_questions: Sequence[Question],
        owner_id: str,
    ) -> str:
        """
        Persist a quiz and its questions

        The quiz is inserted first; questions follow one by one. There is
        no cross-record transaction: if a question insert fails, the quiz's
        question_count is lowered to what was actually written and
        PersistenceFailed is raised.

        Returns:
            The new quiz id
        """
        if not metadata.title or not metadata.title.strip():
            raise ValidationFailed("Quiz title must not be empty")
        if not draft_questions:
            raise ValidationFailed("A quiz needs at least one question")
        if metadata.status == QuizStatus.ARCHIVED:
            raise ValidationFailed("A new quiz cannot start archived")

        positions = sorted(q.position for q in draft_questions)
        if positions != list(range(1, len(draft_questions) + 1)):
            raise ValidationFailed("Question positions must be unique and run from 1 to N")

        for question in draft_questions:
            try:
                # Drafts built with model_copy or model_construct skip validation
                Question.model_validate(question.model_dump())
            except ValidationError as e:
                raise ValidationFailed(f"Invalid question at position {question.position}: {e.errors()[0]['msg']}")

        count = len(draft_questions)
        quiz_fields = {
            "title": metadata.title,
            "description": metadata.description,
            "lesson_id": metadata.lesson_id,
            "status": metadata.status.value,
            "created_by": owner_id,
            "question_count": count,
            "estimated_time": estimate_minutes(count),
        }

        try:
            quiz_id = await self.store.add_record(QUIZZES, quiz_fields)
        except StoreError as e:
            logger.error(f"Failed to save quiz: {str(e)}")
            raise PersistenceFailed("Failed to save quiz")

        written = 0
        try:
            for question in sorted(draft_questions, key=lambda q: q.position):
                record = question.model_dump(mode="json", exclude={"id", "created_at"})
                record["quiz_id"] = quiz_id
                await self.store.put_record(
                    QUESTIONS,
                    question_record_id(quiz_id, question.position),
                    record,
                )
                written += 1
        except StoreError as e:
            logger.error(f"Saved {written}/{count} questions for quiz {quiz_id}: {str(e)}")
            await self._record_partial_save(quiz_id, written)
            raise PersistenceFailed("Failed to save quiz questions")

        logger.info(f"Quiz created: {quiz_id} ({count} questions, owner {owner_id})")
        return quiz_id

    async def _record_partial_save(self, quiz_id: str, written: int) -> None:
        """Best effort: keep question_count truthful after a partial write"""
        try:
            await self.store.put_record(QUIZZES, quiz_id, {
                "question_count": written,
                "estimated_time": estimate_minutes(written),
            })
        except StoreError as e:
            logger.error(f"Could not correct question_count for quiz {quiz_id}: {str(e)}")

    async def fetch(self, quiz_id: str) -> Optional[QuizWithQuestions]:
        """
        Quiz with its questions in position order, or None if absent

        Store order is never trusted; questions are sorted on every read.
        """
        try:
            quiz_record = await self.store.get_record(QUIZZES, quiz_id)
            if quiz_record is None:
                return None
            question_records = await self.store.query_by_equality(QUESTIONS, "quiz_id", quiz_id)
        except StoreError as e:
            logger.error(f"Failed to fetch quiz {quiz_id}: {str(e)}")
            raise PersistenceFailed("Failed to fetch quiz")

        questions = sorted(
            (Question.model_validate(record) for record in question_records),
            key=lambda q: q.position,
        )
        return QuizWithQuestions(**Quiz.model_validate(quiz_record).model_dump(), questions=questions)

    async def submit(
        self,
        quiz_id: str,
        answers: Dict[str, str],
        user_id: str,
        time_spent: int = 0,
    ) -> QuizResult:
        """
        Grade a submission and store the attempt

        Unanswered questions count as incorrect; completeness is the
        caller's concern.

        Raises:
            NotFound: quiz does not exist
        """
        quiz = await self.fetch(quiz_id)
        if quiz is None:
            raise NotFound("Quiz not found")

        outcome = grade(quiz.questions, answers)

        attempt_fields = {
            "quiz_id": quiz_id,
            "user_id": user_id,
            "answers": dict(answers),
            "score": outcome.score,
            "completed_at": datetime.now(timezone.utc).isoformat(),
            "time_spent": time_spent,
        }

        try:
            attempt_id = await self.store.add_record(ATTEMPTS, attempt_fields)
        except StoreError as e:
            logger.error(f"Failed to store attempt for quiz {quiz_id}: {str(e)}")
            raise PersistenceFailed("Failed to submit quiz")

        logger.info(
            f"Quiz attempt saved: {attempt_id}, quiz {quiz_id}, user {user_id}, "
            f"score: {outcome.score}% ({outcome.correct_count}/{outcome.total_questions})"
        )

        return QuizResult(
            score=outcome.score,
            total_questions=outcome.total_questions,
            correct_count=outcome.correct_count,
            correct_answers=outcome.correct_answers,
            explanations=outcome.explanations,
            time_spent=time_spent,
            attempt_id=attempt_id,
        )

    async def list_all(self, status: Optional[QuizStatus] = None) -> List[Quiz]:
        """All quizzes, optionally only those with the given status"""
        try:
            if status is None:
                records = await self.store.list_all(QUIZZES)
            else:
                records = await self.store.query_by_equality(QUIZZES, "status", QuizStatus(status).value)
        except StoreError as e:
            logger.error(f"Failed to list quizzes: {str(e)}")
            raise PersistenceFailed("Failed to fetch quizzes")

        return [Quiz.model_validate(record) for record in records]

    async def attempts_for(self, user_id: str) -> List[QuizAttempt]:
        try:
            records = await self.store.query_by_equality(ATTEMPTS, "user_id", user_id)
        except StoreError as e:
            logger.error(f"Failed to fetch attempts for {user_id}: {str(e)}")
            raise PersistenceFailed("Failed to fetch quiz attempts")

        return [QuizAttempt.model_validate(record) for record in records]

    async def set_status(self, quiz_id: str, status: QuizStatus, caller_id: str) -> Quiz:
        """
        Owner-only status change, checked against ALLOWED_TRANSITIONS

        Raises:
            NotFound, PermissionDenied, ValidationFailed
        """
        quiz = await self._owned_quiz(quiz_id, caller_id)
        target = QuizStatus(status)

        if target not in ALLOWED_TRANSITIONS[quiz.status]:
            raise ValidationFailed(
                f"Cannot change quiz status from {quiz.status.value} to {target.value}"
            )

        try:
            await self.store.put_record(QUIZZES, quiz_id, {"status": target.value})
            updated = await self.store.get_record(QUIZZES, quiz_id)
        except StoreError as e:
            logger.error(f"Failed to update status of quiz {quiz_id}: {str(e)}")
            raise PersistenceFailed("Failed to update quiz")

        logger.info(f"Quiz {quiz_id} status: {quiz.status.value} -> {target.value}")
        return Quiz.model_validate(updated)

    async def delete(self, quiz_id: str, caller_id: str) -> None:
        """
        Owner-only delete; questions go with the quiz, attempts are kept

        Questions are removed first so a failure never leaves questions
        pointing at a missing quiz.
        """
        await self._owned_quiz(quiz_id, caller_id)

        try:
            question_records = await self.store.query_by_equality(QUESTIONS, "quiz_id", quiz_id)
            for record in question_records:
                await self.store.delete_record(QUESTIONS, record["id"])
            await self.store.delete_record(QUIZZES, quiz_id)
        except StoreError as e:
            logger.error(f"Failed to delete quiz {quiz_id}: {str(e)}")
            raise PersistenceFailed("Failed to delete quiz")

        logger.info(f"Quiz deleted: {quiz_id} ({len(question_records)} questions removed)")

    async def _owned_quiz(self, quiz_id: str, caller_id: str) -> Quiz:
        try:
            record = await self.store.get_record(QUIZZES, quiz_id)
        except StoreError as e:
            logger.error(f"Failed to read quiz {quiz_id}: {str(e)}")
            raise PersistenceFailed("Failed to fetch quiz")

        if record is None:
            raise NotFound("Quiz not found")

        quiz = Quiz.model_validate(record)
        if quiz.created_by != caller_id:
            raise PermissionDenied()
        return quiz


def build_quiz_service() -> QuizService:
    """Service wired to the configured database"""
    return QuizService(store=SQLDocumentStore(SessionLocal), generator=generation_service)


# Global instance
quiz_service = build_quiz_service()


def get_quiz_service() -> QuizService:
    """FastAPI dependency; overridden in tests"""
    return quiz_service
