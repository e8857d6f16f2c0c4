"""
Quiz generation, storage and submission API endpoints

Domain errors (QuizError) propagate to the handlers in app.main, which
turn them into status codes with stable messages.
"""

from fastapi import APIRouter, Depends, Response
from typing import List, Optional
import logging

from app.exceptions import NotFound
from app.schemas.quiz import (
    Quiz,
    QuizAttempt,
    QuizGenerateRequest,
    QuizGenerateResponse,
    QuizResult,
    QuizSaveRequest,
    QuizSaveResponse,
    QuizStatus,
    QuizStatusUpdate,
    QuizSubmission,
    QuizWithQuestions,
)
from app.services.quiz_service import QuizService, get_quiz_service
from app.utils.identity import get_caller_id
from app.utils.rate_limiter import enforce_generation_rate_limit


router = APIRouter(prefix="/api/quizzes", tags=["quizzes"])
logger = logging.getLogger(__name__)


@router.post("/generate", response_model=QuizGenerateResponse)
async def generate_questions(
    request: QuizGenerateRequest,
    client_id: str = Depends(enforce_generation_rate_limit),
    caller_id: str = Depends(get_caller_id),
    service: QuizService = Depends(get_quiz_service),
):
    """
    Generate draft questions from lesson content

    - Tries the primary provider, then the fallback
    - Validates every question (4 options, letter A-D, explanation)
    - Drafts are not stored until the quiz is saved
    """
    logger.info(
        f"Generating {request.question_count} {request.difficulty.value} questions for {caller_id} ({client_id})"
    )

    questions = await service.generate(
        request.lesson_content,
        request.difficulty,
        request.question_count,
    )

    return QuizGenerateResponse(questions=questions, total_questions=len(questions))


@router.post("", response_model=QuizSaveResponse, status_code=201)
async def save_quiz(
    request: QuizSaveRequest,
    caller_id: str = Depends(get_caller_id),
    service: QuizService = Depends(get_quiz_service),
):
    """Save a quiz and its reviewed questions; the caller becomes the owner"""
    quiz_id = await service.save(request.quiz, request.questions, owner_id=caller_id)
    return QuizSaveResponse(quiz_id=quiz_id)


@router.get("", response_model=List[Quiz])
async def list_quizzes(
    status: Optional[QuizStatus] = None,
    service: QuizService = Depends(get_quiz_service),
):
    """List all quizzes, optionally filtered by status"""
    return await service.list_all(status)


@router.get("/attempts/me", response_model=List[QuizAttempt])
async def my_attempts(
    caller_id: str = Depends(get_caller_id),
    service: QuizService = Depends(get_quiz_service),
):
    """Attempts submitted by the caller"""
    return await service.attempts_for(caller_id)


@router.get("/{quiz_id}", response_model=QuizWithQuestions)
async def get_quiz(quiz_id: str, service: QuizService = Depends(get_quiz_service)):
    """Quiz with its questions in order"""
    quiz = await service.fetch(quiz_id)
    if quiz is None:
        raise NotFound("Quiz not found")
    return quiz


@router.post("/{quiz_id}/submit", response_model=QuizResult)
async def submit_quiz(
    quiz_id: str,
    submission: QuizSubmission,
    caller_id: str = Depends(get_caller_id),
    service: QuizService = Depends(get_quiz_service),
):
    """
    Submit answers and get the graded result

    Returns:
    - Integer percentage score
    - Correct answer and explanation for every question
    """
    logger.info(f"Grading quiz {quiz_id} for user {caller_id}")

    return await service.submit(
        quiz_id,
        submission.answers,
        user_id=caller_id,
        time_spent=submission.time_spent,
    )


@router.patch("/{quiz_id}/status", response_model=Quiz)
async def update_status(
    quiz_id: str,
    update: QuizStatusUpdate,
    caller_id: str = Depends(get_caller_id),
    service: QuizService = Depends(get_quiz_service),
):
    """Publish or archive a quiz (owner only)"""
    return await service.set_status(quiz_id, update.status, caller_id)


@router.delete("/{quiz_id}", status_code=204)
async def delete_quiz(
    quiz_id: str,
    caller_id: str = Depends(get_caller_id),
    service: QuizService = Depends(get_quiz_service),
):
    """Delete a quiz and its questions (owner only); attempts are kept"""
    await service.delete(quiz_id, caller_id)
    return Response(status_code=204)
