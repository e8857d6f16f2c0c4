"""
Error kinds raised by the quiz lifecycle core

Every failure is scoped to the triggering call. Messages are stable and
never carry provider or storage detail.
"""


class QuizError(Exception):
    """Base class for all quiz lifecycle failures"""

    code = "quiz_error"
    status_code = 500
    default_message = "Quiz operation failed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailed(QuizError):
    """Bad caller input"""

    code = "validation_failed"
    status_code = 422
    default_message = "Invalid request"


class NotFound(QuizError):
    """Referenced quiz or question does not exist"""

    code = "not_found"
    status_code = 404
    default_message = "Quiz not found"


class PermissionDenied(QuizError):
    """Caller is not the owner of the quiz"""

    code = "permission_denied"
    status_code = 403
    default_message = "Only the quiz owner can do that"


class GenerationFailed(QuizError):
    """Question generation could not produce a usable batch"""

    code = "generation_failed"
    status_code = 502
    default_message = "Quiz generation failed"


class ServiceUnavailable(GenerationFailed):
    """Every generation provider failed"""

    code = "service_unavailable"
    status_code = 503
    default_message = "Quiz generation service is currently unavailable. Please try again later."


class InvalidGeneration(GenerationFailed):
    """Provider answered, but the payload broke the question contract"""

    code = "invalid_generation"
    default_message = "Invalid quiz response format"


class EmptyLessonContent(ValidationFailed, GenerationFailed):
    """Lesson text was empty; raised before any provider is called"""

    code = "empty_lesson_content"
    status_code = 422
    default_message = "Lesson content must not be empty"


class PersistenceFailed(QuizError):
    """Storage operation failed, including partial multi-record writes"""

    code = "persistence_failed"
    status_code = 500
    default_message = "Failed to store quiz data"
