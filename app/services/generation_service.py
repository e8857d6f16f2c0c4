"""
Question generation with ordered provider fallback

Flow:
1. Reject empty lesson text before any provider is called
2. Try each provider in order, each call bounded by a timeout
3. Validate the first successful payload against the question contract
4. Truncate to the requested count (never pad)
"""
import asyncio
import logging
from typing import List, Optional, Sequence

from pydantic import ValidationError

from app.config import settings
from app.exceptions import EmptyLessonContent, InvalidGeneration, ServiceUnavailable, ValidationFailed
from app.schemas.quiz import Difficulty, GenerateQuizResponse, GeneratedQuestion
from app.services.gemini_service import ProviderError, QuestionProvider, build_providers
from app.utils.cache import CacheService, cache_service

logger = logging.getLogger(__name__)


class QuestionGenerationService:
    """
    Service hiding provider failover from callers

    Fallback happens on transport or provider failure (exception, timeout,
    unparseable payload). A payload that parses but breaks the question
    contract raises InvalidGeneration without trying the next provider,
    unless fallback_on_invalid is set.
    """

    def __init__(
        self,
        providers: Sequence[QuestionProvider],
        timeout: float = None,
        cache: Optional[CacheService] = None,
        fallback_on_invalid: bool = False,
    ):
        if not providers:
            raise ValueError("At least one provider is required")
        self.providers = list(providers)
        self.timeout = timeout or settings.GENERATION_TIMEOUT_SECONDS
        self.cache = cache
        self.fallback_on_invalid = fallback_on_invalid

    async def generate(
        self,
        lesson_text: str,
        difficulty: Difficulty = Difficulty.INTERMEDIATE,
        count: int = None,
    ) -> List[GeneratedQuestion]:
        """
        Generate validated questions for a lesson

        Args:
            lesson_text: Free-text lesson content
            difficulty: beginner/intermediate/advanced
            count: Number of questions wanted

        Returns:
            At most `count` validated questions

        Raises:
            EmptyLessonContent: lesson text is empty
            ServiceUnavailable: every provider failed
            InvalidGeneration: a provider's payload broke the contract
        """
        if lesson_text is None or not lesson_text.strip():
            raise EmptyLessonContent()

        count = settings.DEFAULT_QUESTION_COUNT if count is None else count
        if count < 1:
            raise ValidationFailed("Question count must be at least 1")

        try:
            difficulty = Difficulty(difficulty)
        except ValueError:
            raise ValidationFailed(f"Unknown difficulty: {difficulty}")

        cache_key = None
        if self.cache is not None:
            cache_key = self.cache.generation_cache_key(lesson_text, difficulty.value, count)
            cached = self.cache.get(cache_key)
            if cached:
                logger.info(f"Returning cached questions for {cache_key}")
                return [GeneratedQuestion.model_validate(item) for item in cached]

        questions = await self._generate_with_fallback(lesson_text, difficulty, count)

        if cache_key is not None:
            self.cache.set(cache_key, [q.model_dump() for q in questions])

        return questions

    async def _generate_with_fallback(
        self,
        lesson_text: str,
        difficulty: Difficulty,
        count: int,
    ) -> List[GeneratedQuestion]:
        for index, provider in enumerate(self.providers):
            if index > 0:
                logger.warning(f"Falling back to provider {provider.name}")
            logger.info(f"Attempting question generation with {provider.name}")

            try:
                payload = await asyncio.wait_for(
                    provider.generate(lesson_text, difficulty.value, count),
                    timeout=self.timeout,
                )
            except asyncio.TimeoutError:
                logger.warning(f"Provider {provider.name} timed out after {self.timeout}s")
                continue
            except ProviderError as e:
                logger.warning(f"Provider {provider.name} failed: {str(e)}")
                continue
            except Exception as e:
                logger.warning(f"Provider {provider.name} raised unexpectedly: {str(e)}", exc_info=True)
                continue

            try:
                questions = self.validate_response(payload)
            except InvalidGeneration:
                if self.fallback_on_invalid:
                    logger.warning(f"Provider {provider.name} returned an invalid payload")
                    continue
                raise

            logger.info(f"Provider {provider.name} returned {len(questions)} valid questions")
            return questions[:count]

        logger.error("All question generation providers failed")
        raise ServiceUnavailable()

    @staticmethod
    def validate_response(payload) -> List[GeneratedQuestion]:
        """
        Check every item against the question contract

        Raises:
            InvalidGeneration: if any item is invalid
        """
        try:
            response = GenerateQuizResponse.model_validate(payload)
        except ValidationError as e:
            logger.error(f"Generated questions failed validation: {e.error_count()} error(s)")
            logger.debug(str(e))
            raise InvalidGeneration() from e

        return response.questions


def build_generation_service() -> QuestionGenerationService:
    """Service wired from settings"""
    return QuestionGenerationService(
        providers=build_providers(settings),
        timeout=settings.GENERATION_TIMEOUT_SECONDS,
        cache=cache_service,
        fallback_on_invalid=settings.GENERATION_FALLBACK_ON_INVALID,
    )


# Global instance
generation_service = build_generation_service()
