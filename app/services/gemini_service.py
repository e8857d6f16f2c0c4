"""
Question generation providers

A provider turns lesson text into a raw {"questions": [...]} payload.
Validation of that payload is the generation service's job, not the
provider's.
"""
import google.generativeai as genai
from app.config import Settings
import json
import logging
from abc import ABC, abstractmethod
from typing import List, Dict, Any

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Transport, provider or unparseable-payload failure"""


class QuestionProvider(ABC):
    """Capability that produces candidate questions from lesson text"""

    name: str = "provider"

    @abstractmethod
    async def generate(self, lesson_text: str, difficulty: str, count: int) -> Dict[str, Any]:
        """Return a payload shaped like {"questions": [...]}"""


def strip_code_fences(text: str) -> str:
    """Remove markdown code blocks Gemini sometimes wraps JSON in"""
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def parse_questions_payload(response_text: str) -> Dict[str, Any]:
    """
    Parse a provider's text response into a questions payload

    Raises:
        ProviderError: if the text is not JSON or has the wrong outer shape
    """
    try:
        payload = json.loads(strip_code_fences(response_text))
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse quiz JSON: {str(e)}")
        logger.error(f"Response text: {response_text[:500]}")
        raise ProviderError("Response is not valid JSON") from e

    # Bare arrays are accepted and wrapped
    if isinstance(payload, list):
        return {"questions": payload}
    if isinstance(payload, dict) and isinstance(payload.get("questions"), list):
        return payload

    raise ProviderError("Response is not a list of questions")


class GeminiProvider(QuestionProvider):
    """Gemini model behind the provider interface"""

    def __init__(self, model_name: str, api_key: str):
        self.name = model_name
        genai.configure(api_key=api_key)
        self.model = genai.GenerativeModel(model_name)

    async def generate(self, lesson_text: str, difficulty: str, count: int) -> Dict[str, Any]:
        prompt = self._create_quiz_prompt(lesson_text, difficulty, count)

        try:
            response = await self.model.generate_content_async(
                prompt,
                generation_config={"response_mime_type": "application/json"},
            )
            text = response.text
        except Exception as e:
            # The SDK raises a wide range of transport and safety errors
            raise ProviderError(f"{self.name} request failed: {str(e)}") from e

        return parse_questions_payload(text)

    def _create_quiz_prompt(self, lesson_text: str, difficulty: str, count: int) -> str:
        """Create structured prompt for question generation"""

        return f"""
You are an expert educator creating a {difficulty} level multiple-choice quiz.

Lesson content:
\"\"\"
{lesson_text}
\"\"\"

Generate EXACTLY {count} questions that test understanding of the lesson.
- Each question has exactly 4 options
- Exactly one option is correct
- Distractors should reflect common misconceptions
- Each question includes a short explanation of the correct answer

Return ONLY valid JSON in this exact format (no markdown, no preamble):

{{
  "questions": [
    {{
      "question": "Question text here?",
      "options": ["A) ...", "B) ...", "C) ...", "D) ..."],
      "correct_answer": "A",
      "explanation": "Why A is correct"
    }}
  ]
}}

"correct_answer" must be one of "A", "B", "C" or "D".
"""


class TemplateProvider(QuestionProvider):
    """
    Offline provider returning generic lesson-comprehension questions

    Used when no Gemini API key is configured so the quiz flow still works
    end to end in development.
    """

    name = "template"

    async def generate(self, lesson_text: str, difficulty: str, count: int) -> Dict[str, Any]:
        preview = lesson_text[:30]

        questions = [
            {
                "question": f'Based on the lesson content about "{preview}...", what is the main concept?',
                "options": [
                    "A) The primary concept discussed in the lesson",
                    "B) A secondary supporting idea",
                    "C) An unrelated concept",
                    "D) A contradictory statement",
                ],
                "correct_answer": "A",
                "explanation": "The main concept is typically introduced early and reinforced throughout the lesson content.",
            },
            {
                "question": "Which of the following best describes the key learning objective?",
                "options": [
                    "A) To memorize facts without understanding",
                    "B) To understand and apply the core principles",
                    "C) To ignore practical applications",
                    "D) To focus only on theoretical aspects",
                ],
                "correct_answer": "B",
                "explanation": "Effective learning combines understanding of principles with practical application.",
            },
            {
                "question": "What would be the most appropriate next step after learning this material?",
                "options": [
                    "A) Forget everything immediately",
                    "B) Practice applying the concepts",
                    "C) Avoid using the knowledge",
                    "D) Only teach others without practicing",
                ],
                "correct_answer": "B",
                "explanation": "Practice and application help solidify understanding and build competency.",
            },
            {
                "question": "How does this lesson content relate to real-world applications?",
                "options": [
                    "A) It has no practical relevance",
                    "B) It only applies in academic settings",
                    "C) It can be applied to solve practical problems",
                    "D) It contradicts real-world evidence",
                ],
                "correct_answer": "C",
                "explanation": "Good educational content bridges theory with practical, real-world applications.",
            },
        ]

        return {"questions": questions[:count]}


def build_providers(config: Settings) -> List[QuestionProvider]:
    """Ordered provider list: primary first, then fallback"""
    if not config.GEMINI_API_KEY:
        logger.warning("GEMINI_API_KEY not set; using offline template questions")
        return [TemplateProvider()]

    return [
        GeminiProvider(config.GEMINI_PRIMARY_MODEL, config.GEMINI_API_KEY),
        GeminiProvider(config.GEMINI_FALLBACK_MODEL, config.GEMINI_API_KEY),
    ]
