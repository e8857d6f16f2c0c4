"""
Unit tests for generation providers.

Gemini is never contacted; the SDK model is swapped for a stub.
"""
import json
from types import SimpleNamespace

import pytest

from app.config import Settings
from app.services.gemini_service import (
    GeminiProvider,
    ProviderError,
    TemplateProvider,
    build_providers,
    parse_questions_payload,
    strip_code_fences,
)
from app.services.generation_service import QuestionGenerationService
from tests.fakes import make_item


class StubModel:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.prompts = []

    async def generate_content_async(self, prompt, generation_config=None):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return SimpleNamespace(text=self.text)


class TestParsing:

    @pytest.mark.parametrize("raw", [
        '```json\n{"questions": []}\n```',
        '```\n{"questions": []}\n```',
        '{"questions": []}',
        '  {"questions": []}  ',
    ])
    def test_strip_code_fences(self, raw):
        assert strip_code_fences(raw) == '{"questions": []}'

    def test_parse_object(self):
        payload = parse_questions_payload(json.dumps({"questions": [make_item()]}))
        assert payload["questions"][0]["correct_answer"] == "A"

    def test_parse_bare_list_is_wrapped(self):
        payload = parse_questions_payload(json.dumps([make_item()]))
        assert len(payload["questions"]) == 1

    def test_invalid_json_is_provider_error(self):
        with pytest.raises(ProviderError):
            parse_questions_payload("Sure! Here is your quiz:")

    @pytest.mark.parametrize("raw", ['"text"', '{"items": []}', '{"questions": "none"}', "42"])
    def test_wrong_shape_is_provider_error(self, raw):
        with pytest.raises(ProviderError):
            parse_questions_payload(raw)


class TestGeminiProvider:

    @pytest.fixture
    def gemini(self):
        return GeminiProvider("gemini-1.5-flash", api_key="test-key")

    @pytest.mark.asyncio
    async def test_generate_parses_model_output(self, gemini):
        gemini.model = StubModel(text="```json\n" + json.dumps({"questions": [make_item()]}) + "\n```")

        payload = await gemini.generate("Mitochondria make ATP.", "advanced", 3)

        assert payload["questions"][0]["question"] == "Question 1?"
        prompt = gemini.model.prompts[0]
        assert "Mitochondria make ATP." in prompt
        assert "advanced" in prompt
        assert "EXACTLY 3 questions" in prompt

    @pytest.mark.asyncio
    async def test_sdk_errors_become_provider_errors(self, gemini):
        gemini.model = StubModel(error=RuntimeError("429 quota exceeded"))

        with pytest.raises(ProviderError):
            await gemini.generate("text", "beginner", 4)

    def test_provider_is_named_after_model(self, gemini):
        assert gemini.name == "gemini-1.5-flash"


class TestTemplateProvider:

    @pytest.mark.asyncio
    async def test_returns_valid_questions(self):
        payload = await TemplateProvider().generate("Plants convert light into energy", "intermediate", 4)

        questions = QuestionGenerationService.validate_response(payload)

        assert len(questions) == 4
        assert [q.correct_answer for q in questions] == ["A", "B", "B", "C"]
        assert "Plants convert light into ener" in questions[0].question

    @pytest.mark.asyncio
    async def test_slices_to_count(self):
        payload = await TemplateProvider().generate("text", "beginner", 2)
        assert len(payload["questions"]) == 2


class TestBuildProviders:

    def test_no_key_uses_template(self):
        providers = build_providers(Settings(GEMINI_API_KEY=""))

        assert len(providers) == 1
        assert isinstance(providers[0], TemplateProvider)

    def test_key_gives_primary_then_fallback(self):
        config = Settings(
            GEMINI_API_KEY="test-key",
            GEMINI_PRIMARY_MODEL="gemini-1.5-pro",
            GEMINI_FALLBACK_MODEL="gemini-1.5-flash",
        )

        providers = build_providers(config)

        assert [p.name for p in providers] == ["gemini-1.5-pro", "gemini-1.5-flash"]
