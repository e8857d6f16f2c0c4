"""
Test doubles for providers and stores
"""
import asyncio
from typing import Any, Dict, List

from app.services.document_store import MemoryDocumentStore, StoreError
from app.services.gemini_service import ProviderError, QuestionProvider


def make_item(n: int = 1, answer: str = "A") -> Dict[str, Any]:
    """A generated question that satisfies the contract"""
    return {
        "question": f"Question {n}?",
        "options": [f"A) a{n}", f"B) b{n}", f"C) c{n}", f"D) d{n}"],
        "correct_answer": answer,
        "explanation": f"Because of reason {n}.",
    }


def make_payload(count: int, answers: str = "ABCD") -> Dict[str, Any]:
    return {
        "questions": [make_item(i + 1, answers[i % len(answers)]) for i in range(count)]
    }


class StaticProvider(QuestionProvider):
    """Returns a fixed payload and records every call"""

    def __init__(self, payload: Any, name: str = "static"):
        self.payload = payload
        self.name = name
        self.calls: List[tuple] = []

    async def generate(self, lesson_text, difficulty, count):
        self.calls.append((lesson_text, difficulty, count))
        return self.payload


class FailingProvider(QuestionProvider):
    def __init__(self, error: Exception = None, name: str = "failing"):
        self.error = error or ProviderError("provider down: secret-internal-detail")
        self.name = name
        self.calls = 0

    async def generate(self, lesson_text, difficulty, count):
        self.calls += 1
        raise self.error


class SlowProvider(QuestionProvider):
    def __init__(self, delay: float, name: str = "slow"):
        self.delay = delay
        self.name = name

    async def generate(self, lesson_text, difficulty, count):
        await asyncio.sleep(self.delay)
        return make_payload(count)


class ReversingStore(MemoryDocumentStore):
    """Returns query results in reverse insertion order"""

    async def query_by_equality(self, collection, field, value):
        return list(reversed(await super().query_by_equality(collection, field, value)))


class FlakyStore(MemoryDocumentStore):
    """Fails put_record on the given collection after `allowed` successes"""

    def __init__(self, collection: str, allowed: int):
        super().__init__()
        self.fail_collection = collection
        self.allowed = allowed

    async def put_record(self, collection, record_id, fields):
        if collection == self.fail_collection:
            if self.allowed <= 0:
                raise StoreError("disk full at /var/lib/quizzes")
            self.allowed -= 1
        return await super().put_record(collection, record_id, fields)


class BrokenStore(MemoryDocumentStore):
    """Every read fails"""

    async def get_record(self, collection, record_id):
        raise StoreError("connection reset")

    async def list_all(self, collection):
        raise StoreError("connection reset")

    async def query_by_equality(self, collection, field, value):
        raise StoreError("connection reset")
