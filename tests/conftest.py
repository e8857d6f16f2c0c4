"""
Pytest configuration and shared fixtures
"""
import os

# Must be set before app modules read settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CACHE_ENABLED"] = "false"
os.environ["GEMINI_API_KEY"] = ""

import pytest
from sqlalchemy.orm import sessionmaker

from app.database import create_db_engine, init_db
from app.schemas.quiz import QuizCreate
from app.services.document_store import MemoryDocumentStore, SQLDocumentStore
from app.services.generation_service import QuestionGenerationService
from app.services.quiz_service import QuizService
from tests.fakes import StaticProvider, make_payload


def pytest_collection_modifyitems(config, items):
    """Mark tests based on their location"""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture
def memory_store():
    return MemoryDocumentStore()


@pytest.fixture
def sql_store():
    """SQL store on a private in-memory SQLite database"""
    engine = create_db_engine("sqlite://")
    init_db(bind=engine)
    yield SQLDocumentStore(sessionmaker(bind=engine, autoflush=False))
    engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def store(request):
    """Each store backend in turn"""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def provider():
    return StaticProvider(make_payload(4), name="primary")


@pytest.fixture
def generator(provider):
    return QuestionGenerationService([provider], timeout=1.0)


@pytest.fixture
def quiz_service(memory_store, generator):
    return QuizService(store=memory_store, generator=generator)


@pytest.fixture
def quiz_metadata():
    return QuizCreate(title="Photosynthesis basics", description="Week 3 check-in")
