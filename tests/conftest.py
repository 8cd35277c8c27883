"""
Pytest configuration and fixtures for the quiz generation service.

Provides:
- In-memory SQLite database per test (aiosqlite)
- Async HTTP client bound to the FastAPI app
- Fake Gemini client with deterministic replies
- Bearer token helpers and seed helpers for quizzes/questions
"""

import os
import json
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, List, Optional

# Set test environment before importing app
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret-not-real"
os.environ["GEMINI_API_KEY"] = "test-key-not-real"

import httpx
import pytest
import pytest_asyncio
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from quizgen.api.quizzes import get_quiz_generator
from quizgen.database import Base, get_db
from quizgen.main import app
from quizgen.models import Question, Quiz, QuizAttempt, QuizQuestion
from quizgen.services.gemini_service import ModelReply
from quizgen.services.quiz_generator import QuizGenerator

TEST_JWT_SECRET = "test-jwt-secret-not-real"
TEST_USER_ID = "user-123"


# =========================================================================
# Database
# =========================================================================

@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database for each test"""
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# =========================================================================
# Gemini fake
# =========================================================================

def compact_questions(count: int, prefix: str = "Q") -> List[dict]:
    return [
        {
            "question": f"{prefix}{i + 1}: What is {i} + 1?",
            "option_1": str(i),
            "option_2": str(i + 1),
            "option_3": str(i + 2),
            "option_4": str(i + 3),
            "correct_answer": 1,
        }
        for i in range(count)
    ]


class FakeModel:
    """Stands in for GeminiService; records every prompt pair"""

    def __init__(self, text: Optional[str] = None, error: Optional[Exception] = None):
        self.text = text if text is not None else json.dumps(compact_questions(5))
        self.error = error
        self.calls: List[tuple] = []

    async def generate(self, system: str, user: str) -> ModelReply:
        self.calls.append((system, user))
        if self.error is not None:
            raise self.error
        return ModelReply(text=self.text, finish_reason="STOP")


@pytest.fixture
def fake_model() -> FakeModel:
    return FakeModel()


@pytest.fixture
def generator(fake_model) -> QuizGenerator:
    return QuizGenerator(model=fake_model)


# =========================================================================
# HTTP client
# =========================================================================

@pytest_asyncio.fixture
async def client(session_factory, generator) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Async client wired to the test database and fake model"""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_quiz_generator] = lambda: generator

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_token(sub: str = TEST_USER_ID, expires_in: int = 3600, secret: str = TEST_JWT_SECRET) -> str:
    now = int(time.time())
    claims = {"sub": sub, "aud": "authenticated", "iat": now, "exp": now + expires_in}
    return jwt.encode(claims, secret, algorithm="HS256")


@pytest.fixture
def auth_headers() -> dict:
    return {"Authorization": f"Bearer {make_token()}"}


# =========================================================================
# Seed helpers
# =========================================================================

async def seed_quiz(
    db: AsyncSession,
    topic: str = "Algebra",
    difficulty: str = "medium",
    owner_id: str = "someone-else",
    count: int = 5,
    created_at: Optional[datetime] = None,
) -> Quiz:
    """Quiz with `count` owned questions linked in order"""
    quiz = Quiz(
        id=uuid.uuid4(),
        topic=topic,
        difficulty=difficulty,
        owner_id=owner_id,
        created_at=created_at or datetime.now(timezone.utc) - timedelta(hours=1),
    )
    db.add(quiz)
    await db.flush()

    for position in range(count):
        question = Question(
            id=uuid.uuid4(),
            quiz_id=quiz.id,
            text=f"{topic} question {position + 1}",
            options=["A", "B", "C", "D"],
            correct_option_index=position % 4,
            difficulty=difficulty,
            topic=topic,
            explanation="",
        )
        db.add(question)
        await db.flush()
        db.add(QuizQuestion(quiz_id=quiz.id, question_id=question.id, position=position))

    await db.commit()
    return quiz


async def record_attempt(db: AsyncSession, user_id: str, quiz_id: uuid.UUID) -> None:
    db.add(QuizAttempt(user_id=user_id, quiz_id=quiz_id, score=3, total_questions=5))
    await db.commit()
