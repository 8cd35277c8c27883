"""
Tests for quiz reuse, unseen-question lookup, persistence and seen bookkeeping.
"""

from datetime import datetime, timedelta, timezone
from typing import Sequence
import uuid

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from quizgen.exceptions import PersistenceFailure
from quizgen.models import Question, Quiz, QuizQuestion, SeenQuestion
from quizgen.services.question_store import QuestionStore
from quizgen.services.response_parser import ParsedQuestion
from tests.conftest import TEST_USER_ID, record_attempt, seed_quiz


class BrokenLinkStore(QuestionStore):
    """Fails while linking questions, after the quiz row is committed"""

    def _link(self, db: AsyncSession, quiz_id: uuid.UUID, question_ids: Sequence[uuid.UUID]) -> None:
        raise OperationalError("INSERT INTO quiz_questions", {}, Exception("disk I/O error"))


def parsed_questions(count: int) -> list:
    return [
        ParsedQuestion(
            question=f"Generated question {i}",
            options=("A", "B", "C", "D"),
            correct_index=i % 4,
            difficulty="easy",
        )
        for i in range(count)
    ]


async def count_rows(db: AsyncSession, model) -> int:
    return await db.scalar(select(func.count()).select_from(model))


@pytest.fixture
def store() -> QuestionStore:
    return QuestionStore()


class TestFindReusableQuiz:

    @pytest.mark.asyncio
    async def test_topic_match_is_case_insensitive(self, db: AsyncSession, store: QuestionStore):
        quiz = await seed_quiz(db, topic="Algebra", difficulty="medium")

        stored = await store.find_reusable_quiz(db, "algebra", "medium", TEST_USER_ID, 5)

        assert stored is not None
        assert stored.quiz.id == quiz.id
        assert [q.text for q in stored.questions] == [f"Algebra question {i}" for i in range(1, 6)]

    @pytest.mark.asyncio
    async def test_most_recent_quiz_wins(self, db: AsyncSession, store: QuestionStore):
        now = datetime.now(timezone.utc)
        await seed_quiz(db, created_at=now - timedelta(days=2))
        newest = await seed_quiz(db, created_at=now - timedelta(minutes=5))

        stored = await store.find_reusable_quiz(db, "Algebra", "medium", TEST_USER_ID, 5)

        assert stored.quiz.id == newest.id

    @pytest.mark.asyncio
    async def test_attempted_quiz_is_skipped(self, db: AsyncSession, store: QuestionStore):
        now = datetime.now(timezone.utc)
        older = await seed_quiz(db, created_at=now - timedelta(days=1))
        newest = await seed_quiz(db, created_at=now - timedelta(minutes=5))
        await record_attempt(db, TEST_USER_ID, newest.id)

        stored = await store.find_reusable_quiz(db, "Algebra", "medium", TEST_USER_ID, 5)

        assert stored.quiz.id == older.id

    @pytest.mark.asyncio
    async def test_attempts_by_other_users_do_not_matter(self, db: AsyncSession, store: QuestionStore):
        quiz = await seed_quiz(db)
        await record_attempt(db, "another-user", quiz.id)

        stored = await store.find_reusable_quiz(db, "Algebra", "medium", TEST_USER_ID, 5)

        assert stored.quiz.id == quiz.id

    @pytest.mark.asyncio
    async def test_question_count_must_match(self, db: AsyncSession, store: QuestionStore):
        await seed_quiz(db, count=10)

        assert await store.find_reusable_quiz(db, "Algebra", "medium", TEST_USER_ID, 5) is None
        assert await store.find_reusable_quiz(db, "Algebra", "medium", TEST_USER_ID, 10) is not None

    @pytest.mark.asyncio
    async def test_difficulty_must_match(self, db: AsyncSession, store: QuestionStore):
        await seed_quiz(db, difficulty="hard")

        assert await store.find_reusable_quiz(db, "Algebra", "medium", TEST_USER_ID, 5) is None


class TestFindUnseenQuestions:

    @pytest.mark.asyncio
    async def test_returns_up_to_limit(self, db: AsyncSession, store: QuestionStore):
        await seed_quiz(db, count=8)

        questions = await store.find_unseen_questions(db, "ALGEBRA", "medium", TEST_USER_ID, 5)

        assert len(questions) == 5
        assert len({q.id for q in questions}) == 5

    @pytest.mark.asyncio
    async def test_seen_questions_excluded(self, db: AsyncSession, store: QuestionStore):
        await seed_quiz(db, count=6)
        all_ids = list(await db.scalars(select(Question.id)))
        await store.mark_seen(db, TEST_USER_ID, all_ids[:4])

        questions = await store.find_unseen_questions(db, "Algebra", "medium", TEST_USER_ID, 5)

        assert {q.id for q in questions} == set(all_ids[4:])

    @pytest.mark.asyncio
    async def test_seen_by_other_user_still_available(self, db: AsyncSession, store: QuestionStore):
        await seed_quiz(db, count=5)
        all_ids = list(await db.scalars(select(Question.id)))
        await store.mark_seen(db, "another-user", all_ids)

        questions = await store.find_unseen_questions(db, "Algebra", "medium", TEST_USER_ID, 5)

        assert len(questions) == 5


class TestPersistence:

    @pytest.mark.asyncio
    async def test_persist_writes_quiz_questions_and_links(self, db: AsyncSession, store: QuestionStore):
        stored = await store.persist(db, "Optics", "easy", TEST_USER_ID, parsed_questions(5))

        assert stored.quiz.owner_id == TEST_USER_ID
        assert len(stored.questions) == 5
        assert await count_rows(db, Quiz) == 1
        assert await count_rows(db, Question) == 5

        loaded = await store.load_quiz_questions(db, stored.quiz.id)
        assert [q.text for q in loaded] == [f"Generated question {i}" for i in range(5)]
        assert loaded[2].options == ["A", "B", "C", "D"]
        assert loaded[2].correct_option_index == 2

    @pytest.mark.asyncio
    async def test_failed_question_write_removes_quiz(self, db: AsyncSession):
        store = BrokenLinkStore()

        with pytest.raises(PersistenceFailure):
            await store.persist(db, "Optics", "easy", TEST_USER_ID, parsed_questions(5))

        assert await count_rows(db, Quiz) == 0
        assert await count_rows(db, Question) == 0
        assert await count_rows(db, QuizQuestion) == 0

    @pytest.mark.asyncio
    async def test_instant_quiz_links_existing_questions(self, db: AsyncSession, store: QuestionStore):
        source = await seed_quiz(db, count=5)
        questions = await store.find_unseen_questions(db, "Algebra", "medium", TEST_USER_ID, 5)

        stored = await store.create_instant_quiz(db, "Algebra", "medium", TEST_USER_ID, questions)

        assert stored.quiz.id != source.id
        assert await count_rows(db, Question) == 5
        loaded = await store.load_quiz_questions(db, stored.quiz.id)
        assert [q.id for q in loaded] == [q.id for q in questions]


class TestMarkSeen:

    @pytest.mark.asyncio
    async def test_mark_seen_is_idempotent(self, db: AsyncSession, store: QuestionStore):
        await seed_quiz(db, count=3)
        ids = list(await db.scalars(select(Question.id)))

        await store.mark_seen(db, TEST_USER_ID, ids)
        await store.mark_seen(db, TEST_USER_ID, ids)

        assert await count_rows(db, SeenQuestion) == 3

    @pytest.mark.asyncio
    async def test_mark_seen_with_no_questions(self, db: AsyncSession, store: QuestionStore):
        await store.mark_seen(db, TEST_USER_ID, [])
        assert await count_rows(db, SeenQuestion) == 0
