"""
Persistence-facing operations of the generate-quiz flow

- Reusable quiz lookup (cache-first)
- Unseen question lookup (instant play)
- Quiz + question persistence with compensating rollback
- Seen-question bookkeeping
"""
from dataclasses import dataclass
import logging
from typing import Iterable, List, Optional, Sequence
import uuid

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from quizgen.exceptions import PersistenceFailure, StorageUnavailable
from quizgen.models import Question, Quiz, QuizAttempt, QuizQuestion, SeenQuestion
from quizgen.services.response_parser import ParsedQuestion

logger = logging.getLogger(__name__)


@dataclass
class StoredQuiz:
    quiz: Quiz
    questions: List[Question]


class QuestionStore:
    """Reads and writes quizzes, questions and the seen-question relation"""

    # Upper bound on how many recent candidate quizzes the cache lookup scans
    REUSE_CANDIDATE_LIMIT = 20

    async def find_reusable_quiz(
        self,
        db: AsyncSession,
        topic: str,
        difficulty: str,
        caller_id: str,
        question_count: int,
    ) -> Optional[StoredQuiz]:
        """
        Most recent quiz for topic + difficulty that the caller has not attempted

        Only quizzes whose question set has exactly question_count entries
        qualify, so a reused quiz never violates the requested size.
        """
        attempted = select(QuizAttempt.quiz_id).where(QuizAttempt.user_id == caller_id)
        sized = (
            select(QuizQuestion.quiz_id)
            .group_by(QuizQuestion.quiz_id)
            .having(func.count(QuizQuestion.question_id) == question_count)
        )
        stmt = (
            select(Quiz)
            .where(func.lower(Quiz.topic) == topic.lower())
            .where(Quiz.difficulty == difficulty)
            .where(Quiz.id.not_in(attempted))
            .where(Quiz.id.in_(sized))
            .order_by(Quiz.created_at.desc())
            .limit(1)
        )

        try:
            quiz = await db.scalar(stmt)
            if quiz is None:
                logger.info(f"No reusable quiz for '{topic}' ({difficulty})")
                return None
            questions = await self.load_quiz_questions(db, quiz.id)
        except SQLAlchemyError as e:
            logger.error(f"Reusable quiz lookup failed: {str(e)}")
            raise StorageUnavailable(details="Could not look up cached quizzes")

        logger.info(f"Found reusable quiz {quiz.id} for '{topic}' ({difficulty})")
        return StoredQuiz(quiz=quiz, questions=questions)

    async def load_quiz_questions(self, db: AsyncSession, quiz_id: uuid.UUID) -> List[Question]:
        """Question set of a quiz in play order"""
        result = await db.scalars(
            select(Question)
            .join(QuizQuestion, QuizQuestion.question_id == Question.id)
            .where(QuizQuestion.quiz_id == quiz_id)
            .order_by(QuizQuestion.position)
        )
        return list(result.all())

    async def find_unseen_questions(
        self,
        db: AsyncSession,
        topic: str,
        difficulty: str,
        caller_id: str,
        limit: int,
    ) -> List[Question]:
        """Up to `limit` random questions for topic + difficulty the caller has not seen"""
        seen = select(SeenQuestion.question_id).where(SeenQuestion.user_id == caller_id)
        stmt = (
            select(Question)
            .where(func.lower(Question.topic) == topic.lower())
            .where(Question.difficulty == difficulty)
            .where(Question.id.not_in(seen))
            .order_by(func.random())
            .limit(limit)
        )

        try:
            result = await db.scalars(stmt)
            questions = list(result.all())
        except SQLAlchemyError as e:
            logger.error(f"Unseen question lookup failed: {str(e)}")
            raise StorageUnavailable(details="Could not look up stored questions")

        logger.info(f"Found {len(questions)}/{limit} unseen questions for '{topic}' ({difficulty})")
        return questions

    async def create_instant_quiz(
        self,
        db: AsyncSession,
        topic: str,
        difficulty: str,
        caller_id: str,
        questions: Sequence[Question],
    ) -> StoredQuiz:
        """New quiz row linked to already stored questions; no model call"""
        quiz = await self._insert_quiz(db, topic, difficulty, caller_id)
        try:
            self._link(db, quiz.id, [q.id for q in questions])
            await db.commit()
        except SQLAlchemyError as e:
            await self._rollback_quiz(db, quiz.id, e)
            raise PersistenceFailure(details="Could not link questions to quiz")

        logger.info(f"Instant-play quiz {quiz.id} created from {len(questions)} stored questions")
        return StoredQuiz(quiz=quiz, questions=list(questions))

    async def persist(
        self,
        db: AsyncSession,
        topic: str,
        difficulty: str,
        caller_id: str,
        parsed: Sequence[ParsedQuestion],
    ) -> StoredQuiz:
        """
        Insert the quiz row, then its questions

        If the questions cannot be written the quiz row is deleted again so
        no empty quiz is ever visible to callers.

        Raises:
            StorageUnavailable: quiz row could not be created
            PersistenceFailure: question insert failed (quiz row rolled back)
        """
        quiz = await self._insert_quiz(db, topic, difficulty, caller_id)

        rows = [
            Question(
                id=uuid.uuid4(),
                quiz_id=quiz.id,
                text=item.question,
                options=list(item.options),
                correct_option_index=item.correct_index,
                difficulty=item.difficulty or difficulty,
                topic=topic,
                explanation=item.explanation,
            )
            for item in parsed
        ]

        try:
            db.add_all(rows)
            await db.flush()
            self._link(db, quiz.id, [row.id for row in rows])
            await db.commit()
        except SQLAlchemyError as e:
            await self._rollback_quiz(db, quiz.id, e)
            raise PersistenceFailure(details="Could not save generated questions")

        logger.info(f"Quiz {quiz.id} persisted with {len(rows)} generated questions")
        return StoredQuiz(quiz=quiz, questions=rows)

    async def mark_seen(
        self,
        db: AsyncSession,
        caller_id: str,
        question_ids: Iterable[uuid.UUID],
    ) -> None:
        """Upsert (caller, question) pairs, ignoring ones already recorded"""
        values = [{"user_id": caller_id, "question_id": qid} for qid in question_ids]
        if not values:
            return

        dialect = db.get_bind().dialect.name
        insert = pg_insert if dialect == "postgresql" else sqlite_insert
        stmt = insert(SeenQuestion).values(values).on_conflict_do_nothing(
            index_elements=["user_id", "question_id"]
        )

        try:
            await db.execute(stmt)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Failed to record seen questions for {caller_id}: {str(e)}")
            raise StorageUnavailable(details="Could not record served questions")

    async def _insert_quiz(
        self,
        db: AsyncSession,
        topic: str,
        difficulty: str,
        caller_id: str,
    ) -> Quiz:
        quiz = Quiz(id=uuid.uuid4(), topic=topic, difficulty=difficulty, owner_id=caller_id)
        try:
            db.add(quiz)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Failed to create quiz row: {str(e)}")
            raise StorageUnavailable(details="Could not create quiz")
        return quiz

    def _link(self, db: AsyncSession, quiz_id: uuid.UUID, question_ids: Sequence[uuid.UUID]) -> None:
        db.add_all(
            QuizQuestion(quiz_id=quiz_id, question_id=qid, position=position)
            for position, qid in enumerate(question_ids)
        )

    async def _rollback_quiz(self, db: AsyncSession, quiz_id: uuid.UUID, cause: Exception) -> None:
        """Compensating delete of a quiz row whose questions failed to save"""
        logger.warning(f"Rolling back quiz {quiz_id} after question write failure: {str(cause)}")
        await db.rollback()
        try:
            await db.execute(delete(Quiz).where(Quiz.id == quiz_id))
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Compensating delete of quiz {quiz_id} failed: {str(e)}")
            raise StorageUnavailable(details="Could not clean up partially saved quiz")


# Global instance
question_store = QuestionStore()
