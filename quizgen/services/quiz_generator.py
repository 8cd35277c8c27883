"""
End-to-end generate-quiz flow

Validating -> RateChecking -> CacheLookup -> InstantPlayLookup
-> [AIGenerating -> Parsing -> Persisting] -> Responding

Any step may end the flow with a QuizGenerationError. Nothing is retried.
"""
from enum import Enum
import logging
from typing import Any, Dict, List

from sqlalchemy.ext.asyncio import AsyncSession

from quizgen.exceptions import RateLimited
from quizgen.models import Question
from quizgen.schemas.quiz import QuizQuestion, QuizResponse
from quizgen.services.gemini_service import GeminiService, gemini_service
from quizgen.services.prompt_builder import PromptBuilder, prompt_builder
from quizgen.services.question_store import QuestionStore, StoredQuiz, question_store
from quizgen.services.rate_limiter import GenerationRateLimiter, rate_limiter
from quizgen.services.response_parser import ResponseParser, response_parser
from quizgen.services.validator import GenerationRequest, RequestValidator, request_validator

logger = logging.getLogger(__name__)


class GenerationState(str, Enum):
    VALIDATING = "validating"
    RATE_CHECKING = "rate_checking"
    CACHE_LOOKUP = "cache_lookup"
    INSTANT_PLAY_LOOKUP = "instant_play_lookup"
    AI_GENERATING = "ai_generating"
    PARSING = "parsing"
    PERSISTING = "persisting"
    RESPONDING = "responding"


def serialize_question(question: Question) -> QuizQuestion:
    return QuizQuestion(
        id=str(question.id),
        question=question.text,
        options=list(question.options),
        correctIndex=question.correct_option_index,
        difficulty=question.difficulty,
        explanation=question.explanation or "",
    )


class QuizGenerator:
    """Sequences validation, cooldown, storage lookups and AI generation"""

    def __init__(
        self,
        validator: RequestValidator = request_validator,
        limiter: GenerationRateLimiter = rate_limiter,
        store: QuestionStore = question_store,
        prompts: PromptBuilder = prompt_builder,
        model: GeminiService = gemini_service,
        parser: ResponseParser = response_parser,
    ):
        self.validator = validator
        self.limiter = limiter
        self.store = store
        self.prompts = prompts
        self.model = model
        self.parser = parser

    async def generate(self, db: AsyncSession, payload: Dict[str, Any], caller_id: str) -> QuizResponse:
        """
        Produce a quiz of exactly questionCount validated questions

        Args:
            db: Database session
            payload: Decoded JSON request body
            caller_id: Authenticated user id

        Returns:
            QuizResponse tagged with source "cache" or "generated"

        Raises:
            QuizGenerationError: any terminal failure of the flow
        """
        self._enter(GenerationState.VALIDATING, caller_id)
        request = self.validator.validate(payload, caller_id)

        self._enter(GenerationState.RATE_CHECKING, caller_id)
        cooldown = await self.limiter.check(db, caller_id)
        if not cooldown.allowed:
            raise RateLimited(cooldown.retry_after_seconds, cooldown.message)

        self._enter(GenerationState.CACHE_LOOKUP, caller_id)
        stored = await self.store.find_reusable_quiz(
            db, request.topic, request.difficulty, caller_id, request.question_count
        )
        if stored is not None:
            logger.info(f"Serving cached quiz {stored.quiz.id} to {caller_id}")
            return await self._respond(db, request, stored, source="cache")

        self._enter(GenerationState.INSTANT_PLAY_LOOKUP, caller_id)
        unseen = await self.store.find_unseen_questions(
            db, request.topic, request.difficulty, caller_id, request.question_count
        )
        if len(unseen) == request.question_count:
            stored = await self.store.create_instant_quiz(
                db, request.topic, request.difficulty, caller_id, unseen
            )
            logger.info(f"Serving instant-play quiz {stored.quiz.id} to {caller_id}")
            return await self._respond(db, request, stored, source="generated")

        stored = await self._generate_with_model(db, request)
        return await self._respond(db, request, stored, source="generated")

    async def _generate_with_model(self, db: AsyncSession, request: GenerationRequest) -> StoredQuiz:
        self._enter(GenerationState.AI_GENERATING, request.caller_id)
        prompts = self.prompts.build(
            request.topic, request.difficulty, request.focus, request.question_count
        )
        reply = await self.model.generate(prompts.system, prompts.user)

        self._enter(GenerationState.PARSING, request.caller_id)
        questions = self.parser.parse(reply.text, request.difficulty, request.question_count)

        self._enter(GenerationState.PERSISTING, request.caller_id)
        return await self.store.persist(
            db, request.topic, request.difficulty, request.caller_id, questions
        )

    async def _respond(
        self,
        db: AsyncSession,
        request: GenerationRequest,
        stored: StoredQuiz,
        source: str,
    ) -> QuizResponse:
        self._enter(GenerationState.RESPONDING, request.caller_id)
        questions: List[QuizQuestion] = [serialize_question(q) for q in stored.questions]
        question_ids = [q.id for q in stored.questions]

        await self.limiter.reserve(db, request.caller_id)
        await self.store.mark_seen(db, request.caller_id, question_ids)

        return QuizResponse(
            success=True,
            quizId=str(stored.quiz.id),
            source=source,
            questions=questions,
        )

    def _enter(self, state: GenerationState, caller_id: str) -> None:
        logger.debug(f"generate-quiz [{caller_id}] -> {state.value}")


# Global instance
quiz_generator = QuizGenerator()
