"""
Request validation for quiz generation

Turns the raw JSON payload into an immutable GenerationRequest or raises
InvalidRequest. No I/O.
"""
from dataclasses import dataclass
import logging
from typing import Any, Dict, Optional

from quizgen.config import settings
from quizgen.exceptions import InvalidRequest

logger = logging.getLogger(__name__)

VALID_DIFFICULTIES = ("easy", "medium", "hard")

# Case-insensitive substring markers of unsafe or prompt-injection text in topic and focus
TOPIC_DENYLIST = (
    "ignore previous",
    "ignore all",
    "ignore the above",
    "disregard",
    "system prompt",
    "you are now",
    "act as",
    "jailbreak",
    "pretend to be",
    "new instructions",
    "<script",
    "```",
)


def denylisted_term(text: str) -> Optional[str]:
    lowered = text.lower()
    for term in TOPIC_DENYLIST:
        if term in lowered:
            return term
    return None


@dataclass(frozen=True)
class GenerationRequest:
    topic: str
    difficulty: str
    focus: str
    question_count: int
    caller_id: str


class RequestValidator:
    """Normalizes topic, difficulty, focus and question count"""

    def __init__(
        self,
        max_topic_length: int = settings.MAX_TOPIC_LENGTH,
        max_focus_length: int = settings.MAX_FOCUS_LENGTH,
        safe_topic: str = settings.DEFAULT_TOPIC,
        default_focus: str = settings.DEFAULT_FOCUS,
        supported_counts=tuple(settings.SUPPORTED_QUESTION_COUNTS),
        default_count: int = settings.DEFAULT_QUESTION_COUNT,
    ):
        self.max_topic_length = max_topic_length
        self.max_focus_length = max_focus_length
        self.safe_topic = safe_topic
        self.default_focus = default_focus
        self.supported_counts = tuple(supported_counts)
        self.default_count = default_count

    def validate(self, payload: Dict[str, Any], caller_id: str) -> GenerationRequest:
        """
        Validate a decoded request body

        Args:
            payload: JSON object sent by the client
            caller_id: Authenticated user id

        Returns:
            GenerationRequest ready for the generation flow

        Raises:
            InvalidRequest: missing/over-long topic, missing or unknown difficulty
        """
        raw_topic = payload.get("topic")
        raw_difficulty = payload.get("difficulty")

        topic = raw_topic.strip() if isinstance(raw_topic, str) else ""
        if not topic or raw_difficulty is None or str(raw_difficulty).strip() == "":
            raise InvalidRequest("Missing topic or difficulty")

        if len(topic) > self.max_topic_length:
            raise InvalidRequest(
                "Topic is too long",
                details=f"Topic must be at most {self.max_topic_length} characters",
            )

        difficulty = str(raw_difficulty).strip().lower()
        if difficulty not in VALID_DIFFICULTIES:
            raise InvalidRequest(
                "Invalid difficulty. Must be easy, medium, or hard",
                details=f"Received: {raw_difficulty}",
            )

        return GenerationRequest(
            topic=self.sanitize_topic(topic),
            difficulty=difficulty,
            focus=self.normalize_focus(payload.get("userFocus")),
            question_count=self.normalize_question_count(payload.get("questionCount")),
            caller_id=caller_id,
        )

    def sanitize_topic(self, topic: str) -> str:
        """Swap denylisted topics for the safe default instead of rejecting"""
        term = denylisted_term(topic)
        if term:
            logger.warning(f"Topic matched denylist term '{term}', substituting '{self.safe_topic}'")
            return self.safe_topic
        return topic

    def normalize_focus(self, focus: Any) -> str:
        """Blank, over-long or denylisted focus text falls back to the default"""
        if not isinstance(focus, str) or not focus.strip():
            return self.default_focus

        focus = focus.strip()
        if len(focus) > self.max_focus_length:
            logger.warning(f"Focus longer than {self.max_focus_length} characters, using '{self.default_focus}'")
            return self.default_focus

        term = denylisted_term(focus)
        if term:
            logger.warning(f"Focus matched denylist term '{term}', substituting '{self.default_focus}'")
            return self.default_focus
        return focus

    def normalize_question_count(self, value: Any) -> int:
        """Supported counts pass through; anything else becomes the default"""
        count: Optional[int] = None
        if isinstance(value, bool):
            count = None
        elif isinstance(value, int):
            count = value
        elif isinstance(value, float) and value.is_integer():
            count = int(value)
        elif isinstance(value, str) and value.strip().isdigit():
            count = int(value.strip())

        if count in self.supported_counts:
            return count
        return self.default_count


# Global instance
request_validator = RequestValidator()
