"""
Gemini client for quiz generation

Wraps the async Google Gen AI client. Requests ask for a compressed
transport; the SDK's httpx layer decodes it, so callers only ever see text.
"""
import asyncio
from dataclasses import dataclass
import logging
from typing import Any, Optional

import httpx
from google import genai
from google.genai import errors, types

from quizgen.config import settings
from quizgen.exceptions import EmptyResponse, ModelError, ModelUnavailable

logger = logging.getLogger(__name__)

TRUNCATED_FINISH_REASONS = {"MAX_TOKENS", "OTHER"}

# JSON-shape hint: array of compact 6-field questions
QUIZ_RESPONSE_SCHEMA = types.Schema(
    type=types.Type.ARRAY,
    items=types.Schema(
        type=types.Type.OBJECT,
        properties={
            "question": types.Schema(type=types.Type.STRING),
            "option_1": types.Schema(type=types.Type.STRING),
            "option_2": types.Schema(type=types.Type.STRING),
            "option_3": types.Schema(type=types.Type.STRING),
            "option_4": types.Schema(type=types.Type.STRING),
            "correct_answer": types.Schema(type=types.Type.INTEGER, description="0-3"),
        },
        required=["question", "option_1", "option_2", "option_3", "option_4", "correct_answer"],
    ),
)


@dataclass(frozen=True)
class ModelReply:
    text: str
    finish_reason: Optional[str] = None
    truncated: bool = False


def _finish_reason_name(response: Any) -> Optional[str]:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None
    reason = getattr(candidates[0], "finish_reason", None)
    if reason is None:
        return None
    return getattr(reason, "name", None) or str(reason)


class GeminiService:
    """Service for Gemini text generation"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        max_output_tokens: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        client: Optional[genai.Client] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self.model_name = model_name or settings.GEMINI_MODEL
        self.max_output_tokens = max_output_tokens or settings.GEMINI_MAX_OUTPUT_TOKENS
        self.timeout_seconds = timeout_seconds or settings.GEMINI_TIMEOUT_SECONDS
        self._client = client

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            if not self.api_key:
                logger.error("GEMINI_API_KEY is not set")
                raise ModelUnavailable(details="Gemini API key not configured")
            self._client = genai.Client(
                api_key=self.api_key,
                http_options=types.HttpOptions(
                    timeout=int(self.timeout_seconds * 1000),
                    headers={"Accept-Encoding": "gzip, deflate"},
                ),
            )
        return self._client

    async def generate(self, system: str, user: str) -> ModelReply:
        """
        Generate raw text for a system + user prompt pair

        Args:
            system: System instruction
            user: User prompt

        Returns:
            ModelReply with the decoded text and finish reason

        Raises:
            ModelUnavailable: transport failure or timeout
            ModelError: upstream returned an error status
            EmptyResponse: upstream returned no text
        """
        config = types.GenerateContentConfig(
            system_instruction=system,
            response_mime_type="application/json",
            response_schema=QUIZ_RESPONSE_SCHEMA,
            max_output_tokens=self.max_output_tokens,
        )

        logger.info(f"Calling Gemini model {self.model_name} (prompt length {len(system) + len(user)})")
        try:
            response = await asyncio.wait_for(
                self.client.aio.models.generate_content(
                    model=self.model_name,
                    contents=user,
                    config=config,
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(f"Gemini call timed out after {self.timeout_seconds}s")
            raise ModelUnavailable(details=f"AI service timed out after {self.timeout_seconds:g}s")
        except httpx.TransportError as e:
            logger.error(f"Transport error calling Gemini: {str(e)}")
            raise ModelUnavailable(details=str(e) or "Network error")
        except errors.APIError as e:
            detail = (e.message or str(e))[:300]
            logger.error(f"Gemini API error: status={e.code} {e.status} {detail}")
            raise ModelError(details=detail, upstream_status=e.code)

        finish_reason = _finish_reason_name(response)
        truncated = finish_reason in TRUNCATED_FINISH_REASONS
        if truncated:
            logger.warning(f"Gemini response may be truncated. Finish reason: {finish_reason}")

        text = response.text
        if not text or not text.strip():
            logger.error(f"Empty response text from Gemini (finish reason: {finish_reason})")
            raise EmptyResponse(
                details="The AI service returned an empty response. Check function logs for details."
            )

        logger.info(f"Received Gemini response text length: {len(text)}")
        return ModelReply(text=text, finish_reason=finish_reason, truncated=truncated)


# Global instance
gemini_service = GeminiService()
