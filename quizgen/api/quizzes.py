"""
Quiz generation API endpoint
"""
import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from quizgen.database import get_db
from quizgen.dependencies.auth import get_current_user_id
from quizgen.exceptions import InvalidRequest
from quizgen.schemas.quiz import ErrorResponse, QuizResponse
from quizgen.services.quiz_generator import QuizGenerator, quiz_generator

router = APIRouter(tags=["quizzes"])
logger = logging.getLogger(__name__)


def get_quiz_generator() -> QuizGenerator:
    return quiz_generator


async def read_payload(request: Request) -> Dict[str, Any]:
    """
    Decode the JSON body

    Empty and non-JSON bodies are rejected; a payload wrapped as
    {"body": {...}} by some clients is unwrapped.
    """
    raw = await request.body()
    if not raw or not raw.strip():
        raise InvalidRequest("Empty request body")

    try:
        body = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidRequest("Invalid JSON in request body", details=str(e))

    if isinstance(body, dict) and isinstance(body.get("body"), dict):
        logger.info("Found nested body, using body.body")
        body = body["body"]

    if not isinstance(body, dict):
        raise InvalidRequest("Request body must be a JSON object")
    return body


@router.post(
    "/generate-quiz",
    response_model=QuizResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def generate_quiz(
    request: Request,
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    generator: QuizGenerator = Depends(get_quiz_generator),
):
    """
    Generate a multiple-choice quiz

    - Reuses the newest cached quiz the caller has not attempted
    - Otherwise builds one from stored questions the caller has not seen
    - Otherwise asks Gemini for fresh questions and stores them
    - At most one successful generation per caller per cooldown window
    """
    payload = await read_payload(request)
    return await generator.generate(db, payload, caller_id)


@router.api_route(
    "/generate-quiz",
    methods=["GET", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"],
    include_in_schema=False,
)
async def generate_quiz_method_not_allowed(request: Request):
    return JSONResponse(
        status_code=405,
        content={"error": f"Method {request.method} not allowed. Use POST."},
        headers={"Allow": "POST"},
    )
