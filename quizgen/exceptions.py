"""
Failure taxonomy for quiz generation

Every failure carries the HTTP status it maps to and the pieces of the
uniform ``{"error": ..., "details": ...}`` response body.
"""
from typing import Any, Dict, Optional


class QuizGenerationError(Exception):
    """Base class for all failures surfaced by the generate-quiz flow"""

    status_code = 500
    error = "Failed to generate quiz"

    def __init__(self, error: Optional[str] = None, details: Optional[str] = None):
        self.error = error or self.error
        self.details = details
        super().__init__(self.error if details is None else f"{self.error}: {details}")

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error}
        if self.details:
            body["details"] = self.details
        return body

    def headers(self) -> Optional[Dict[str, str]]:
        return None


class InvalidRequest(QuizGenerationError):
    status_code = 400
    error = "Invalid request"


class Unauthorized(QuizGenerationError):
    status_code = 401
    error = "Unauthorized"

    def headers(self) -> Optional[Dict[str, str]]:
        return {"WWW-Authenticate": "Bearer"}


class RateLimited(QuizGenerationError):
    """Caller generated a quiz too recently"""

    status_code = 429
    error = "Please wait before generating another quiz"

    def __init__(self, retry_after_seconds: int, message: str):
        self.retry_after_seconds = retry_after_seconds
        self.message = message
        super().__init__(details=message)

    def to_body(self) -> Dict[str, Any]:
        body = super().to_body()
        body["retryAfterSeconds"] = self.retry_after_seconds
        return body

    def headers(self) -> Optional[Dict[str, str]]:
        return {"Retry-After": str(self.retry_after_seconds)}


class StorageUnavailable(QuizGenerationError):
    """Persistence layer could not be reached; safe for the client to retry"""

    status_code = 503
    error = "Storage temporarily unavailable"


class ModelUnavailable(QuizGenerationError):
    error = "Failed to connect to AI service"


class ModelError(QuizGenerationError):
    error = "Failed to generate quiz from AI"

    def __init__(self, details: Optional[str] = None, upstream_status: Optional[int] = None):
        self.upstream_status = upstream_status
        super().__init__(details=details)


class EmptyResponse(QuizGenerationError):
    error = "No response text from AI service"


class Malformed(QuizGenerationError):
    """Model output could not be parsed even after the repair chain"""

    error = "Failed to parse AI response"

    def __init__(self, details: str, diagnostics: Optional[Dict[str, Any]] = None):
        self.diagnostics = diagnostics or {}
        super().__init__(details=details)


class InvalidShape(QuizGenerationError):
    """Model output parsed but the questions failed field validation"""

    error = "Invalid response format from AI"


class PersistenceFailure(QuizGenerationError):
    error = "Failed to save quiz"
