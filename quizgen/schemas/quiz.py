"""
Pydantic schemas for quiz generation responses
"""
from pydantic import BaseModel, Field
from typing import List, Literal, Optional


class QuizQuestion(BaseModel):
    """Question as rendered by the client"""
    id: str
    question: str
    options: List[str] = Field(..., min_length=4, max_length=4)
    correctIndex: int = Field(..., ge=0, le=3)
    difficulty: str
    explanation: str = ""


class QuizResponse(BaseModel):
    """Successful generate-quiz response"""
    success: bool = True
    quizId: str
    source: Literal["cache", "generated"]
    questions: List[QuizQuestion]


class ErrorResponse(BaseModel):
    """Uniform failure body"""
    error: str
    details: Optional[str] = None
