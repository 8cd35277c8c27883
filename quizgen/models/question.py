"""
Question model and the ordered quiz -> question link table
"""
import uuid

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text, Uuid, text as sa_text
from sqlalchemy.dialects.postgresql import JSONB

from quizgen.database import Base
from quizgen.models.quiz import utcnow


class Question(Base):
    """
    Questions table - quiz_id is the quiz that originally produced the row
    """
    __tablename__ = "questions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    quiz_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("quizzes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    text = Column(Text, nullable=False)
    options = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False)  # exactly 4 strings
    correct_option_index = Column(Integer, nullable=False)
    difficulty = Column(String(20), nullable=False)
    topic = Column(String(100), nullable=False, index=True)
    explanation = Column(Text, nullable=False, default="")
    created_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=sa_text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    def __repr__(self):
        return f"<Question(id={self.id}, quiz_id={self.quiz_id}, topic={self.topic})>"


class QuizQuestion(Base):
    """
    Ordered question set of a quiz. Instant-play quizzes link questions that
    are owned by earlier quizzes.
    """
    __tablename__ = "quiz_questions"

    quiz_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("quizzes.id", ondelete="CASCADE"),
        primary_key=True,
    )
    question_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("questions.id", ondelete="CASCADE"),
        primary_key=True,
    )
    position = Column(Integer, nullable=False)
