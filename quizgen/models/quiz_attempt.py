"""
QuizAttempt model - written by the scoring flow, read here to skip
quizzes the caller already played
"""
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Uuid, text

from quizgen.database import Base
from quizgen.models.quiz import utcnow


class QuizAttempt(Base):
    """
    Quiz attempts table - one row per scored play of a quiz
    """
    __tablename__ = "quiz_attempts"
    __table_args__ = (
        Index("idx_quiz_attempts_user_id_quiz_id", "user_id", "quiz_id"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(64), nullable=False)
    quiz_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("quizzes.id", ondelete="CASCADE"),
        nullable=False,
    )
    score = Column(Integer)
    total_questions = Column(Integer)
    created_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    def __repr__(self):
        return f"<QuizAttempt(user_id={self.user_id}, quiz_id={self.quiz_id}, score={self.score})>"
