"""
SeenQuestion model - append-only record of questions served to a user
"""
from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid, text

from quizgen.database import Base
from quizgen.models.quiz import utcnow


class SeenQuestion(Base):
    __tablename__ = "seen_questions"

    user_id = Column(String(64), primary_key=True)
    question_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("questions.id", ondelete="CASCADE"),
        primary_key=True,
    )
    seen_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )
