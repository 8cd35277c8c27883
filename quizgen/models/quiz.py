"""
Quiz model - one playable quiz session
"""
from datetime import datetime, timezone
import uuid

from sqlalchemy import Column, DateTime, String, Uuid, text

from quizgen.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Quiz(Base):
    """
    Quizzes table - created once per generated or instant-play session,
    never mutated afterwards
    """
    __tablename__ = "quizzes"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    topic = Column(String(100), nullable=False, index=True)
    difficulty = Column(String(20), nullable=False)
    owner_id = Column(String(64), nullable=False, index=True)
    created_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    def __repr__(self):
        return f"<Quiz(id={self.id}, topic={self.topic}, difficulty={self.difficulty})>"
