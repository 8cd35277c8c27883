"""
Profile model - owns the caller's generation cooldown timestamp
"""
from sqlalchemy import Column, DateTime, String

from quizgen.database import Base


class Profile(Base):
    """
    Profiles table - one row per user, keyed by the auth subject
    """
    __tablename__ = "profiles"

    id = Column(String(64), primary_key=True)
    last_generated_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Profile(id={self.id}, last_generated_at={self.last_generated_at})>"
