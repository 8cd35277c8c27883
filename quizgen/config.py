"""
Configuration management using Pydantic Settings
"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./quizgen.db"

    # Gemini API
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-flash-latest"
    GEMINI_MAX_OUTPUT_TOKENS: int = 4096
    GEMINI_TIMEOUT_SECONDS: float = 30.0

    # Auth (Supabase access tokens)
    SUPABASE_JWT_SECRET: Optional[str] = None
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: Optional[str] = "authenticated"

    # Application
    APP_NAME: str = "Quiz Generation Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ALLOWED_ORIGINS: List[str] = ["http://localhost:8081", "http://localhost:19006"]

    # Generation policy
    GENERATION_COOLDOWN_SECONDS: int = 60
    MAX_TOPIC_LENGTH: int = 50
    MAX_FOCUS_LENGTH: int = 100
    DEFAULT_TOPIC: str = "General Science"
    DEFAULT_FOCUS: str = "General Knowledge"
    SUPPORTED_QUESTION_COUNTS: List[int] = [5, 10, 15, 20]
    DEFAULT_QUESTION_COUNT: int = 5

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
