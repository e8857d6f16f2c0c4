"""
Configuration management using Pydantic Settings
"""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Database
    DATABASE_URL: str = "sqlite:///./quizzes.db"

    # Gemini API (empty key = offline template provider)
    GEMINI_API_KEY: str = ""
    GEMINI_PRIMARY_MODEL: str = "gemini-1.5-pro"
    GEMINI_FALLBACK_MODEL: str = "gemini-1.5-flash"

    # Redis
    REDIS_URL: str = "redis://redis:6379/0"
    CACHE_ENABLED: bool = True

    # Application
    APP_NAME: str = "Lesson Quiz Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Rate Limiting (generation endpoint only)
    RATE_LIMIT_PER_MINUTE: int = 10
    RATE_LIMIT_PER_HOUR: int = 100

    # Generation Settings
    GENERATION_TIMEOUT_SECONDS: float = 30.0
    GENERATION_FALLBACK_ON_INVALID: bool = False
    GENERATION_CACHE_TTL: int = 3600  # 1 hour

    # Quiz Settings
    DEFAULT_QUESTION_COUNT: int = 4
    MAX_QUESTION_COUNT: int = 10
    MINUTES_PER_QUESTION: float = 1.5

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
