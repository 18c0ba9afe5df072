"""Application configuration using Pydantic Settings."""

from __future__ import annotations

from functools import lru_cache
from urllib.parse import quote_plus

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """ShotGen settings.

    Loaded from environment variables or .env file.
    """

    # --- Application ---
    APP_NAME: str = "ShotGen"
    DEBUG: bool = False
    USE_MOCK_API: bool = False

    # --- Database (MySQL 8.0+) ---
    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_USER: str = "root"
    DB_PASSWORD: str = ""
    DB_NAME: str = "shotgen"

    @property
    def DATABASE_URL(self) -> str:
        """Async MySQL connection string using asyncmy driver."""
        encoded_password = quote_plus(self.DB_PASSWORD)
        return (
            f"mysql+asyncmy://{self.DB_USER}:{encoded_password}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
            "?charset=utf8mb4"
        )

    # --- Job queue ---
    MAX_CONCURRENT_JOBS: int = 2
    POLL_INTERVAL: float = 5.0          # seconds between LRO status checks
    POLL_MAX_ATTEMPTS: int = 60         # ~5 minutes at the default interval
    PERSIST_MAX_ATTEMPTS: int = 3
    PERSIST_RETRY_DELAY: float = 1.0    # linear: attempt * delay
    HTTP_TIMEOUT: float = 60.0

    # --- Gemini (Veo video + image) ---
    GEMINI_API_KEY: str = ""
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com"
    AI_INTEGRATIONS_GEMINI_API_KEY: str = ""
    AI_INTEGRATIONS_GEMINI_BASE_URL: str = ""
    VEO_MODEL: str = "veo-2.0-generate-001"
    GEMINI_IMAGE_MODEL: str = "gemini-2.5-flash-image"

    # --- Kling (video) ---
    KLING_ACCESS_KEY: str = ""
    KLING_SECRET_KEY: str = ""
    KLING_BASE_URL: str = "https://api.klingai.com"
    KLING_MODEL: str = "kling-v1"

    # --- Jimeng (video) ---
    JIMENG_API_KEY: str = ""
    JIMENG_BASE_URL: str = "https://jimeng.jianying.com"
    JIMENG_MODEL: str = "jimeng-4.0"

    # --- OpenAI (image) ---
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    AI_INTEGRATIONS_OPENAI_API_KEY: str = ""
    AI_INTEGRATIONS_OPENAI_BASE_URL: str = ""
    OPENAI_IMAGE_MODEL: str = "gpt-image-1"
    OPENAI_IMAGE_SIZE: str = "1024x1024"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton."""
    return Settings()
