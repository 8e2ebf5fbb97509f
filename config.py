from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # AI assessment provider (OpenAI-compatible chat completions)
    AI_GATEWAY_URL: str = "https://ai.gateway.lovable.dev/v1/chat/completions"
    AI_API_KEY: Optional[str] = None
    AI_MODEL: str = "google/gemini-2.5-flash"
    AI_TEMPERATURE: float = 0.3
    AI_TIMEOUT_SECONDS: Optional[float] = None

    # Bearer tokens
    SECRET_KEY: str = "CHANGE_ME__LOAN_ADVISOR_SECRET"
    TOKEN_MAX_AGE_SECONDS: int = 60 * 60 * 24 * 7

    DB_PATH: str = "loan_advisor.db"

    # Off by default: an unreachable provider fails the request
    FALLBACK_ON_PROVIDER_ERROR: bool = False

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
