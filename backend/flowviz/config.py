"""
Application configuration loaded from environment variables.
Provider credentials, endpoint overrides and model overrides for the AI layer.
"""
from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── App ──
    APP_NAME: str = "FlowViz"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:3000"

    # ── AI provider selection ──
    AI_PROVIDER: Optional[str] = None  # anthropic | openai (unset → anthropic)

    # ── Anthropic ──
    ANTHROPIC_API_KEY: Optional[str] = None
    ANTHROPIC_BASE_URL: Optional[str] = None
    ANTHROPIC_MODEL: Optional[str] = None

    # ── OpenAI ──
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: Optional[str] = None
    OPENAI_MODEL: Optional[str] = None

    @field_validator("AI_PROVIDER")
    @classmethod
    def normalise_provider(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip().lower()
        return value or None

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    def value(self, name: str) -> Optional[str]:
        """Read-only lookup of a setting by its environment variable name.

        Blank strings are reported as unset.
        """
        raw = getattr(self, name, None)
        if raw is None:
            return None
        raw = str(raw).strip()
        return raw or None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings, read once."""
    return Settings()
