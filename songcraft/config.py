from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_project_root = Path(__file__).resolve().parents[1]
load_dotenv(_project_root / ".env", override=False)


class Settings(BaseSettings):
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Used only when no verified credential has been stored.
    GEMINI_API_KEY: str | None = None
    GEMINI_API_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    GEMINI_REQUEST_TIMEOUT_SECONDS: float = 120.0

    TEXT_MODEL: str = "gemini-3-flash-preview"
    LYRICS_MODEL: str = "gemini-3-pro-preview"
    IMAGE_MODEL: str = "gemini-2.5-flash-image"
    PRO_IMAGE_MODEL: str = "gemini-3-pro-image-preview"
    AUDIO_MODEL: str = "gemini-2.5-flash"

    LYRICS_THINKING_BUDGET: int = 2048
    IDEA_PACK_COUNT: int = 12
    TITLE_SUGGESTION_COUNT: int = 5
    REFERENCE_SUGGESTION_COUNT: int = 5
    LYRIC_VARIATION_COUNT: int = 5

    TEMPO_MAX_BPM: int = 300
    TEMPO_AUDIO_MAX_BYTES: int = 10 * 1024 * 1024

    STORE_DB_URL: str = "sqlite:///./songcraft.db"

    BACKEND_CORS_ORIGINS: str = "http://localhost:5173"

    @field_validator("TEMPO_MAX_BPM")
    @classmethod
    def validate_tempo_bound(cls, value: int) -> int:
        if value <= 1:
            raise ValueError("TEMPO_MAX_BPM must be greater than 1")
        return value

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.BACKEND_CORS_ORIGINS.split(",") if origin.strip()]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
