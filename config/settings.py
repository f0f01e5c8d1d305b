"""
Settings configuration for the Live Presenter engine.
"""
import os
from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings."""

    # App settings
    APP_ENV: str = Field("development", env="APP_ENV")
    DEBUG: bool = Field(False, env="DEBUG")
    LOG_LEVEL: str = Field("INFO", env="LOG_LEVEL")

    # API settings
    API_ENABLED: bool = Field(True, env="API_ENABLED")
    API_HOST: str = Field("0.0.0.0", env="API_HOST")
    API_PORT: int = Field(8000, env="PORT")
    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:5173"],
        env="CORS_ORIGINS"
    )

    # Logging
    LOGFIRE_TOKEN: Optional[str] = Field(None, env="LOGFIRE_TOKEN")

    # Oracle (text-generation model behind every classifier/generator line)
    # Uses pydantic-ai "provider:model" notation, e.g. google-vertex:gemini-2.5-flash
    ORACLE_MODEL: str = Field("google-vertex:gemini-2.5-flash", env="ORACLE_MODEL")
    CLASSIFIER_TEMPERATURE: float = Field(
        0.3,
        ge=0.0,
        le=2.0,
        env="CLASSIFIER_TEMPERATURE",
        description="Sampling temperature for the action/intent classifier lines"
    )
    GENERATOR_TEMPERATURE: Optional[float] = Field(
        None,
        env="GENERATOR_TEMPERATURE",
        description="Sampling temperature for title/bullet/diagram lines (None = model default)"
    )

    # Retry wrapper around every oracle call
    RETRY_MAX_ATTEMPTS: int = Field(3, env="RETRY_MAX_ATTEMPTS")
    RETRY_INITIAL_DELAY_MS: int = Field(100, env="RETRY_INITIAL_DELAY_MS")
    RETRY_MAX_DELAY_MS: int = Field(2000, env="RETRY_MAX_DELAY_MS")
    RETRY_BACKOFF_MULTIPLIER: float = Field(2.0, env="RETRY_BACKOFF_MULTIPLIER")

    # Presentation Control Engine
    TRANSCRIPTION_HISTORY_SIZE: int = Field(10, env="TRANSCRIPTION_HISTORY_SIZE")
    CLASSIFIER_CONTEXT_WINDOW: int = Field(
        5,
        env="CLASSIFIER_CONTEXT_WINDOW",
        description="Number of recent utterances passed as context to the running-state classifier"
    )
    DIAGRAM_MODE_ENABLED: bool = Field(True, env="DIAGRAM_MODE_ENABLED")

    # Diagram extraction: deterministic node matching on top of the oracle's judgment
    NODE_MATCH_THRESHOLD: float = Field(
        0.9,
        ge=0.0,
        le=1.0,
        env="NODE_MATCH_THRESHOLD",
        description="Minimum difflib similarity for two node labels to be treated as the same concept"
    )

    # History orchestrator
    DEDUP_KEY_PREFIX_LENGTH: int = Field(50, env="DEDUP_KEY_PREFIX_LENGTH")
    COMPLETED_UTTERANCE_LEDGER_SIZE: int = Field(256, env="COMPLETED_UTTERANCE_LEDGER_SIZE")

    # Translation of subjects, bullet points and diagram labels
    SPEAKER_LANGUAGE: str = Field("english", env="SPEAKER_LANGUAGE")
    OTHER_PARTY_LANGUAGE: str = Field("english", env="OTHER_PARTY_LANGUAGE")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env

    @property
    def translation_enabled(self) -> bool:
        """Translation only runs when both sides speak different languages."""
        return self.SPEAKER_LANGUAGE.strip().lower() != self.OTHER_PARTY_LANGUAGE.strip().lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.APP_ENV.lower() == "production"

    def validate_settings(self) -> None:
        """
        Validate that retry and engine settings are consistent.

        Raises:
            ValueError: If any setting is out of range
        """
        if self.RETRY_MAX_ATTEMPTS < 1:
            raise ValueError("RETRY_MAX_ATTEMPTS must be at least 1")

        if self.RETRY_INITIAL_DELAY_MS < 0 or self.RETRY_MAX_DELAY_MS < 0:
            raise ValueError("Retry delays must not be negative")

        if self.RETRY_INITIAL_DELAY_MS > self.RETRY_MAX_DELAY_MS:
            raise ValueError(
                "RETRY_INITIAL_DELAY_MS must not exceed RETRY_MAX_DELAY_MS "
                f"({self.RETRY_INITIAL_DELAY_MS} > {self.RETRY_MAX_DELAY_MS})"
            )

        if self.RETRY_BACKOFF_MULTIPLIER < 1:
            raise ValueError("RETRY_BACKOFF_MULTIPLIER must be >= 1")

        if self.CLASSIFIER_CONTEXT_WINDOW < 1 or self.TRANSCRIPTION_HISTORY_SIZE < self.CLASSIFIER_CONTEXT_WINDOW:
            raise ValueError(
                "TRANSCRIPTION_HISTORY_SIZE must be >= CLASSIFIER_CONTEXT_WINDOW >= 1"
            )

        if not self.ORACLE_MODEL:
            raise ValueError(
                "No oracle model configured. Set ORACLE_MODEL, e.g.\n"
                "  ORACLE_MODEL=google-vertex:gemini-2.5-flash\n"
                "  Local: Run 'gcloud auth application-default login' for Vertex AI"
            )

        if self.ORACLE_MODEL.startswith("google-vertex:") and not self.is_production:
            from src.utils.logger import setup_logger
            logger = setup_logger(__name__)
            logger.info("Local development mode: Ensure you've run 'gcloud auth application-default login'")

        if os.environ.get("GOOGLE_APPLICATION_CREDENTIALS") and not os.path.exists(
            os.environ["GOOGLE_APPLICATION_CREDENTIALS"]
        ):
            raise ValueError("GOOGLE_APPLICATION_CREDENTIALS points to a missing file")


def get_settings() -> Settings:
    """Get settings instance."""
    return Settings()


settings = get_settings()
