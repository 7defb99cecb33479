"""Configuration management for the ward signal-analysis Lambdas."""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Logging configuration
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "[%(levelname)s] %(asctime)s - %(name)s - %(message)s"

    # AWS configuration
    AWS_REGION: str = "us-east-1"
    # Bucket holding patients/, vitals/ and medications/ JSON documents
    CLINICAL_DATA_BUCKET_NAME: str = ""
    # Number of previous vital readings loaded when the event carries none
    VITALS_HISTORY_LIMIT: int = 30

    # Narrative generation (optional, best-effort)
    NARRATIVE_BACKEND: Literal["none", "lambda", "http"] = "none"
    NARRATIVE_LAMBDA_NAME: str = ""  # Text-generation proxy Lambda
    NARRATIVE_API_URL: str = ""
    NARRATIVE_API_KEY: str = ""
    NARRATIVE_TIMEOUT_SECONDS: float = 30.0

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


# Global settings instance
settings = Settings()
