import os
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AnalysisConfig(BaseModel):
    """Limits for one pipeline run. Durations are in seconds."""

    model_config = ConfigDict(frozen=True)

    max_chars: int = Field(50_000, gt=0, description="Cap on normalized log text sent to the model")
    timeout: float = Field(30.0, gt=0, description="Deadline for a single AI attempt")
    max_retries: int = Field(2, ge=1, description="Total AI attempts before falling back")
    base_delay: float = Field(1.0, ge=0, description="Backoff unit; attempt n waits base_delay * n")
    queue_size: int = Field(1000, gt=0, description="Capacity of the ingest queue")

    @classmethod
    def from_env(cls) -> "AnalysisConfig":
        return cls(
            max_chars=int(os.getenv("LOG_SLEUTH_MAX_CHARS", "50000")),
            timeout=float(os.getenv("LOG_SLEUTH_TIMEOUT", "30")),
            max_retries=int(os.getenv("LOG_SLEUTH_MAX_RETRIES", "2")),
            base_delay=float(os.getenv("LOG_SLEUTH_RETRY_DELAY", "1.0")),
            queue_size=int(os.getenv("LOG_SLEUTH_QUEUE_SIZE", "1000")),
        )


class LLMSettings(BaseModel):
    """Connection settings for an OpenAI-compatible chat completions endpoint."""

    model_config = ConfigDict(frozen=True)

    api_key: Optional[str] = None
    model: str = "gpt-4o-mini"
    base_url: str = "https://api.openai.com/v1"
    temperature: float = Field(0.1, ge=0, le=2)
    max_tokens: int = Field(2048, gt=0)

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_env(cls) -> "LLMSettings":
        return cls(
            api_key=os.getenv("OPENAI_API_KEY") or None,
            model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            base_url=os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1"),
            temperature=float(os.getenv("OPENAI_TEMPERATURE", "0.1")),
            max_tokens=int(os.getenv("OPENAI_MAX_TOKENS", "2048")),
        )
