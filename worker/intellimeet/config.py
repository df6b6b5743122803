from __future__ import annotations

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings.

    Values may be provided via environment variables. This keeps configuration
    decoupled from code and simplifies packaging.
    """

    # HTTP
    cors_allow_origins: str = Field("*", description="Comma-separated origins")

    # Completion backend (Ollama-style /api/generate)
    llm_endpoint: str = Field("http://localhost:11434/api/generate", description="Text-completion URL")
    llm_model: str = Field("gemma:2b", description="Model identifier sent with every request")
    llm_timeout_s: float = Field(60.0, ge=1.0, le=600.0, description="Bound for task extraction calls")
    mom_timeout_s: float = Field(120.0, ge=1.0, le=600.0, description="Bound for minutes-of-meeting calls")
    llm_ssl_no_verify: bool = False

    # Extraction
    max_tasks: int = Field(20, ge=1, le=200)
    auto_extract: bool = Field(False, description="Run task extraction while the meeting is live")
    auto_extract_every: int = Field(5, ge=1, le=1000, description="Final utterances between auto runs")

    # Fanout
    bus_queue_size: int = Field(256, ge=1, le=100_000)

    class Config:
        env_prefix = "WORKER_"
        case_sensitive = False


def load_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
