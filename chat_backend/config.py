# =============================================================================
# Runtime Configuration
# -----------------------------------------------------------------------------
# Every tunable value of the backend is read from the environment (optionally
# populated from a local .env file). Nothing here talks to the network.
# =============================================================================

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

from dotenv import load_dotenv # Loads a local .env file into os.environ


MIB = 1024 * 1024

# Declared content types accepted by the upload endpoint
ALLOWED_UPLOAD_TYPES = ("image/jpeg", "image/png", "application/pdf")


def _split_csv(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return ()
    return tuple(part.strip() for part in value.split(",") if part.strip())


@dataclass(frozen=True)
class Settings:
    """Immutable view of the environment used to wire the application."""

    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    auth_mode: str = "stub"

    public_dir: str = "public"
    upload_subdir: str = "uploads"
    max_upload_bytes: int = 10 * MIB
    allowed_upload_types: Tuple[str, ...] = ALLOWED_UPLOAD_TYPES

    chat_model_small: str = "llama-3.1-8b-instant"
    chat_model_large: str = "llama-3.3-70b-versatile"
    chat_model_reasoning: str = "qwen/qwen3-32b"
    title_model: str = "llama-3.1-8b-instant"
    artifact_model: str = "llama-3.3-70b-versatile"
    llm_temperature: float = 0.2
    llm_max_retries: int = 2

    max_steps: int = 5
    max_duration: float = 60.0
    stream_chunking: str = "word"

    cors_origins: Tuple[str, ...] = field(default_factory=tuple)
    log_level: str = "INFO"
    log_file: Optional[str] = None
    weather_api_key: Optional[str] = None

    @property
    def upload_dir(self) -> str:
        return os.path.join(self.public_dir, self.upload_subdir)

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            supabase_url=os.getenv("SUPABASE_URL"),
            supabase_key=os.getenv("SUPABASE_KEY"),
            auth_mode=os.getenv("AUTH_MODE", "stub").lower(),
            public_dir=os.getenv("PUBLIC_DIR", "public"),
            upload_subdir=os.getenv("UPLOAD_SUBDIR", "uploads"),
            max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", 10 * MIB)),
            chat_model_small=os.getenv("CHAT_MODEL_SMALL", "llama-3.1-8b-instant"),
            chat_model_large=os.getenv("CHAT_MODEL_LARGE", "llama-3.3-70b-versatile"),
            chat_model_reasoning=os.getenv("CHAT_MODEL_REASONING", "qwen/qwen3-32b"),
            title_model=os.getenv("TITLE_MODEL", "llama-3.1-8b-instant"),
            artifact_model=os.getenv("ARTIFACT_MODEL", "llama-3.3-70b-versatile"),
            llm_temperature=float(os.getenv("LLM_TEMPERATURE", 0.2)),
            llm_max_retries=int(os.getenv("LLM_MAX_RETRIES", 2)),
            max_steps=int(os.getenv("MAX_STEPS", 5)),
            max_duration=float(os.getenv("MAX_DURATION", 60)),
            stream_chunking=os.getenv("STREAM_CHUNKING", "word").lower(),
            cors_origins=_split_csv(os.getenv("CORS_ORIGINS")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE"),
            weather_api_key=os.getenv("WEATHER_API_KEY"),
        )
