"""Configuration settings for Splitscribe."""

import os
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()

MB = 1024 * 1024


class Settings:
    """Application settings loaded from environment variables."""

    # Storage
    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "uploads")
    CHUNKS_DIR: str = os.getenv("CHUNKS_DIR", "chunks")
    DOCUMENTS_DIR: str = os.getenv("DOCUMENTS_DIR", "documents")

    # Upload
    MAX_UPLOAD_SIZE_MB: int = int(os.getenv("MAX_UPLOAD_SIZE_MB", "500"))

    # Segmentation
    SPLIT_THRESHOLD_MB: int = int(os.getenv("SPLIT_THRESHOLD_MB", "25"))
    SEGMENT_TIME_SECONDS: int = int(os.getenv("SEGMENT_TIME_SECONDS", "600"))
    SEGMENT_TIMEOUT_SECONDS: float = float(os.getenv("SEGMENT_TIMEOUT_SECONDS", "1800"))
    FFMPEG_BINARY: str = os.getenv("FFMPEG_BINARY", "ffmpeg")
    FFPROBE_BINARY: str = os.getenv("FFPROBE_BINARY", "ffprobe")

    # Transcription
    TRANSCRIPTION_BACKEND: str = os.getenv("TRANSCRIPTION_BACKEND", "openai")
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    TRANSCRIPTION_API_URL: str = os.getenv(
        "TRANSCRIPTION_API_URL", "https://api.openai.com/v1/audio/transcriptions"
    )
    TRANSCRIPTION_MODEL: str = os.getenv("TRANSCRIPTION_MODEL", "whisper-1")
    TRANSCRIPTION_LANGUAGE: str = os.getenv("TRANSCRIPTION_LANGUAGE", "es")
    TRANSCRIPTION_TIMEOUT_SECONDS: float = float(os.getenv("TRANSCRIPTION_TIMEOUT_SECONDS", "300"))
    WHISPER_MODEL_SIZE: str = os.getenv("WHISPER_MODEL_SIZE", "base")

    # Documents
    RENDER_DOCUMENTS: bool = os.getenv("RENDER_DOCUMENTS", "true").lower() == "true"

    # Rate limiting
    TRANSCRIBE_RATE_LIMIT: str = os.getenv("TRANSCRIBE_RATE_LIMIT", "10/minute")

    # Application
    APP_ENV: str = os.getenv("APP_ENV", "development")
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    @property
    def max_upload_bytes(self) -> int:
        return self.MAX_UPLOAD_SIZE_MB * MB

    @property
    def split_threshold_bytes(self) -> int:
        return self.SPLIT_THRESHOLD_MB * MB

    def validate(self) -> list[str]:
        """Validate settings and return list of warnings."""
        errors = []
        if self.TRANSCRIPTION_BACKEND == "openai" and not self.OPENAI_API_KEY:
            errors.append("OPENAI_API_KEY is not set - transcription requests will be rejected by the API")
        if self.TRANSCRIPTION_BACKEND not in ("openai", "local"):
            errors.append(f"Unknown TRANSCRIPTION_BACKEND '{self.TRANSCRIPTION_BACKEND}' - falling back to 'openai'")
        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
