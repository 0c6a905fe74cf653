"""
Configuration loader for the candidate intake assistant.

Loads all settings from environment variables (.env file).
Validates required settings and provides type-safe access.
"""

import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """
    Centralized configuration for all intake components.

    All values loaded from environment variables - NO SECRETS IN CODE.
    """

    # ===== LLM APIs =====
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    OPENAI_BASE_URL: str = os.getenv("OPENAI_BASE_URL", "")

    # ===== LLM Model Configuration =====
    EXTRACTION_MODEL: str = os.getenv("EXTRACTION_MODEL", "gpt-4o-mini")
    VISION_MODEL: str = os.getenv("VISION_MODEL", "gpt-4o-mini")
    MATCHING_MODEL: str = os.getenv("MATCHING_MODEL", "gpt-4o-mini")

    # Extraction and matching are deterministic
    EXTRACTION_TEMPERATURE: float = 0.0
    LLM_MAX_ATTEMPTS: int = 3

    # ===== Document Ingestion =====
    MAX_DOCUMENT_BYTES: int = int(os.getenv("MAX_DOCUMENT_BYTES", str(5 * 1024 * 1024)))
    DOWNLOAD_TIMEOUT_SECONDS: float = float(os.getenv("DOWNLOAD_TIMEOUT_SECONDS", "30"))
    DOCUMENT_TEMP_DIR: str = os.getenv("DOCUMENT_TEMP_DIR", "/tmp")
    # Bearer token some channels require to fetch media (empty = anonymous)
    MEDIA_AUTH_TOKEN: str = os.getenv("MEDIA_AUTH_TOKEN", "")

    # ===== Session Store =====
    # memory | file | mongo
    SESSION_STORE: str = os.getenv("SESSION_STORE", "file").lower()
    SESSION_STORE_PATH: str = os.getenv("SESSION_STORE_PATH", "./data/sessions.json")
    MONGODB_URI: str = os.getenv("MONGODB_URI", "")
    SESSION_DATABASE: str = os.getenv("SESSION_DATABASE", "candidate_intake")
    SESSION_COLLECTION: str = os.getenv("SESSION_COLLECTION", "sessions")

    # ===== Retention =====
    SESSION_TTL_HOURS: float = float(os.getenv("SESSION_TTL_HOURS", "24"))
    SWEEP_INTERVAL_SECONDS: float = float(os.getenv("SWEEP_INTERVAL_SECONDS", "3600"))

    # ===== Rate Limiting =====
    RATE_LIMIT_REQUESTS: int = int(os.getenv("RATE_LIMIT_REQUESTS", "10"))
    RATE_LIMIT_WINDOW_SECONDS: float = float(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))

    # ===== Reviewer Notification (Resend) =====
    RESEND_API_KEY: str = os.getenv("RESEND_API_KEY", "")
    RESEND_FROM_EMAIL: str = os.getenv("RESEND_FROM_EMAIL", "onboarding@resend.dev")

    # ===== Logging =====
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "simple")
    DEBUG_MODE: bool = os.getenv("DEBUG_MODE", "false").lower() == "true"

    @classmethod
    def validate(cls) -> None:
        """
        Validate that all required configuration is present.
        Raises ValueError if critical settings are missing.
        """
        required_settings = {
            "OPENAI_API_KEY": cls.OPENAI_API_KEY,
        }

        if cls.SESSION_STORE == "mongo":
            required_settings["MONGODB_URI"] = cls.MONGODB_URI

        missing = [name for name, value in required_settings.items() if not value]

        if missing:
            raise ValueError(
                f"Missing required configuration: {', '.join(missing)}. "
                f"Please check your .env file."
            )

        if cls.SESSION_STORE not in ("memory", "file", "mongo"):
            raise ValueError(
                f"Unknown SESSION_STORE '{cls.SESSION_STORE}' (expected memory, file or mongo)"
            )

        if cls.MAX_DOCUMENT_BYTES <= 0 or cls.DOWNLOAD_TIMEOUT_SECONDS <= 0:
            raise ValueError("MAX_DOCUMENT_BYTES and DOWNLOAD_TIMEOUT_SECONDS must be positive")

        if not Path(cls.DOCUMENT_TEMP_DIR).is_dir():
            raise FileNotFoundError(
                f"Document temp directory not found: {cls.DOCUMENT_TEMP_DIR}"
            )

    @classmethod
    def get_llm_api_key(cls) -> str:
        """Get the API key for extraction and matching calls."""
        return cls.OPENAI_API_KEY

    @classmethod
    def get_llm_base_url(cls) -> Optional[str]:
        """LLM base URL (None to use OpenAI directly)."""
        return cls.OPENAI_BASE_URL or None

    @classmethod
    def summary(cls) -> str:
        """Return a summary of the current configuration (safe for logging)."""
        return f"""
Configuration Summary:
  LLM: OpenAI {'✓' if cls.get_llm_api_key() else '✗ Missing'}
  Models: extraction={cls.EXTRACTION_MODEL} vision={cls.VISION_MODEL} matching={cls.MATCHING_MODEL}
  Session Store: {cls.SESSION_STORE} ({cls.SESSION_STORE_PATH if cls.SESSION_STORE == 'file' else cls.SESSION_COLLECTION})
  MongoDB: {'✓ Configured' if cls.MONGODB_URI else '✗ Missing'}
  Documents: max {cls.MAX_DOCUMENT_BYTES} bytes, timeout {cls.DOWNLOAD_TIMEOUT_SECONDS}s
  Session TTL: {cls.SESSION_TTL_HOURS}h (sweep every {cls.SWEEP_INTERVAL_SECONDS}s)
  Rate Limit: {cls.RATE_LIMIT_REQUESTS}/{cls.RATE_LIMIT_WINDOW_SECONDS}s per identity
  Reviewer E-mail: {'✓ Resend' if cls.RESEND_API_KEY else '✗ Log only'}
        """.strip()


# Validate configuration on import (fail fast if misconfigured)
# Comment this out during development if you want to test without all keys
# Config.validate()
