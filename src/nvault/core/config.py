"""Configuration management for Neural Vault core."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def get_env(key: str, default: str | None = None) -> str | None:
    """Get environment variable with optional default."""
    return os.getenv(key, default)


def get_env_int(key: str, default: int) -> int:
    """Get environment variable as integer."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def get_env_float(key: str, default: float) -> float:
    """Get environment variable as float."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


# Embedding service (Gemini)
GEMINI_API_KEY = get_env("GEMINI_API_KEY")
EMBEDDING_MODEL = get_env("EMBEDDING_MODEL", "gemini-embedding-001") or (
    "gemini-embedding-001"
)
EMBEDDING_BASE_URL = get_env(
    "EMBEDDING_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
) or ("https://generativelanguage.googleapis.com/v1beta")
EMBEDDING_TIMEOUT_SECONDS = get_env_float("EMBEDDING_TIMEOUT_SECONDS", 30.0)
EMBEDDING_CONCURRENCY = get_env_int("EMBEDDING_CONCURRENCY", 4)

# Retry policy for external calls (attempts include the first try)
EMBEDDING_MAX_ATTEMPTS = get_env_int("EMBEDDING_MAX_ATTEMPTS", 5)
EMBEDDING_BASE_DELAY = get_env_float("EMBEDDING_BASE_DELAY", 1.0)

# Platform authenticator
BIOMETRIC_TIMEOUT_MS = get_env_int("BIOMETRIC_TIMEOUT_MS", 60000)
BIOMETRIC_RP_NAME = get_env("BIOMETRIC_RP_NAME", "Neural Vault") or "Neural Vault"

# Neural Vault Data Directory (defaults to ~/.neuralvault)
NVAULT_DATA_DIR = Path(
    get_env("NVAULT_DATA_DIR", os.path.expanduser("~/.neuralvault"))
    or os.path.expanduser("~/.neuralvault")
)

# Database path
DATABASE_PATH = NVAULT_DATA_DIR / "nvault.db"

# Optional YAML overrides
SETTINGS_FILENAME = "nvault.yaml"

# Logging
LOG_LEVEL = get_env("LOG_LEVEL", "INFO") or "INFO"


def setup_logging() -> logging.Logger:
    """Configure and return logger."""
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    )
    return logging.getLogger(__name__)


def validate_embedding_environment() -> tuple[bool, str]:
    """
    Validate environment variables for semantic search.

    Returns:
        (is_valid, message) - If not valid, message explains what's missing.
    """
    if not GEMINI_API_KEY:
        return (
            False,
            "Missing GEMINI_API_KEY - semantic search falls back to text matching",
        )

    return True, ""
