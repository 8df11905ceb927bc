"""Settings loader for Neural Vault.

Environment variables (see ``nvault.core.config``) provide defaults; an
optional ``nvault.yaml`` in the data directory overrides them:

    embedding:
      model: gemini-embedding-001
      concurrency: 8
      max_attempts: 5
      base_delay: 1.0
    biometric:
      timeout_ms: 30000
"""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from nvault.core.config import (
    BIOMETRIC_RP_NAME,
    BIOMETRIC_TIMEOUT_MS,
    EMBEDDING_BASE_DELAY,
    EMBEDDING_BASE_URL,
    EMBEDDING_CONCURRENCY,
    EMBEDDING_MAX_ATTEMPTS,
    EMBEDDING_MODEL,
    EMBEDDING_TIMEOUT_SECONDS,
    NVAULT_DATA_DIR,
    SETTINGS_FILENAME,
)
from nvault.core.errors import NeuralVaultError

logger = logging.getLogger(__name__)


class SettingsError(NeuralVaultError):
    """Raised when nvault.yaml is invalid."""


class EmbeddingSettings(BaseModel):
    """Embedding service and retry settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    model: str = EMBEDDING_MODEL
    base_url: str = EMBEDDING_BASE_URL
    timeout_seconds: float = Field(default=EMBEDDING_TIMEOUT_SECONDS, gt=0)
    concurrency: int = Field(default=EMBEDDING_CONCURRENCY, ge=1)
    max_attempts: int = Field(default=EMBEDDING_MAX_ATTEMPTS, ge=1)
    base_delay: float = Field(default=EMBEDDING_BASE_DELAY, ge=0)


class BiometricSettings(BaseModel):
    """Platform authenticator settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    timeout_ms: int = Field(default=BIOMETRIC_TIMEOUT_MS, gt=0)
    rp_name: str = BIOMETRIC_RP_NAME


class AppSettings(BaseModel):
    """Typed settings loaded from nvault.yaml.

    All sections are optional. Extra fields are forbidden to catch typos.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    biometric: BiometricSettings = Field(default_factory=BiometricSettings)


class SettingsLoader:
    """Loads nvault.yaml from the data directory.

    Example:
        settings = SettingsLoader("~/.neuralvault").load()
        settings.embedding.concurrency
    """

    _DEFAULTS = AppSettings()

    def __init__(self, path: Path | str = NVAULT_DATA_DIR):
        """Initialize loader with the data directory path."""
        self.root = Path(path).expanduser()
        self.config_file = self.root / SETTINGS_FILENAME
        self._settings: AppSettings | None = None

    def load(self) -> AppSettings:
        """Load settings, falling back to defaults when no file exists.

        Raises:
            SettingsError: If the file is not valid YAML or fails validation.
        """
        if self._settings is not None:
            return self._settings

        if not self.config_file.exists():
            logger.debug("No settings file at %s", self.config_file)
            self._settings = self._DEFAULTS
            return self._settings

        try:
            with open(self.config_file) as f:
                raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise SettingsError(f"Invalid YAML in {self.config_file}: {e}") from e

        if raw is None:
            self._settings = self._DEFAULTS
            return self._settings

        if not isinstance(raw, dict):
            raise SettingsError(
                f"{SETTINGS_FILENAME} must be a mapping, got {type(raw).__name__}"
            )

        try:
            self._settings = AppSettings.model_validate(raw)
        except ValidationError as e:
            raise SettingsError(f"Invalid settings in {self.config_file}: {e}") from e
        logger.info("Settings loaded from %s", self.config_file)
        return self._settings

    def __repr__(self) -> str:
        return f"SettingsLoader({self.root})"
