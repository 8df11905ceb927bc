"""Factory for building the VaultService with all dependencies wired.

Every interface should call build_service() so stores, retry policy and
providers are configured the same way everywhere.
"""

from pathlib import Path

from nvault.core.biometric import BiometricBridge, PlatformAuthenticator
from nvault.core.config import GEMINI_API_KEY, NVAULT_DATA_DIR
from nvault.core.indexer import NoteIndexer
from nvault.core.registry import VaultRegistry
from nvault.core.retry import RetryPolicy
from nvault.core.service import VaultService
from nvault.core.settings import SettingsLoader
from nvault.core.types import EmbeddingService
from nvault.providers.authenticator import UnavailableAuthenticator
from nvault.providers.embeddings import GeminiEmbeddingClient
from nvault.storage.kv import KeyValueStore, SqliteKeyValueStore


def build_service(
    data_dir: Path | str | None = None,
    store: KeyValueStore | None = None,
    api_key: str | None = None,
    embedder: EmbeddingService | None = None,
    authenticator: PlatformAuthenticator | None = None,
) -> VaultService:
    """
    Build a fully configured VaultService.

    Args:
        data_dir: Directory for the database and nvault.yaml (defaults to config)
        store: Key-value store (defaults to SQLite in data_dir)
        api_key: Gemini API key (defaults to env)
        embedder: Embedding service (defaults to Gemini when a key is set)
        authenticator: Platform authenticator (defaults to none available)

    Returns:
        Fully configured VaultService
    """
    actual_data_dir = Path(data_dir).expanduser() if data_dir else NVAULT_DATA_DIR
    actual_data_dir.mkdir(parents=True, exist_ok=True)

    settings = SettingsLoader(actual_data_dir).load()

    if store is None:
        store = SqliteKeyValueStore(actual_data_dir / "nvault.db")
    registry = VaultRegistry(store)

    biometric = BiometricBridge(
        registry,
        authenticator or UnavailableAuthenticator(),
        timeout_ms=settings.biometric.timeout_ms,
        rp_name=settings.biometric.rp_name,
    )

    key = api_key or GEMINI_API_KEY
    if embedder is None and key:
        embedder = GeminiEmbeddingClient(
            api_key=key,
            model=settings.embedding.model,
            base_url=settings.embedding.base_url,
            timeout_seconds=settings.embedding.timeout_seconds,
        )

    indexer = None
    if embedder is not None:
        indexer = NoteIndexer(
            embedder,
            retry_policy=RetryPolicy(
                max_attempts=settings.embedding.max_attempts,
                base_delay=settings.embedding.base_delay,
            ),
            concurrency=settings.embedding.concurrency,
        )

    return VaultService(registry=registry, biometric=biometric, indexer=indexer)

