"""Shared test fixtures and configuration."""

from __future__ import annotations

import hashlib
import hmac
import os

import pytest

from nvault.core.biometric import (
    Assertion,
    AssertionRequest,
    BiometricBridge,
    Credential,
    CredentialRequest,
)
from nvault.core.errors import EmbeddingServiceError, UnsupportedError, UserCancelledError
from nvault.core.indexer import NoteIndexer
from nvault.core.registry import VaultRegistry
from nvault.core.retry import RetryPolicy
from nvault.core.service import VaultService
from nvault.storage.kv import MemoryKeyValueStore

GOLDEN_MNEMONIC = (
    "abandon abandon abandon abandon abandon abandon "
    "abandon abandon abandon abandon abandon about"
)
GOLDEN_VAULT_ID = "c557eec878dfd852"
GOLDEN_KEY_HEX = "5eb00bbddcf069084889a8ab9155568165f5c453ccb85e70811aaed6f6da5fc1"

OTHER_MNEMONIC = "legal winner thank year wave sausage worth useful legal winner thank yellow"
THIRD_MNEMONIC = "zoo zoo zoo zoo zoo zoo zoo zoo zoo zoo zoo wrong"


class FakeAuthenticator:
    """In-memory platform authenticator with a PRF extension.

    Each credential owns a random secret; the PRF output for a salt is
    HMAC-SHA256(secret, salt), like a hardware authenticator would compute.
    """

    def __init__(self, available: bool = True, prf: bool = True):
        self.available = available
        self.prf = prf
        self.cancel = False
        self.secrets: dict[bytes, bytes] = {}
        self.pick: bytes | None = None
        self.requests: list[AssertionRequest] = []

    def is_available(self) -> bool:
        return self.available

    def _prf(self, credential_id: bytes, salt: bytes | None) -> bytes | None:
        if not self.prf or salt is None or credential_id not in self.secrets:
            return None
        return hmac.new(self.secrets[credential_id], salt, hashlib.sha256).digest()

    def create_credential(self, request: CredentialRequest) -> Credential:
        if not self.available:
            raise UnsupportedError("no authenticator")
        if self.cancel:
            raise UserCancelledError("cancelled")
        credential_id = os.urandom(16)
        self.secrets[credential_id] = os.urandom(32)
        return Credential(
            credential_id=credential_id,
            prf_output=self._prf(credential_id, request.prf_salt),
        )

    def get_assertion(self, request: AssertionRequest) -> Assertion:
        self.requests.append(request)
        if self.cancel:
            raise UserCancelledError("cancelled")
        if self.pick is not None:
            credential_id = self.pick
        elif request.allowed_credential_ids:
            credential_id = request.allowed_credential_ids[0]
        else:
            credential_id = next(iter(request.prf_salts))
        return Assertion(
            credential_id=credential_id,
            prf_output=self._prf(credential_id, request.prf_salts.get(credential_id)),
        )


class FakeEmbedder:
    """Embeds text as keyword counts over a fixed vocabulary."""

    VOCABULARY = ("cat", "dog", "fish", "tax", "invoice", "recipe")

    def __init__(self, fail_texts: set[str] | None = None, batch_fails: bool = False):
        self.fail_texts = fail_texts or set()
        self.batch_fails = batch_fails
        self.calls: list[str] = []
        self.batch_calls: list[list[str]] = []

    def vector(self, text: str) -> list[float]:
        lowered = text.lower()
        return [float(lowered.count(word)) for word in self.VOCABULARY]

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if any(marker in text for marker in self.fail_texts):
            raise EmbeddingServiceError("bad input", status_code=400)
        return self.vector(text)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.batch_calls.append(list(texts))
        if self.batch_fails or any(
            marker in text for text in texts for marker in self.fail_texts
        ):
            raise EmbeddingServiceError("batch rejected", status_code=400)
        return [self.vector(t) for t in texts]


@pytest.fixture
def golden_mnemonic():
    return GOLDEN_MNEMONIC


@pytest.fixture
def store():
    """Fresh in-memory key-value store."""
    return MemoryKeyValueStore()


@pytest.fixture
def registry(store):
    return VaultRegistry(store)


@pytest.fixture
def authenticator():
    return FakeAuthenticator()


@pytest.fixture
def bridge(registry, authenticator):
    return BiometricBridge(registry, authenticator, timeout_ms=1000)


@pytest.fixture
def sleeps():
    """Records delays instead of sleeping."""
    return []


@pytest.fixture
def fast_retry(sleeps):
    """Retry policy with the default schedule and no real waiting."""

    async def _sleep(delay):
        sleeps.append(delay)

    return RetryPolicy(max_attempts=5, base_delay=1.0, sleep=_sleep)


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def indexer(embedder, fast_retry):
    return NoteIndexer(embedder, retry_policy=fast_retry, concurrency=2)


@pytest.fixture
def service(registry, bridge, indexer):
    return VaultService(registry=registry, biometric=bridge, indexer=indexer)


@pytest.fixture
def other_mnemonic():
    return OTHER_MNEMONIC


@pytest.fixture
def third_mnemonic():
    return THIRD_MNEMONIC


@pytest.fixture
def make_authenticator():
    """Factory for fake authenticators with chosen capabilities."""
    return FakeAuthenticator


@pytest.fixture
def make_embedder():
    """Factory for fake embedders that fail on chosen texts."""
    return FakeEmbedder
