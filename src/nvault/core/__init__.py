"""Neural Vault core library - derivation, encryption, registry and ranking."""

from typing import TYPE_CHECKING

from nvault.core.errors import (
    AuthenticationFailedError,
    CorruptDataError,
    EmbeddingServiceError,
    InvalidMnemonicError,
    NeuralVaultError,
    NoMatchError,
    StorageFailureError,
    UnsupportedError,
    UserCancelledError,
)
from nvault.core.types import Note, ProfileRecord, RankedNote

if TYPE_CHECKING:
    from nvault.core.factory import build_service
    from nvault.core.service import VaultService
    from nvault.core.session import VaultSession

__all__ = [
    # Core classes
    "VaultService",
    "VaultSession",
    "build_service",
    # Types
    "Note",
    "ProfileRecord",
    "RankedNote",
    # Errors
    "AuthenticationFailedError",
    "CorruptDataError",
    "EmbeddingServiceError",
    "InvalidMnemonicError",
    "NeuralVaultError",
    "NoMatchError",
    "StorageFailureError",
    "UnsupportedError",
    "UserCancelledError",
]


def __getattr__(name: str):
    if name == "VaultService":
        from nvault.core.service import VaultService

        return VaultService
    if name == "VaultSession":
        from nvault.core.session import VaultSession

        return VaultSession
    if name == "build_service":
        from nvault.core.factory import build_service

        return build_service
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
