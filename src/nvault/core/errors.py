"""Exception hierarchy for Neural Vault.

Every error carries a ``retryable`` flag so callers can decide whether the
same operation is worth attempting again without inspecting the type.
"""


class NeuralVaultError(RuntimeError):
    """Base error for vault, crypto and search failures."""

    retryable: bool = False

    def __init__(self, message: str, *, retryable: bool | None = None):
        super().__init__(message)
        if retryable is not None:
            self.retryable = retryable


class InvalidMnemonicError(NeuralVaultError):
    """Raised when a phrase is not 12 valid words with a matching checksum."""

    retryable = True


class AuthenticationFailedError(NeuralVaultError):
    """Raised when a blob fails authenticated decryption."""


class CorruptDataError(NeuralVaultError):
    """Raised when a persisted document does not match its schema."""


class StorageFailureError(NeuralVaultError):
    """Raised when the durable store cannot be read or written."""

    retryable = True


class ProfileNotFoundError(NeuralVaultError):
    """Raised when a vault identity has no profile record."""


class BiometricError(NeuralVaultError):
    """Base error for the biometric unlock path."""


class UnsupportedError(BiometricError):
    """Raised when the device has no platform authenticator."""


class NoMatchError(BiometricError):
    """Raised when no stored binding matches the authenticator's answer."""

    retryable = True


class UserCancelledError(BiometricError):
    """Raised when the user dismisses the prompt or it times out."""

    retryable = True


class EmbeddingServiceError(NeuralVaultError):
    """Raised when the embedding service call fails."""

    RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retryable: bool | None = None,
    ):
        if retryable is None:
            retryable = status_code is None or status_code in self.RETRYABLE_STATUS
        super().__init__(message, retryable=retryable)
        self.status_code = status_code


class SessionLockedError(NeuralVaultError):
    """Raised when a locked vault session is used."""
