"""Mnemonic phrase handling and vault secret derivation.

A vault is addressed and encrypted purely from its 12-word BIP-39 phrase:

- the vault key is the first 32 bytes of the BIP-39 seed
  (PBKDF2-HMAC-SHA512, 2048 rounds, empty passphrase)
- the vault identity is the first 16 hex chars of SHA-256 over the
  normalized phrase

Both are pure functions of the normalized phrase, so the same phrase opens
the same vault on any device without a network exchange.
"""

import hashlib
import logging
import re
from dataclasses import dataclass

from mnemonic import Mnemonic

from nvault.core.cipher import secure_zero
from nvault.core.errors import InvalidMnemonicError, SessionLockedError

logger = logging.getLogger(__name__)

WORD_COUNT = 12
ENTROPY_BITS = 128
KEY_LENGTH = 32
VAULT_ID_LENGTH = 16

_WHITESPACE = re.compile(r"\s+")
_bip39 = Mnemonic("english")


def normalize_mnemonic(phrase: str) -> str:
    """Trim, lower-case and collapse whitespace."""
    return _WHITESPACE.sub(" ", phrase.strip().lower())


def generate_mnemonic() -> str:
    """Create a fresh 12-word phrase from 128 bits of entropy."""
    return _bip39.generate(strength=ENTROPY_BITS)


def is_valid_mnemonic(phrase: str) -> bool:
    normalized = normalize_mnemonic(phrase)
    return len(normalized.split(" ")) == WORD_COUNT and _bip39.check(normalized)


def validate_mnemonic(phrase: str) -> str:
    """
    Validate a phrase and return its normalized form.

    Args:
        phrase: User-entered mnemonic

    Returns:
        Normalized phrase

    Raises:
        InvalidMnemonicError: If word count, wordlist or checksum is wrong
    """
    if not isinstance(phrase, str) or not is_valid_mnemonic(phrase):
        # Deliberately vague: do not say which word or which check failed.
        raise InvalidMnemonicError("Invalid recovery phrase")
    return normalize_mnemonic(phrase)


def derive_key(phrase: str) -> bytes:
    """Derive the 256-bit vault key from a phrase."""
    normalized = validate_mnemonic(phrase)
    seed = Mnemonic.to_seed(normalized, passphrase="")
    return bytes(seed[:KEY_LENGTH])


def derive_vault_id(phrase: str) -> str:
    """Derive the public storage identity from a phrase."""
    normalized = validate_mnemonic(phrase)
    digest = hashlib.sha256(normalized.encode("utf-8")).hexdigest()
    return digest[:VAULT_ID_LENGTH]


@dataclass
class VaultSecret:
    """Phrase, key and identity held together for one unlocked session.

    Key and phrase live in mutable buffers so ``wipe()`` can zero them.
    """

    vault_id: str
    _key: bytearray
    _mnemonic: bytearray

    @property
    def key(self) -> bytes:
        if self.wiped:
            raise SessionLockedError("Vault secret has been wiped")
        return bytes(self._key)

    @property
    def mnemonic(self) -> str:
        if self.wiped:
            raise SessionLockedError("Vault secret has been wiped")
        return self._mnemonic.decode("utf-8")

    @property
    def wiped(self) -> bool:
        return not self._mnemonic

    def wipe(self) -> None:
        secure_zero(self._key)
        secure_zero(self._mnemonic)
        self._key.clear()
        self._mnemonic.clear()

    def __repr__(self) -> str:
        return f"VaultSecret(vault_id={self.vault_id!r})"


def derive_secret(phrase: str) -> VaultSecret:
    """Validate once and derive both key and identity."""
    normalized = validate_mnemonic(phrase)
    secret = VaultSecret(
        vault_id=derive_vault_id(normalized),
        _key=bytearray(derive_key(normalized)),
        _mnemonic=bytearray(normalized.encode("utf-8")),
    )
    logger.debug("Derived vault secret for %s", secret.vault_id)
    return secret
