"""Tests for nvault.core.mnemonic module."""

import pytest

from nvault.core.errors import InvalidMnemonicError, SessionLockedError
from nvault.core.mnemonic import (
    derive_key,
    derive_secret,
    derive_vault_id,
    generate_mnemonic,
    is_valid_mnemonic,
    normalize_mnemonic,
    validate_mnemonic,
)

GOLDEN_VAULT_ID = "c557eec878dfd852"
GOLDEN_KEY_HEX = "5eb00bbddcf069084889a8ab9155568165f5c453ccb85e70811aaed6f6da5fc1"


class TestNormalize:
    """Tests for phrase normalization."""

    def test_collapses_whitespace_and_case(self):
        """Extra spaces, tabs and capitals normalize away."""
        raw = "  Abandon\tabandon  abandon\nABANDON "
        assert normalize_mnemonic(raw) == "abandon abandon abandon abandon"

    def test_variants_derive_same_identity(self, golden_mnemonic):
        """Formatting differences do not change the vault."""
        messy = "  " + golden_mnemonic.upper().replace(" ", "   ") + "\n"
        assert derive_vault_id(messy) == derive_vault_id(golden_mnemonic)
        assert derive_key(messy) == derive_key(golden_mnemonic)


class TestGenerate:
    """Tests for phrase generation."""

    def test_generates_twelve_valid_words(self):
        """Generated phrases are 12 words and pass validation."""
        phrase = generate_mnemonic()

        assert len(phrase.split()) == 12
        assert is_valid_mnemonic(phrase)

    def test_generates_distinct_phrases(self):
        """Two generations do not collide."""
        assert generate_mnemonic() != generate_mnemonic()


class TestValidate:
    """Tests for phrase validation."""

    @pytest.mark.parametrize(
        "phrase",
        [
            "",
            "abandon " * 11 + "abandon",
            "abandon abandon abandon",
            "notaword " * 11 + "about",
            "abandon " * 23 + "art",
        ],
    )
    def test_rejects_invalid(self, phrase):
        """Bad word count, unknown words and bad checksums are rejected."""
        assert not is_valid_mnemonic(phrase)
        with pytest.raises(InvalidMnemonicError):
            validate_mnemonic(phrase)

    def test_error_message_is_vague(self):
        """The error does not say which check failed."""
        with pytest.raises(InvalidMnemonicError) as exc_info:
            validate_mnemonic("abandon " * 11 + "abandon")

        assert str(exc_info.value) == "Invalid recovery phrase"
        assert exc_info.value.retryable is True

    def test_rejects_non_string(self):
        """Non-string input is an invalid phrase, not a TypeError."""
        with pytest.raises(InvalidMnemonicError):
            validate_mnemonic(None)

    def test_accepts_known_phrases(self, golden_mnemonic, other_mnemonic, third_mnemonic):
        """Published test phrases are valid."""
        for phrase in (golden_mnemonic, other_mnemonic, third_mnemonic):
            assert validate_mnemonic(phrase) == phrase


class TestDerivation:
    """Tests for key and identity derivation."""

    def test_golden_vector(self, golden_mnemonic):
        """Known phrase derives the known identity and key."""
        assert derive_vault_id(golden_mnemonic) == GOLDEN_VAULT_ID
        assert derive_key(golden_mnemonic).hex() == GOLDEN_KEY_HEX

    def test_key_is_32_bytes(self, other_mnemonic):
        """Derived key is AES-256 sized."""
        assert len(derive_key(other_mnemonic)) == 32

    def test_identity_is_16_hex_chars(self, other_mnemonic):
        """Identity is 16 lowercase hex characters."""
        vault_id = derive_vault_id(other_mnemonic)

        assert len(vault_id) == 16
        assert all(c in "0123456789abcdef" for c in vault_id)

    def test_distinct_phrases_distinct_vaults(self, golden_mnemonic, other_mnemonic):
        """Different phrases map to different identities and keys."""
        assert derive_vault_id(golden_mnemonic) != derive_vault_id(other_mnemonic)
        assert derive_key(golden_mnemonic) != derive_key(other_mnemonic)

    def test_derivation_rejects_invalid(self):
        """Derivation validates first."""
        with pytest.raises(InvalidMnemonicError):
            derive_key("abandon " * 11 + "abandon")


class TestVaultSecret:
    """Tests for the wipeable secret holder."""

    def test_derive_secret(self, golden_mnemonic):
        """Secret carries identity, key and normalized phrase."""
        secret = derive_secret(golden_mnemonic.upper())

        assert secret.vault_id == GOLDEN_VAULT_ID
        assert secret.key.hex() == GOLDEN_KEY_HEX
        assert secret.mnemonic == golden_mnemonic
        assert not secret.wiped

    def test_wipe_zeroes_and_blocks_access(self, golden_mnemonic):
        """After wipe the buffers are empty and access raises."""
        secret = derive_secret(golden_mnemonic)
        key_buffer = secret._key

        secret.wipe()

        assert secret.wiped
        assert len(key_buffer) == 0
        with pytest.raises(SessionLockedError):
            _ = secret.key
        with pytest.raises(SessionLockedError):
            _ = secret.mnemonic

    def test_repr_hides_secrets(self, golden_mnemonic):
        """repr shows only the identity."""
        text = repr(derive_secret(golden_mnemonic))

        assert GOLDEN_VAULT_ID in text
        assert "abandon" not in text
        assert GOLDEN_KEY_HEX not in text
