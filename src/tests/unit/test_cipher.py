"""Tests for nvault.core.cipher module."""

import base64

import pytest

from nvault.core import cipher
from nvault.core.errors import AuthenticationFailedError, CorruptDataError

BASE64_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"


@pytest.fixture
def key():
    return cipher.generate_key()


class TestEncryptDecrypt:
    """Tests for the AES-GCM envelope."""

    def test_roundtrip(self, key):
        """Plaintext survives encrypt then decrypt."""
        blob = cipher.encrypt("secret notes", key)

        assert cipher.decrypt(blob, key) == b"secret notes"

    def test_blob_is_ascii_base64_with_nonce_and_tag(self, key):
        """Blob is base64 of nonce + ciphertext + tag."""
        blob = cipher.encrypt(b"abc", key)
        raw = base64.b64decode(blob)

        assert isinstance(blob, str)
        assert len(raw) == cipher.NONCE_SIZE + 3 + cipher.TAG_SIZE

    def test_fresh_nonce_each_time(self, key):
        """Encrypting the same plaintext twice yields different blobs."""
        assert cipher.encrypt("same", key) != cipher.encrypt("same", key)

    def test_empty_plaintext(self, key):
        """Empty payloads are valid."""
        assert cipher.decrypt(cipher.encrypt(b"", key), key) == b""

    def test_accepts_bytes_blob(self, key):
        """Blob can be passed back as bytes."""
        blob = cipher.encrypt("x", key).encode("ascii")

        assert cipher.decrypt(blob, key) == b"x"

    def test_wrong_key_fails(self, key):
        """A different key cannot open the blob."""
        blob = cipher.encrypt("secret", key)

        with pytest.raises(AuthenticationFailedError):
            cipher.decrypt(blob, cipher.generate_key())

    def test_every_flipped_bit_fails(self, key):
        """Flipping any single bit of nonce, ciphertext or tag is detected."""
        raw = base64.b64decode(cipher.encrypt("secret", key))
        for position in range(len(raw)):
            for bit in range(8):
                tampered = bytearray(raw)
                tampered[position] ^= 1 << bit
                with pytest.raises(AuthenticationFailedError):
                    cipher.decrypt(base64.b64encode(bytes(tampered)).decode(), key)

    def test_every_changed_character_fails(self, key):
        """Changing any character of the encoded blob is detected."""
        blob = cipher.encrypt("secret", key)
        for position, char in enumerate(blob):
            if char in BASE64_ALPHABET:
                replacement = BASE64_ALPHABET[(BASE64_ALPHABET.index(char) + 1) % 64]
            else:
                replacement = "A"
            tampered = blob[:position] + replacement + blob[position + 1 :]
            with pytest.raises(AuthenticationFailedError):
                cipher.decrypt(tampered, key)

    def test_truncated_blob_fails(self, key):
        """A blob shorter than nonce + tag is rejected."""
        short = base64.b64encode(b"\x00" * 27).decode()

        with pytest.raises(AuthenticationFailedError):
            cipher.decrypt(short, key)

    @pytest.mark.parametrize("blob", ["not base64!!", "QUJD=", "QUI="])
    def test_invalid_base64_fails(self, key, blob):
        """Malformed or non-canonical base64 is rejected."""
        with pytest.raises(AuthenticationFailedError):
            cipher.decrypt(blob, key)

    def test_aad_must_match(self, key):
        """Associated data binds the blob to its context."""
        blob = cipher.encrypt("secret", key, aad=b"vault-a")

        assert cipher.decrypt(blob, key, aad=b"vault-a") == b"secret"
        with pytest.raises(AuthenticationFailedError):
            cipher.decrypt(blob, key, aad=b"vault-b")

    @pytest.mark.parametrize("size", [0, 16, 31, 33])
    def test_rejects_bad_key_size(self, size):
        """Only 32-byte keys are accepted."""
        with pytest.raises(AuthenticationFailedError):
            cipher.encrypt("x", b"\x00" * size)


class TestJson:
    """Tests for the JSON helpers."""

    def test_json_roundtrip(self, key):
        """Structured payloads roundtrip."""
        payload = {"version": 1, "notes": [{"id": "a", "text": "ünïcode"}]}

        assert cipher.decrypt_json(cipher.encrypt_json(payload, key), key) == payload

    def test_non_json_plaintext_is_corrupt(self, key):
        """Authentic but non-JSON plaintext raises CorruptDataError."""
        blob = cipher.encrypt(b"\xff\xfe not json", key)

        with pytest.raises(CorruptDataError):
            cipher.decrypt_json(blob, key)


class TestSecureZero:
    """Tests for buffer zeroing."""

    def test_zeroes_bytearray(self):
        buf = bytearray(b"secret")
        cipher.secure_zero(buf)
        assert buf == bytearray(6)

    def test_zeroes_memoryview(self):
        buf = bytearray(b"secret")
        cipher.secure_zero(memoryview(buf))
        assert buf == bytearray(6)

    def test_ignores_none(self):
        cipher.secure_zero(None)
