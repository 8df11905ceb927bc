"""Biometric unlock bridge.

Binds a platform authenticator credential to a vault so the mnemonic can be
recovered without typing it. The bridge is a convenience retrieval path: it
returns the phrase itself and the caller unlocks through the usual
derivation, so the mnemonic stays the only recovery root.

The phrase is never stored in the clear. It is wrapped with AES-GCM under a
key derived (HKDF-SHA256) from the authenticator's PRF output for a random
per-binding salt, and the PRF output is only released after a successful
user-verifying ceremony.
"""

import base64
import logging
import os
from dataclasses import dataclass, field
from typing import Protocol

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from pydantic import ValidationError

from nvault.core import cipher
from nvault.core.config import BIOMETRIC_RP_NAME, BIOMETRIC_TIMEOUT_MS
from nvault.core.errors import (
    AuthenticationFailedError,
    CorruptDataError,
    NoMatchError,
    UnsupportedError,
)
from nvault.core.mnemonic import derive_vault_id
from nvault.core.registry import VaultRegistry, is_valid_identity
from nvault.core.types import BiometricBinding, StorageKind

logger = logging.getLogger(__name__)

CHALLENGE_SIZE = 32
SALT_SIZE = 32
USER_HANDLE_SIZE = 16
WRAP_INFO = b"nvault-biometric-wrap:"


def encode_id(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def decode_id(value: str) -> bytes:
    return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))


# --- Platform authenticator contract ---


@dataclass(frozen=True)
class CredentialRequest:
    """Parameters for minting a device-bound, user-verifying credential."""

    rp_name: str
    user_handle: bytes
    user_name: str
    display_name: str
    challenge: bytes
    prf_salt: bytes
    timeout_ms: int = BIOMETRIC_TIMEOUT_MS


@dataclass(frozen=True)
class Credential:
    credential_id: bytes
    prf_output: bytes | None = None


@dataclass(frozen=True)
class AssertionRequest:
    """Parameters for a user-verifying assertion.

    ``allowed_credential_ids`` is None for discoverable mode.
    """

    challenge: bytes
    allowed_credential_ids: list[bytes] | None
    prf_salts: dict[bytes, bytes] = field(default_factory=dict)
    timeout_ms: int = BIOMETRIC_TIMEOUT_MS


@dataclass(frozen=True)
class Assertion:
    credential_id: bytes
    prf_output: bytes | None = None


class PlatformAuthenticator(Protocol):
    """Device-resident strong authentication (biometric or PIN gated).

    Implementations raise ``UserCancelledError`` when the user dismisses the
    prompt or the timeout elapses.
    """

    def is_available(self) -> bool:
        pass

    def create_credential(self, request: CredentialRequest) -> Credential:
        pass

    def get_assertion(self, request: AssertionRequest) -> Assertion:
        pass


def derive_wrap_key(prf_output: bytes, salt: bytes, vault_id: str) -> bytes:
    """Turn the authenticator's PRF output into the mnemonic wrapping key."""
    return HKDF(
        algorithm=hashes.SHA256(),
        length=cipher.KEY_SIZE,
        salt=salt,
        info=WRAP_INFO + vault_id.encode("ascii"),
    ).derive(prf_output)


class BiometricBridge:
    """Registers and resolves biometric bindings for vaults on this device."""

    def __init__(
        self,
        registry: VaultRegistry,
        authenticator: PlatformAuthenticator,
        timeout_ms: int = BIOMETRIC_TIMEOUT_MS,
        rp_name: str = BIOMETRIC_RP_NAME,
    ):
        self.registry = registry
        self.authenticator = authenticator
        self.timeout_ms = timeout_ms
        self.rp_name = rp_name

    def is_available(self) -> bool:
        try:
            return bool(self.authenticator.is_available())
        except Exception as exc:
            logger.debug("Authenticator availability probe failed: %s", exc)
            return False

    def load_binding(self, identity: str) -> BiometricBinding | None:
        raw = self.registry.read(identity, StorageKind.BIOMETRIC)
        if raw is None:
            return None
        try:
            binding = BiometricBinding.model_validate_json(raw)
        except ValidationError as exc:
            raise CorruptDataError(f"Biometric binding for {identity} is corrupt") from exc
        if binding.vault_id != identity:
            raise CorruptDataError(f"Biometric binding for {identity} names another vault")
        return binding

    def list_bindings(self) -> list[BiometricBinding]:
        bindings = []
        for identity in self.registry.identities_with(StorageKind.BIOMETRIC):
            binding = self.load_binding(identity)
            if binding is not None:
                bindings.append(binding)
        return bindings

    def register_binding(
        self, mnemonic: str, identity: str, label: str = ""
    ) -> BiometricBinding:
        """
        Bind a new platform credential to an already unlocked vault.

        Args:
            mnemonic: The phrase the vault was just unlocked with
            identity: Vault identity derived from that phrase
            label: Human-readable label for the credential

        Returns:
            The stored binding

        Raises:
            UnsupportedError: No authenticator, or it cannot release a PRF secret
            ProfileNotFoundError: The vault was never unlocked on this device
            UserCancelledError: The user dismissed the prompt
        """
        if derive_vault_id(mnemonic) != identity:
            raise NoMatchError("Phrase does not belong to this vault")
        profile = self.registry.require_profile(identity)

        if not self.is_available():
            raise UnsupportedError("No platform authenticator on this device")

        salt = os.urandom(SALT_SIZE)
        label = label.strip() or profile.display_name
        credential = self.authenticator.create_credential(
            CredentialRequest(
                rp_name=self.rp_name,
                user_handle=os.urandom(USER_HANDLE_SIZE),
                user_name=f"user-{identity}",
                display_name=label,
                challenge=os.urandom(CHALLENGE_SIZE),
                prf_salt=salt,
                timeout_ms=self.timeout_ms,
            )
        )
        if not credential.prf_output:
            raise UnsupportedError("Authenticator cannot protect the recovery phrase")

        wrap_key = derive_wrap_key(credential.prf_output, salt, identity)
        binding = BiometricBinding(
            vault_id=identity,
            credential_id=encode_id(credential.credential_id),
            prf_salt=encode_id(salt),
            wrapped_secret=cipher.encrypt(
                mnemonic, wrap_key, aad=identity.encode("ascii")
            ),
            label=label,
        )
        with self.registry.store.atomic():
            self.registry.write(
                identity,
                StorageKind.BIOMETRIC,
                binding.model_dump_json(by_alias=True).encode("utf-8"),
            )
            self.registry.set_biometric(identity, True)
        logger.info("Registered biometric binding for %s", identity)
        return binding

    def remove_binding(self, identity: str) -> None:
        with self.registry.store.atomic():
            self.registry.remove(identity, StorageKind.BIOMETRIC)
            if self.registry.get_profile(identity) is not None:
                self.registry.set_biometric(identity, False)
        logger.info("Removed biometric binding for %s", identity)

    def authenticate(
        self, candidate_identities: list[str] | None = None
    ) -> tuple[str, str]:
        """
        Run the authenticator ceremony and recover a vault's phrase.

        Scoped mode offers only the candidates' credentials; with no
        candidates every binding on the device is eligible (discoverable).

        Returns:
            (mnemonic, identity)

        Raises:
            NoMatchError: Nothing is bound, or the returned credential is unknown
            UnsupportedError: No authenticator on this device
            UserCancelledError: The user dismissed the prompt or it timed out
        """
        scoped = bool(candidate_identities)
        if scoped:
            # Malformed ids cannot have a binding
            identities = [i for i in dict.fromkeys(candidate_identities) if is_valid_identity(i)]
            bindings = [b for b in map(self.load_binding, identities) if b is not None]
        else:
            bindings = self.list_bindings()

        if not bindings:
            raise NoMatchError("No biometric credential is registered for these vaults")
        if not self.is_available():
            raise UnsupportedError("No platform authenticator on this device")

        by_credential = {decode_id(b.credential_id): b for b in bindings}
        assertion = self.authenticator.get_assertion(
            AssertionRequest(
                challenge=os.urandom(CHALLENGE_SIZE),
                allowed_credential_ids=list(by_credential) if scoped else None,
                prf_salts={
                    cred_id: decode_id(b.prf_salt) for cred_id, b in by_credential.items()
                },
                timeout_ms=self.timeout_ms,
            )
        )

        binding = by_credential.get(assertion.credential_id)
        if binding is None:
            logger.info("Authenticator returned an unknown credential")
            raise NoMatchError("Credential does not match any vault on this device")
        if not assertion.prf_output:
            raise NoMatchError("Authenticator did not release the vault secret")

        wrap_key = derive_wrap_key(
            assertion.prf_output, decode_id(binding.prf_salt), binding.vault_id
        )
        try:
            mnemonic = cipher.decrypt(
                binding.wrapped_secret, wrap_key, aad=binding.vault_id.encode("ascii")
            ).decode("utf-8")
        except AuthenticationFailedError as exc:
            raise NoMatchError("Credential could not unwrap the vault secret") from exc

        if derive_vault_id(mnemonic) != binding.vault_id:
            raise CorruptDataError(f"Biometric binding for {binding.vault_id} is corrupt")

        logger.info("Biometric unlock resolved vault %s", binding.vault_id)
        return mnemonic, binding.vault_id
