"""Vault service - unlock, create, biometric enrollment and destruction.

Flow: phrase → derivation (key + identity) → decrypt the vault blob →
profile upsert → a :class:`VaultSession` that owns the notes until locked.
"""

import logging

from nvault.core.biometric import BiometricBridge
from nvault.core.errors import (
    AuthenticationFailedError,
    CorruptDataError,
    StorageFailureError,
    UnsupportedError,
)
from nvault.core.indexer import NoteIndexer
from nvault.core.mnemonic import derive_secret, generate_mnemonic
from nvault.core.registry import VaultRegistry, validate_identity
from nvault.core.session import VaultSession, load_notes
from nvault.core.types import BiometricBinding, ProfileRecord

logger = logging.getLogger(__name__)


class VaultService:
    """Entry point for every vault-level operation on this device."""

    def __init__(
        self,
        registry: VaultRegistry,
        biometric: BiometricBridge | None = None,
        indexer: NoteIndexer | None = None,
    ):
        """
        Initialize vault service.

        Args:
            registry: Profile registry over the device's key-value store
            biometric: Biometric bridge (None disables the biometric path)
            indexer: Note indexer (None disables semantic search)
        """
        self.registry = registry
        self.biometric = biometric
        self.indexer = indexer

    def list_profiles(self) -> list[ProfileRecord]:
        return self.registry.list_profiles()

    def create_vault(self, name: str | None = None) -> tuple[str, VaultSession]:
        """
        Generate a new phrase and open its (empty) vault.

        Returns:
            (mnemonic, session) - the phrase must be shown to the user once
        """
        mnemonic = generate_mnemonic()
        session = self.unlock(mnemonic, name=name)
        return mnemonic, session

    def unlock(self, mnemonic: str, name: str | None = None) -> VaultSession:
        """
        Open the vault addressed by a phrase.

        An unknown identity starts an empty vault, which is persisted
        immediately so it shows up on the next run.

        Raises:
            InvalidMnemonicError: Phrase is malformed
            AuthenticationFailedError: Stored blob does not open with this key
            CorruptDataError: Stored blob decrypted but is not a vault
        """
        secret = derive_secret(mnemonic)
        try:
            notes = load_notes(self.registry, secret.vault_id, secret.key)
        except (AuthenticationFailedError, CorruptDataError):
            logger.warning("Unlock failed for vault %s", secret.vault_id)
            secret.wipe()
            raise

        session = VaultSession(secret, self.registry, notes or [], indexer=self.indexer)
        try:
            if notes is None:
                session.save()
            self.registry.upsert_profile(secret.vault_id, name=name)
        except StorageFailureError:
            logger.error("Could not record vault %s", secret.vault_id)
            session.lock()
            raise
        logger.info("Unlocked vault %s", secret.vault_id)
        return session

    def unlock_with_biometric(
        self, candidate_identities: list[str] | None = None
    ) -> VaultSession:
        """Recover the phrase through the authenticator, then unlock normally."""
        mnemonic, _identity = self._require_biometric().authenticate(candidate_identities)
        return self.unlock(mnemonic)

    def enroll_biometric(self, session: VaultSession, label: str = "") -> BiometricBinding:
        """Bind a platform credential to an unlocked vault."""
        return self._require_biometric().register_binding(
            session.mnemonic, session.vault_id, label
        )

    def disable_biometric(self, vault_id: str) -> None:
        self._require_biometric().remove_binding(vault_id)

    def rename_vault(self, vault_id: str, name: str) -> ProfileRecord:
        return self.registry.rename_profile(vault_id, name)

    def destroy_vault(self, vault_id: str) -> ProfileRecord | None:
        """
        Irreversibly remove a vault's profile, notes and biometric binding.

        Callers must have confirmed twice before calling this.
        """
        validate_identity(vault_id)
        return self.registry.delete_profile(vault_id)

    def _require_biometric(self) -> BiometricBridge:
        if self.biometric is None:
            raise UnsupportedError("Biometric unlock is not configured")
        return self.biometric
