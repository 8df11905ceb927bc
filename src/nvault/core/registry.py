"""Vault registry - profile records and per-vault storage namespaces.

The registry is the only component that builds raw storage keys. Every
vault's records live under ``vault:<identity>:<kind>``; the device-wide
profile list lives under ``registry:profiles``.
"""

import logging
import re
from datetime import datetime

from pydantic import ValidationError

from nvault.core.errors import CorruptDataError, ProfileNotFoundError
from nvault.core.types import (
    ProfileRecord,
    ProfileRegistryDocument,
    StorageKind,
    utcnow,
)
from nvault.storage.kv import KeyValueStore

logger = logging.getLogger(__name__)

REGISTRY_KEY = "registry:profiles"
VAULT_PREFIX = "vault:"

_IDENTITY = re.compile(r"^[0-9a-f]{16}$")


def is_valid_identity(identity: str) -> bool:
    return isinstance(identity, str) and bool(_IDENTITY.match(identity))


def validate_identity(identity: str) -> str:
    """Reject anything that is not a 16-char lowercase hex vault id."""
    if not is_valid_identity(identity):
        raise ValueError(f"Invalid vault identity: {identity!r}")
    return identity


def namespaced_key(identity: str, kind: StorageKind) -> str:
    """Build the storage key for one kind of record of one vault."""
    return f"{VAULT_PREFIX}{validate_identity(identity)}:{StorageKind(kind).value}"


def default_display_name(identity: str) -> str:
    return f"Vault {identity[:4].upper()}"


def unique_name(base: str, taken: set[str]) -> str:
    """Return ``base`` or ``base (n)`` so it clashes with nothing in ``taken``."""
    folded = {name.casefold() for name in taken}
    if base.casefold() not in folded:
        return base
    n = 2
    while f"{base} ({n})".casefold() in folded:
        n += 1
    return f"{base} ({n})"


class VaultRegistry:
    """Device-wide list of known vaults plus namespaced record access."""

    def __init__(self, store: KeyValueStore):
        """
        Initialize registry.

        Args:
            store: Key-value store shared by all vaults on this device
        """
        self.store = store

    # --- Profile document ---

    def _load(self) -> ProfileRegistryDocument:
        raw = self.store.get(REGISTRY_KEY)
        if raw is None:
            return ProfileRegistryDocument()
        try:
            return ProfileRegistryDocument.model_validate_json(raw)
        except ValidationError as exc:
            logger.error("Profile registry failed validation: %s", exc)
            raise CorruptDataError("Profile registry is corrupt") from exc

    def _save(self, profiles: list[ProfileRecord]) -> None:
        doc = ProfileRegistryDocument(profiles=profiles)
        self.store.set(REGISTRY_KEY, doc.model_dump_json(by_alias=True).encode("utf-8"))

    def list_profiles(self) -> list[ProfileRecord]:
        """All profiles, most recently active first."""
        return sorted(
            self._load().profiles, key=lambda p: p.last_active, reverse=True
        )

    def get_profile(self, identity: str) -> ProfileRecord | None:
        validate_identity(identity)
        for profile in self._load().profiles:
            if profile.vault_id == identity:
                return profile
        return None

    def require_profile(self, identity: str) -> ProfileRecord:
        profile = self.get_profile(identity)
        if profile is None:
            raise ProfileNotFoundError(f"No vault profile for {identity}")
        return profile

    def upsert_profile(
        self,
        identity: str,
        name: str | None = None,
        now: datetime | None = None,
    ) -> ProfileRecord:
        """
        Record a successful unlock.

        An unseen identity gets a new profile named ``name`` (or an
        auto-generated name), disambiguated against existing names. A known
        identity only has its activity timestamp refreshed; the name is kept.

        Args:
            identity: Vault identity
            name: Preferred display name for a new profile
            now: Timestamp override

        Returns:
            The stored profile
        """
        validate_identity(identity)
        now = now or utcnow()
        with self.store.atomic():
            profiles = list(self._load().profiles)
            for idx, profile in enumerate(profiles):
                if profile.vault_id == identity:
                    updated = profile.model_copy(update={"last_active": now})
                    profiles[idx] = updated
                    self._save(profiles)
                    return updated

            base = (name or "").strip() or default_display_name(identity)
            display_name = unique_name(base, {p.display_name for p in profiles})
            created = ProfileRecord(
                vault_id=identity, display_name=display_name, last_active=now
            )
            profiles.append(created)
            self._save(profiles)

        logger.info("Registered vault profile %s as %r", identity, display_name)
        return created

    def _update(self, identity: str, **changes) -> ProfileRecord:
        validate_identity(identity)
        with self.store.atomic():
            profiles = list(self._load().profiles)
            for idx, profile in enumerate(profiles):
                if profile.vault_id == identity:
                    updated = profile.model_copy(update=changes)
                    profiles[idx] = updated
                    self._save(profiles)
                    return updated
        raise ProfileNotFoundError(f"No vault profile for {identity}")

    def rename_profile(self, identity: str, name: str) -> ProfileRecord:
        """Give a vault a new display name (kept unique across the device)."""
        name = name.strip()
        if not name:
            raise ValueError("Display name cannot be empty")
        others = {
            p.display_name for p in self._load().profiles if p.vault_id != identity
        }
        profile = self._update(identity, display_name=unique_name(name, others))
        logger.info("Renamed vault profile %s to %r", identity, profile.display_name)
        return profile

    def set_biometric(self, identity: str, enabled: bool) -> ProfileRecord:
        return self._update(identity, has_biometric=enabled)

    def delete_profile(self, identity: str) -> ProfileRecord | None:
        """
        Destroy everything stored for a vault.

        Removes the profile record, the encrypted notes and any biometric
        binding in one atomic store transaction. Irreversible.

        Returns:
            The removed profile, or None if there was none
        """
        validate_identity(identity)
        removed: ProfileRecord | None = None
        with self.store.atomic():
            for kind in StorageKind:
                self.store.delete(namespaced_key(identity, kind))
            profiles = list(self._load().profiles)
            remaining = [p for p in profiles if p.vault_id != identity]
            if len(remaining) != len(profiles):
                removed = next(p for p in profiles if p.vault_id == identity)
            self._save(remaining)
        logger.warning("Destroyed vault %s", identity)
        return removed

    # --- Namespaced records ---

    def read(self, identity: str, kind: StorageKind) -> bytes | None:
        return self.store.get(namespaced_key(identity, kind))

    def write(self, identity: str, kind: StorageKind, data: bytes) -> None:
        self.store.set(namespaced_key(identity, kind), data)

    def remove(self, identity: str, kind: StorageKind) -> None:
        self.store.delete(namespaced_key(identity, kind))

    def identities_with(self, kind: StorageKind) -> list[str]:
        """Vault identities that have a record of ``kind`` on this device."""
        suffix = f":{StorageKind(kind).value}"
        identities = []
        for key in self.store.list_keys_with_prefix(VAULT_PREFIX):
            if key.endswith(suffix):
                identity = key[len(VAULT_PREFIX) : -len(suffix)]
                if _IDENTITY.match(identity):
                    identities.append(identity)
        return identities
