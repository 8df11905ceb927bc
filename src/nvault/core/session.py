"""Unlocked vault session - the single owner of a vault's key and notes."""

import logging

from pydantic import ValidationError

from nvault.core import cipher
from nvault.core.errors import (
    CorruptDataError,
    EmbeddingServiceError,
    SessionLockedError,
    StorageFailureError,
)
from nvault.core.indexer import NoteIndexer
from nvault.core.mnemonic import VaultSecret
from nvault.core.ranking import embedding_text, rank, tag_counts
from nvault.core.registry import VaultRegistry
from nvault.core.transfer import export_notes, import_notes
from nvault.core.types import (
    Attachment,
    ImportResult,
    IndexReport,
    Note,
    RankedNote,
    StorageKind,
    VaultDocument,
    utcnow,
)

logger = logging.getLogger(__name__)


def load_notes(registry: VaultRegistry, vault_id: str, key: bytes) -> list[Note] | None:
    """
    Decrypt a vault's stored notes.

    Returns:
        The notes, or None if the vault has never been saved

    Raises:
        AuthenticationFailedError: Wrong key or tampered blob
        CorruptDataError: Blob decrypted but is not a vault document
    """
    raw = registry.read(vault_id, StorageKind.NOTES)
    if raw is None:
        return None
    payload = cipher.decrypt_json(raw, key)
    try:
        return list(VaultDocument.model_validate(payload).notes)
    except ValidationError as exc:
        raise CorruptDataError(f"Vault {vault_id} holds an invalid document") from exc


class VaultSession:
    """
    One unlocked vault.

    Every mutation re-encrypts and persists the whole collection. If the
    write fails the in-memory notes are kept and the session stays dirty, so
    :meth:`save` can simply be called again.
    """

    def __init__(
        self,
        secret: VaultSecret,
        registry: VaultRegistry,
        notes: list[Note] | None = None,
        indexer: NoteIndexer | None = None,
    ):
        self._secret = secret
        self.registry = registry
        self.indexer = indexer
        self._notes: list[Note] = list(notes or [])
        self._dirty = False

    def __repr__(self) -> str:
        state = "locked" if self.is_locked else f"{len(self._notes)} notes"
        return f"VaultSession({self.vault_id}, {state})"

    def __enter__(self) -> "VaultSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.lock()

    @property
    def vault_id(self) -> str:
        return self._secret.vault_id

    @property
    def is_locked(self) -> bool:
        return self._secret.wiped

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def mnemonic(self) -> str:
        self._ensure_unlocked()
        return self._secret.mnemonic

    @property
    def notes(self) -> list[Note]:
        self._ensure_unlocked()
        return list(self._notes)

    def _ensure_unlocked(self) -> None:
        if self.is_locked:
            raise SessionLockedError(f"Vault {self.vault_id} is locked")

    # --- Persistence ---

    def save(self) -> None:
        """Encrypt the collection and write it to the vault's namespace."""
        self._ensure_unlocked()
        document = VaultDocument(notes=self._notes)
        blob = cipher.encrypt_json(
            document.model_dump(mode="json", by_alias=True), self._secret.key
        )
        try:
            self.registry.write(self.vault_id, StorageKind.NOTES, blob.encode("ascii"))
        except StorageFailureError:
            self._dirty = True
            logger.error("Saving vault %s failed; changes kept in memory", self.vault_id)
            raise
        self._dirty = False
        logger.debug("Saved vault %s (%d notes)", self.vault_id, len(self._notes))

    def _commit(self, notes: list[Note]) -> None:
        self._notes = notes
        self._dirty = True
        self.save()

    def lock(self) -> None:
        """Forget the notes and zero the key and phrase."""
        if self.is_locked:
            return
        if self._dirty:
            logger.warning("Locking vault %s with unsaved changes", self.vault_id)
        self._notes = []
        self._secret.wipe()
        logger.info("Locked vault %s", self.vault_id)

    # --- Notes ---

    def get_note(self, note_id: str) -> Note | None:
        self._ensure_unlocked()
        return next((n for n in self._notes if n.id == note_id), None)

    def _require_note(self, note_id: str) -> tuple[int, Note]:
        self._ensure_unlocked()
        for idx, note in enumerate(self._notes):
            if note.id == note_id:
                return idx, note
        raise KeyError(f"No note {note_id} in vault {self.vault_id}")

    def add_note(
        self,
        text: str,
        title: str = "",
        summary: str | None = None,
        tags: list[str] | None = None,
        attachment: Attachment | None = None,
        vector: list[float] | None = None,
    ) -> Note:
        """Create a note at the top of the collection and persist."""
        self._ensure_unlocked()
        now = utcnow()
        note = Note(
            title=title.strip(),
            text=text,
            summary=summary,
            tags=_clean_tags(tags),
            attachment=attachment,
            vector=vector,
            created_at=now,
            updated_at=now,
        )
        self._commit([note] + self._notes)
        return note

    def update_note(self, note_id: str, **changes) -> Note:
        """
        Edit a note and persist.

        The stored vector is kept only while the embedded text is unchanged;
        otherwise it is cleared so the next index pass re-embeds the note.
        """
        idx, note = self._require_note(note_id)
        unknown = set(changes) - {"title", "text", "summary", "tags", "attachment", "vector"}
        if unknown:
            raise TypeError(f"Cannot update note fields: {sorted(unknown)}")
        if "tags" in changes:
            changes["tags"] = _clean_tags(changes["tags"])
        changes["updated_at"] = utcnow()

        updated = note.model_copy(update=changes)
        if "vector" not in changes and embedding_text(updated) != embedding_text(note):
            updated = updated.model_copy(update={"vector": None})

        notes = list(self._notes)
        notes[idx] = updated
        self._commit(notes)
        return updated

    def delete_note(self, note_id: str) -> Note:
        idx, note = self._require_note(note_id)
        notes = list(self._notes)
        del notes[idx]
        self._commit(notes)
        return note

    def import_notes(self, payload: str | bytes) -> ImportResult:
        self._ensure_unlocked()
        result = import_notes(self._notes, payload)
        if result.added:
            self._commit(list(result.notes))
        return result

    def export_notes(self) -> str:
        self._ensure_unlocked()
        return export_notes(self._notes)

    def tags(self) -> list[tuple[str, int]]:
        self._ensure_unlocked()
        return tag_counts(self._notes)

    # --- Semantic index ---

    async def index(self, force: bool = False) -> IndexReport:
        """Embed notes missing a vector and persist whatever succeeded."""
        self._ensure_unlocked()
        if self.indexer is None:
            raise EmbeddingServiceError("No embedding service configured", retryable=False)
        report = await self.indexer.index(self._notes, force=force)
        if report.embedded:
            self._commit(list(report.notes))
        return report

    async def search(
        self,
        query_text: str = "",
        selected_tags: list[str] | None = None,
        semantic: bool = True,
    ) -> list[RankedNote]:
        """
        Rank notes for a query.

        Uses the embedding service when available and falls back to text
        matching if it is missing or the query cannot be embedded.
        """
        self._ensure_unlocked()
        query_vector = None
        query = query_text.strip()
        if semantic and query and self.indexer is not None:
            try:
                query_vector = await self.indexer.embed_query(query)
            except EmbeddingServiceError as exc:
                logger.warning("Query embedding failed, using text match: %s", exc)
        return rank(self._notes, query_vector, query, selected_tags)


def _clean_tags(tags: list[str] | None) -> list[str]:
    return list(dict.fromkeys(t.strip() for t in tags or [] if t and t.strip()))