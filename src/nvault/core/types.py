"""Shared types and data structures for Neural Vault."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Literal, Protocol
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

SCHEMA_VERSION = 1


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


def new_note_id() -> str:
    return str(uuid4())


class _Document(BaseModel):
    """Base for persisted models: camelCase on the wire, frozen in memory."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class StorageKind(StrEnum):
    """Kinds of per-vault records kept in the key-value store."""

    NOTES = "notes"
    BIOMETRIC = "biometric"


class Attachment(_Document):
    """A file attached to a note (base64 for binary, raw text otherwise)."""

    name: str
    mime_type: str = "application/octet-stream"
    data: str

    @property
    def is_text(self) -> bool:
        return self.mime_type.startswith("text/") or self.mime_type in (
            "application/json",
            "application/javascript",
        )


class Note(_Document):
    """A single note inside a vault's decrypted collection."""

    id: str = Field(default_factory=new_note_id)
    title: str = ""
    text: str = ""
    summary: str | None = None
    vector: list[float] | None = None
    attachment: Attachment | None = None
    tags: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="before")
    @classmethod
    def _lift_flat_attachment(cls, data: Any) -> Any:
        # Older exports kept fileData/fileName/fileType on the note itself.
        if not isinstance(data, dict) or "fileData" not in data:
            return data
        new_data = {
            k: v for k, v in data.items() if k not in ("fileData", "fileName", "fileType")
        }
        if data.get("fileData") and "attachment" not in data:
            new_data["attachment"] = {
                "name": data.get("fileName") or "attachment",
                "mimeType": data.get("fileType") or "application/octet-stream",
                "data": data["fileData"],
            }
        return new_data


class VaultDocument(_Document):
    """Plaintext payload stored encrypted in a vault blob."""

    version: Literal[1] = SCHEMA_VERSION
    notes: list[Note] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _upgrade_bare_list(cls, data: Any) -> Any:
        if isinstance(data, list):
            return {"version": SCHEMA_VERSION, "notes": data}
        return data


class ProfileRecord(_Document):
    """Per-vault display metadata kept in the device-wide registry."""

    vault_id: str
    display_name: str
    last_active: datetime = Field(default_factory=utcnow)
    has_biometric: bool = False


class ProfileRegistryDocument(_Document):
    """All profile records known on this device."""

    version: Literal[1] = SCHEMA_VERSION
    profiles: list[ProfileRecord] = Field(default_factory=list)


class BiometricBinding(_Document):
    """Link between a platform credential and a vault's wrapped mnemonic."""

    version: Literal[1] = SCHEMA_VERSION
    vault_id: str
    credential_id: str
    prf_salt: str
    wrapped_secret: str
    label: str = ""
    created_at: datetime = Field(default_factory=utcnow)


@dataclass(frozen=True)
class RankedNote:
    """A note with its similarity score (None when ranked lexically)."""

    note: Note
    score: float | None = None


@dataclass(frozen=True)
class IndexReport:
    """Outcome of an embedding pass over a note collection."""

    notes: list[Note]
    embedded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


@dataclass(frozen=True)
class ImportResult:
    """Outcome of merging an exported document into a collection."""

    notes: list[Note]
    added: list[str] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)


class EmbeddingService(Protocol):
    """Anything that turns text into fixed-length vectors."""

    async def embed(self, text: str) -> list[float]:
        pass

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        pass
