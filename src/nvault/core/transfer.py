"""Plaintext export and import of a note collection (JSON array of notes)."""

import json
import logging

from pydantic import TypeAdapter, ValidationError

from nvault.core.errors import CorruptDataError
from nvault.core.types import ImportResult, Note

logger = logging.getLogger(__name__)

_NOTE_LIST = TypeAdapter(list[Note])


def export_notes(notes: list[Note]) -> str:
    """Serialize notes as an indented JSON array."""
    payload = _NOTE_LIST.dump_python(notes, mode="json", by_alias=True)
    return json.dumps(payload, indent=2, ensure_ascii=False)


def parse_notes(payload: str | bytes) -> list[Note]:
    """
    Parse an exported document.

    Raises:
        CorruptDataError: Not JSON, not an array, or any entry is not a note
            with an id and some text
    """
    try:
        data = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise CorruptDataError("Import file is not valid JSON") from exc
    if not isinstance(data, list):
        raise CorruptDataError("Import file must contain a JSON array of notes")
    for position, entry in enumerate(data):
        if not isinstance(entry, dict) or not entry.get("id"):
            raise CorruptDataError(f"Entry {position} has no note id")
        if not any(entry.get(k) for k in ("text", "summary", "attachment", "fileData")):
            raise CorruptDataError(f"Entry {position} has no content")
    try:
        return _NOTE_LIST.validate_python(data)
    except ValidationError as exc:
        raise CorruptDataError(f"Import file has invalid notes: {exc}") from exc


def import_notes(existing: list[Note], payload: str | bytes) -> ImportResult:
    """
    Merge exported notes into a collection.

    Notes whose id is already present are skipped; new ones are placed ahead
    of the existing notes in file order. The whole import fails if any entry
    is malformed.
    """
    incoming = parse_notes(payload)
    known = {note.id for note in existing}
    added: list[Note] = []
    duplicates: list[str] = []
    for note in incoming:
        if note.id in known:
            duplicates.append(note.id)
            continue
        known.add(note.id)
        added.append(note)

    logger.info("Imported %d notes (%d duplicates skipped)", len(added), len(duplicates))
    return ImportResult(
        notes=added + list(existing),
        added=[note.id for note in added],
        duplicates=duplicates,
    )
