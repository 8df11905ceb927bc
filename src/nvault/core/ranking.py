"""Ranking of notes against a query.

Pure functions over the decrypted collection: nothing here touches storage,
ciphertext or the embedding service, so results can be recomputed freely
whenever notes or the query change.
"""

import logging
import math
from collections import Counter
from collections.abc import Iterable, Sequence

from nvault.core.types import Note, RankedNote

logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float] | None, b: Sequence[float] | None) -> float:
    """
    Cosine of the angle between two vectors.

    Returns 0.0 instead of NaN or an error when either vector is missing,
    empty, all zeros, or the two have different lengths.
    """
    if not a or not b or len(a) != len(b):
        return 0.0
    # hypot scales internally, so large finite components do not overflow
    norm_a = math.hypot(*a)
    norm_b = math.hypot(*b)
    if norm_a == 0.0 or norm_b == 0.0 or math.isinf(norm_a) or math.isinf(norm_b):
        return 0.0
    score = sum((x / norm_a) * (y / norm_b) for x, y in zip(a, b))
    if not math.isfinite(score):
        return 0.0
    return max(-1.0, min(1.0, score))


def filter_by_tags(notes: Iterable[Note], selected_tags: Iterable[str] | None) -> list[Note]:
    """Keep notes carrying every selected tag."""
    required = set(selected_tags or ())
    if not required:
        return list(notes)
    return [note for note in notes if required.issubset(note.tags)]


def matches_text(note: Note, query: str) -> bool:
    """Case-insensitive substring match on title, body and summary."""
    needle = query.casefold()
    return any(
        needle in field.casefold()
        for field in (note.title, note.text, note.summary or "")
    )


def rank(
    notes: Iterable[Note],
    query_vector: Sequence[float] | None = None,
    query_text: str = "",
    selected_tags: Iterable[str] | None = None,
) -> list[RankedNote]:
    """
    Order notes for display.

    1. Tag pre-filter (superset of ``selected_tags``).
    2. With a query vector: cosine score per note, highest first, ties kept
       in collection order. Notes without a vector score 0.0.
    3. Otherwise, with query text: substring matches only, unscored, in
       collection order.
    4. Otherwise: every remaining note, unscored.
    """
    candidates = filter_by_tags(notes, selected_tags)

    if query_vector:
        scored = [
            RankedNote(note=note, score=cosine_similarity(note.vector, query_vector))
            for note in candidates
        ]
        # sorted() is stable, so equal scores keep their original order
        return sorted(scored, key=lambda r: r.score, reverse=True)

    query = (query_text or "").strip()
    if query:
        return [RankedNote(note=note) for note in candidates if matches_text(note, query)]

    return [RankedNote(note=note) for note in candidates]


def tag_counts(notes: Iterable[Note]) -> list[tuple[str, int]]:
    """Tags with their note counts, most used first, then alphabetical."""
    counts = Counter(tag for note in notes for tag in set(note.tags))
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))


def embedding_text(note: Note) -> str:
    """Text sent to the embedding service for a note."""
    if note.attachment is not None and note.summary:
        return note.summary
    if note.title:
        return f"{note.title}\n{note.text}"
    return note.text
