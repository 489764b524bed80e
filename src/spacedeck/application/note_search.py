"""
Note search for browsing a collection.

Queries are whitespace-separated tokens:
- `deck:NAME` restricts to the first deck whose name contains NAME
- `tag:NAME` restricts to notes carrying that tag
- any other token must appear in one of the note's field values

Matching is case-insensitive. Results are newest-edited first.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from spacedeck.domain.constants import SEARCH_RESULT_LIMIT
from spacedeck.domain.models import Deck, Note

logger = logging.getLogger(__name__)


@dataclass
class NoteQuery:
    deck: str | None = None
    tag: str | None = None
    terms: list[str] = field(default_factory=list)


def parse_query(text: str) -> NoteQuery:
    """Split a search string into deck, tag and free-text filters.

    A repeated `deck:` or `tag:` token replaces the earlier one.
    """
    query = NoteQuery()
    for token in text.split():
        if token.startswith("deck:"):
            query.deck = token[len("deck:") :]
        elif token.startswith("tag:"):
            query.tag = token[len("tag:") :]
        else:
            query.terms.append(token.lower())
    return query


def _find_deck(decks: Iterable[Deck], name: str) -> Deck | None:
    needle = name.lower()
    return next((d for d in decks if needle in d.name.lower()), None)


def search_notes(
    notes: Iterable[Note],
    decks: Iterable[Deck],
    text: str,
    limit: int = SEARCH_RESULT_LIMIT,
) -> list[Note]:
    query = parse_query(text)

    deck_id = None
    if query.deck:
        deck = _find_deck(decks, query.deck)
        if deck is None:
            logger.debug(f"No deck matches {query.deck!r}")
            return []
        deck_id = deck.id

    tag = query.tag.lower() if query.tag else None

    def matches(note: Note) -> bool:
        if deck_id is not None and note.deck_id != deck_id:
            return False
        if tag is not None and not any(t.lower() == tag for t in note.tags):
            return False
        if query.terms:
            blob = "\n".join(str(v) for v in note.fields.values()).lower()
            return all(term in blob for term in query.terms)
        return True

    found = sorted(
        (n for n in notes if matches(n)), key=lambda n: n.updated_at or 0, reverse=True
    )
    return found[: max(0, limit)]
