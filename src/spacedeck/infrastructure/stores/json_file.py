"""
JSON Collection Store: Infrastructure adapter for a single JSON document.

Layout:
    {"version": 1, "decks": {id: {...}}, "notes": {...}, "cards": {...}, "revlog": [...]}

The document is loaded on first use. Every write edits a copy, rewrites the
file atomically, and only then replaces the cached document, so a failed
write leaves both the file and later reads unchanged.
"""

import copy
import json
import logging
import os
import tempfile
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from spacedeck.domain.errors import StoreError
from spacedeck.domain.models import Card, Deck, Note, ReviewLogEntry
from spacedeck.domain.ports import CollectionStore

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

# Keys every record of a table must carry
_REQUIRED_KEYS = {
    "decks": ("id", "name"),
    "notes": ("id", "deck_id", "note_type"),
    "cards": ("id", "note_id", "deck_id"),
}


def _empty_document() -> dict[str, Any]:
    return {"version": SCHEMA_VERSION, "decks": {}, "notes": {}, "cards": {}, "revlog": []}


class JsonCollectionStore(CollectionStore):
    def __init__(self, path: Path):
        self.path = Path(path)
        self._doc: dict[str, Any] | None = None

    # ---------- Document I/O ----------

    def _load(self) -> dict[str, Any]:
        if self._doc is not None:
            return self._doc

        if not self.path.exists():
            logger.debug(f"No collection at {self.path}, starting empty")
            self._doc = _empty_document()
            return self._doc

        try:
            doc = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Could not read collection {self.path}: {e}") from e

        if not isinstance(doc, dict):
            raise StoreError(f"Collection {self.path} is not a JSON object")

        base = _empty_document()
        base.update(doc)
        self._validate(base)
        self._doc = base
        logger.debug(f"Loaded {len(base['cards'])} card(s) from {self.path}")
        return self._doc

    def _validate(self, doc: dict[str, Any]) -> None:
        for name, keys in _REQUIRED_KEYS.items():
            table = doc[name]
            if not isinstance(table, dict):
                raise StoreError(f"Collection {self.path}: '{name}' is not an object")
            for key, record in table.items():
                if not isinstance(record, dict) or any(k not in record for k in keys):
                    raise StoreError(f"Collection {self.path}: bad {name} record {key!r}")

        revlog = doc["revlog"]
        if not isinstance(revlog, list) or not all(isinstance(e, dict) for e in revlog):
            raise StoreError(f"Collection {self.path}: 'revlog' is not a list of objects")

    def _save(self, doc: dict[str, Any]) -> None:
        try:
            text = json.dumps(doc, indent=2, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise StoreError(f"Could not serialize collection {self.path}: {e}") from e

        tmp: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".collection-", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(text)
            os.replace(tmp, self.path)
            tmp = None
        except OSError as e:
            raise StoreError(f"Could not write collection {self.path}: {e}") from e
        finally:
            if tmp is not None:
                Path(tmp).unlink(missing_ok=True)

    def _commit(self, change: Callable[[dict[str, Any]], bool | None]) -> None:
        """Apply `change` to a copy of the document and persist it.

        `change` may return False to signal that nothing changed.
        """
        draft = copy.deepcopy(self._load())
        if change(draft) is False:
            return
        self._save(draft)
        self._doc = draft

    def _table(self, name: str) -> dict[str, dict[str, Any]]:
        return self._load()[name]

    # ---------- Decks ----------

    async def get_deck(self, deck_id: str) -> Deck | None:
        data = self._table("decks").get(deck_id)
        return Deck.from_dict(data) if data else None

    async def list_decks(self) -> list[Deck]:
        return [Deck.from_dict(d) for d in self._table("decks").values()]

    async def put_deck(self, deck: Deck) -> None:
        def change(doc):
            doc["decks"][deck.id] = deck.to_dict()

        self._commit(change)

    async def delete_deck(self, deck_id: str) -> None:
        self._commit(lambda doc: doc["decks"].pop(deck_id, None) is not None)

    # ---------- Notes ----------

    async def get_note(self, note_id: str) -> Note | None:
        data = self._table("notes").get(note_id)
        return Note.from_dict(data) if data else None

    async def list_notes(self) -> list[Note]:
        return [Note.from_dict(n) for n in self._table("notes").values()]

    async def put_note(self, note: Note) -> None:
        def change(doc):
            doc["notes"][note.id] = note.to_dict()

        self._commit(change)

    async def delete_note(self, note_id: str) -> None:
        self._commit(lambda doc: doc["notes"].pop(note_id, None) is not None)

    # ---------- Cards ----------

    async def get_card(self, card_id: str) -> Card | None:
        data = self._table("cards").get(card_id)
        return Card.from_dict(data) if data else None

    async def list_cards(self) -> list[Card]:
        return [Card.from_dict(c) for c in self._table("cards").values()]

    async def cards_for_note(self, note_id: str) -> list[Card]:
        return [
            Card.from_dict(c) for c in self._table("cards").values() if c.get("note_id") == note_id
        ]

    async def put_cards(self, cards: Iterable[Card]) -> None:
        records = [card.to_dict() for card in cards]

        def change(doc):
            for record in records:
                doc["cards"][record["id"]] = record

        self._commit(change)

    async def delete_cards(self, card_ids: Iterable[str]) -> None:
        ids = list(card_ids)

        def change(doc):
            removed = [doc["cards"].pop(cid, None) for cid in ids]
            return any(r is not None for r in removed)

        self._commit(change)

    # ---------- Review log ----------

    async def record_answer(self, card: Card, entry: ReviewLogEntry) -> None:
        def change(doc):
            doc["cards"][card.id] = card.to_dict()
            doc["revlog"].append(entry.to_dict())

        self._commit(change)

    async def logs_for_card(self, card_id: str) -> list[ReviewLogEntry]:
        entries = [
            ReviewLogEntry.from_dict(e) for e in self._load()["revlog"] if e.get("card_id") == card_id
        ]
        return sorted(entries, key=lambda e: e.timestamp)
