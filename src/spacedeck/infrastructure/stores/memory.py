"""
In-memory Collection Store: dict-backed adapter.

Records are copied on the way in and out so callers never share mutable
state with the store.
"""

from collections.abc import Iterable
from copy import deepcopy

from spacedeck.domain.models import Card, Deck, Note, ReviewLogEntry
from spacedeck.domain.ports import CollectionStore


class InMemoryCollectionStore(CollectionStore):
    def __init__(self):
        self.decks: dict[str, Deck] = {}
        self.notes: dict[str, Note] = {}
        self.cards: dict[str, Card] = {}
        self.revlog: list[ReviewLogEntry] = []

    async def get_deck(self, deck_id: str) -> Deck | None:
        return deepcopy(self.decks.get(deck_id))

    async def list_decks(self) -> list[Deck]:
        return deepcopy(list(self.decks.values()))

    async def put_deck(self, deck: Deck) -> None:
        self.decks[deck.id] = deepcopy(deck)

    async def delete_deck(self, deck_id: str) -> None:
        self.decks.pop(deck_id, None)

    async def get_note(self, note_id: str) -> Note | None:
        return deepcopy(self.notes.get(note_id))

    async def list_notes(self) -> list[Note]:
        return deepcopy(list(self.notes.values()))

    async def put_note(self, note: Note) -> None:
        self.notes[note.id] = deepcopy(note)

    async def delete_note(self, note_id: str) -> None:
        self.notes.pop(note_id, None)

    async def get_card(self, card_id: str) -> Card | None:
        return deepcopy(self.cards.get(card_id))

    async def list_cards(self) -> list[Card]:
        return deepcopy(list(self.cards.values()))

    async def cards_for_note(self, note_id: str) -> list[Card]:
        return [deepcopy(c) for c in self.cards.values() if c.note_id == note_id]

    async def put_cards(self, cards: Iterable[Card]) -> None:
        for card in cards:
            self.cards[card.id] = deepcopy(card)

    async def delete_cards(self, card_ids: Iterable[str]) -> None:
        for card_id in card_ids:
            self.cards.pop(card_id, None)

    async def record_answer(self, card: Card, entry: ReviewLogEntry) -> None:
        self.cards[card.id] = deepcopy(card)
        self.revlog.append(deepcopy(entry))

    async def logs_for_card(self, card_id: str) -> list[ReviewLogEntry]:
        entries = [e for e in self.revlog if e.card_id == card_id]
        return sorted(entries, key=lambda e: e.timestamp)
