"""
Ports (interfaces) for persistence.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable

from .models import Card, Deck, Note, ReviewLogEntry


class CollectionStore(ABC):
    """
    Port for reading and writing decks, notes, cards and the review log.

    A key-value record store: every record is addressed by its id.

    Implementations:
        - InMemoryCollectionStore: dict-backed, for tests and embedding.
        - JsonCollectionStore: a single JSON document on disk.
    """

    # ---------- Decks ----------

    @abstractmethod
    async def get_deck(self, deck_id: str) -> Deck | None:
        pass

    @abstractmethod
    async def list_decks(self) -> list[Deck]:
        pass

    @abstractmethod
    async def put_deck(self, deck: Deck) -> None:
        pass

    @abstractmethod
    async def delete_deck(self, deck_id: str) -> None:
        pass

    # ---------- Notes ----------

    @abstractmethod
    async def get_note(self, note_id: str) -> Note | None:
        pass

    @abstractmethod
    async def list_notes(self) -> list[Note]:
        pass

    @abstractmethod
    async def put_note(self, note: Note) -> None:
        pass

    @abstractmethod
    async def delete_note(self, note_id: str) -> None:
        pass

    # ---------- Cards ----------

    @abstractmethod
    async def get_card(self, card_id: str) -> Card | None:
        pass

    @abstractmethod
    async def list_cards(self) -> list[Card]:
        """
        Fetch every card, in insertion order.

        Queue building relies on this order being stable between calls.
        """
        pass

    @abstractmethod
    async def cards_for_note(self, note_id: str) -> list[Card]:
        pass

    @abstractmethod
    async def put_cards(self, cards: Iterable[Card]) -> None:
        """Upsert one or more cards in a single write."""
        pass

    @abstractmethod
    async def delete_cards(self, card_ids: Iterable[str]) -> None:
        pass

    # ---------- Review log ----------

    @abstractmethod
    async def record_answer(self, card: Card, entry: ReviewLogEntry) -> None:
        """
        Save an answered card together with its review log entry.

        Both records are written or neither is.
        """
        pass

    @abstractmethod
    async def logs_for_card(self, card_id: str) -> list[ReviewLogEntry]:
        """Review log entries for one card, oldest first."""
        pass
