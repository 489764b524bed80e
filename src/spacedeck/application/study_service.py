"""
Study Service: Application layer orchestrator.

Reads records from the collection store, runs the pure scheduler and queue
builder over them, and writes the results back.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from spacedeck.application import note_search, queue_builder
from spacedeck.application.card_factory import (
    CardReconciliation,
    new_cards_for_note,
    reconcile_cards,
    required_fields,
)
from spacedeck.application.deck_tree import DeckTree
from spacedeck.application.id_service import generate_id
from spacedeck.application.scheduler import answer_card
from spacedeck.domain.clock import now_ms
from spacedeck.domain.constants import DECK_PATH_SEPARATOR
from spacedeck.domain.errors import (
    CardNotFoundError,
    DeckNotFoundError,
    EmptyNoteError,
    NoteNotFoundError,
    StoreError,
)
from spacedeck.domain.models import (
    Card,
    Deck,
    DeckStats,
    DueCounts,
    Note,
    NoteType,
    Rating,
    ReviewLogEntry,
    SchedulerConfig,
)
from spacedeck.domain.ports import CollectionStore

logger = logging.getLogger(__name__)


@dataclass
class AnswerResult:
    card: Card
    log_entry: ReviewLogEntry
    buried: list[Card] = field(default_factory=list)


class StudyService:
    """
    Application service for decks, notes and study sessions.

    Follows Dependency Inversion: depends on the CollectionStore abstraction,
    not concrete adapter implementations. Answers are a read-modify-write of a
    single card; callers must not answer the same card concurrently.
    """

    def __init__(
        self,
        store: CollectionStore,
        config: SchedulerConfig,
        clock: Callable[[], int] = now_ms,
    ):
        """
        Args:
            store: The repository (port) for collection records.
            config: Scheduling options, fixed for the service's lifetime.
            clock: Returns the current time in epoch ms.
        """
        self._store = store
        self._config = config
        self._clock = clock

    @property
    def config(self) -> SchedulerConfig:
        return self._config

    # ---------- Decks ----------

    async def create_deck(self, name: str, parent_id: str | None = None) -> Deck:
        if parent_id is not None and await self._store.get_deck(parent_id) is None:
            raise DeckNotFoundError(parent_id)

        deck = Deck(
            id=generate_id("deck"),
            name=name.strip(),
            parent_id=parent_id,
            created_at=self._clock(),
        )
        await self._store.put_deck(deck)
        logger.info(f"Created deck {deck.name!r} ({deck.id})")
        return deck

    async def ensure_deck_path(self, path: str) -> tuple[Deck, list[Deck]]:
        """
        Resolve "Parent::Child" to a deck, creating missing levels.

        Returns the leaf deck and the decks that had to be created.
        """
        names = [part.strip() for part in path.split(DECK_PATH_SEPARATOR) if part.strip()]
        if not names:
            raise DeckNotFoundError(path)

        tree = await self.deck_tree()
        created: list[Deck] = []
        parent: Deck | None = None

        for name in names:
            siblings = tree.children(parent.id) if parent else tree.roots()
            match = next((d for d in siblings if d.name == name), None)
            if match is None:
                match = await self.create_deck(name, parent.id if parent else None)
                created.append(match)
                tree = DeckTree([*tree.decks.values(), match])
            parent = match

        return parent, created

    async def list_decks(self) -> list[Deck]:
        return await self._store.list_decks()

    async def deck_tree(self) -> DeckTree:
        return DeckTree(await self._store.list_decks())

    async def delete_deck(self, deck_id: str) -> int:
        """
        Delete a deck with its sub-decks, their notes and their cards.

        Returns the number of cards deleted.
        """
        tree = await self.deck_tree()
        if deck_id not in tree:
            raise DeckNotFoundError(deck_id)

        scope = tree.descendants(deck_id)
        cards = [c.id for c in await self._store.list_cards() if c.deck_id in scope]
        notes = [n.id for n in await self._store.list_notes() if n.deck_id in scope]

        await self._store.delete_cards(cards)
        for note_id in notes:
            await self._store.delete_note(note_id)
        for did in scope:
            await self._store.delete_deck(did)

        logger.info(f"Deleted {len(scope)} deck(s), {len(notes)} note(s), {len(cards)} card(s)")
        return len(cards)

    # ---------- Notes ----------

    async def add_note(
        self,
        deck_id: str,
        note_type: NoteType | str,
        fields: dict[str, str],
        tags: list[str] | None = None,
    ) -> tuple[Note, list[Card]]:
        """Create a note and the new cards its note type expands into."""
        if await self._store.get_deck(deck_id) is None:
            raise DeckNotFoundError(deck_id)

        names = required_fields(note_type)
        clean = {name: fields.get(name, "") for name in names}
        if not clean[names[0]].strip():
            raise EmptyNoteError(note_type)

        now = self._clock()
        note = Note(
            id=generate_id("note"),
            deck_id=deck_id,
            note_type=NoteType(note_type),
            fields=clean,
            tags=[t.strip() for t in tags or [] if t.strip()],
            created_at=now,
            updated_at=now,
        )
        cards = new_cards_for_note(note, self._config, now)

        await self._store.put_note(note)
        await self._store.put_cards(cards)
        logger.debug(f"Added note {note.id} with {len(cards)} card(s)")
        return note, cards

    async def update_note(
        self,
        note_id: str,
        fields: dict[str, str],
        tags: list[str] | None = None,
    ) -> CardReconciliation:
        """
        Replace a note's fields and bring its cards in line with them.

        Cards whose template disappeared (e.g. a removed cloze) are deleted.
        """
        note = await self._store.get_note(note_id)
        if note is None:
            raise NoteNotFoundError(note_id)

        names = required_fields(note.note_type)
        note.fields = {name: fields.get(name, note.fields.get(name, "")) for name in names}
        if not note.fields[names[0]].strip():
            raise EmptyNoteError(note.note_type)
        if tags is not None:
            note.tags = [t.strip() for t in tags if t.strip()]
        note.updated_at = self._clock()

        existing = await self._store.cards_for_note(note_id)
        result = reconcile_cards(note, existing, self._config, note.updated_at)

        await self._store.put_note(note)
        if result.create:
            await self._store.put_cards(result.create)
        if result.remove:
            await self._store.delete_cards([c.id for c in result.remove])

        logger.debug(
            f"Updated note {note_id}: +{len(result.create)} -{len(result.remove)} card(s)"
        )
        return result

    async def delete_note(self, note_id: str) -> None:
        if await self._store.get_note(note_id) is None:
            raise NoteNotFoundError(note_id)
        cards = await self._store.cards_for_note(note_id)
        await self._store.delete_cards([c.id for c in cards])
        await self._store.delete_note(note_id)

    async def search_notes(self, query: str) -> list[Note]:
        """Notes matching a `deck:NAME tag:NAME words` query, newest edit first."""
        return note_search.search_notes(
            await self._store.list_notes(), await self._store.list_decks(), query
        )

    # ---------- Study ----------

    async def _scope(self, deck_id: str) -> set[str]:
        return (await self.deck_tree()).descendants(deck_id)

    async def build_queue(self, deck_id: str) -> list[str]:
        """Ordered card ids to study in the deck and its sub-decks."""
        scope = await self._scope(deck_id)
        cards = await self._store.list_cards()
        return queue_builder.build_queue(cards, scope, self._config, self._clock())

    async def count_due(self, deck_id: str) -> DueCounts:
        scope = await self._scope(deck_id)
        cards = await self._store.list_cards()
        return queue_builder.count_due(cards, scope, self._config, self._clock())

    async def deck_stats(self, deck_id: str) -> DeckStats:
        scope = await self._scope(deck_id)
        cards = await self._store.list_cards()
        return queue_builder.deck_stats(cards, scope, self._clock())

    async def get_card(self, card_id: str) -> Card:
        card = await self._store.get_card(card_id)
        if card is None:
            raise CardNotFoundError(card_id)
        return card

    async def answer(self, card_id: str, rating: Rating | int | str) -> AnswerResult:
        """
        Record an answer: transition the card, log it, and bury its siblings.

        The card and its log entry are saved together. Nothing is written if
        the rating or the card is invalid; a failed burial is only logged.
        """
        rating = Rating.parse(rating)
        card = await self.get_card(card_id)
        now = self._clock()

        after, entry = answer_card(card, rating, self._config, now)

        await self._store.record_answer(after, entry)

        buried: list[Card] = []
        if self._config.bury_siblings:
            buried = await self._bury_siblings(after, now)

        logger.info(
            f"Answered {card_id} {rating.name}: {card.state} -> {after.state}, "
            f"interval={after.interval_days}d"
        )
        return AnswerResult(card=after, log_entry=entry, buried=buried)

    async def _bury_siblings(self, answered: Card, now: int) -> list[Card]:
        """Bury the answered card's siblings; store failures are logged, not raised."""
        try:
            siblings = await self._store.cards_for_note(answered.note_id)
            buried = queue_builder.bury_siblings(answered, siblings, now)
            if buried:
                await self._store.put_cards(buried)
        except StoreError as e:
            logger.warning(f"Could not bury siblings of {answered.id}: {e}")
            return []

        if buried:
            logger.debug(f"Buried {len(buried)} sibling(s) of {answered.id}")
        return buried

    async def review_history(self, card_id: str) -> list[ReviewLogEntry]:
        await self.get_card(card_id)
        return await self._store.logs_for_card(card_id)
