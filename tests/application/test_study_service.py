import logging
from unittest.mock import AsyncMock, patch

import pytest

from spacedeck.application.study_service import StudyService
from spacedeck.domain.errors import (
    CardNotFoundError,
    DeckNotFoundError,
    EmptyNoteError,
    InvalidRatingError,
    NoteNotFoundError,
    StoreError,
    UnknownNoteTypeError,
)
from spacedeck.domain.models import CardState, Rating, SchedulerConfig
from spacedeck.infrastructure.stores.json_file import JsonCollectionStore


async def _deck_with_note(service, note_type="basic_rev", **fields):
    deck = await service.create_deck("Spanish")
    fields = fields or {"Front": "hola", "Back": "hello"}
    note, cards = await service.add_note(deck.id, note_type, fields, ["greeting"])
    return deck, note, cards


class TestDecks:
    @pytest.mark.asyncio
    async def test_create_subdeck_requires_parent(self, service):
        with pytest.raises(DeckNotFoundError):
            await service.create_deck("Child", parent_id="nope")

    @pytest.mark.asyncio
    async def test_ensure_deck_path_creates_missing_levels(self, service):
        leaf, created = await service.ensure_deck_path("Languages::Spanish::Verbs")
        assert [d.name for d in created] == ["Languages", "Spanish", "Verbs"]

        again, created_again = await service.ensure_deck_path("Languages :: Spanish")
        assert created_again == []
        assert (await service.deck_tree()).path(leaf.id) == "Languages::Spanish::Verbs"
        assert again.id == leaf.parent_id

    @pytest.mark.asyncio
    async def test_delete_deck_cascades(self, service, store):
        deck, _, _ = await _deck_with_note(service)
        child = await service.create_deck("Verbs", deck.id)
        await service.add_note(child.id, "basic", {"Front": "ser"})
        keep = await service.create_deck("Other")
        await service.add_note(keep.id, "basic", {"Front": "x"})

        deleted = await service.delete_deck(deck.id)

        assert deleted == 3
        assert list(store.decks) == [keep.id]
        assert len(store.notes) == 1
        assert len(store.cards) == 1

    @pytest.mark.asyncio
    async def test_delete_unknown_deck(self, service):
        with pytest.raises(DeckNotFoundError):
            await service.delete_deck("nope")


class TestNotes:
    @pytest.mark.asyncio
    async def test_add_note_generates_cards(self, service, store, now):
        deck, note, cards = await _deck_with_note(service)

        assert [c.template_key for c in cards] == ["basic_fwd", "basic_rev"]
        assert note.fields == {"Front": "hola", "Back": "hello"}
        assert note.tags == ["greeting"]
        assert note.created_at == now
        assert set(store.cards) == {c.id for c in cards}

    @pytest.mark.asyncio
    async def test_add_note_unknown_deck(self, service):
        with pytest.raises(DeckNotFoundError):
            await service.add_note("nope", "basic", {"Front": "x"})

    @pytest.mark.asyncio
    async def test_add_note_requires_content(self, service):
        deck = await service.create_deck("D")
        with pytest.raises(EmptyNoteError):
            await service.add_note(deck.id, "basic", {"Front": "  ", "Back": "b"})

    @pytest.mark.asyncio
    async def test_add_note_unknown_type(self, service):
        deck = await service.create_deck("D")
        with pytest.raises(UnknownNoteTypeError):
            await service.add_note(deck.id, "audio", {"Front": "x"})

    @pytest.mark.asyncio
    async def test_add_note_drops_unknown_fields(self, service):
        deck = await service.create_deck("D")
        note, _ = await service.add_note(deck.id, "basic", {"Front": "q", "Junk": "z"})
        assert note.fields == {"Front": "q", "Back": ""}

    @pytest.mark.asyncio
    async def test_update_note_reconciles_clozes(self, service, store):
        deck = await service.create_deck("D")
        note, cards = await service.add_note(
            deck.id, "cloze", {"Text": "{{c1::a}} {{c2::b}}"}
        )
        c1 = next(c for c in cards if c.template_key == "cloze_c1")
        await service.answer(c1.id, Rating.EASY)

        result = await service.update_note(note.id, {"Text": "{{c1::a}} {{c3::c}}"})

        keys = sorted(c.template_key for c in await store.cards_for_note(note.id))
        assert keys == ["cloze_c1", "cloze_c3"]
        assert [c.template_key for c in result.remove] == ["cloze_c2"]
        # Scheduling state of the surviving card is untouched
        assert (await store.get_card(c1.id)).state == CardState.REVIEW

    @pytest.mark.asyncio
    async def test_update_unknown_note(self, service):
        with pytest.raises(NoteNotFoundError):
            await service.update_note("nope", {"Front": "x"})

    @pytest.mark.asyncio
    async def test_delete_note_removes_cards(self, service, store):
        _, note, _ = await _deck_with_note(service)
        await service.delete_note(note.id)
        assert store.notes == {}
        assert store.cards == {}


    @pytest.mark.asyncio
    async def test_search_notes(self, service, clock, now):
        _, hola, _ = await _deck_with_note(service)
        other = await service.create_deck("French")
        clock.now = now + 1
        bonjour, _ = await service.add_note(other.id, "basic", {"Front": "bonjour"}, ["greeting"])

        assert [n.id for n in await service.search_notes("tag:greeting")] == [bonjour.id, hola.id]
        assert [n.id for n in await service.search_notes("deck:span")] == [hola.id]
        assert [n.id for n in await service.search_notes("HELLO")] == [hola.id]


class TestStudy:
    @pytest.mark.asyncio
    async def test_answer_persists_card_and_log(self, service, store, now):
        _, _, cards = await _deck_with_note(service, "basic", Front="q", Back="a")

        result = await service.answer(cards[0].id, "good")

        stored = await store.get_card(cards[0].id)
        assert stored.state == CardState.LEARNING
        assert stored.due_at == now + 10 * 60_000
        assert stored.reps == 1
        assert result.card == stored

        history = await service.review_history(cards[0].id)
        assert len(history) == 1
        assert history[0].rating == 3
        assert history[0].before["state"] == "new"
        assert history[0].after["state"] == "learning"

    @pytest.mark.asyncio
    async def test_answer_buries_siblings(self, service, now, clock, midnight):
        deck, _, (front, back) = await _deck_with_note(service)

        result = await service.answer(front.id, Rating.GOOD)

        assert [c.id for c in result.buried] == [back.id]
        assert result.buried[0].buried_until == midnight(now, 1)

        clock.now = now + 5 * 60_000
        assert back.id not in await service.build_queue(deck.id)

        clock.now = midnight(now, 1)
        assert back.id in await service.build_queue(deck.id)

    @pytest.mark.asyncio
    async def test_answer_without_burial(self, store, clock):
        service = StudyService(store, SchedulerConfig(bury_siblings=False), clock=clock)
        deck, _, (front, back) = await _deck_with_note(service)

        result = await service.answer(front.id, Rating.GOOD)

        assert result.buried == []
        assert (await store.get_card(back.id)).buried_until is None
        assert back.id in await service.build_queue(deck.id)

    @pytest.mark.asyncio
    async def test_invalid_rating_writes_nothing(self, service, store):
        _, _, cards = await _deck_with_note(service)
        before = await store.get_card(cards[0].id)

        with pytest.raises(InvalidRatingError):
            await service.answer(cards[0].id, 9)

        assert await store.get_card(cards[0].id) == before
        assert store.revlog == []

    @pytest.mark.asyncio
    async def test_answer_unknown_card(self, service):
        with pytest.raises(CardNotFoundError):
            await service.answer("nope", Rating.GOOD)

    @pytest.mark.asyncio
    async def test_queue_and_counts_cover_subdecks(self, service):
        parent = await service.create_deck("Parent")
        child = await service.create_deck("Child", parent.id)
        _, parent_cards = await service.add_note(parent.id, "basic", {"Front": "p"})
        _, child_cards = await service.add_note(child.id, "basic", {"Front": "c"})

        queue = await service.build_queue(parent.id)
        counts = await service.count_due(parent.id)

        assert queue == [parent_cards[0].id, child_cards[0].id]
        assert counts.new_count == 2
        assert await service.build_queue(child.id) == [child_cards[0].id]

    @pytest.mark.asyncio
    async def test_learning_card_surfaces_before_new(self, service, clock, now):
        deck = await service.create_deck("D")
        _, (first,) = await service.add_note(deck.id, "basic", {"Front": "1"})
        _, (second,) = await service.add_note(deck.id, "basic", {"Front": "2"})

        await service.answer(first.id, Rating.AGAIN)
        clock.now = now + 10 * 60_000

        assert await service.build_queue(deck.id) == [first.id, second.id]
        counts = await service.count_due(deck.id)
        assert (counts.new_count, counts.learn_count, counts.review_count) == (1, 1, 0)

    @pytest.mark.asyncio
    async def test_empty_deck_queue(self, service):
        deck = await service.create_deck("Empty")
        assert await service.build_queue(deck.id) == []
        assert (await service.count_due(deck.id)).total == 0
        assert await service.build_queue("missing") == []

    @pytest.mark.asyncio
    async def test_deck_stats(self, service):
        deck, _, _ = await _deck_with_note(service)
        stats = await service.deck_stats(deck.id)
        assert (stats.total, stats.new) == (2, 2)


class TestStoreFailures:
    @pytest.mark.asyncio
    async def test_store_errors_propagate(self, config, clock):
        store = AsyncMock()
        store.list_decks.side_effect = StoreError("disk gone")
        service = StudyService(store, config, clock=clock)

        with pytest.raises(StoreError, match="disk gone"):
            await service.build_queue("d1")

    @pytest.mark.asyncio
    async def test_failed_answer_write_skips_burial(self, make_card, config, clock):
        store = AsyncMock()
        store.get_card.return_value = make_card(id="c1")
        store.record_answer.side_effect = StoreError("read-only")
        service = StudyService(store, config, clock=clock)

        with pytest.raises(StoreError):
            await service.answer("c1", Rating.GOOD)

        store.put_cards.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_answer_write_keeps_card_and_log_unchanged(self, config, clock, tmp_path):
        store = JsonCollectionStore(tmp_path / "collection.json")
        service = StudyService(store, config, clock=clock)
        _, _, (card,) = await _deck_with_note(service, "basic", Front="q")

        with patch("os.replace", side_effect=OSError("disk full")):
            with pytest.raises(StoreError):
                await service.answer(card.id, Rating.EASY)

        assert await store.get_card(card.id) == card
        assert await service.review_history(card.id) == []
        # A retry applies the answer exactly once
        result = await service.answer(card.id, Rating.EASY)
        assert result.card.reps == 1
        assert len(await service.review_history(card.id)) == 1

    @pytest.mark.asyncio
    async def test_burial_failure_keeps_answer(self, make_card, config, clock, caplog):
        card = make_card(id="c1", note_id="n1")
        sibling = make_card(id="c2", note_id="n1")
        store = AsyncMock()
        store.get_card.return_value = card
        store.cards_for_note.return_value = [card, sibling]
        store.put_cards.side_effect = StoreError("locked")
        service = StudyService(store, config, clock=clock)

        with caplog.at_level(logging.WARNING):
            result = await service.answer("c1", Rating.GOOD)

        assert result.buried == []
        assert result.card.state == CardState.LEARNING
        store.record_answer.assert_awaited_once_with(result.card, result.log_entry)
        assert "Could not bury siblings of c1" in caplog.text
