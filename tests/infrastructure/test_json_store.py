import json
from unittest.mock import patch

import pytest

from spacedeck.domain.errors import StoreError
from spacedeck.domain.models import CardState, Deck, Note, NoteType, ReviewLogEntry
from spacedeck.infrastructure.stores.json_file import JsonCollectionStore


@pytest.fixture
def path(tmp_path):
    return tmp_path / "data" / "collection.json"


@pytest.mark.asyncio
async def test_missing_file_is_empty_collection(path):
    store = JsonCollectionStore(path)
    assert await store.list_decks() == []
    assert await store.list_cards() == []
    assert not path.exists()


@pytest.mark.asyncio
async def test_records_persist_across_instances(path, make_card):
    store = JsonCollectionStore(path)
    await store.put_deck(Deck(id="d1", name="Deck"))
    await store.put_note(Note(id="n1", deck_id="d1", note_type=NoteType.BASIC, fields={"Front": "q"}))
    card = make_card(id="c1", note_id="n1", state=CardState.REVIEW, interval_days=4)
    await store.put_cards([card, make_card(id="c2", note_id="n1")])

    reopened = JsonCollectionStore(path)

    assert (await reopened.get_deck("d1")).name == "Deck"
    assert (await reopened.get_note("n1")).note_type is NoteType.BASIC
    assert await reopened.get_card("c1") == card
    assert [c.id for c in await reopened.list_cards()] == ["c1", "c2"]
    assert [c.id for c in await reopened.cards_for_note("n1")] == ["c1", "c2"]


@pytest.mark.asyncio
async def test_upsert_and_delete(path, make_card):
    store = JsonCollectionStore(path)
    card = make_card(id="c1")
    await store.put_cards([card])
    card.reps = 5
    await store.put_cards([card])

    assert (await store.get_card("c1")).reps == 5

    await store.delete_cards(["c1", "ghost"])
    assert await store.get_card("c1") is None
    assert await store.get_deck("ghost") is None


@pytest.mark.asyncio
async def test_record_answer_saves_card_and_log(path, make_card):
    store = JsonCollectionStore(path)
    card = make_card(id="c1")
    for ts in (300, 100, 200):
        card.reps += 1
        await store.record_answer(
            card,
            ReviewLogEntry(id=f"r{ts}", card_id="c1", timestamp=ts, rating=3, before={}, after={}),
        )
    await store.record_answer(
        make_card(id="c2"),
        ReviewLogEntry(id="x", card_id="c2", timestamp=1, rating=1, before={}, after={}),
    )

    reopened = JsonCollectionStore(path)
    logs = await reopened.logs_for_card("c1")

    assert [e.timestamp for e in logs] == [100, 200, 300]
    assert (await reopened.get_card("c1")).reps == 3


@pytest.mark.asyncio
async def test_failed_save_changes_nothing(path, make_card):
    store = JsonCollectionStore(path)
    await store.put_deck(Deck(id="d1", name="Deck"))

    with patch("os.replace", side_effect=OSError("disk full")):
        with pytest.raises(StoreError, match="disk full"):
            await store.put_cards([make_card(id="c1")])

    assert await store.get_card("c1") is None
    assert await JsonCollectionStore(path).get_card("c1") is None
    assert [p.name for p in path.parent.iterdir()] == ["collection.json"]

    # The next successful write does not carry the failed record along
    await store.put_deck(Deck(id="d2", name="Other"))
    assert await JsonCollectionStore(path).list_cards() == []


@pytest.mark.asyncio
async def test_unserializable_record_raises_store_error(path, make_card):
    store = JsonCollectionStore(path)

    with pytest.raises(StoreError):
        await store.put_cards([make_card(id="c1", ease=object())])

    assert await store.list_cards() == []
    assert not path.exists()


@pytest.mark.asyncio
async def test_document_layout(path):
    store = JsonCollectionStore(path)
    await store.put_deck(Deck(id="d1", name="Deck"))

    doc = json.loads(path.read_text(encoding="utf-8"))
    assert doc["version"] == 1
    assert doc["decks"]["d1"]["name"] == "Deck"
    assert set(doc) == {"version", "decks", "notes", "cards", "revlog"}


@pytest.mark.asyncio
async def test_no_temp_files_left_behind(path):
    store = JsonCollectionStore(path)
    await store.put_deck(Deck(id="d1", name="Deck"))
    assert [p.name for p in path.parent.iterdir()] == ["collection.json"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        "[1, 2]",
        '{"cards": [1, 2]}',
        '{"decks": {"d1": "Deck"}}',
        '{"cards": {"c1": {"note_id": "n1", "deck_id": "d1"}}}',
        '{"revlog": {"r1": {}}}',
    ],
)
async def test_corrupt_file_raises(path, content):
    path.parent.mkdir(parents=True)
    path.write_text(content, encoding="utf-8")

    with pytest.raises(StoreError):
        await JsonCollectionStore(path).list_cards()
