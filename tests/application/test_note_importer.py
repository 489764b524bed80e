import pytest

from spacedeck.application.note_importer import import_notes, load_note_entries
from spacedeck.domain.errors import EmptyNoteError, ImportFormatError, SpacedeckError

IMPORT_YAML = """\
deck: Languages::Spanish
notes:
  - type: basic_rev
    fields:
      Front: hola
      Back: hello
    tags: [greeting, basics]
  - type: cloze
    deck: Languages::Spanish::Verbs
    fields:
      Text: "{{c1::Soy}} de Chile, {{c2::estoy}} bien"
  - type: basic
    fields: {Front: "", Back: nothing}
"""


def test_load_entries_mapping_form():
    deck, notes = load_note_entries(IMPORT_YAML)
    assert deck == "Languages::Spanish"
    assert len(notes) == 3


def test_load_entries_list_form():
    deck, notes = load_note_entries("- {deck: A, fields: {Front: x}}\n")
    assert deck is None
    assert notes == [{"deck": "A", "fields": {"Front": "x"}}]


def test_load_entries_empty():
    assert load_note_entries("") == (None, [])


def test_format_errors_share_the_base_error():
    with pytest.raises(SpacedeckError):
        load_note_entries("notes: 5")


def test_duplicate_keys_rejected():
    with pytest.raises(ImportFormatError):
        load_note_entries("deck: A\ndeck: B\n")


@pytest.mark.parametrize("text", ["just a string", "notes: 5", "deck: [unclosed"])
def test_bad_shapes_rejected(text):
    with pytest.raises(ImportFormatError):
        load_note_entries(text)


@pytest.mark.asyncio
async def test_import_creates_decks_and_cards(service, store, tmp_path):
    path = tmp_path / "notes.yaml"
    path.write_text(IMPORT_YAML, encoding="utf-8")

    report = await import_notes(service, path)

    assert report.notes_added == 2
    assert report.cards_added == 4
    assert report.decks_created == ["Languages", "Spanish", "Verbs"]
    assert len(report.errors) == 1
    assert len(store.notes) == 2

    tree = await service.deck_tree()
    assert sorted(tree.path(d) for d in tree.decks) == [
        "Languages",
        "Languages::Spanish",
        "Languages::Spanish::Verbs",
    ]


@pytest.mark.asyncio
async def test_import_fail_fast(service, tmp_path):
    path = tmp_path / "notes.yaml"
    path.write_text(IMPORT_YAML, encoding="utf-8")

    with pytest.raises(EmptyNoteError):
        await import_notes(service, path, keep_going=False)


@pytest.mark.asyncio
async def test_entry_without_deck_is_reported(service, tmp_path):
    path = tmp_path / "notes.yaml"
    path.write_text("- fields: {Front: x}\n", encoding="utf-8")

    report = await import_notes(service, path)

    assert report.notes_added == 0
    assert "no deck" in report.errors[0]
