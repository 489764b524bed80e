"""
Card generation from notes.

Each note type expands into one or more template keys; one new card is
created per key. Only the content parsing needed to count cards lives here
(cloze numbers), rendering is left to the presentation layer.
"""

import re
from dataclasses import dataclass, field

from spacedeck.application.id_service import generate_id
from spacedeck.domain.errors import UnknownNoteTypeError
from spacedeck.domain.models import Card, CardState, Note, NoteType, SchedulerConfig

CLOZE_PATTERN = re.compile(r"{{c(\d+)::([\s\S]+?)(?:::([\s\S]+?))?}}")

NOTE_TYPE_FIELDS: dict[NoteType, list[str]] = {
    NoteType.BASIC: ["Front", "Back"],
    NoteType.BASIC_REVERSED: ["Front", "Back"],
    NoteType.CLOZE: ["Text", "Extra"],
}


@dataclass
class CardReconciliation:
    """Outcome of re-expanding an edited note against its existing cards."""

    create: list[Card] = field(default_factory=list)
    keep: list[Card] = field(default_factory=list)
    remove: list[Card] = field(default_factory=list)


def _note_type(value: NoteType | str) -> NoteType:
    try:
        return NoteType(value)
    except ValueError:
        raise UnknownNoteTypeError(value) from None


def required_fields(note_type: NoteType | str) -> list[str]:
    return list(NOTE_TYPE_FIELDS[_note_type(note_type)])


def extract_cloze_numbers(text: str) -> list[int]:
    """Distinct cloze numbers in `{{cN::answer::hint}}` markers, ascending."""
    return sorted({int(m.group(1)) for m in CLOZE_PATTERN.finditer(text or "")})


def template_keys(note_type: NoteType | str, fields: dict[str, str]) -> list[str]:
    """
    Template keys a note expands into.

    A cloze note without any cloze markers still yields a single card.
    """
    kind = _note_type(note_type)

    if kind == NoteType.BASIC:
        return ["basic_fwd"]
    if kind == NoteType.BASIC_REVERSED:
        return ["basic_fwd", "basic_rev"]

    numbers = extract_cloze_numbers(fields.get("Text", ""))
    return [f"cloze_c{n}" for n in numbers] or ["cloze_c1"]


def new_card(note: Note, template_key: str, config: SchedulerConfig, now: int) -> Card:
    return Card(
        id=generate_id("card"),
        note_id=note.id,
        deck_id=note.deck_id,
        template_key=template_key,
        state=CardState.NEW,
        due_at=now,
        interval_days=0,
        ease=config.starting_ease,
        step_index=0,
        lapses=0,
        reps=0,
        buried_until=None,
    )


def new_cards_for_note(note: Note, config: SchedulerConfig, now: int) -> list[Card]:
    return [new_card(note, key, config, now) for key in template_keys(note.note_type, note.fields)]


def reconcile_cards(
    note: Note, existing: list[Card], config: SchedulerConfig, now: int
) -> CardReconciliation:
    """
    Match an edited note's template keys against its current cards.

    Surviving cards keep their scheduling state; new keys get fresh cards;
    cards whose key disappeared are reported for removal.
    """
    wanted = template_keys(note.note_type, note.fields)
    by_key = {card.template_key: card for card in existing}
    result = CardReconciliation()

    for key in wanted:
        if key in by_key:
            result.keep.append(by_key[key])
        else:
            result.create.append(new_card(note, key, config, now))

    wanted_keys = set(wanted)
    result.remove = [card for card in existing if card.template_key not in wanted_keys]
    return result
