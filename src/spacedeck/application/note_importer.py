"""
Bulk note import from YAML.

Accepted shapes:

    deck: Languages::Spanish        # default deck for notes without one
    notes:
      - type: basic
        fields: {Front: hola, Back: hello}
        tags: [greeting]
      - type: cloze
        deck: Languages::Spanish::Verbs
        fields:
          Text: "{{c1::Soy}} de Chile"

or a bare list of note mappings (each then needs its own `deck`).
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
import yaml.constructor

from spacedeck.application.study_service import StudyService
from spacedeck.domain.errors import ImportFormatError, SpacedeckError

logger = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that forbids duplicate keys."""

    def construct_mapping(self, node, deep=False):
        mapping = set()
        for key_node, _ in node.value:
            key = self.construct_object(key_node, deep=deep)
            if key in mapping:
                raise yaml.constructor.ConstructorError(
                    None, None, f"found duplicate key '{key}'", key_node.start_mark
                )
            mapping.add(key)
        return super().construct_mapping(node, deep)


@dataclass
class ImportReport:
    notes_added: int = 0
    cards_added: int = 0
    decks_created: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def load_note_entries(text: str) -> tuple[str | None, list[dict[str, Any]]]:
    """Parse import YAML into (default deck path, note mappings)."""
    try:
        data = yaml.load(text, Loader=UniqueKeyLoader)
    except yaml.YAMLError as e:
        raise ImportFormatError(f"Invalid YAML: {e}") from e

    if data is None:
        return None, []
    if isinstance(data, list):
        default_deck, notes = None, data
    elif isinstance(data, dict):
        default_deck, notes = data.get("deck"), data.get("notes", [])
    else:
        raise ImportFormatError("Expected a mapping with 'notes' or a list of notes")

    if not isinstance(notes, list):
        raise ImportFormatError("'notes' must be a list")
    return default_deck, notes


async def import_notes(service: StudyService, path: Path, keep_going: bool = True) -> ImportReport:
    """
    Import every note in a YAML file, creating decks along the way.

    With `keep_going`, a bad entry is recorded in the report and skipped;
    otherwise the first failure is raised.
    """
    default_deck, entries = load_note_entries(path.read_text(encoding="utf-8"))
    report = ImportReport()

    for index, entry in enumerate(entries, start=1):
        try:
            if not isinstance(entry, dict):
                raise ImportFormatError(f"entry #{index} is not a mapping")

            deck_path = entry.get("deck") or default_deck
            if not deck_path:
                raise ImportFormatError(f"entry #{index} has no deck")

            fields = entry.get("fields") or {}
            if not isinstance(fields, dict):
                raise ImportFormatError(f"entry #{index}: 'fields' must be a mapping")

            tags = entry.get("tags") or []
            if isinstance(tags, str):
                tags = tags.split()

            deck, created = await service.ensure_deck_path(str(deck_path))
            report.decks_created.extend(d.name for d in created)

            _, cards = await service.add_note(
                deck.id,
                entry.get("type", "basic"),
                {str(k): "" if v is None else str(v) for k, v in fields.items()},
                [str(t) for t in tags],
            )
            report.notes_added += 1
            report.cards_added += len(cards)

        except SpacedeckError as e:
            if not keep_going:
                raise
            logger.warning(f"Skipping note #{index} in {path.name}: {e}")
            report.errors.append(f"#{index}: {e}")

    logger.info(
        f"Imported {report.notes_added} note(s), {report.cards_added} card(s) from {path.name}"
    )
    return report
