"""
Deck hierarchy as an arena of deck records.

Decks reference their parent by id; the tree keeps an index from parent id to
children so descendant lookups never walk nested objects.
"""

from collections import defaultdict
from collections.abc import Iterable

from spacedeck.domain.constants import DECK_PATH_SEPARATOR
from spacedeck.domain.models import Deck


class DeckTree:
    def __init__(self, decks: Iterable[Deck]):
        self.decks: dict[str, Deck] = {}
        self._children: dict[str | None, list[str]] = defaultdict(list)

        for deck in decks:
            self.decks[deck.id] = deck
            self._children[deck.parent_id].append(deck.id)

    def __contains__(self, deck_id: str) -> bool:
        return deck_id in self.decks

    def children(self, deck_id: str | None) -> list[Deck]:
        return [self.decks[cid] for cid in self._children.get(deck_id, [])]

    def roots(self) -> list[Deck]:
        """Decks without a parent, plus orphans whose parent is missing."""
        return [
            deck
            for deck in self.decks.values()
            if deck.parent_id is None or deck.parent_id not in self.decks
        ]

    def descendants(self, deck_id: str) -> set[str]:
        """
        The deck itself plus all transitive sub-decks.

        An unknown id resolves to just itself, so it matches no cards.
        """
        scope: set[str] = set()
        stack = [deck_id]

        while stack:
            current = stack.pop()
            if current in scope:
                continue
            scope.add(current)
            stack.extend(self._children.get(current, []))

        return scope

    def path(self, deck_id: str) -> str:
        """Full display name, e.g. "Languages::Spanish::Verbs"."""
        names: list[str] = []
        seen: set[str] = set()
        current = self.decks.get(deck_id)

        while current is not None and current.id not in seen:
            seen.add(current.id)
            names.append(current.name)
            current = self.decks.get(current.parent_id) if current.parent_id else None

        return DECK_PATH_SEPARATOR.join(reversed(names))

    def walk(self) -> list[tuple[Deck, int]]:
        """Depth-first (deck, depth) pairs, roots first, for tree display."""
        out: list[tuple[Deck, int]] = []
        stack = [(deck, 0) for deck in reversed(self.roots())]

        while stack:
            deck, depth = stack.pop()
            out.append((deck, depth))
            for child in reversed(self.children(deck.id)):
                stack.append((child, depth + 1))

        return out
