"""
Domain models for scheduling.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import asdict, dataclass, field
from enum import IntEnum, StrEnum
from typing import Any

from .constants import (
    DEFAULT_BURY_SIBLINGS,
    DEFAULT_EASY_BONUS,
    DEFAULT_EASY_INTERVAL_DAYS,
    DEFAULT_GRADUATING_INTERVAL_DAYS,
    DEFAULT_INTERVAL_MODIFIER,
    DEFAULT_LEARNING_STEPS,
    DEFAULT_MAX_INTERVAL_DAYS,
    DEFAULT_NEW_PER_DAY,
    DEFAULT_REVIEWS_PER_DAY,
    DEFAULT_STARTING_EASE,
)
from .errors import InvalidRatingError


class CardState(StrEnum):
    NEW = "new"
    LEARNING = "learning"
    RELEARNING = "relearning"
    REVIEW = "review"


class Rating(IntEnum):
    """Reviewer answer, ordered from worst to best recall."""

    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4

    @classmethod
    def parse(cls, value: Any) -> "Rating":
        """
        Accept a Rating, an integer 1-4, or a case-insensitive name.

        Raises:
            InvalidRatingError: for anything else (bools included).
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise InvalidRatingError(value)
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                raise InvalidRatingError(value) from None
        if isinstance(value, str):
            text = value.strip()
            if text.isdigit():
                return cls.parse(int(text))
            try:
                return cls[text.upper()]
            except KeyError:
                raise InvalidRatingError(value) from None
        raise InvalidRatingError(value)


class NoteType(StrEnum):
    BASIC = "basic"
    BASIC_REVERSED = "basic_rev"
    CLOZE = "cloze"


@dataclass
class Card:
    """
    One schedulable review unit.

    Attributes:
        due_at: Epoch ms. An absolute instant while learning/relearning,
            a local midnight while in review.
        ease: None until the first transition fills in the starting ease.
        buried_until: Epoch ms; the card is hidden while this is in the future.
    """

    id: str
    note_id: str
    deck_id: str
    template_key: str
    state: CardState = CardState.NEW
    due_at: int = 0
    interval_days: int = 0
    ease: float | None = None
    step_index: int = 0
    lapses: int = 0
    reps: int = 0
    buried_until: int | None = None

    def is_buried(self, now: int) -> bool:
        return self.buried_until is not None and self.buried_until > now

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["state"] = str(self.state)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Card":
        return cls(
            id=data["id"],
            note_id=data["note_id"],
            deck_id=data["deck_id"],
            template_key=data.get("template_key", ""),
            state=_coerce_state(data.get("state", CardState.NEW)),
            due_at=data.get("due_at", 0),
            interval_days=data.get("interval_days", 0),
            ease=data.get("ease"),
            step_index=data.get("step_index", 0),
            lapses=data.get("lapses", 0),
            reps=data.get("reps", 0),
            buried_until=data.get("buried_until"),
        )


@dataclass
class Deck:
    id: str
    name: str
    parent_id: str | None = None
    description: str = ""
    created_at: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Deck":
        return cls(
            id=data["id"],
            name=data["name"],
            parent_id=data.get("parent_id"),
            description=data.get("description", ""),
            created_at=data.get("created_at", 0),
        )


@dataclass
class Note:
    """User-authored field data from which one or more cards are generated."""

    id: str
    deck_id: str
    note_type: NoteType
    fields: dict[str, str] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)
    created_at: int = 0
    updated_at: int = 0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["note_type"] = str(self.note_type)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Note":
        return cls(
            id=data["id"],
            deck_id=data["deck_id"],
            note_type=NoteType(data["note_type"]),
            fields=dict(data.get("fields", {})),
            tags=list(data.get("tags", [])),
            created_at=data.get("created_at", 0),
            updated_at=data.get("updated_at", 0),
        )


@dataclass(frozen=True)
class ReviewLogEntry:
    """
    Audit record appended for every answered card.

    Attributes:
        timestamp: Epoch ms of the answer.
        rating: Button pressed (1=Again, 2=Hard, 3=Good, 4=Easy).
        before: Card snapshot prior to the transition.
        after: Card snapshot produced by the transition.
    """

    id: str
    card_id: str
    timestamp: int
    rating: int
    before: dict[str, Any]
    after: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReviewLogEntry":
        return cls(
            id=data["id"],
            card_id=data["card_id"],
            timestamp=data["timestamp"],
            rating=data["rating"],
            before=dict(data.get("before", {})),
            after=dict(data.get("after", {})),
        )


@dataclass(frozen=True)
class SchedulerConfig:
    """Per-user scheduling options, passed explicitly into every core call."""

    new_per_day: int = DEFAULT_NEW_PER_DAY
    reviews_per_day: int = DEFAULT_REVIEWS_PER_DAY
    learning_steps: str = DEFAULT_LEARNING_STEPS
    graduating_interval_days: int = DEFAULT_GRADUATING_INTERVAL_DAYS
    easy_interval_days: int = DEFAULT_EASY_INTERVAL_DAYS
    starting_ease: float = DEFAULT_STARTING_EASE
    easy_bonus: float = DEFAULT_EASY_BONUS
    interval_modifier: float = DEFAULT_INTERVAL_MODIFIER
    max_interval_days: int = DEFAULT_MAX_INTERVAL_DAYS
    bury_siblings: bool = DEFAULT_BURY_SIBLINGS


@dataclass(frozen=True)
class DueCounts:
    """New and review counts are pre-clamped to the daily caps; learn is not."""

    new_count: int = 0
    learn_count: int = 0
    review_count: int = 0

    @property
    def total(self) -> int:
        return self.new_count + self.learn_count + self.review_count


@dataclass(frozen=True)
class DeckStats:
    """Raw, uncapped card counts for a deck scope."""

    total: int = 0
    new: int = 0
    learning: int = 0
    review: int = 0
    buried: int = 0


def _coerce_state(value: Any) -> CardState | Any:
    # Unknown states are kept as-is so the scheduler can reject them.
    try:
        return CardState(value)
    except ValueError:
        return value
