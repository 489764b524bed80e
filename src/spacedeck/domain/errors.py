"""
Error taxonomy for spacedeck.

Scheduling errors are contract violations raised synchronously by the pure
core. Not-found errors come from the study service. Store errors wrap adapter
failures and are propagated to the caller unmodified.
"""


class SpacedeckError(Exception):
    """Base class for all spacedeck errors."""


class SchedulingError(SpacedeckError, ValueError):
    """Invalid input handed to the scheduler."""


class InvalidRatingError(SchedulingError):
    def __init__(self, rating: object):
        self.rating = rating
        super().__init__(f"Unrecognized rating: {rating!r}")


class InvalidCardError(SchedulingError):
    def __init__(self, card_id: str | None, reason: str):
        self.card_id = card_id
        self.reason = reason
        super().__init__(f"Card {card_id!r} cannot be scheduled: {reason}")


class UnknownNoteTypeError(SpacedeckError, ValueError):
    def __init__(self, note_type: object):
        self.note_type = note_type
        super().__init__(f"Unknown note type: {note_type!r}")


class NotFoundError(SpacedeckError, LookupError):
    kind = "record"

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"{self.kind.capitalize()} not found: {record_id}")


class DeckNotFoundError(NotFoundError):
    kind = "deck"


class NoteNotFoundError(NotFoundError):
    kind = "note"


class CardNotFoundError(NotFoundError):
    kind = "card"


class EmptyNoteError(SpacedeckError, ValueError):
    def __init__(self, note_type: object):
        self.note_type = note_type
        super().__init__(f"A {note_type} note needs content in its first field")


class ImportFormatError(SpacedeckError, ValueError):
    """The import file is not valid YAML or does not have the expected shape."""


class StoreError(SpacedeckError):
    """Raised by persistence adapters when the backing store is unusable."""
