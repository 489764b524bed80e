"""Record id generation."""

from ulid import ULID


def generate_id(prefix: str) -> str:
    """Generate a sortable, collision-resistant record id such as `card_01J...`."""
    return f"{prefix}_{ULID()}"
