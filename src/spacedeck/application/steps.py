"""Parsing of learning-step ladders such as "10m,1h,1d"."""

import logging
import re

from spacedeck.domain.constants import DEFAULT_LEARNING_STEPS_MS, STEP_UNIT_MS

logger = logging.getLogger(__name__)

_STEP_TOKEN = re.compile(r"^(\d+)\s*([mhd])$", re.IGNORECASE)


def parse_learning_steps(text: str | None) -> tuple[int, ...]:
    """
    Parse a comma-separated step ladder into durations in milliseconds.

    Malformed tokens are skipped. An empty or fully invalid ladder falls
    back to the default (10 minutes, 1 day).
    """
    steps: list[int] = []

    for token in (text or "").split(","):
        token = token.strip()
        if not token:
            continue
        match = _STEP_TOKEN.match(token)
        if not match:
            logger.debug(f"Skipping malformed learning step {token!r}")
            continue
        amount, unit = match.groups()
        steps.append(int(amount) * STEP_UNIT_MS[unit.lower()])

    return tuple(steps) if steps else DEFAULT_LEARNING_STEPS_MS


def format_learning_steps(steps_ms: tuple[int, ...] | list[int]) -> str:
    """Render a ladder back to its compact text form, using the largest exact unit."""
    parts = []
    for ms in steps_ms:
        for unit in ("d", "h", "m"):
            size = STEP_UNIT_MS[unit]
            if ms and ms % size == 0:
                parts.append(f"{ms // size}{unit}")
                break
        else:
            parts.append(f"{ms // STEP_UNIT_MS['m']}m")
    return ",".join(parts)
