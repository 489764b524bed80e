"""
SM-2 style scheduler.

Maps (card, rating, config, now) to the card's next state. This is a pure
computation module with no I/O: `now` is injected so results are reproducible.
"""

import logging
import math
from dataclasses import replace
from typing import Any

from spacedeck.application.id_service import generate_id
from spacedeck.application.steps import parse_learning_steps
from spacedeck.domain.clock import days_ahead, round_half_up
from spacedeck.domain.constants import (
    EASY_EASE_BONUS,
    HARD_EASE_PENALTY,
    HARD_INTERVAL_FACTOR,
    HARD_STEP_FACTOR,
    LAPSE_EASE_PENALTY,
    LAPSE_INTERVAL_FACTOR,
    MAX_EASE,
    MIN_EASE,
    MIN_INTERVAL_DAYS,
)
from spacedeck.domain.errors import InvalidCardError
from spacedeck.domain.models import Card, CardState, Rating, ReviewLogEntry, SchedulerConfig

logger = logging.getLogger(__name__)


def clamp_ease(ease: float) -> float:
    return max(MIN_EASE, min(MAX_EASE, ease))


def clamp_interval(days: int, max_interval_days: int) -> int:
    return max(MIN_INTERVAL_DAYS, min(max_interval_days, days))


def transition(card: Card, rating: Rating | int | str, config: SchedulerConfig, now: int) -> Card:
    """
    Compute the card's next scheduling state.

    Returns a new Card; state, due_at, interval_days, ease, step_index,
    lapses and reps are replaced, every other field is carried over.

    Raises:
        InvalidRatingError: if `rating` is not one of Again/Hard/Good/Easy.
        InvalidCardError: if the card has an unknown state or a non-numeric field.
    """
    rating = Rating.parse(rating)
    steps = parse_learning_steps(config.learning_steps)
    card = _normalize(card, config, len(steps))
    card = replace(card, reps=card.reps + 1)

    if card.state == CardState.NEW:
        if rating == Rating.EASY:
            return _to_review(card, config.easy_interval_days, config, now)
        return replace(card, state=CardState.LEARNING, step_index=0, due_at=now + steps[0])

    if card.state in (CardState.LEARNING, CardState.RELEARNING):
        if rating == Rating.AGAIN:
            return replace(card, step_index=0, due_at=now + steps[0])
        if rating == Rating.HARD:
            delay = round_half_up(steps[card.step_index] * HARD_STEP_FACTOR)
            return replace(card, due_at=now + delay)
        if rating == Rating.GOOD:
            next_step = card.step_index + 1
            if next_step >= len(steps):
                return _to_review(card, config.graduating_interval_days, config, now)
            return replace(card, step_index=next_step, due_at=now + steps[next_step])
        return _to_review(card, config.easy_interval_days, config, now)

    # Review
    old_interval = max(MIN_INTERVAL_DAYS, card.interval_days)
    modifier = config.interval_modifier

    if rating == Rating.AGAIN:
        return replace(
            card,
            state=CardState.RELEARNING,
            lapses=card.lapses + 1,
            ease=clamp_ease(card.ease - LAPSE_EASE_PENALTY),
            step_index=0,
            due_at=now + steps[0],
            # Staged for re-graduation; the relearning ladder drives due_at.
            interval_days=max(MIN_INTERVAL_DAYS, round_half_up(old_interval * LAPSE_INTERVAL_FACTOR)),
        )
    if rating == Rating.HARD:
        card = replace(card, ease=clamp_ease(card.ease - HARD_EASE_PENALTY))
        interval = round_half_up(old_interval * HARD_INTERVAL_FACTOR * modifier)
    elif rating == Rating.GOOD:
        interval = round_half_up(old_interval * card.ease * modifier)
    else:
        card = replace(card, ease=clamp_ease(card.ease + EASY_EASE_BONUS))
        interval = round_half_up(old_interval * card.ease * config.easy_bonus * modifier)

    return _to_review(card, interval, config, now)


def answer_card(
    card: Card, rating: Rating | int | str, config: SchedulerConfig, now: int
) -> tuple[Card, ReviewLogEntry]:
    """
    Transition a card and build the audit record for the answer.

    The caller persists both, and must not persist either if this raises.
    """
    rating = Rating.parse(rating)
    after = transition(card, rating, config, now)
    entry = ReviewLogEntry(
        id=generate_id("rev"),
        card_id=card.id,
        timestamp=now,
        rating=int(rating),
        before=card.to_dict(),
        after=after.to_dict(),
    )
    logger.debug(
        f"Card {card.id}: {card.state} -> {after.state} "
        f"(rating={rating.name}, interval={after.interval_days}d)"
    )
    return after, entry


def _to_review(card: Card, interval_days: int, config: SchedulerConfig, now: int) -> Card:
    interval = clamp_interval(interval_days, config.max_interval_days)
    return replace(
        card,
        state=CardState.REVIEW,
        interval_days=interval,
        due_at=days_ahead(now, interval),
        step_index=0,
    )


def _normalize(card: Card, config: SchedulerConfig, step_count: int) -> Card:
    """Fill documented defaults for missing fields and reject unusable ones."""
    try:
        state = CardState(card.state)
    except ValueError:
        raise InvalidCardError(card.id, f"unknown state {card.state!r}") from None

    ease = config.starting_ease if card.ease is None else _number(card, "ease", card.ease)
    if not math.isfinite(ease):
        raise InvalidCardError(card.id, f"ease is not finite: {card.ease!r}")

    step_index = _count(card, "step_index", card.step_index)

    return replace(
        card,
        state=state,
        ease=clamp_ease(ease),
        interval_days=_count(card, "interval_days", card.interval_days),
        lapses=_count(card, "lapses", card.lapses),
        reps=_count(card, "reps", card.reps),
        step_index=min(step_index, step_count - 1),
    )


def _number(card: Card, name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidCardError(card.id, f"{name} is not a number: {value!r}")
    return float(value)


def _count(card: Card, name: str, value: Any) -> int:
    if value is None:
        return 0
    number = _number(card, name, value)
    if not math.isfinite(number):
        raise InvalidCardError(card.id, f"{name} is not finite: {value!r}")
    return max(0, int(number))
