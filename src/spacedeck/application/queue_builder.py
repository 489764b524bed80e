"""
Queue builder for daily study sessions.

Builds ordered study queues by:
1. Restricting cards to the deck scope and dropping buried cards
2. Partitioning into learn / review / new buckets by due time
3. Capping review and new buckets at the daily limits
4. Concatenating learn + review + new
"""

import logging
from collections.abc import Collection, Iterable
from dataclasses import dataclass, field, replace

from spacedeck.domain.clock import start_of_next_day
from spacedeck.domain.models import Card, CardState, DeckStats, DueCounts, SchedulerConfig

logger = logging.getLogger(__name__)

_LEARNING_STATES = (CardState.LEARNING, CardState.RELEARNING)


@dataclass
class QueueBuckets:
    """Eligible card ids per bucket, in input order and before any caps."""

    learn: list[str] = field(default_factory=list)
    review: list[str] = field(default_factory=list)
    new: list[str] = field(default_factory=list)


def partition_cards(
    cards: Iterable[Card],
    scope_deck_ids: Collection[str],
    now: int,
) -> QueueBuckets:
    """
    Sort in-scope, unburied cards into learn / review / new buckets.

    Learning and review cards need `due_at <= now`; new cards are always eligible.
    """
    buckets = QueueBuckets()
    if not scope_deck_ids:
        return buckets

    for card in cards:
        if card.deck_id not in scope_deck_ids or card.is_buried(now):
            continue

        if card.state in _LEARNING_STATES:
            if card.due_at <= now:
                buckets.learn.append(card.id)
        elif card.state == CardState.REVIEW:
            if card.due_at <= now:
                buckets.review.append(card.id)
        elif card.state == CardState.NEW:
            buckets.new.append(card.id)

    return buckets


def build_queue(
    cards: Iterable[Card],
    scope_deck_ids: Collection[str],
    config: SchedulerConfig,
    now: int,
) -> list[str]:
    """
    Build the ordered list of card ids to study.

    Due learning cards are never capped and always come first, so short
    intervals are not starved by a review backlog.
    """
    buckets = partition_cards(cards, scope_deck_ids, now)

    queue = [
        *buckets.learn,
        *buckets.review[: max(0, config.reviews_per_day)],
        *buckets.new[: max(0, config.new_per_day)],
    ]

    logger.debug(
        f"Queue built: learn={len(buckets.learn)} "
        f"review={len(buckets.review)} new={len(buckets.new)} -> {len(queue)}"
    )
    return queue


def count_due(
    cards: Iterable[Card],
    scope_deck_ids: Collection[str],
    config: SchedulerConfig,
    now: int,
) -> DueCounts:
    """Due counts for display; new and review are clamped to the daily caps."""
    buckets = partition_cards(cards, scope_deck_ids, now)

    return DueCounts(
        new_count=min(len(buckets.new), max(0, config.new_per_day)),
        learn_count=len(buckets.learn),
        review_count=min(len(buckets.review), max(0, config.reviews_per_day)),
    )


def deck_stats(cards: Iterable[Card], scope_deck_ids: Collection[str], now: int) -> DeckStats:
    """Raw card counts for a deck scope, regardless of due time or caps."""
    total = new = learning = review = buried = 0

    for card in cards:
        if card.deck_id not in scope_deck_ids:
            continue
        total += 1
        if card.is_buried(now):
            buried += 1
        if card.state == CardState.NEW:
            new += 1
        elif card.state in _LEARNING_STATES:
            learning += 1
        elif card.state == CardState.REVIEW:
            review += 1

    return DeckStats(total=total, new=new, learning=learning, review=review, buried=buried)


def bury_siblings(answered: Card, siblings: Iterable[Card], now: int) -> list[Card]:
    """
    Hide the other cards of the answered card's note until tomorrow.

    Returns updated copies of the buried siblings; the caller persists them.
    """
    bury_until = start_of_next_day(now)

    return [
        replace(sibling, buried_until=bury_until)
        for sibling in siblings
        if sibling.id != answered.id and sibling.note_id == answered.note_id
    ]
