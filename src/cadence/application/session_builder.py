"""
Session builder for daily study sessions.

Builds the initial ordered study queue by:
1. Dropping suspended cards and cards that are not yet due
2. Capping reviews and new cards at the daily limits
3. Ordering new cards against reviews (mixed, old first, or new first)
"""

import logging
from collections.abc import Iterable
from datetime import datetime

from cadence.domain.models import Card, CardState, SessionBuildResult
from cadence.domain.settings import SessionLimits

logger = logging.getLogger(__name__)


def build_session_queue(
    cards: Iterable[Card],
    now: datetime,
    limits: SessionLimits | None = None,
) -> SessionBuildResult:
    """
    Select and order the cards to study now.

    Args:
        cards: All cards of the deck, in authoring order.
        now: Timezone-aware current time; cards with due_at <= now are due.
        limits: Daily limits and review order (defaults if not set).

    Returns:
        SessionBuildResult with the ordered queue and diagnostics.
    """
    limits = limits or SessionLimits()

    new_cards: list[Card] = []
    due_cards: list[Card] = []
    skipped_suspended: list[str] = []
    skipped_not_due: list[str] = []

    for card in cards:
        state = card.schedule.state
        if state is CardState.SUSPENDED:
            skipped_suspended.append(card.id)
        elif state is CardState.NEW:
            new_cards.append(card)
        elif card.schedule.due_at <= now:
            due_cards.append(card)
        else:
            skipped_not_due.append(card.id)

    # Most overdue first; stable for equal due times
    due_cards.sort(key=lambda c: c.schedule.due_at)

    reviews = due_cards[: limits.max_reviews_per_day]
    fresh = new_cards[: limits.new_cards_per_day]
    over_limit = [c.id for c in due_cards[limits.max_reviews_per_day :]]
    over_limit += [c.id for c in new_cards[limits.new_cards_per_day :]]

    ordered = _order(reviews, fresh, limits.review_order)

    if over_limit:
        logger.info(f"{len(over_limit)} card(s) held back by daily limits")

    return SessionBuildResult(
        card_ids=[c.id for c in ordered],
        new_ids=[c.id for c in fresh],
        review_ids=[c.id for c in reviews],
        skipped_suspended=skipped_suspended,
        skipped_not_due=skipped_not_due,
        skipped_over_limit=over_limit,
    )


def select_session_cards(
    cards: Iterable[Card],
    now: datetime,
    limits: SessionLimits | None = None,
) -> list[Card]:
    """Like build_session_queue, but returns the Card objects in queue order."""
    cards = list(cards)
    by_id = {card.id: card for card in cards}
    result = build_session_queue(cards, now, limits)
    return [by_id[card_id] for card_id in result.card_ids]


def _order(reviews: list[Card], fresh: list[Card], review_order: str) -> list[Card]:
    if review_order == "new_first":
        return fresh + reviews
    if review_order == "old_first":
        return reviews + fresh

    # mixed: alternate review / new, then whatever is left
    mixed: list[Card] = []
    for i in range(max(len(reviews), len(fresh))):
        if i < len(reviews):
            mixed.append(reviews[i])
        if i < len(fresh):
            mixed.append(fresh[i])
    return mixed
