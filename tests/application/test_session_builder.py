from datetime import timedelta

import pytest

from cadence.application.session_builder import build_session_queue, select_session_cards
from cadence.domain.models import CardState
from cadence.domain.settings import SessionLimits


@pytest.fixture
def deck(card_factory, now):
    return [
        card_factory("new1"),
        card_factory("rev_old", state=CardState.REVIEW, due_at=now - timedelta(days=3)),
        card_factory("new2"),
        card_factory("rev_new", state=CardState.REVIEW, due_at=now - timedelta(hours=1)),
        card_factory("future", state=CardState.REVIEW, due_at=now + timedelta(days=2)),
        card_factory("frozen", state=CardState.SUSPENDED, suspended_from=CardState.NEW),
        card_factory(
            "learning", state=CardState.LEARNING, due_at=now - timedelta(minutes=5), reps=1
        ),
    ]


def test_mixed_order_alternates_reviews_and_new(deck, now):
    result = build_session_queue(deck, now)

    assert result.review_ids == ["rev_old", "rev_new", "learning"]
    assert result.new_ids == ["new1", "new2"]
    assert result.card_ids == ["rev_old", "new1", "rev_new", "new2", "learning"]
    assert result.skipped_suspended == ["frozen"]
    assert result.skipped_not_due == ["future"]
    assert result.skipped_over_limit == []


def test_due_exactly_now_is_included(card_factory, now):
    cards = [card_factory("edge", state=CardState.REVIEW, due_at=now)]

    assert build_session_queue(cards, now).card_ids == ["edge"]


@pytest.mark.parametrize(
    "order, expected",
    [
        ("new_first", ["new1", "new2", "rev_old", "rev_new", "learning"]),
        ("old_first", ["rev_old", "rev_new", "learning", "new1", "new2"]),
    ],
)
def test_review_order(deck, now, order, expected):
    result = build_session_queue(deck, now, SessionLimits(review_order=order))

    assert result.card_ids == expected


def test_daily_limits(deck, now):
    limits = SessionLimits(new_cards_per_day=1, max_reviews_per_day=2)

    result = build_session_queue(deck, now, limits)

    assert result.card_ids == ["rev_old", "new1", "rev_new"]
    assert result.skipped_over_limit == ["learning", "new2"]


def test_suspended_cards_never_enter_the_queue(card_factory, now):
    cards = [
        card_factory("s1", state=CardState.SUSPENDED, suspended_from=CardState.REVIEW),
        card_factory("s2", state=CardState.SUSPENDED, suspended_from=CardState.NEW),
    ]

    result = build_session_queue(cards, now)

    assert result.card_ids == []
    assert result.skipped_suspended == ["s1", "s2"]


def test_select_session_cards_returns_cards(deck, now):
    cards = select_session_cards(deck, now, SessionLimits(review_order="old_first"))

    assert [c.id for c in cards] == ["rev_old", "rev_new", "learning", "new1", "new2"]
    assert cards[0].front == "front rev_old"
