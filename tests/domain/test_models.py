from datetime import datetime, timedelta, timezone

import pytest

from cadence.domain.errors import CommitFailure, UnknownCard
from cadence.domain.models import (
    CardSchedule,
    CardState,
    CommitResult,
    IntervalPreview,
    Rating,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        (Rating.HARD, Rating.HARD),
        (1, Rating.AGAIN),
        ("3", Rating.GOOD),
        (" 4 ", Rating.EASY),
        ("again", Rating.AGAIN),
        ("Good", Rating.GOOD),
    ],
)
def test_rating_parse(value, expected):
    assert Rating.parse(value) is expected


@pytest.mark.parametrize("value", ["meh", "5", 0, ""])
def test_rating_parse_rejects(value):
    with pytest.raises(ValueError):
        Rating.parse(value)


def test_ratings_are_ordered():
    assert Rating.AGAIN < Rating.HARD < Rating.GOOD < Rating.EASY


def test_new_schedule(now):
    schedule = CardSchedule.new(now)

    assert schedule.state is CardState.NEW
    assert schedule.due_at == now
    assert schedule.reps == schedule.lapses == schedule.step_index == 0
    assert not schedule.is_suspended


def test_schedule_dict_round_trip(now):
    schedule = CardSchedule(
        state=CardState.SUSPENDED,
        due_at=now,
        interval_days=12,
        ease=2.35,
        lapses=1,
        reps=9,
        suspended_from=CardState.REVIEW,
    )

    data = schedule.to_dict()

    assert data["state"] == "suspended"
    assert data["due_at"] == "2026-03-01T09:00:00+00:00"
    assert data["suspended_from"] == "review"
    assert CardSchedule.from_dict(data) == schedule


def test_from_dict_fills_defaults_and_assumes_utc():
    schedule = CardSchedule.from_dict({"state": "learning", "due_at": "2026-03-01T09:00:00"})

    assert schedule.due_at == datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
    assert schedule.step_index == 0
    assert schedule.suspended_from is None


def test_from_dict_accepts_datetime_with_offset():
    due = datetime(2026, 3, 1, 9, 0, tzinfo=timezone(timedelta(hours=2)))

    schedule = CardSchedule.from_dict({"state": "review", "due_at": due, "interval_days": 3})

    assert schedule.due_at == due
    assert schedule.interval_days == 3


def test_from_dict_rejects_unknown_state(now):
    with pytest.raises(ValueError):
        CardSchedule.from_dict({"state": "buried", "due_at": now.isoformat()})


def test_commit_result_factories(now):
    ok = CommitResult.success(CardSchedule.new(now))
    failed = CommitResult.failure("disk full")

    assert ok.ok and ok.reason is None
    assert not failed.ok and failed.new_state is None
    assert failed.reason == "disk full"


def test_interval_preview_helpers():
    preview = IntervalPreview(again="10m", hard="1d", good="3d", easy="4d")

    assert preview.for_rating(Rating.HARD) == "1d"
    assert preview.as_dict() == {"again": "10m", "hard": "1d", "good": "3d", "easy": "4d"}
    assert not preview.is_empty
    assert IntervalPreview.empty().is_empty


def test_commit_failure_message():
    error = CommitFailure("c1", "timeout")

    assert str(error) == "Failed to commit review for card c1: timeout"
    assert error.retryable
    assert error.user_message == "Could not save your answer (timeout). Please try again."


def test_pending_commit_failure_asks_to_wait():
    error = CommitFailure("c1", "commit timed out after 5.0s", pending=True)

    assert not error.retryable
    assert "still being saved" in error.user_message
    assert "wait" in error.user_message
    assert "try again" not in error.user_message


def test_unknown_card_message_is_not_quoted():
    assert str(UnknownCard("No card with id c9")) == "No card with id c9"
