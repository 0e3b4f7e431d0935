"""
Interval previews shown on the rating buttons before the user answers.

Runs the scheduler once per rating against a copy of the card. Read-only:
nothing computed here ever reaches the persistence path.
"""

from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime

from cadence.application.scheduler import CardScheduler, round_half_up
from cadence.domain.constants import MINUTES_PER_DAY, MINUTES_PER_HOUR
from cadence.domain.errors import PreviewComputationError
from cadence.domain.models import Card, CardSchedule, CardState, IntervalPreview, Rating
from cadence.domain.settings import SchedulerSettings


def format_interval(minutes: float) -> str:
    """
    Format a delay for display.

    Under an hour renders in minutes ("10m"), under a day in hours ("2h",
    "1.5h"), otherwise in whole days ("3d").
    """
    total = round_half_up(minutes)
    if total < MINUTES_PER_HOUR:
        return f"{total}m"
    if total < MINUTES_PER_DAY:
        hours = f"{total / MINUTES_PER_HOUR:.1f}".rstrip("0").rstrip(".")
        return f"{hours}h"
    return f"{round_half_up(total / MINUTES_PER_DAY)}d"


class IntervalPreviewService:
    """
    Computes what each rating would produce for a card.

    Idempotent: the same (card, settings, now) always yields the same preview.
    """

    def __init__(self, scheduler: CardScheduler | None = None):
        self._scheduler = scheduler or CardScheduler()

    def preview(
        self,
        card: CardSchedule,
        settings: SchedulerSettings,
        now: datetime,
    ) -> IntervalPreview:
        """
        Preview the four possible outcomes.

        Returns:
            IntervalPreview with one label per rating, or an empty preview for
            a suspended card.

        Raises:
            InvalidStateTransition: The card state is malformed.
            PreviewComputationError: The scheduler produced an impossible delay.
        """
        if card.state is CardState.SUSPENDED:
            return IntervalPreview.empty()

        labels: dict[str, str] = {}
        for rating in Rating:
            try:
                outcome = self._scheduler.schedule(replace(card), rating, settings, now)
            except OverflowError as e:
                raise PreviewComputationError(
                    f"Due date for {rating.name.lower()} is out of range: {e}"
                ) from e
            labels[rating.name.lower()] = self._describe(outcome, now)
        return IntervalPreview(**labels)

    def preview_many(
        self,
        cards: Iterable[Card],
        settings: SchedulerSettings,
        now: datetime,
    ) -> dict[str, IntervalPreview]:
        return {card.id: self.preview(card.schedule, settings, now) for card in cards}

    def _describe(self, outcome: CardSchedule, now: datetime) -> str:
        if outcome.state is CardState.REVIEW:
            return f"{outcome.interval_days}d"

        try:
            minutes = (outcome.due_at - now).total_seconds() / 60
        except ArithmeticError as e:
            raise PreviewComputationError(f"Could not compute delay: {e}") from e

        if minutes < 0:
            raise PreviewComputationError(
                f"Scheduler returned a due time in the past ({outcome.due_at.isoformat()})"
            )
        return format_interval(minutes)
