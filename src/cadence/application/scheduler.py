"""
Card scheduler: the Anki-style learning/review state machine.

This is a pure computation module with no I/O and no clock reads. Every
transition returns a new CardSchedule; the input is never mutated.

States:
1. New / Learning walk the learning steps and graduate into Review
2. Review grows the interval by ease; Again lapses into Relearning
3. Relearning walks the relearning steps and returns to Review
4. Suspended refuses ratings
"""

import logging
import math
from dataclasses import replace
from datetime import datetime, timedelta

from cadence.domain.constants import MIN_EASE
from cadence.domain.errors import InvalidStateTransition
from cadence.domain.models import CardSchedule, CardState, Rating
from cadence.domain.settings import SchedulerSettings

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round to the nearest whole number, halves away from zero for positive values."""
    return math.floor(value + 0.5)


def clamp_interval(days: float, settings: SchedulerSettings) -> int:
    """Round to whole days and clamp into [minimum_interval_days, maximum_interval_days]."""
    return max(
        settings.minimum_interval_days,
        min(settings.maximum_interval_days, round_half_up(days)),
    )


class CardScheduler:
    """
    Computes the next scheduling state of a card.

    Stateless and side-effect free; one instance can be shared by any number
    of threads.
    """

    def schedule(
        self,
        card: CardSchedule,
        rating: Rating,
        settings: SchedulerSettings,
        now: datetime,
    ) -> CardSchedule:
        """
        Apply a rating to a card.

        Args:
            card: Current scheduling state.
            rating: The user's answer.
            settings: Validated scheduler settings.
            now: Timezone-aware time of the review.

        Returns:
            The new scheduling state, with reps incremented.

        Raises:
            InvalidStateTransition: The card is suspended or malformed.
        """
        rating = Rating(rating)
        self._validate(card, now)

        if card.state is CardState.SUSPENDED:
            raise InvalidStateTransition("Cannot rate a suspended card")

        if card.state in (CardState.NEW, CardState.LEARNING):
            result = self._schedule_learning(card, rating, settings, now)
        elif card.state is CardState.REVIEW:
            result = self._schedule_review(card, rating, settings, now)
        else:
            result = self._schedule_relearning(card, rating, settings, now)

        logger.debug(
            f"{card.state.value} --{rating.name.lower()}--> {result.state.value} "
            f"(step={result.step_index}, ivl={result.interval_days}d, due={result.due_at.isoformat()})"
        )
        return result

    def suspend(self, card: CardSchedule) -> CardSchedule:
        """Suspend a card. Only the state changes; due_at is frozen."""
        if card.state is CardState.SUSPENDED:
            raise InvalidStateTransition("Card is already suspended")
        return replace(card, state=CardState.SUSPENDED, suspended_from=card.state)

    def unsuspend(self, card: CardSchedule) -> CardSchedule:
        """Restore the state a card had before it was suspended."""
        if card.state is not CardState.SUSPENDED:
            raise InvalidStateTransition(f"Card is not suspended (state={card.state.value})")

        restored = card.suspended_from
        if restored is None:
            # Imported without history: infer from the counters
            if card.reps == 0:
                restored = CardState.NEW
            elif card.interval_days >= 1:
                restored = CardState.REVIEW
            else:
                restored = CardState.LEARNING
        return replace(card, state=restored, suspended_from=None)

    # ------------------------------------------------------------------
    # State handlers
    # ------------------------------------------------------------------

    def _schedule_learning(
        self,
        card: CardSchedule,
        rating: Rating,
        settings: SchedulerSettings,
        now: datetime,
    ) -> CardSchedule:
        steps = settings.learning_steps
        reps = card.reps + 1
        # A new card sits on the first learning step
        step_index = 0 if card.state is CardState.NEW else card.step_index

        if rating is Rating.AGAIN:
            return replace(
                card,
                state=CardState.LEARNING,
                step_index=0,
                due_at=now + self._step_delay(steps, 0, settings),
                reps=reps,
            )

        if rating is Rating.HARD:
            return replace(
                card,
                state=CardState.LEARNING,
                step_index=step_index,
                due_at=now + self._step_delay(steps, step_index, settings),
                reps=reps,
            )

        if rating is Rating.GOOD:
            next_index = step_index + 1
            if next_index < len(steps):
                return replace(
                    card,
                    state=CardState.LEARNING,
                    step_index=next_index,
                    due_at=now + timedelta(minutes=steps[next_index]),
                    reps=reps,
                )
            return self._graduate(card, settings.graduating_interval_days, settings, now, reps)

        return self._graduate(card, settings.easy_interval_days, settings, now, reps)

    def _schedule_review(
        self,
        card: CardSchedule,
        rating: Rating,
        settings: SchedulerSettings,
        now: datetime,
    ) -> CardSchedule:
        reps = card.reps + 1

        if rating is Rating.AGAIN:
            # Lapse: interval_days is kept as the pre-lapse interval
            return replace(
                card,
                state=CardState.RELEARNING,
                step_index=0,
                lapses=card.lapses + 1,
                due_at=now + self._step_delay(settings.relearning_steps, 0, settings),
                reps=reps,
            )

        if rating is Rating.HARD:
            factor = settings.hard_interval
        elif rating is Rating.GOOD:
            factor = card.ease
        else:
            # Easy bonus scales this interval only, never the stored ease
            factor = card.ease * settings.easy_bonus

        interval = clamp_interval(card.interval_days * factor * settings.interval_modifier, settings)
        return replace(
            card,
            interval_days=interval,
            due_at=now + timedelta(days=interval),
            reps=reps,
        )

    def _schedule_relearning(
        self,
        card: CardSchedule,
        rating: Rating,
        settings: SchedulerSettings,
        now: datetime,
    ) -> CardSchedule:
        steps = settings.relearning_steps
        reps = card.reps + 1

        if rating is Rating.AGAIN:
            return replace(
                card,
                step_index=0,
                due_at=now + self._step_delay(steps, 0, settings),
                reps=reps,
            )

        if rating is Rating.HARD:
            return replace(
                card,
                due_at=now + self._step_delay(steps, card.step_index, settings),
                reps=reps,
            )

        if rating is Rating.GOOD:
            next_index = card.step_index + 1
            if next_index < len(steps):
                return replace(
                    card,
                    step_index=next_index,
                    due_at=now + timedelta(minutes=steps[next_index]),
                    reps=reps,
                )

        return self._return_to_review(card, settings, now, reps)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _graduate(
        self,
        card: CardSchedule,
        days: int,
        settings: SchedulerSettings,
        now: datetime,
        reps: int,
    ) -> CardSchedule:
        interval = clamp_interval(days, settings)
        return replace(
            card,
            state=CardState.REVIEW,
            step_index=0,
            ease=settings.starting_ease,
            interval_days=interval,
            due_at=now + timedelta(days=interval),
            reps=reps,
        )

    def _return_to_review(
        self,
        card: CardSchedule,
        settings: SchedulerSettings,
        now: datetime,
        reps: int,
    ) -> CardSchedule:
        interval = clamp_interval(card.interval_days * settings.new_interval_multiplier, settings)
        return replace(
            card,
            state=CardState.REVIEW,
            step_index=0,
            interval_days=interval,
            due_at=now + timedelta(days=interval),
            reps=reps,
        )

    def _step_delay(
        self, steps: tuple[int, ...], index: int, settings: SchedulerSettings
    ) -> timedelta:
        """
        Delay for a learning/relearning step.

        Falls back to again_delay_minutes when there are no steps, and repeats
        the last step when the index is past the end (steps were shortened).
        """
        if not steps:
            return timedelta(minutes=settings.again_delay_minutes)
        return timedelta(minutes=steps[min(index, len(steps) - 1)])

    def _validate(self, card: CardSchedule, now: datetime) -> None:
        if now.tzinfo is None or now.utcoffset() is None:
            raise InvalidStateTransition("'now' must be timezone-aware")

        if not isinstance(card.state, CardState):
            raise InvalidStateTransition(f"Unknown card state: {card.state!r}")

        if card.step_index < 0 or card.reps < 0 or card.lapses < 0 or card.interval_days < 0:
            raise InvalidStateTransition(
                "Malformed card: step_index, reps, lapses and interval_days must be >= 0"
            )

        if not math.isfinite(card.ease):
            raise InvalidStateTransition(f"Malformed card: ease must be finite, got {card.ease}")

        if card.state in (CardState.REVIEW, CardState.RELEARNING):
            if card.interval_days < 1:
                raise InvalidStateTransition(
                    f"Malformed {card.state.value} card: interval_days must be >= 1"
                )
            if card.ease < MIN_EASE:
                raise InvalidStateTransition(
                    f"Malformed {card.state.value} card: ease {card.ease} is below {MIN_EASE}"
                )


_default_scheduler = CardScheduler()


def schedule(
    card: CardSchedule,
    rating: Rating,
    settings: SchedulerSettings,
    now: datetime,
) -> CardSchedule:
    """Module-level shortcut for CardScheduler().schedule()."""
    return _default_scheduler.schedule(card, rating, settings, now)
