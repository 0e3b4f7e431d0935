"""
In-memory card store, the reference PersistenceGateway implementation.

Runs the scheduler authoritatively on commit. Subclasses override _persist()
to make the result durable before it becomes visible in memory.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import datetime, timezone

from cadence.application.config import StaticSettingsProvider
from cadence.application.scheduler import CardScheduler
from cadence.domain.errors import InvalidStateTransition, UnknownCard
from cadence.domain.models import Card, CardSchedule, CommitResult, Rating
from cadence.domain.ports import PersistenceGateway, SettingsProvider

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryCardStore(PersistenceGateway):
    """
    Keeps cards in a dict keyed by id.

    Commits are serialized by a single lock so that a snapshot is always
    persisted whole.
    """

    def __init__(
        self,
        cards: Iterable[Card] = (),
        settings_provider: SettingsProvider | None = None,
        *,
        user_id: str | None = None,
        clock: Callable[[], datetime] = utc_now,
        scheduler: CardScheduler | None = None,
    ):
        self._cards: dict[str, Card] = {card.id: card for card in cards}
        self._settings_provider = settings_provider or StaticSettingsProvider()
        self.user_id = user_id
        self._clock = clock
        self._scheduler = scheduler or CardScheduler()
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, card_id: str) -> Card:
        try:
            return self._cards[card_id]
        except KeyError:
            raise UnknownCard(f"No card with id {card_id}") from None

    def cards(self) -> list[Card]:
        return list(self._cards.values())

    def __contains__(self, card_id: object) -> bool:
        return card_id in self._cards

    # ------------------------------------------------------------------
    # PersistenceGateway
    # ------------------------------------------------------------------

    async def commit(self, card_id: str, rating: Rating) -> CommitResult:
        settings = self._settings_provider.load_settings(self.user_id)
        return await self._update(
            card_id,
            "review",
            lambda schedule: self._scheduler.schedule(schedule, rating, settings, self._clock()),
        )

    async def suspend(self, card_id: str) -> CommitResult:
        return await self._update(card_id, "suspend", self._scheduler.suspend)

    async def unsuspend(self, card_id: str) -> CommitResult:
        return await self._update(card_id, "unsuspend", self._scheduler.unsuspend)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _update(
        self,
        card_id: str,
        action: str,
        transition: Callable[[CardSchedule], CardSchedule],
    ) -> CommitResult:
        async with self._lock:
            card = self._cards.get(card_id)
            if card is None:
                return CommitResult.failure(f"unknown card {card_id}")

            try:
                new_state = transition(card.schedule)
            except InvalidStateTransition as e:
                logger.warning(f"Refused {action} of {card_id}: {e}")
                return CommitResult.failure(str(e))

            snapshot = {**self._cards, card_id: replace(card, schedule=new_state)}
            try:
                await self._persist(snapshot)
            except OSError as e:
                logger.error(f"Failed to persist {action} of {card_id}: {e}")
                return CommitResult.failure(f"storage error: {e}")

            self._cards = snapshot

        logger.debug(f"Committed {action} of {card_id} -> {new_state.state.value}")
        return CommitResult.success(new_state)

    async def _persist(self, cards: dict[str, Card]) -> None:
        """Make a snapshot durable. Nothing to do for the in-memory store."""
        return None
