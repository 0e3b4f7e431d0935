"""
In-session study queue.

Holds the ordered cards of one user's live review session and applies
session-local re-queueing after a rating has been durably committed.

Ordering contract:
1. rate() awaits PersistenceGateway.commit() before touching the queue
2. On success, Again re-inserts the card a few positions back; other ratings drop it
3. On failure, the queue is left exactly as it was and CommitFailure is raised
4. On timeout the commit keeps running and blocks new ratings until it settles;
   a late success is applied to the queue as if it had returned in time

Not thread-safe: one instance belongs to one session with a single writer.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import replace

from cadence.domain.constants import DEFAULT_COMMIT_TIMEOUT, DEFAULT_REQUEUE_OFFSET
from cadence.domain.errors import CommitFailure, RateInProgress, UnknownCard
from cadence.domain.models import Card, CommitResult, Rating
from cadence.domain.ports import PersistenceGateway

logger = logging.getLogger(__name__)


class SessionComplete:
    """Sentinel returned by current() once every card has been answered."""

    def __repr__(self) -> str:
        return "SESSION_COMPLETE"

    def __bool__(self) -> bool:
        return False


SESSION_COMPLETE = SessionComplete()


class StudyQueueManager:
    """
    Drives "show next card" for one study session.

    Only one rate() or suspend_current() may be outstanding at a time; a second
    call while one is pending is rejected with RateInProgress, never queued.
    A commit that timed out still counts as outstanding until it finishes.
    """

    def __init__(
        self,
        cards: Iterable[Card],
        gateway: PersistenceGateway,
        *,
        requeue_offset: int = DEFAULT_REQUEUE_OFFSET,
        commit_timeout: float | None = DEFAULT_COMMIT_TIMEOUT,
        on_complete: Callable[[], None] | None = None,
    ):
        """
        Args:
            cards: Session cards in presentation order. Suspended cards are dropped.
            gateway: Persistence collaborator used for commits.
            requeue_offset: How many other cards an Again card is placed behind.
            commit_timeout: Seconds to wait for a commit; None waits forever.
            on_complete: Called exactly once when the queue becomes empty.
        """
        if requeue_offset < 1:
            raise ValueError(f"requeue_offset must be >= 1, got {requeue_offset}")
        if commit_timeout is not None and commit_timeout <= 0:
            raise ValueError(f"commit_timeout must be positive, got {commit_timeout}")

        self._gateway = gateway
        self.requeue_offset = requeue_offset
        self.commit_timeout = commit_timeout
        self._on_complete = on_complete
        self._pending: asyncio.Future[CommitResult] | None = None
        self._completed = False

        self._queue: list[Card] = []
        seen: set[str] = set()
        for card in cards:
            if card.schedule.is_suspended:
                logger.info(f"Skipping suspended card {card.id}")
                continue
            if card.id in seen:
                logger.warning(f"Skipping duplicate card {card.id}")
                continue
            seen.add(card.id)
            self._queue.append(card)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    def current(self) -> Card | SessionComplete:
        """Head of the queue, or SESSION_COMPLETE when nothing is left."""
        if not self._queue:
            self._signal_complete()
            return SESSION_COMPLETE
        return self._queue[0]

    def card_ids(self) -> list[str]:
        return [card.id for card in self._queue]

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def remaining(self) -> int:
        return len(self._queue)

    @property
    def is_complete(self) -> bool:
        return not self._queue

    @property
    def busy(self) -> bool:
        """True while a commit or suspend is awaiting the gateway, timed out or not."""
        return self._pending is not None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def rate(self, card_id: str, rating: Rating) -> CommitResult:
        """
        Commit a rating and then update the session order.

        Returns:
            The successful CommitResult from the gateway.

        Raises:
            RateInProgress: Another rate()/suspend_current() is still pending.
            UnknownCard: card_id is not in this session.
            CommitFailure: The gateway failed, rejected or timed out. The queue
                is unchanged and the card stays current; retry is up to the caller.
                After a timeout (`pending=True`) the commit keeps running and
                is applied to the queue if it succeeds late.
        """
        if self.busy:
            raise RateInProgress(f"A rating is already being saved; ignoring {card_id}")
        self._index_of(card_id)
        rating = Rating(rating)

        result = await self._guarded(
            card_id,
            "commit",
            lambda: self._gateway.commit(card_id, rating),
            lambda late: self._apply_rating(card_id, rating, late),
        )
        self._apply_rating(card_id, rating, result)
        return result

    async def suspend_current(self) -> CommitResult:
        """
        Suspend the head card through the gateway and drop it from the session.

        Raises:
            RateInProgress: A commit is still pending.
            UnknownCard: The session is already complete.
            CommitFailure: The gateway could not suspend the card; queue unchanged.
        """
        if self.busy:
            raise RateInProgress("A rating is already being saved")
        head = self._require_head()

        result = await self._guarded(
            head.id,
            "suspend",
            lambda: self._gateway.suspend(head.id),
            lambda late: self._apply_suspend(head.id),
        )
        self._apply_suspend(head.id)
        return result

    def withdraw_current(self) -> Card:
        """Drop the head card without scheduling it (e.g. after an edit)."""
        if self.busy:
            raise RateInProgress("A rating is already being saved")
        head = self._require_head()
        self._queue.pop(0)
        logger.debug(f"Withdrew {head.id} from session")
        if not self._queue:
            self._signal_complete()
        return head

    async def settle(self) -> None:
        """Wait for a timed-out commit to finish; no-op when nothing is pending."""
        pending = self._pending
        if pending is None:
            return
        # Outcome is handled by the done-callback registered on timeout
        await asyncio.wait({pending})

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _apply_rating(self, card_id: str, rating: Rating, result: CommitResult) -> None:
        index = self._index_of(card_id)
        card = self._queue.pop(index)
        if result.new_state is not None:
            card = replace(card, schedule=result.new_state)

        if rating is Rating.AGAIN:
            remaining = len(self._queue)
            insert_at = min(remaining, index + min(self.requeue_offset, remaining))
            self._queue.insert(insert_at, card)
            logger.debug(f"Requeued {card_id} at position {insert_at} of {len(self._queue)}")
        else:
            logger.debug(f"Removed {card_id} from session ({rating.name.lower()})")

        if not self._queue:
            self._signal_complete()

    def _apply_suspend(self, card_id: str) -> None:
        self._queue.pop(self._index_of(card_id))
        logger.info(f"Suspended {card_id}; {len(self._queue)} card(s) left")
        if not self._queue:
            self._signal_complete()

    async def _guarded(
        self,
        card_id: str,
        action: str,
        call: Callable[[], Awaitable[CommitResult]],
        apply_late: Callable[[CommitResult], None],
    ) -> CommitResult:
        """Await a gateway call under the in-flight guard, normalising failures."""
        task = asyncio.ensure_future(call())
        self._pending = task
        timed_out = False
        try:
            if self.commit_timeout is None:
                result = await task
            else:
                # Shielded: a timed-out commit is never cancelled half-way
                result = await asyncio.wait_for(asyncio.shield(task), timeout=self.commit_timeout)
        except asyncio.TimeoutError as e:
            timed_out = True
            logger.warning(f"{action} for {card_id} timed out after {self.commit_timeout}s")
            task.add_done_callback(
                lambda done: self._finish_late(done, card_id, action, apply_late)
            )
            raise CommitFailure(
                card_id,
                f"{action} timed out after {self.commit_timeout}s",
                pending=True,
            ) from e
        except CommitFailure:
            raise
        except Exception as e:
            logger.warning(f"{action} for {card_id} failed: {e}")
            raise CommitFailure(card_id, str(e) or type(e).__name__) from e
        finally:
            if not timed_out:
                self._pending = None

        if not result.ok:
            logger.warning(f"{action} for {card_id} rejected: {result.reason}")
            raise CommitFailure(card_id, result.reason or "rejected by storage")
        return result

    def _finish_late(
        self,
        task: "asyncio.Future[CommitResult]",
        card_id: str,
        action: str,
        apply_late: Callable[[CommitResult], None],
    ) -> None:
        """Release the in-flight guard once a timed-out call completes."""
        self._pending = None
        if task.cancelled():
            logger.warning(f"Late {action} for {card_id} was cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Late {action} for {card_id} failed: {error}")
            return
        result = task.result()
        if not result.ok:
            logger.warning(f"Late {action} for {card_id} rejected: {result.reason}")
            return
        logger.info(f"Late {action} for {card_id} was recorded")
        apply_late(result)

    def _index_of(self, card_id: str) -> int:
        for i, card in enumerate(self._queue):
            if card.id == card_id:
                return i
        raise UnknownCard(f"Card {card_id} is not in this study session")

    def _require_head(self) -> Card:
        if not self._queue:
            raise UnknownCard("The study session is complete; there is no current card")
        return self._queue[0]

    def _signal_complete(self) -> None:
        if self._completed:
            return
        self._completed = True
        logger.info("Study session complete")
        if self._on_complete is not None:
            self._on_complete()
