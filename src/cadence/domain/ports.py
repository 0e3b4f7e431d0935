"""
Ports (interfaces) for the collaborators of the scheduling core.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod

from .models import CommitResult, Rating
from .settings import SchedulerSettings


class PersistenceGateway(ABC):
    """
    Port for durably recording review outcomes.

    Implementations:
        - InMemoryCardStore: Keeps cards in a dict (tests, server dry runs).
        - YamlDeckStore: Persists a deck file on every commit.
    """

    @abstractmethod
    async def commit(self, card_id: str, rating: Rating) -> CommitResult:
        """
        Run the scheduler authoritatively for a rating and persist the result.

        Args:
            card_id: The card being rated.
            rating: The user's answer.

        Returns:
            CommitResult.success(new_state) or CommitResult.failure(reason).
            Implementations may also raise; callers treat that as a failure.
            Not guaranteed idempotent: callers must not retry blindly.
        """
        pass

    @abstractmethod
    async def suspend(self, card_id: str) -> CommitResult:
        """
        Suspend a card out-of-band (not a rating).

        Returns:
            CommitResult carrying the suspended schedule on success.
        """
        pass


class SettingsProvider(ABC):
    """Port for the configuration collaborator."""

    @abstractmethod
    def load_settings(self, user_id: str | None = None) -> SchedulerSettings:
        """
        Return validated scheduler settings for a user, or the defaults.

        Raises:
            InvalidConfiguration: Stored settings are malformed.
        """
        pass
