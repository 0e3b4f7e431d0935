"""
Error taxonomy for the scheduling core.

Configuration and state errors are refused up front; commit failures are
recoverable and leave the study queue untouched.
"""


class CadenceError(Exception):
    """Base class for all cadence errors."""


class InvalidConfiguration(CadenceError, ValueError):
    """Scheduler settings are malformed. Fatal at load time."""


class InvalidStateTransition(CadenceError):
    """A rating was applied to a suspended card or to a malformed card state."""


class PreviewComputationError(CadenceError):
    """Interval preview produced an impossible result. Indicates a programming error."""


class RateInProgress(CadenceError):
    """A second rate() was attempted while one is still awaiting its commit."""


class UnknownCard(CadenceError, KeyError):
    """The card id is not part of the current study session."""

    def __str__(self) -> str:
        return Exception.__str__(self)


class CommitFailure(CadenceError):
    """
    The persistence gateway could not durably record a review outcome.

    Recoverable: the queue is unchanged and the same card stays current.
    When `pending` is set the commit timed out but is still running; it must
    finish before the card can be answered again.
    """

    def __init__(self, card_id: str, reason: str, pending: bool = False):
        super().__init__(f"Failed to commit review for card {card_id}: {reason}")
        self.card_id = card_id
        self.reason = reason
        self.pending = pending

    @property
    def retryable(self) -> bool:
        return not self.pending

    @property
    def user_message(self) -> str:
        if self.pending:
            return (
                f"Your answer is still being saved ({self.reason}). "
                "Please wait for it to finish before answering again."
            )
        return f"Could not save your answer ({self.reason}). Please try again."
