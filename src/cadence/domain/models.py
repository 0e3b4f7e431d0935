"""
Domain models for spaced-repetition scheduling.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum


class Rating(IntEnum):
    """Answer button pressed by the user (Anki numbering, ordered by value)."""

    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4

    @classmethod
    def parse(cls, value: "Rating | int | str") -> "Rating":
        """Accept a Rating, its number (1-4) or its name ("again", "Good")."""
        if isinstance(value, Rating):
            return value
        if isinstance(value, str):
            text = value.strip()
            if text.isdigit():
                return cls(int(text))
            try:
                return cls[text.upper()]
            except KeyError:
                raise ValueError(f"Unknown rating: {value!r}") from None
        return cls(value)


class CardState(str, Enum):
    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    RELEARNING = "relearning"
    SUSPENDED = "suspended"


@dataclass(frozen=True)
class CardSchedule:
    """
    Scheduling state of a single card.

    Attributes:
        state: Current lifecycle state.
        due_at: Timezone-aware timestamp when the card is next eligible.
        step_index: Position in the learning/relearning steps.
        interval_days: Current interval. Carries the pre-lapse interval in Relearning.
        ease: Ease multiplier, set to the starting ease on graduation.
        lapses: Times the card fell from Review into Relearning.
        reps: Completed ratings.
        suspended_from: State to restore when a suspended card is unsuspended.
    """

    state: CardState
    due_at: datetime
    step_index: int = 0
    interval_days: int = 0
    ease: float = 0.0
    lapses: int = 0
    reps: int = 0
    suspended_from: CardState | None = None

    @classmethod
    def new(cls, now: datetime) -> "CardSchedule":
        """Schedule for a freshly authored card, due immediately."""
        return cls(state=CardState.NEW, due_at=now)

    @property
    def is_suspended(self) -> bool:
        return self.state is CardState.SUSPENDED

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "due_at": self.due_at.isoformat(),
            "step_index": self.step_index,
            "interval_days": self.interval_days,
            "ease": self.ease,
            "lapses": self.lapses,
            "reps": self.reps,
            "suspended_from": self.suspended_from.value if self.suspended_from else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CardSchedule":
        suspended_from = data.get("suspended_from")
        due_at = data["due_at"]
        if isinstance(due_at, str):
            due_at = datetime.fromisoformat(due_at)
        if due_at.tzinfo is None:
            # Stored timestamps without an offset are UTC
            due_at = due_at.replace(tzinfo=timezone.utc)
        return cls(
            state=CardState(data["state"]),
            due_at=due_at,
            step_index=int(data.get("step_index", 0)),
            interval_days=int(data.get("interval_days", 0)),
            ease=float(data.get("ease", 0.0)),
            lapses=int(data.get("lapses", 0)),
            reps=int(data.get("reps", 0)),
            suspended_from=CardState(suspended_from) if suspended_from else None,
        )


@dataclass
class Card:
    """A flashcard as held by a study session."""

    id: str
    schedule: CardSchedule
    front: str = ""
    back: str = ""
    deck: str | None = None


@dataclass(frozen=True)
class CommitResult:
    """Outcome of PersistenceGateway.commit / suspend."""

    ok: bool
    new_state: CardSchedule | None = None
    reason: str | None = None

    @classmethod
    def success(cls, new_state: CardSchedule) -> "CommitResult":
        return cls(ok=True, new_state=new_state)

    @classmethod
    def failure(cls, reason: str) -> "CommitResult":
        return cls(ok=False, reason=reason)


@dataclass(frozen=True)
class IntervalPreview:
    """Human-readable delay each rating would produce, e.g. "10m", "1d"."""

    again: str
    hard: str
    good: str
    easy: str

    @classmethod
    def empty(cls) -> "IntervalPreview":
        return cls(again="", hard="", good="", easy="")

    @property
    def is_empty(self) -> bool:
        return not (self.again or self.hard or self.good or self.easy)

    def for_rating(self, rating: Rating) -> str:
        return getattr(self, rating.name.lower())

    def as_dict(self) -> dict[str, str]:
        return {"again": self.again, "hard": self.hard, "good": self.good, "easy": self.easy}


@dataclass
class SessionBuildResult:
    """Result of building a study session from a deck."""

    card_ids: list[str]  # Ordered session queue
    new_ids: list[str] = field(default_factory=list)
    review_ids: list[str] = field(default_factory=list)
    skipped_suspended: list[str] = field(default_factory=list)
    skipped_not_due: list[str] = field(default_factory=list)
    skipped_over_limit: list[str] = field(default_factory=list)
