"""
Scheduler and session configuration value objects.

Both models are immutable and validated at construction; an invalid object is
never handed to the scheduler.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, ValidationError, model_validator

from .constants import (
    DEFAULT_AGAIN_DELAY_MINUTES,
    DEFAULT_EASY_BONUS,
    DEFAULT_EASY_INTERVAL,
    DEFAULT_GRADUATING_INTERVAL,
    DEFAULT_LEARNING_STEPS,
    DEFAULT_MAX_REVIEWS_PER_DAY,
    DEFAULT_MAXIMUM_INTERVAL,
    DEFAULT_NEW_CARDS_PER_DAY,
    DEFAULT_RELEARNING_STEPS,
    DEFAULT_STARTING_EASE,
    MAX_AGAIN_DELAY_MINUTES,
    MAX_DAILY_LIMIT,
    MIN_EASE,
)
from .errors import InvalidConfiguration

LearningMode = Literal["fast", "normal", "deep"]
ReviewOrder = Literal["mixed", "old_first", "new_first"]

# Learning-mode presets offered on the settings screen.
LEARNING_PRESETS: dict[str, dict[str, Any]] = {
    # 10 min -> 1 day
    "fast": {
        "learning_steps": (10,),
        "graduating_interval_days": 1,
        "easy_interval_days": 4,
    },
    # 10 min -> 1 day -> 3 days
    "normal": {
        "learning_steps": (10, 1440),
        "graduating_interval_days": 3,
        "easy_interval_days": 4,
    },
    # 10 min -> 1 day -> 3 days -> 7 days
    "deep": {
        "learning_steps": (10, 1440, 4320),
        "graduating_interval_days": 7,
        "easy_interval_days": 10,
    },
}


def _describe(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "settings"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


class SchedulerSettings(BaseModel):
    """
    Validated, immutable scheduler configuration.

    Steps are whole minutes, intervals whole days. Construction raises
    InvalidConfiguration instead of pydantic's ValidationError.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", allow_inf_nan=False)

    learning_steps: tuple[PositiveInt, ...] = DEFAULT_LEARNING_STEPS
    relearning_steps: tuple[PositiveInt, ...] = DEFAULT_RELEARNING_STEPS
    graduating_interval_days: PositiveInt = DEFAULT_GRADUATING_INTERVAL
    easy_interval_days: PositiveInt = DEFAULT_EASY_INTERVAL
    starting_ease: float = Field(default=DEFAULT_STARTING_EASE, ge=MIN_EASE)
    easy_bonus: float = Field(default=DEFAULT_EASY_BONUS, ge=1.0)
    hard_interval: float = Field(default=1.0, gt=0.0, le=1.0)
    interval_modifier: float = Field(default=1.0, gt=0.0)
    new_interval_multiplier: float = Field(default=0.0, ge=0.0, le=1.0)
    minimum_interval_days: int = Field(default=1, ge=1)
    maximum_interval_days: int = Field(
        default=DEFAULT_MAXIMUM_INTERVAL, ge=1, le=DEFAULT_MAXIMUM_INTERVAL
    )
    again_delay_minutes: int = Field(
        default=DEFAULT_AGAIN_DELAY_MINUTES, ge=1, le=MAX_AGAIN_DELAY_MINUTES
    )

    def __init__(self, **data: Any):
        try:
            super().__init__(**data)
        except ValidationError as e:
            raise InvalidConfiguration(f"Invalid scheduler settings: {_describe(e)}") from e

    @model_validator(mode="after")
    def _check_ranges(self) -> "SchedulerSettings":
        if self.easy_interval_days < self.graduating_interval_days:
            raise ValueError(
                f"easy_interval_days ({self.easy_interval_days}) must be >= "
                f"graduating_interval_days ({self.graduating_interval_days})"
            )
        if self.maximum_interval_days < self.minimum_interval_days:
            raise ValueError(
                f"maximum_interval_days ({self.maximum_interval_days}) must be >= "
                f"minimum_interval_days ({self.minimum_interval_days})"
            )
        return self

    @classmethod
    def from_mapping(cls, data: dict[str, Any] | None) -> "SchedulerSettings":
        if data is not None and not isinstance(data, dict):
            raise InvalidConfiguration(
                f"Scheduler settings must be a mapping, got {type(data).__name__}"
            )
        return cls(**(data or {}))

    @classmethod
    def from_preset(cls, mode: str, **overrides: Any) -> "SchedulerSettings":
        """Build settings from a learning-mode preset, then apply overrides."""
        if mode not in LEARNING_PRESETS:
            raise InvalidConfiguration(
                f"Unknown learning mode '{mode}'. Expected one of: {', '.join(LEARNING_PRESETS)}"
            )
        return cls(**{**LEARNING_PRESETS[mode], **overrides})

    def with_overrides(self, **overrides: Any) -> "SchedulerSettings":
        """Return a re-validated copy with some fields replaced."""
        return type(self)(**{**self.model_dump(), **overrides})


class SessionLimits(BaseModel):
    """Daily limits and ordering used when building a study session."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    new_cards_per_day: int = Field(default=DEFAULT_NEW_CARDS_PER_DAY, ge=1, le=MAX_DAILY_LIMIT)
    max_reviews_per_day: int = Field(
        default=DEFAULT_MAX_REVIEWS_PER_DAY, ge=1, le=MAX_DAILY_LIMIT
    )
    review_order: ReviewOrder = "mixed"
