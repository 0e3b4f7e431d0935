# Domain Package
from .errors import (
    CadenceError,
    CommitFailure,
    InvalidConfiguration,
    InvalidStateTransition,
    PreviewComputationError,
    RateInProgress,
    UnknownCard,
)
from .models import Card, CardSchedule, CardState, CommitResult, IntervalPreview, Rating
from .ports import PersistenceGateway, SettingsProvider
from .settings import SchedulerSettings, SessionLimits

__all__ = [
    "CadenceError",
    "CommitFailure",
    "InvalidConfiguration",
    "InvalidStateTransition",
    "PreviewComputationError",
    "RateInProgress",
    "UnknownCard",
    "Card",
    "CardSchedule",
    "CardState",
    "CommitResult",
    "IntervalPreview",
    "Rating",
    "PersistenceGateway",
    "SettingsProvider",
    "SchedulerSettings",
    "SessionLimits",
]
