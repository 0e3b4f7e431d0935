"""
Session Factory
Centralizes wiring of settings, persistence and the study queue.
"""

from collections.abc import Callable
from datetime import datetime

from cadence.application.config import AppConfig, ConfigSettingsProvider
from cadence.application.session_builder import select_session_cards
from cadence.application.study_queue import StudyQueueManager
from cadence.domain.errors import InvalidConfiguration
from cadence.domain.ports import SettingsProvider
from cadence.infrastructure.adapters.memory_store import InMemoryCardStore
from cadence.infrastructure.adapters.yaml_store import YamlDeckStore


def get_settings_provider(config: AppConfig) -> SettingsProvider:
    return ConfigSettingsProvider(config)


def get_deck_store(config: AppConfig, user_id: str | None = None) -> YamlDeckStore:
    """
    Returns the deck-file store for the configured deck.
    """
    if config.deck_file is None:
        raise InvalidConfiguration(
            "No deck file configured. Pass a path or set CADENCE_DECK_FILE."
        )
    return YamlDeckStore(config.deck_file, get_settings_provider(config), user_id=user_id)


def build_study_session(
    config: AppConfig,
    store: InMemoryCardStore,
    now: datetime,
    on_complete: Callable[[], None] | None = None,
) -> StudyQueueManager:
    """
    Build today's study queue for a store.

    Settings are loaded first so that a malformed configuration refuses the
    session before any card is shown.
    """
    get_settings_provider(config).load_settings(store.user_id)

    cards = select_session_cards(store.cards(), now, config.limits)
    return StudyQueueManager(
        cards,
        store,
        requeue_offset=config.requeue_offset,
        commit_timeout=config.commit_timeout,
        on_complete=on_complete,
    )
