"""
YAML deck store: a PersistenceGateway backed by a single deck file.

File layout:

    deck: Spanish
    cards:
      - id: card_01HZX...
        front: hola
        back: hello
        schedule:
          state: review
          due_at: '2026-03-01T09:00:00+00:00'
          interval_days: 12
          ease: 2.5

Cards without an id get a stable ULID-based one; cards without a schedule
start out New. Every successful commit rewrites the file atomically.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml  # type: ignore
from ulid import ULID

from cadence.application.scheduler import CardScheduler
from cadence.domain.constants import CARD_ID_PREFIX
from cadence.domain.errors import CadenceError
from cadence.domain.models import Card, CardSchedule
from cadence.domain.ports import SettingsProvider
from cadence.infrastructure.utils.yaml_loader import dump_yaml_atomic, load_yaml

from .memory_store import InMemoryCardStore, utc_now

logger = logging.getLogger(__name__)


class DeckFileError(CadenceError):
    """The deck file is missing or malformed."""


def generate_card_id() -> str:
    """Generate a stable card ID using ULID."""
    return f"{CARD_ID_PREFIX}{ULID()}"


class YamlDeckStore(InMemoryCardStore):
    """Loads a deck file on construction and writes it back after each change."""

    def __init__(
        self,
        path: Path,
        settings_provider: SettingsProvider | None = None,
        *,
        user_id: str | None = None,
        clock: Callable[[], datetime] = utc_now,
        scheduler: CardScheduler | None = None,
    ):
        self.path = Path(path)
        self.deck_name, cards, assigned = self._load(clock())
        super().__init__(
            cards,
            settings_provider,
            user_id=user_id,
            clock=clock,
            scheduler=scheduler,
        )

        if assigned:
            dump_yaml_atomic(self.path, self._serialize(self._cards.values()))
            logger.info(f"Assigned {assigned} card ID(s) in {self.path}")

    async def _persist(self, cards: dict[str, Card]) -> None:
        await asyncio.to_thread(dump_yaml_atomic, self.path, self._serialize(cards.values()))

    # ------------------------------------------------------------------
    # (De)serialization
    # ------------------------------------------------------------------

    def _load(self, now: datetime) -> tuple[str | None, list[Card], int]:
        if not self.path.exists():
            raise DeckFileError(f"Deck file not found: {self.path}")

        try:
            data = load_yaml(self.path) or {}
        except yaml.YAMLError as e:
            raise DeckFileError(f"Invalid YAML in {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise DeckFileError(f"{self.path}: top level must be a mapping")

        raw_cards = data.get("cards") or []
        if not isinstance(raw_cards, list):
            raise DeckFileError(f"{self.path}: 'cards' must be a list")

        deck_name = data.get("deck")
        cards: list[Card] = []
        seen: set[str] = set()
        assigned = 0

        for i, raw in enumerate(raw_cards, start=1):
            if not isinstance(raw, dict):
                raise DeckFileError(f"{self.path}: card #{i} must be a mapping")

            card_id = raw.get("id")
            if not card_id:
                card_id = generate_card_id()
                assigned += 1
            card_id = str(card_id)
            if card_id in seen:
                raise DeckFileError(f"{self.path}: duplicate card id '{card_id}'")
            seen.add(card_id)

            try:
                schedule = (
                    CardSchedule.from_dict(raw["schedule"])
                    if raw.get("schedule")
                    else CardSchedule.new(now)
                )
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                raise DeckFileError(f"{self.path}: card '{card_id}' has a bad schedule: {e}") from e

            cards.append(
                Card(
                    id=card_id,
                    schedule=schedule,
                    front=str(raw.get("front", "")),
                    back=str(raw.get("back", "")),
                    deck=deck_name,
                )
            )

        logger.debug(f"Loaded {len(cards)} card(s) from {self.path}")
        return deck_name, cards, assigned

    def _serialize(self, cards: Iterable[Card]) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.deck_name is not None:
            data["deck"] = self.deck_name
        data["cards"] = [
            {
                "id": card.id,
                "front": card.front,
                "back": card.back,
                "schedule": card.schedule.to_dict(),
            }
            for card in cards
        ]
        return data
