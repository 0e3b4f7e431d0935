from datetime import datetime, timedelta, timezone

import pytest

from cadence.domain.models import Card, CardSchedule, CardState
from cadence.domain.settings import SchedulerSettings

NOW = datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def settings():
    """Anki-like settings with two short learning steps."""
    return SchedulerSettings(
        learning_steps=(10, 20),
        relearning_steps=(10,),
        graduating_interval_days=1,
        easy_interval_days=4,
        starting_ease=2.5,
        easy_bonus=1.3,
        hard_interval=1.0,
        interval_modifier=1.0,
        new_interval_multiplier=0.5,
        minimum_interval_days=1,
        maximum_interval_days=365,
        again_delay_minutes=10,
    )


def review_schedule(interval_days=10, ease=2.5, due_at=NOW, **kwargs):
    return CardSchedule(
        state=CardState.REVIEW,
        due_at=due_at,
        interval_days=interval_days,
        ease=ease,
        reps=kwargs.pop("reps", 5),
        **kwargs,
    )


def make_card(card_id, state=CardState.NEW, due_at=NOW, **kwargs):
    if state is CardState.NEW:
        schedule = CardSchedule.new(due_at)
    elif state is CardState.REVIEW:
        schedule = review_schedule(due_at=due_at, **kwargs)
    else:
        schedule = CardSchedule(state=state, due_at=due_at, **kwargs)
    return Card(id=card_id, schedule=schedule, front=f"front {card_id}", back=f"back {card_id}")


@pytest.fixture
def card_factory():
    return make_card


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config/logs
    monkeypatch.setenv("HOME", str(home))
    for var in (
        "CADENCE_DECK_FILE",
        "CADENCE_LEARNING_MODE",
        "CADENCE_SCHEDULER",
        "CADENCE_LOG_DIR",
        "CADENCE_VERBOSE",
    ):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture
def deck_file(tmp_path):
    """A small deck: two new cards, one review card due yesterday, one suspended."""
    path = tmp_path / "deck.yaml"
    yesterday = (NOW - timedelta(days=1)).isoformat()
    path.write_text(
        f"""deck: Spanish
cards:
  - id: c1
    front: hola
    back: hello
  - id: c2
    front: gato
    back: cat
  - id: c3
    front: perro
    back: dog
    schedule:
      state: review
      due_at: '{yesterday}'
      interval_days: 10
      ease: 2.5
      reps: 4
  - id: c4
    front: casa
    back: house
    schedule:
      state: suspended
      due_at: '{yesterday}'
      interval_days: 3
      ease: 2.5
      reps: 2
      suspended_from: review
""",
        encoding="utf-8",
    )
    return path
