import pytest
import yaml

from cadence.application.config import StaticSettingsProvider
from cadence.domain.models import CardState, Rating
from cadence.infrastructure.adapters.yaml_store import DeckFileError, YamlDeckStore


@pytest.fixture
def store(deck_file, settings, now):
    return YamlDeckStore(deck_file, StaticSettingsProvider(settings), clock=lambda: now)


def test_loads_deck(store, now):
    assert store.deck_name == "Spanish"
    assert [c.id for c in store.cards()] == ["c1", "c2", "c3", "c4"]

    hola = store.get("c1")
    assert hola.front == "hola"
    assert hola.back == "hello"
    assert hola.deck == "Spanish"
    assert hola.schedule.state is CardState.NEW
    assert hola.schedule.due_at == now

    perro = store.get("c3").schedule
    assert perro.state is CardState.REVIEW
    assert perro.interval_days == 10
    assert perro.reps == 4

    casa = store.get("c4").schedule
    assert casa.is_suspended
    assert casa.suspended_from is CardState.REVIEW


@pytest.mark.asyncio
async def test_commit_is_written_to_disk(store, deck_file, settings, now):
    result = await store.commit("c3", Rating.GOOD)
    assert result.ok

    reloaded = YamlDeckStore(deck_file, StaticSettingsProvider(settings), clock=lambda: now)
    assert reloaded.get("c3").schedule == result.new_state
    assert reloaded.get("c3").schedule.interval_days == 25
    assert reloaded.get("c1").front == "hola"


@pytest.mark.asyncio
async def test_unsuspend_is_written_to_disk(store, deck_file):
    await store.unsuspend("c4")

    data = yaml.safe_load(deck_file.read_text(encoding="utf-8"))
    casa = next(c for c in data["cards"] if c["id"] == "c4")
    assert casa["schedule"]["state"] == "review"
    assert casa["schedule"]["suspended_from"] is None


@pytest.mark.asyncio
async def test_failed_write_leaves_file_and_memory_alone(store, deck_file, monkeypatch):
    before = deck_file.read_text(encoding="utf-8")

    def broken_dump(path, data):
        raise PermissionError("read-only")

    monkeypatch.setattr(
        "cadence.infrastructure.adapters.yaml_store.dump_yaml_atomic", broken_dump
    )

    result = await store.commit("c1", Rating.GOOD)

    assert not result.ok
    assert "storage error" in result.reason
    assert store.get("c1").schedule.state is CardState.NEW
    assert deck_file.read_text(encoding="utf-8") == before


def test_missing_ids_are_assigned_and_saved(tmp_path, now):
    path = tmp_path / "deck.yaml"
    path.write_text("cards:\n  - front: uno\n    back: one\n", encoding="utf-8")

    store = YamlDeckStore(path, clock=lambda: now)

    (card,) = store.cards()
    assert card.id.startswith("card_")
    saved = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert saved["cards"][0]["id"] == card.id
    assert "deck" not in saved
    assert YamlDeckStore(path, clock=lambda: now).get(card.id).front == "uno"


def test_empty_file_is_an_empty_deck(tmp_path):
    path = tmp_path / "deck.yaml"
    path.write_text("", encoding="utf-8")

    assert YamlDeckStore(path).cards() == []


@pytest.mark.parametrize(
    "content, message",
    [
        ("cards: [\n", "Invalid YAML"),
        ("deck: A\ndeck: B\n", "duplicate key"),
        ("- just\n- a list\n", "top level must be a mapping"),
        ("cards: nope\n", "'cards' must be a list"),
        ("cards:\n  - plain string\n", "must be a mapping"),
        ("cards:\n  - id: a\n  - id: a\n", "duplicate card id"),
        ("cards:\n  - id: a\n    schedule:\n      state: buried\n      due_at: x\n", "bad schedule"),
        ("cards:\n  - id: a\n    schedule:\n      state: review\n", "bad schedule"),
        ("cards:\n  - id: a\n    schedule:\n      state: new\n      due_at: 5\n", "bad schedule"),
    ],
    ids=[
        "yaml_syntax",
        "duplicate_key",
        "not_mapping",
        "cards_not_list",
        "card_not_mapping",
        "duplicate_id",
        "unknown_state",
        "missing_due_at",
        "due_at_not_timestamp",
    ],
)
def test_malformed_deck(tmp_path, content, message):
    path = tmp_path / "deck.yaml"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(DeckFileError, match=message):
        YamlDeckStore(path)


def test_missing_file(tmp_path):
    with pytest.raises(DeckFileError, match="not found"):
        YamlDeckStore(tmp_path / "nope.yaml")
