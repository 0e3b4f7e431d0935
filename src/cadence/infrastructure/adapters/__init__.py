# Persistence Adapters Package
from .memory_store import InMemoryCardStore
from .yaml_store import DeckFileError, YamlDeckStore

__all__ = ["InMemoryCardStore", "YamlDeckStore", "DeckFileError"]
