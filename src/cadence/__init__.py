"""cadence: Anki-style spaced-repetition scheduling core."""

from cadence.consts import VERSION

__version__ = VERSION
