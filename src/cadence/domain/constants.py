"""Centralized constants for the cadence scheduling core.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Time ----------
MINUTES_PER_HOUR = 60
MINUTES_PER_DAY = 1440

# ---------- Ease ----------
MIN_EASE = 1.3
DEFAULT_STARTING_EASE = 2.5
DEFAULT_EASY_BONUS = 1.3

# ---------- Intervals ----------
DEFAULT_LEARNING_STEPS = (10, 1440)
DEFAULT_RELEARNING_STEPS = (10,)
DEFAULT_GRADUATING_INTERVAL = 3
DEFAULT_EASY_INTERVAL = 4
DEFAULT_MAXIMUM_INTERVAL = 36500  # 100 years
MAX_AGAIN_DELAY_MINUTES = 1440
DEFAULT_AGAIN_DELAY_MINUTES = 10

# ---------- Study Queue ----------
DEFAULT_REQUEUE_OFFSET = 3
DEFAULT_COMMIT_TIMEOUT = 30.0  # seconds

# ---------- Daily Limits ----------
DEFAULT_NEW_CARDS_PER_DAY = 20
DEFAULT_MAX_REVIEWS_PER_DAY = 9999
MAX_DAILY_LIMIT = 9999

# ---------- Deck Files ----------
CARD_ID_PREFIX = "card_"
