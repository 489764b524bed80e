"""Centralized constants for spacedeck.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Time ----------
MS_PER_SECOND = 1_000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MS_PER_HOUR = 60 * MS_PER_MINUTE
MS_PER_DAY = 24 * MS_PER_HOUR

# ---------- Ease ----------
MIN_EASE = 1.3
MAX_EASE = 3.5
LAPSE_EASE_PENALTY = 0.2
HARD_EASE_PENALTY = 0.15
EASY_EASE_BONUS = 0.15

# ---------- Intervals ----------
HARD_INTERVAL_FACTOR = 1.2
LAPSE_INTERVAL_FACTOR = 0.5
MIN_INTERVAL_DAYS = 1
HARD_STEP_FACTOR = 1.5  # learning-step delay multiplier on Hard

# ---------- Learning steps ----------
STEP_UNIT_MS = {"m": MS_PER_MINUTE, "h": MS_PER_HOUR, "d": MS_PER_DAY}
DEFAULT_LEARNING_STEPS_MS = (10 * MS_PER_MINUTE, MS_PER_DAY)

# ---------- Configuration defaults ----------
DEFAULT_NEW_PER_DAY = 20
DEFAULT_REVIEWS_PER_DAY = 200
DEFAULT_LEARNING_STEPS = "10m,1d"
DEFAULT_GRADUATING_INTERVAL_DAYS = 1
DEFAULT_EASY_INTERVAL_DAYS = 4
DEFAULT_STARTING_EASE = 2.5
DEFAULT_EASY_BONUS = 1.3
DEFAULT_INTERVAL_MODIFIER = 1.0
DEFAULT_MAX_INTERVAL_DAYS = 36500
DEFAULT_BURY_SIBLINGS = True

# ---------- Card generation ----------
DECK_PATH_SEPARATOR = "::"

# ---------- Browsing ----------
SEARCH_RESULT_LIMIT = 100
