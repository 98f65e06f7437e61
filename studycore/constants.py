"""
SM-2 algorithm constants.

This module contains the static parameters of the SuperMemo-2 family
scheduler. No runtime configuration or path defaults - pure constants only.
"""

# Ease factor given to a card that has never been reviewed.
INITIAL_EASE_FACTOR: float = 2.5

# The ease factor is clamped to this floor after every update.
MIN_EASE_FACTOR: float = 1.3

# Fixed intervals (days) for the first and second successful repetition.
FIRST_INTERVAL_DAYS: int = 1
SECOND_INTERVAL_DAYS: int = 6

# Interval (days) assigned after a failed recall.
RELEARN_INTERVAL_DAYS: int = 1

# Qualities below this value count as a failed recall.
FAILURE_THRESHOLD: int = 3

MIN_QUALITY: int = 0
MAX_QUALITY: int = 5

# Upper bound for a computed interval (100 years).
MAX_INTERVAL_DAYS: int = 36500

# Card limits for a single study run.
DEFAULT_CARD_LIMIT: int = 20
MAX_CARD_LIMIT: int = 100
