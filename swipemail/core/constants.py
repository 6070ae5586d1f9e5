"""
Scoring constants. These are part of the observable output and are not tunable.
"""

from typing import Final

PROFILE_VERSION: Final[str] = "2.0"
LEGACY_PROFILE_VERSION: Final[str] = "1.0"

# Laplace (add-one) smoothing
SMOOTHING_ALPHA: Final[float] = 1.0

NEUTRAL_SCORE: Final[int] = 50
MIN_SCORE: Final[int] = 0
MAX_SCORE: Final[int] = 100

# Scores closer than this (0-1 scale) are ranked by recency instead
SCORE_TIE_EPSILON: Final[float] = 0.01

# Insights
INSIGHT_LOG_ODDS_THRESHOLD: Final[float] = 0.5
INSIGHT_TOP_LIMIT: Final[int] = 10
PROFILE_STRENGTH_DIVISOR: Final[int] = 2
PROFILE_STRENGTH_CAP: Final[int] = 100

# Tag extraction limits
MAX_EXTRACTED_TAGS: Final[int] = 12
MAX_TAG_LENGTH: Final[int] = 50
MAX_FALLBACK_WORD_TAGS: Final[int] = 8
MAX_HEURISTIC_TAGS: Final[int] = 6
SUBJECT_PROMPT_CHARS: Final[int] = 200
BODY_PROMPT_CHARS: Final[int] = 1500
GENERIC_TAGS: Final[tuple[str, ...]] = ("general", "email")
