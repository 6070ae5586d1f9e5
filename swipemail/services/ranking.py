import math
from collections.abc import Mapping, Sequence
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from functools import cmp_to_key
from typing import Any

from swipemail.core.constants import SCORE_TIE_EPSILON
from swipemail.models.profile import Profile
from swipemail.services.profile.scorer import NaiveBayesScorer, normalize_tags


class RankMode(str, Enum):
    SMART = "smart"
    RECENCY = "recency"

    @classmethod
    def from_stream(cls, stream: str | None) -> "RankMode":
        """Map a stream name from the UI ("smart", "unread") onto a mode."""
        normalized = (stream or cls.SMART.value).strip().lower()
        if normalized == cls.SMART.value:
            return cls.SMART
        if normalized in ("unread", cls.RECENCY.value):
            return cls.RECENCY
        raise ValueError(f"Unknown ranking mode: {stream!r}")


def item_tags(item: Mapping[str, Any]) -> list[str]:
    tags = item.get("tags")
    if tags is None:
        tags = item.get("_tokens")
    return normalize_tags(tags if isinstance(tags, (list, tuple)) else [])


def _finite_float(value: Any) -> float | None:
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def item_timestamp(item: Mapping[str, Any]) -> float:
    """
    Recency of an item in epoch milliseconds.

    `internalDate` (epoch ms) wins over `date` (RFC 2822 or ISO-8601).
    Items without a usable timestamp get 0 and sort last.
    """
    internal = item.get("internalDate")
    if internal not in (None, ""):
        value = _finite_float(internal)
        if value is not None:
            return value

    date = item.get("date")
    if isinstance(date, (int, float)) and not isinstance(date, bool):
        return _finite_float(date) or 0.0
    if not isinstance(date, str) or not date.strip():
        return 0.0

    try:
        parsed = parsedate_to_datetime(date)
    except (TypeError, ValueError, IndexError):
        try:
            parsed = datetime.fromisoformat(date.strip().replace("Z", "+00:00"))
        except ValueError:
            return 0.0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp() * 1000


class RankingEngine:
    """
    Orders items by recency or by predicted interest.

    Every returned item is a shallow copy of the input with `tags`,
    `preferenceScore` (0-1) and `preferenceScorePercent` (0-100) attached.
    """

    def __init__(self, scorer: NaiveBayesScorer | None = None):
        self.scorer = scorer or NaiveBayesScorer()

    def annotate(self, profile: Profile, item: Mapping[str, Any]) -> dict[str, Any]:
        tags = item_tags(item)
        percent = self.scorer.score(profile, tags)
        annotated = dict(item)
        annotated["tags"] = tags
        annotated["preferenceScore"] = percent / 100
        annotated["preferenceScorePercent"] = percent
        return annotated

    def rank(
        self,
        profile: Profile,
        items: Sequence[Mapping[str, Any]],
        mode: RankMode = RankMode.SMART,
        window: timedelta | None = None,
        now: datetime | None = None,
    ) -> list[dict[str, Any]]:
        """
        Sort items for display.

        `window`, when given, drops dated items older than `now - window`.
        Undated items are always kept.
        """
        entries = [(item_timestamp(item), self.annotate(profile, item)) for item in items or ()]

        if window is not None:
            cutoff = ((now or datetime.now(timezone.utc)) - window).timestamp() * 1000
            entries = [(ts, item) for ts, item in entries if ts == 0 or ts >= cutoff]

        if mode is RankMode.RECENCY:
            entries.sort(key=lambda entry: entry[0], reverse=True)
        else:
            entries.sort(key=cmp_to_key(self._compare_smart))
        return [item for _, item in entries]

    @staticmethod
    def _compare_smart(a: tuple[float, dict], b: tuple[float, dict]) -> int:
        a_ts, a_item = a
        b_ts, b_item = b
        # Compared on the integer percent scale so the epsilon is exact
        diff = a_item["preferenceScorePercent"] - b_item["preferenceScorePercent"]
        if abs(diff) < SCORE_TIE_EPSILON * 100:
            return (b_ts > a_ts) - (b_ts < a_ts)
        return -1 if diff > 0 else 1
