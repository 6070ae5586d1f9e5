import math
from collections.abc import Iterable

from swipemail.core.constants import MAX_SCORE, MIN_SCORE, NEUTRAL_SCORE, SMOOTHING_ALPHA
from swipemail.models.profile import Profile, TagCounts


def normalize_tags(tags: Iterable[str] | None) -> list[str]:
    """Strip and lower-case tags, dropping blanks and repeats (first occurrence wins)."""
    seen: set[str] = set()
    normalized: list[str] = []
    for tag in tags or ():
        if not isinstance(tag, str):
            continue
        value = tag.strip().lower()
        if value and value not in seen:
            seen.add(value)
            normalized.append(value)
    return normalized


class NaiveBayesScorer:
    """
    Scores tags and items against a profile with Laplace-smoothed Naive Bayes.

    All methods are pure; nothing here touches storage.
    """

    def __init__(self, alpha: float = SMOOTHING_ALPHA):
        self.alpha = alpha

    def log_odds(self, counts: TagCounts, total_good: int, total_bad: int, vocabulary_size: int) -> float:
        """
        ln(P(tag | good) / P(tag | bad)).

        Smoothing keeps both probabilities strictly positive, so unseen tags and
        one-sided profiles still produce a finite value.
        """
        p_good = (counts.good + self.alpha) / (total_good + self.alpha * vocabulary_size)
        p_bad = (counts.bad + self.alpha) / (total_bad + self.alpha * vocabulary_size)
        return math.log(p_good / p_bad)

    def tag_log_odds(self, profile: Profile, tag: str) -> float:
        return self.log_odds(profile.counts_for(tag), profile.total_good, profile.total_bad, profile.vocabulary_size)

    def raw_score(self, profile: Profile, tags: Iterable[str]) -> float:
        """Sum of per-tag log-odds, accumulated left to right."""
        total = 0.0
        for tag in normalize_tags(tags):
            total += self.tag_log_odds(profile, tag)
        return total

    def score(self, profile: Profile, tags: Iterable[str] | None) -> int:
        """
        Aggregate 0-100 preference score.

        Returns the neutral score when the profile has no observations or the
        tag list is empty.
        """
        normalized = normalize_tags(tags)
        if not profile.has_observations or not normalized:
            return NEUTRAL_SCORE

        raw = self.raw_score(profile, normalized)
        probability = self._logistic(raw)
        percent = math.floor(probability * 100 + 0.5)
        return max(MIN_SCORE, min(MAX_SCORE, percent))

    @staticmethod
    def _logistic(value: float) -> float:
        # Split on sign so exp() never overflows for large magnitudes
        if value >= 0:
            return 1.0 / (1.0 + math.exp(-value))
        z = math.exp(value)
        return z / (1.0 + z)
