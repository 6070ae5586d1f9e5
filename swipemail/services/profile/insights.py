import math

from swipemail.core.constants import (
    INSIGHT_LOG_ODDS_THRESHOLD,
    INSIGHT_TOP_LIMIT,
    PROFILE_STRENGTH_CAP,
    PROFILE_STRENGTH_DIVISOR,
)
from swipemail.models.insights import Insights, TagInsight
from swipemail.models.profile import Profile
from swipemail.services.profile.scorer import NaiveBayesScorer


class InsightsGenerator:
    """Summarizes the strongest learned likes and dislikes of a profile."""

    def __init__(self, scorer: NaiveBayesScorer | None = None):
        self.scorer = scorer or NaiveBayesScorer()

    def generate(self, profile: Profile) -> Insights:
        ranked: list[tuple[float, TagInsight]] = []
        total_interactions = 0

        for tag, counts in profile.preferences.items():
            log_odds = self.scorer.tag_log_odds(profile, tag)
            interactions = counts.total
            total_interactions += interactions
            confidence = abs(log_odds) * math.log(interactions + 1)
            ranked.append((confidence, TagInsight(tag=tag, score=log_odds, interactions=interactions)))

        ranked.sort(key=lambda x: x[0], reverse=True)
        by_confidence = [insight for _, insight in ranked]

        interests = [t for t in by_confidence if t.score > INSIGHT_LOG_ODDS_THRESHOLD]
        dislikes = [t for t in by_confidence if t.score < -INSIGHT_LOG_ODDS_THRESHOLD]

        return Insights(
            total_emails=profile.emails_processed,
            top_interests=interests[:INSIGHT_TOP_LIMIT],
            top_dislikes=dislikes[:INSIGHT_TOP_LIMIT],
            profile_strength=min(PROFILE_STRENGTH_CAP, total_interactions // PROFILE_STRENGTH_DIVISOR),
        )
