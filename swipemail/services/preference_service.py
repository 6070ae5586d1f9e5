from collections.abc import Mapping, Sequence
from datetime import timedelta
from typing import Any

from swipemail.models.insights import Insights
from swipemail.models.outcome import Outcome
from swipemail.models.profile import Profile, SwipeOutcome
from swipemail.services.profile import InsightsGenerator, NaiveBayesScorer, PreferenceUpdater, ProfileStore
from swipemail.services.profile.updater import Preferences
from swipemail.services.ranking import RankingEngine, RankMode


class PreferenceService:
    """
    Entry point for the preference API. Wires the store, updater, scorer,
    ranking engine and insights generator around a single profile directory.
    """

    def __init__(self, store: ProfileStore | None = None, scorer: NaiveBayesScorer | None = None):
        self.store = store or ProfileStore()
        self.scorer = scorer or NaiveBayesScorer()
        self.updater = PreferenceUpdater(self.store)
        self.ranking = RankingEngine(self.scorer)
        self.insights = InsightsGenerator(self.scorer)

    def update_preferences(self, user_id: str, tags: Sequence[str], outcome: SwipeOutcome) -> Outcome[Preferences]:
        return self.updater.record_swipe(user_id, tags, outcome)

    def score_email(self, user_id: str, tags: Sequence[str]) -> int:
        return self.scorer.score(self.store.load(user_id), tags)

    def rank_emails(
        self,
        user_id: str,
        items: Sequence[Mapping[str, Any]],
        mode: RankMode = RankMode.SMART,
        window: timedelta | None = None,
    ) -> list[dict[str, Any]]:
        return self.ranking.rank(self.store.load(user_id), items, mode=mode, window=window)

    def get_profile(self, user_id: str) -> tuple[Profile, Insights]:
        profile = self.store.load(user_id)
        return profile, self.insights.generate(profile)

    def reset_profile(self, user_id: str) -> bool:
        return self.store.reset(user_id)
