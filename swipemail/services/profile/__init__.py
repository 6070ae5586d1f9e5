"""
Preference learning core.

Per-user Naive Bayes profiles over content tags: durable storage with
locked atomic writes, swipe updates, scoring and insights.
"""

from swipemail.services.profile.insights import InsightsGenerator
from swipemail.services.profile.lock import ProfileLock, ProfileLockTimeout
from swipemail.services.profile.scorer import NaiveBayesScorer
from swipemail.services.profile.store import ProfileStore
from swipemail.services.profile.updater import PreferenceUpdater

__all__ = [
    "InsightsGenerator",
    "NaiveBayesScorer",
    "PreferenceUpdater",
    "ProfileLock",
    "ProfileLockTimeout",
    "ProfileStore",
]
