"""
Tests for the preference updater.

Tests cover:
- In-memory counter updates and profile invariants
- Persistence through the profile store
- Degraded outcomes (empty tags, write failure, lock contention)
- Serialized concurrent swipes
"""

from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

from swipemail.models.outcome import Degradation
from swipemail.models.profile import Profile, SwipeOutcome
from swipemail.services.profile import PreferenceUpdater, ProfileStore


def assert_invariants(profile: Profile) -> None:
    assert profile.total_good == sum(c.good for c in profile.preferences.values())
    assert profile.total_bad == sum(c.bad for c in profile.preferences.values())
    assert profile.vocabulary == set(profile.preferences)


class TestApply:
    def test_good_swipe_increments_counters(self):
        profile = Profile.empty("u")
        applied = PreferenceUpdater.apply(profile, ["Sports", "news"], SwipeOutcome.GOOD)

        assert applied == ["sports", "news"]
        assert profile.preferences["sports"].good == 1
        assert profile.preferences["news"].bad == 0
        assert profile.total_good == 2
        assert profile.total_bad == 0
        assert profile.emails_processed == 1
        assert profile.vocabulary == {"sports", "news"}

    def test_bad_swipe_counts_each_tag_once(self):
        """emailsProcessed counts swipes; totals count tag occurrences."""
        profile = Profile.empty("u")
        PreferenceUpdater.apply(profile, ["promo", "PROMO", "sale"], SwipeOutcome.BAD)
        PreferenceUpdater.apply(profile, ["promo"], SwipeOutcome.BAD)

        assert profile.preferences["promo"].bad == 2
        assert profile.total_bad == 3
        assert profile.emails_processed == 2
        assert_invariants(profile)

    def test_empty_tags_leave_profile_untouched(self):
        profile = Profile.empty("u")
        assert PreferenceUpdater.apply(profile, ["", "  "], SwipeOutcome.GOOD) == []
        assert profile.emails_processed == 0
        assert profile.preferences == {}


class TestUpdate:
    def test_update_persists(self, store):
        updater = PreferenceUpdater(store)
        profile = store.load("alice")

        result = updater.update(profile, ["sports", "news"], SwipeOutcome.GOOD)

        assert result.ok
        assert result.value["sports"].good == 1
        reloaded = store.load("alice")
        assert reloaded.total_good == 2
        assert reloaded.emails_processed == 1

    def test_empty_tags_are_a_logged_noop(self, store):
        updater = PreferenceUpdater(store)
        profile = store.load("alice")

        result = updater.update(profile, [], SwipeOutcome.GOOD)

        assert result.reason is Degradation.EMPTY_TAGS
        assert result.value == {}
        assert not store.record_path("alice").exists()

    def test_failed_save_keeps_in_memory_update(self, store):
        updater = PreferenceUpdater(store)
        profile = store.load("alice")

        with patch.object(store, "save", return_value=False):
            result = updater.update(profile, ["sports"], SwipeOutcome.BAD)

        assert result.reason is Degradation.WRITE_FAILED
        assert result.value["sports"].bad == 1
        assert profile.total_bad == 1
        assert store.load("alice").total_bad == 0


class TestRecordSwipe:
    def test_record_swipe_round_trips(self, store):
        updater = PreferenceUpdater(store)
        updater.record_swipe("bob", ["tech"], SwipeOutcome.GOOD)
        updater.record_swipe("bob", ["tech", "promo"], SwipeOutcome.BAD)

        profile = store.load("bob")
        assert profile.preferences["tech"].good == 1
        assert profile.preferences["tech"].bad == 1
        assert profile.preferences["promo"].bad == 1
        assert profile.emails_processed == 2
        assert_invariants(profile)
        assert not store.lock_path("bob").exists()

    def test_empty_tags_do_not_write(self, store):
        result = PreferenceUpdater(store).record_swipe("bob", [" "], SwipeOutcome.GOOD)
        assert result.reason is Degradation.EMPTY_TAGS
        assert not store.record_path("bob").exists()

    def test_lock_contention_returns_non_durable_result(self, store):
        store.lock_path("bob").write_text("other-writer")

        result = PreferenceUpdater(store).record_swipe("bob", ["tech"], SwipeOutcome.GOOD)

        assert result.reason is Degradation.LOCK_CONTENTION
        assert result.value["tech"].good == 1
        assert not store.record_path("bob").exists()
        # The foreign marker is left alone
        assert store.lock_path("bob").exists()

    def test_commit_failure_is_reported(self, store):
        with patch.object(store, "commit", return_value=False):
            result = PreferenceUpdater(store).record_swipe("bob", ["tech"], SwipeOutcome.GOOD)
        assert result.reason is Degradation.WRITE_FAILED
        assert result.value["tech"].good == 1
        assert not store.lock_path("bob").exists()

    def test_concurrent_swipes_are_not_lost(self, tmp_path):
        store = ProfileStore(tmp_path, lock_attempts=2000, lock_interval=0.002)
        updater = PreferenceUpdater(store)

        def swipe(i: int) -> bool:
            outcome = SwipeOutcome.GOOD if i % 2 == 0 else SwipeOutcome.BAD
            return updater.record_swipe("carol", [f"tag{i % 3}", "shared"], outcome).ok

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(swipe, range(40)))

        assert all(results)
        profile = store.load("carol")
        assert profile.emails_processed == 40
        assert profile.preferences["shared"].good == 20
        assert profile.preferences["shared"].bad == 20
        assert_invariants(profile)
