from collections.abc import Sequence

from loguru import logger

from swipemail.models.outcome import Degradation, Outcome
from swipemail.models.profile import Profile, SwipeOutcome, TagCounts
from swipemail.services.profile.lock import ProfileLockTimeout
from swipemail.services.profile.scorer import normalize_tags
from swipemail.services.profile.store import ProfileStore
from swipemail.shared.ids import redact_user_id

Preferences = dict[str, TagCounts]


class PreferenceUpdater:
    """
    Applies swipe feedback to profiles and persists the result.
    """

    def __init__(self, store: ProfileStore):
        self.store = store

    @staticmethod
    def apply(profile: Profile, tags: Sequence[str], outcome: SwipeOutcome) -> list[str]:
        """
        Increment counters for one swipe in memory.

        Returns the normalized tags that were applied; an empty list means the
        profile was left untouched.
        """
        applied = normalize_tags(tags)
        if not applied:
            return []

        for tag in applied:
            counts = profile.preferences.setdefault(tag, TagCounts())
            if outcome is SwipeOutcome.GOOD:
                counts.good += 1
            else:
                counts.bad += 1
            profile.vocabulary.add(tag)

        if outcome is SwipeOutcome.GOOD:
            profile.total_good += len(applied)
        else:
            profile.total_bad += len(applied)
        profile.emails_processed += 1
        return applied

    def update(self, profile: Profile, tags: Sequence[str], outcome: SwipeOutcome) -> Outcome[Preferences]:
        """
        Apply a swipe to an already-loaded profile and save it.

        The in-memory mutation is kept even if the save fails.
        """
        applied = self.apply(profile, tags, outcome)
        if not applied:
            logger.info(f"[{redact_user_id(profile.user_id)}] No tags to update preferences with")
            return Outcome.degraded(profile.preferences, Degradation.EMPTY_TAGS)

        if not self.store.save(profile):
            logger.error(
                f"[{redact_user_id(profile.user_id)}] Preference update for {applied} was not persisted"
            )
            return Outcome.degraded(profile.preferences, Degradation.WRITE_FAILED)

        self._log_update(profile, applied, outcome)
        return Outcome(value=profile.preferences)

    def record_swipe(self, user_id: str, tags: Sequence[str], outcome: SwipeOutcome) -> Outcome[Preferences]:
        """
        Load, update and save a profile as a single locked transaction.

        Concurrent swipes for the same user are serialized so none of them is
        lost. On lock contention the update is applied to a fresh in-memory
        copy only and reported as not durable.
        """
        if not normalize_tags(tags):
            logger.info(f"[{redact_user_id(user_id)}] No tags to update preferences with")
            return Outcome.degraded(self.store.read(user_id).value.preferences, Degradation.EMPTY_TAGS)

        try:
            with self.store.lock(user_id):
                profile = self.store.read(user_id).value
                applied = self.apply(profile, tags, outcome)
                persisted = self.store.commit(profile)
        except ProfileLockTimeout as exc:
            logger.warning(f"[{redact_user_id(user_id)}] Preference update not persisted: {exc}")
            profile = self.store.read(user_id).value
            self.apply(profile, tags, outcome)
            return Outcome.degraded(profile.preferences, Degradation.LOCK_CONTENTION)
        except OSError as exc:
            logger.error(f"[{redact_user_id(user_id)}] Could not lock profile for update: {exc}")
            profile = self.store.read(user_id).value
            self.apply(profile, tags, outcome)
            return Outcome.degraded(profile.preferences, Degradation.WRITE_FAILED)

        if not persisted:
            logger.error(f"[{redact_user_id(user_id)}] Preference update for {applied} was not persisted")
            return Outcome.degraded(profile.preferences, Degradation.WRITE_FAILED)

        self._log_update(profile, applied, outcome)
        return Outcome(value=profile.preferences)

    @staticmethod
    def _log_update(profile: Profile, applied: list[str], outcome: SwipeOutcome) -> None:
        logger.info(
            f"[{redact_user_id(profile.user_id)}] Updated preferences: tags={applied} "
            f"outcome={outcome.value} total_emails={profile.emails_processed}"
        )
