import pytest

from swipemail.models.profile import Profile, SwipeOutcome
from swipemail.services.preference_service import PreferenceService
from swipemail.services.profile import PreferenceUpdater, ProfileStore


def _build_profile(swipes: list[tuple[list[str], SwipeOutcome]] | None = None, user_id: str = "user-1") -> Profile:
    profile = Profile.empty(user_id)
    for tags, outcome in swipes or []:
        PreferenceUpdater.apply(profile, tags, outcome)
    return profile


@pytest.fixture
def make_profile():
    """Factory building a profile with the given swipes applied in memory."""
    return _build_profile


@pytest.fixture
def store(tmp_path):
    """Profile store in a temporary directory with a fast lock budget."""
    return ProfileStore(tmp_path / "profiles", lock_attempts=5, lock_interval=0.001, lock_stale_after=30)


@pytest.fixture
def service(store):
    return PreferenceService(store=store)


@pytest.fixture
def balanced_profile() -> Profile:
    """sports liked three times, spam disliked three times."""
    return _build_profile(
        [
            (["sports"], SwipeOutcome.GOOD),
            (["sports"], SwipeOutcome.GOOD),
            (["sports"], SwipeOutcome.GOOD),
            (["spam"], SwipeOutcome.BAD),
            (["spam"], SwipeOutcome.BAD),
            (["spam"], SwipeOutcome.BAD),
        ]
    )
