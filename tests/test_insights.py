import math

import pytest

from swipemail.models.profile import Profile, SwipeOutcome
from swipemail.services.profile import InsightsGenerator


@pytest.fixture
def generator():
    return InsightsGenerator()


class TestInsightsGenerator:
    def test_empty_profile(self, generator):
        insights = generator.generate(Profile.empty("u"))

        assert insights.total_emails == 0
        assert insights.top_interests == []
        assert insights.top_dislikes == []
        assert insights.profile_strength == 0

    def test_interests_and_dislikes(self, generator, make_profile):
        profile = make_profile(
            [(["sports"], SwipeOutcome.GOOD)] * 3
            + [(["spam"], SwipeOutcome.BAD)] * 3
            + [(["news"], SwipeOutcome.GOOD), (["news"], SwipeOutcome.BAD)]
        )

        insights = generator.generate(profile)

        assert [t.tag for t in insights.top_interests] == ["sports"]
        assert [t.tag for t in insights.top_dislikes] == ["spam"]
        assert insights.top_interests[0].score == pytest.approx(math.log(4))
        assert insights.top_interests[0].interactions == 3
        assert insights.total_emails == 8
        # 8 observations / 2
        assert insights.profile_strength == 4

    def test_sorted_by_confidence(self, generator, make_profile):
        profile = make_profile(
            [(["rare"], SwipeOutcome.GOOD)] + [(["frequent"], SwipeOutcome.GOOD)] * 5 + [(["promo"], SwipeOutcome.BAD)] * 6
        )

        insights = generator.generate(profile)

        # frequent: ln 6 weighted by ln 6; rare: ln 2 weighted by ln 2
        assert [t.tag for t in insights.top_interests] == ["frequent", "rare"]
        assert insights.top_dislikes[0].score == pytest.approx(-math.log(7))

    def test_top_lists_are_limited_to_ten(self, generator, make_profile):
        swipes = [([f"topic{i}"], SwipeOutcome.GOOD) for i in range(12) for _ in range(2)]
        swipes += [(["junk"], SwipeOutcome.BAD)] * 24
        profile = make_profile(swipes)

        insights = generator.generate(profile)

        assert len(insights.top_interests) == 10
        assert all(t.score > 0.5 for t in insights.top_interests)

    def test_profile_strength_is_capped(self, generator, make_profile):
        profile = make_profile([(["sports"], SwipeOutcome.GOOD)] * 250)
        assert generator.generate(profile).profile_strength == 100

    def test_serializes_with_camel_case(self, generator, balanced_profile):
        payload = generator.generate(balanced_profile).model_dump(by_alias=True)
        assert set(payload) == {"totalEmails", "topInterests", "topDislikes", "profileStrength"}
        assert set(payload["topInterests"][0]) == {"tag", "score", "interactions"}
