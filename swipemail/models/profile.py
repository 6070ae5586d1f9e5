from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator
from pydantic.alias_generators import to_camel

from swipemail.core.constants import PROFILE_VERSION


class SwipeOutcome(str, Enum):
    """Binary feedback for a single swipe."""

    GOOD = "good"
    BAD = "bad"

    @classmethod
    def from_action(cls, action: str) -> "SwipeOutcome":
        """Map a UI action name onto an outcome."""
        normalized = (action or "").strip().lower()
        if normalized in ("interested", "right", "good"):
            return cls.GOOD
        if normalized in ("not_interested", "left", "bad"):
            return cls.BAD
        raise ValueError(f"Unknown swipe action: {action!r}")


class TagCounts(BaseModel):
    """Per-tag swipe counters."""

    good: int = Field(default=0, ge=0)
    bad: int = Field(default=0, ge=0)

    @property
    def total(self) -> int:
        return self.good + self.bad


class Profile(BaseModel):
    """
    Per-user record of tag statistics.

    Field names are snake_case in Python and camelCase on disk and on the wire.
    `total_good`/`total_bad` always equal the sums of the per-tag counters, and
    `vocabulary` covers every key of `preferences`.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str
    preferences: dict[str, TagCounts] = Field(default_factory=dict, description="Tag → good/bad counters")
    total_good: int = Field(default=0, ge=0, description="Tag occurrences across all good swipes")
    total_bad: int = Field(default=0, ge=0, description="Tag occurrences across all bad swipes")
    vocabulary: set[str] = Field(default_factory=set, description="Every tag ever observed")
    emails_processed: int = Field(default=0, ge=0, description="Number of swipes applied")
    version: str = PROFILE_VERSION
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def _cover_preference_keys(self) -> "Profile":
        missing = self.preferences.keys() - self.vocabulary
        if missing:
            self.vocabulary |= missing
        return self

    @field_serializer("vocabulary")
    def _serialize_vocabulary(self, vocabulary: set[str]) -> list[str]:
        return sorted(vocabulary)

    @classmethod
    def empty(cls, user_id: str) -> "Profile":
        return cls(user_id=user_id)

    @property
    def has_observations(self) -> bool:
        return self.total_good > 0 or self.total_bad > 0

    @property
    def vocabulary_size(self) -> int:
        return len(self.vocabulary)

    def counts_for(self, tag: str) -> TagCounts:
        """Counters for a tag, zeroed when the tag was never observed."""
        return self.preferences.get(tag) or TagCounts()

    def to_record(self) -> dict:
        """JSON-ready representation used for persistence and API responses."""
        return self.model_dump(mode="json", by_alias=True)
