from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TagInsight(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    tag: str
    score: float = Field(description="Naive Bayes log-odds of the tag")
    interactions: int = Field(description="good + bad observations of the tag")


class Insights(BaseModel):
    """Human-facing summary of what a profile has learned."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_emails: int = 0
    top_interests: list[TagInsight] = Field(default_factory=list)
    top_dislikes: list[TagInsight] = Field(default_factory=list)
    profile_strength: int = Field(default=0, ge=0, le=100)
