"""FastAPI dependency providers for the preference engine and tag extractor."""

from functools import lru_cache

from swipemail.services.preference_service import PreferenceService
from swipemail.services.tag_extractor import TagCache, TagExtractor


@lru_cache(maxsize=1)
def get_preference_service() -> PreferenceService:
    return PreferenceService()


@lru_cache(maxsize=1)
def get_tag_extractor() -> TagExtractor:
    return TagExtractor()


@lru_cache(maxsize=1)
def get_tag_cache() -> TagCache:
    return TagCache()
