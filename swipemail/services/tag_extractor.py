import hashlib
import json
import re
from collections.abc import Mapping
from typing import Any

import httpx
from cachetools import TTLCache
from loguru import logger

from swipemail.core.config import settings
from swipemail.core.constants import (
    BODY_PROMPT_CHARS,
    GENERIC_TAGS,
    MAX_EXTRACTED_TAGS,
    MAX_FALLBACK_WORD_TAGS,
    MAX_HEURISTIC_TAGS,
    MAX_TAG_LENGTH,
    SUBJECT_PROMPT_CHARS,
)

KEYWORD_PATTERNS: dict[str, re.Pattern[str]] = {
    "technology": re.compile(r"\b(tech|software|app|api|code|programming|development|digital)\b"),
    "business": re.compile(r"\b(business|company|corporate|enterprise|startup|revenue)\b"),
    "career": re.compile(r"\b(job|career|hiring|position|employment|opportunity|resume)\b"),
    "finance": re.compile(r"\b(money|payment|invoice|financial|budget|investment|banking)\b"),
    "marketing": re.compile(r"\b(marketing|promotion|advertisement|campaign|brand|social)\b"),
    "newsletter": re.compile(r"\b(newsletter|digest|weekly|monthly|update|news)\b"),
    "event": re.compile(r"\b(event|meeting|conference|webinar|workshop|seminar)\b"),
    "urgent": re.compile(r"\b(urgent|asap|immediately|deadline|expires|limited)\b"),
    "personal": re.compile(r"\b(personal|private|confidential|individual)\b"),
}

WORD_PATTERN = re.compile(r"\b[a-z]{3,20}\b")
CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


def clean_text(text: str | None) -> str:
    if not text:
        return ""
    text = re.sub(r"\s+", " ", text)
    return text.replace("<", "").replace(">", "").strip()


def heuristic_tags(subject: str, body: str) -> list[str]:
    """Keyword scan used whenever the model is unavailable."""
    content = f"{subject} {body}".lower()
    tags = [tag for tag, pattern in KEYWORD_PATTERNS.items() if pattern.search(content)]
    if not tags:
        tags = list(GENERIC_TAGS)
    return tags[:MAX_HEURISTIC_TAGS]


def words_from_text(content: str) -> list[str]:
    """Unique words from a model reply that was not valid JSON."""
    words = WORD_PATTERN.findall(content.lower())
    return list(dict.fromkeys(words))[:MAX_FALLBACK_WORD_TAGS]


def parse_tag_response(content: str) -> list[str]:
    stripped = CODE_FENCE.sub("", content.strip())
    try:
        parsed = json.loads(stripped)
    except ValueError:
        logger.warning(f"Tag model returned non-JSON content: {content[:80]!r}")
        return words_from_text(content)

    if not isinstance(parsed, list):
        return []

    tags: list[str] = []
    for value in parsed:
        if not isinstance(value, str):
            continue
        tag = value.strip().lower()
        if 0 < len(tag) < MAX_TAG_LENGTH:
            tags.append(tag)
    return tags[:MAX_EXTRACTED_TAGS]


class TagExtractor:
    """
    Turns an email's subject and body into a short list of category tags.

    Uses an OpenAI-compatible chat completions endpoint. Never raises for
    upstream trouble: transport or HTTP errors fall back to a local keyword
    heuristic.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.TAG_API_KEY
        self.base_url = (base_url or settings.TAG_API_BASE_URL).rstrip("/")
        self.model = model or settings.TAG_MODEL
        self.timeout = timeout or settings.TAG_API_TIMEOUT_SECONDS
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        if not self.api_key:
            logger.warning("TAG_API_KEY not set. Tags will come from the keyword heuristic.")

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"Authorization": f"Bearer {self.api_key}"},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    @staticmethod
    def build_prompt(subject: str, body: str) -> str:
        clean_subject = clean_text(subject)[:SUBJECT_PROMPT_CHARS]
        clean_body = clean_text(body)[:BODY_PROMPT_CHARS]
        return f"""Analyze this email and extract 8-12 descriptive categories or topics as a JSON array. Focus on:
- Industry/field (e.g., "technology", "healthcare", "finance")
- Email type (e.g., "newsletter", "promotion", "announcement", "job_posting")
- Content themes (e.g., "career", "productivity", "networking", "events")
- Sentiment indicators (e.g., "urgent", "informational", "sales_pitch")

Email Subject: {clean_subject}

Email Content: {clean_body}

Return only a JSON array of strings, no other text. Example: ["technology", "newsletter", "career", "informational"]"""

    async def _complete(self, prompt: str) -> str:
        client = await self.get_client()
        response = await client.post(
            "/chat/completions",
            json={
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": 0.3,
                "max_tokens": 150,
            },
        )
        response.raise_for_status()
        data = response.json()
        message = (data.get("choices") or [{}])[0].get("message") or {}
        return (message.get("content") or "").strip()

    async def extract_tags(self, subject: str | None, body: str | None) -> list[str]:
        subject = subject or ""
        body = body or ""
        if not subject.strip() and not body.strip():
            return []

        if not self.enabled:
            return heuristic_tags(subject, body)

        try:
            content = await self._complete(self.build_prompt(subject, body))
        except (httpx.HTTPError, ValueError, AttributeError, TypeError) as exc:
            logger.warning(f"Tag extraction request failed, using keyword heuristic: {exc}")
            return heuristic_tags(subject, body)

        if not content:
            logger.warning("Empty response from tag model")
            return []
        return parse_tag_response(content)

    async def test_connection(self) -> dict[str, Any]:
        if not self.enabled:
            return {"success": False, "error": "API key not configured"}
        try:
            tags = await self.extract_tags("Test email subject", "Test email content about technology and business.")
        except Exception as exc:
            logger.exception(f"Tag extractor probe failed: {exc}")
            return {"success": False, "error": str(exc)}
        return {"success": True, "tags": tags, "message": "Tag extractor is working"}


class TagCache:
    """
    Bounded in-process cache of extracted tags.

    Keyed by item id when the item has one, otherwise by a hash of its
    subject and body. Entries expire after the configured TTL.
    """

    def __init__(self, maxsize: int | None = None, ttl: int | None = None):
        self._cache: TTLCache = TTLCache(
            maxsize=maxsize or settings.TAG_CACHE_SIZE,
            ttl=ttl or settings.TAG_CACHE_TTL_SECONDS,
        )

    @staticmethod
    def key_for(item: Mapping[str, Any]) -> str:
        item_id = item.get("id")
        if item_id:
            return f"id:{item_id}"
        subject = str(item.get("subject") or "")
        body = str(item.get("body") or item.get("snippet") or "")
        digest = hashlib.sha256(f"{subject}\x00{body}".encode("utf-8")).hexdigest()
        return f"sha256:{digest}"

    def get(self, item: Mapping[str, Any]) -> list[str] | None:
        return self._cache.get(self.key_for(item))

    def set(self, item: Mapping[str, Any], tags: list[str]) -> None:
        self._cache[self.key_for(item)] = list(tags)

    def clear(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)

    async def resolve(self, item: Mapping[str, Any], extractor: TagExtractor) -> list[str]:
        """Return cached tags for an item, extracting and caching them on a miss."""
        cached = self.get(item)
        if cached is not None:
            logger.debug(f"Tag cache hit for {self.key_for(item)[:20]}")
            return list(cached)

        tags = await extractor.extract_tags(item.get("subject"), item.get("body") or item.get("snippet"))
        self.set(item, tags)
        return tags
