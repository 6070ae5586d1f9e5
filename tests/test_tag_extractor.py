"""
Tests for the tag extractor and tag cache.

Tests cover:
- Parsing of model replies (JSON arrays, fenced JSON, free text)
- Keyword heuristic fallback on missing key and upstream failure
- Request shape sent to the chat completions endpoint
- Tag cache keys and hit behaviour
"""

import json

import httpx
import pytest

from swipemail.services.tag_extractor import (
    TagCache,
    TagExtractor,
    clean_text,
    heuristic_tags,
    parse_tag_response,
)


def completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def make_extractor(handler) -> TagExtractor:
    return TagExtractor(
        api_key="test-key",
        base_url="https://llm.test/v1",
        model="test-model",
        transport=httpx.MockTransport(handler),
    )


class TestParsing:
    def test_json_array_is_cleaned(self):
        content = json.dumps(["Technology", " Newsletter ", "", 42, "x" * 60, "career"])
        assert parse_tag_response(content) == ["technology", "newsletter", "career"]

    def test_json_array_is_truncated(self):
        content = json.dumps([f"tag{i}" for i in range(20)])
        assert len(parse_tag_response(content)) == 12

    def test_fenced_json(self):
        assert parse_tag_response('```json\n["finance", "invoice"]\n```') == ["finance", "invoice"]

    def test_non_list_json(self):
        assert parse_tag_response('{"tags": ["a"]}') == []

    def test_free_text_falls_back_to_words(self):
        content = "Categories: technology, newsletter, technology and AI"
        assert parse_tag_response(content) == ["categories", "technology", "newsletter", "and"]

    def test_clean_text(self):
        assert clean_text("  Hello\n\n<b>world</b>  ") == "Hello bworld/b"
        assert clean_text(None) == ""


class TestHeuristic:
    def test_keyword_matches(self):
        assert heuristic_tags("Your invoice is ready", "Please make the payment") == ["finance"]

    def test_several_categories(self):
        tags = heuristic_tags("Weekly newsletter", "Join our webinar about software hiring")
        assert tags == ["technology", "career", "newsletter", "event"]

    def test_generic_tags_when_nothing_matches(self):
        assert heuristic_tags("Hello", "How are you?") == ["general", "email"]


class TestTagExtractor:
    @pytest.mark.asyncio
    async def test_empty_input_returns_nothing(self):
        def handler(request):
            raise AssertionError("no request expected")

        assert await make_extractor(handler).extract_tags("", "   ") == []

    @pytest.mark.asyncio
    async def test_without_api_key_uses_heuristic(self):
        extractor = TagExtractor(api_key="")
        assert not extractor.enabled
        assert await extractor.extract_tags("Invoice", "") == ["finance"]

    @pytest.mark.asyncio
    async def test_successful_extraction(self):
        seen: list[httpx.Request] = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=completion('["Technology", "newsletter"]'))

        extractor = make_extractor(handler)
        tags = await extractor.extract_tags("AI Weekly", "New models released")
        await extractor.close()

        assert tags == ["technology", "newsletter"]
        request = seen[0]
        assert request.url.path == "/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer test-key"
        body = json.loads(request.content)
        assert body["model"] == "test-model"
        assert body["temperature"] == 0.3
        assert body["max_tokens"] == 150
        assert "Email Subject: AI Weekly" in body["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_prompt_truncates_long_content(self):
        prompt = TagExtractor.build_prompt("s" * 500, "b" * 5000)
        assert "s" * 200 in prompt and "s" * 201 not in prompt
        assert "b" * 1500 in prompt and "b" * 1501 not in prompt

    @pytest.mark.asyncio
    async def test_http_error_falls_back_to_heuristic(self):
        extractor = make_extractor(lambda request: httpx.Response(500, json={"error": "overloaded"}))
        assert await extractor.extract_tags("Urgent: deadline tomorrow", "") == ["urgent"]

    @pytest.mark.asyncio
    async def test_transport_error_falls_back_to_heuristic(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        extractor = make_extractor(handler)
        assert await extractor.extract_tags("Hi", "there") == ["general", "email"]

    @pytest.mark.asyncio
    async def test_empty_model_reply(self):
        extractor = make_extractor(lambda request: httpx.Response(200, json=completion("   ")))
        assert await extractor.extract_tags("Hi", "there") == []

    @pytest.mark.asyncio
    async def test_connection_probe(self):
        extractor = make_extractor(lambda request: httpx.Response(200, json=completion('["technology"]')))
        result = await extractor.test_connection()
        assert result == {"success": True, "tags": ["technology"], "message": "Tag extractor is working"}

    @pytest.mark.asyncio
    async def test_connection_probe_without_key(self):
        result = await TagExtractor(api_key="").test_connection()
        assert result["success"] is False


class TestTagCache:
    def test_key_prefers_item_id(self):
        assert TagCache.key_for({"id": "m-1", "subject": "x"}) == "id:m-1"

    def test_key_hashes_content_without_id(self):
        a = TagCache.key_for({"subject": "Hello", "body": "World"})
        b = TagCache.key_for({"subject": "Hello", "snippet": "World"})
        c = TagCache.key_for({"subject": "Hello", "body": "Other"})
        assert a == b
        assert a != c
        assert a.startswith("sha256:")

    def test_eviction_is_bounded(self):
        cache = TagCache(maxsize=2, ttl=60)
        for i in range(5):
            cache.set({"id": str(i)}, ["t"])
        assert len(cache) == 2

    @pytest.mark.asyncio
    async def test_resolve_caches_extraction(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=completion('["finance"]'))

        cache = TagCache(maxsize=10, ttl=60)
        extractor = make_extractor(handler)
        item = {"id": "m-1", "subject": "Invoice", "snippet": "Amount due"}

        first = await cache.resolve(item, extractor)
        second = await cache.resolve(item, extractor)

        assert first == second == ["finance"]
        assert len(calls) == 1

        cache.clear()
        assert cache.get(item) is None
