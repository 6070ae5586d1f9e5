import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import AliasChoices, BaseModel, Field

from swipemail.api.dependencies import get_preference_service, get_tag_cache, get_tag_extractor
from swipemail.core.config import settings
from swipemail.models.profile import SwipeOutcome
from swipemail.services.preference_service import PreferenceService
from swipemail.services.profile.scorer import normalize_tags
from swipemail.services.ranking import RankMode
from swipemail.services.tag_extractor import TagCache, TagExtractor
from swipemail.shared.ids import redact_user_id

router = APIRouter(prefix="/api/ml", tags=["ml"])


class ExtractTagsRequest(BaseModel):
    subject: str | None = None
    body: str | None = None


class UpdatePreferencesRequest(BaseModel):
    user_id: str | None = Field(default=None, validation_alias=AliasChoices("userId", "user_id"))
    tags: list[str] | None = Field(default=None, validation_alias=AliasChoices("tags", "tokens"))
    action: str | None = Field(
        default=None,
        validation_alias=AliasChoices("outcome", "action"),
        description="interested | not_interested (legacy: right | left)",
    )


class ScoreEmailRequest(BaseModel):
    user_id: str | None = Field(default=None, validation_alias=AliasChoices("userId", "user_id"))
    tags: list[str] | None = Field(default=None, validation_alias=AliasChoices("tags", "tokens"))


class RankEmailsRequest(BaseModel):
    user_id: str | None = Field(default=None, validation_alias=AliasChoices("userId", "user_id"))
    items: list[dict[str, Any]] | None = Field(default=None, validation_alias=AliasChoices("items", "emails"))
    mode: str | None = Field(default=None, validation_alias=AliasChoices("mode", "streamType"))
    window_days: float | None = Field(
        default=None,
        gt=0,
        validation_alias=AliasChoices("windowDays", "window_days"),
        description="Only rank items from the last N days",
    )


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.post("/extract-tokens")
async def extract_tokens(payload: ExtractTagsRequest, extractor: TagExtractor = Depends(get_tag_extractor)):
    if not payload.subject and not payload.body:
        raise HTTPException(status_code=400, detail="Subject or body is required")

    tags = await extractor.extract_tags(payload.subject or "", payload.body or "")
    return {
        "success": True,
        "tokens": tags,
        "metadata": {
            "subject": payload.subject or "",
            "bodyLength": len(payload.body or ""),
            "timestamp": _now(),
        },
    }


@router.post("/update-preferences")
async def update_preferences(
    payload: UpdatePreferencesRequest,
    service: PreferenceService = Depends(get_preference_service),
):
    if not payload.user_id or payload.tags is None or not payload.action:
        raise HTTPException(status_code=400, detail="Missing required fields: userId, tokens, action")
    try:
        outcome = SwipeOutcome.from_action(payload.action)
    except ValueError:
        raise HTTPException(status_code=400, detail="Action must be interested or not_interested")
    if not normalize_tags(payload.tags):
        raise HTTPException(status_code=400, detail="Tokens must be a non-empty array of strings")

    try:
        result = await run_in_threadpool(service.update_preferences, payload.user_id, payload.tags, outcome)
    except Exception as exc:
        logger.error(f"[{redact_user_id(payload.user_id)}] Preference update failed: {exc}")
        raise HTTPException(status_code=500, detail="Failed to update preferences")

    return {
        "success": True,
        "preferences": {tag: counts.model_dump() for tag, counts in result.value.items()},
        "persisted": result.ok,
        "message": f"Updated preferences for {len(payload.tags)} tokens",
    }


@router.post("/score-email")
async def score_email(payload: ScoreEmailRequest, service: PreferenceService = Depends(get_preference_service)):
    if not payload.user_id or payload.tags is None:
        raise HTTPException(status_code=400, detail="Missing required fields: userId, tokens")

    try:
        score = await run_in_threadpool(service.score_email, payload.user_id, payload.tags)
    except Exception as exc:
        logger.error(f"[{redact_user_id(payload.user_id)}] Scoring failed: {exc}")
        raise HTTPException(status_code=500, detail="Failed to score email")

    return {"success": True, "score": score, "tokens": payload.tags, "timestamp": _now()}


@router.post("/rank-emails")
async def rank_emails(
    payload: RankEmailsRequest,
    service: PreferenceService = Depends(get_preference_service),
    extractor: TagExtractor = Depends(get_tag_extractor),
    tag_cache: TagCache = Depends(get_tag_cache),
):
    if not payload.user_id or payload.items is None:
        raise HTTPException(status_code=400, detail="Missing required fields: userId, emails")
    if len(payload.items) > settings.MAX_ITEMS_PER_RANK_REQUEST:
        raise HTTPException(
            status_code=400,
            detail=f"At most {settings.MAX_ITEMS_PER_RANK_REQUEST} emails can be ranked per request",
        )
    try:
        mode = RankMode.from_stream(payload.mode)
    except ValueError:
        raise HTTPException(status_code=400, detail="Mode must be smart or unread")

    async def _with_tags(item: dict[str, Any]) -> dict[str, Any]:
        if item.get("tags") is not None or item.get("_tokens") is not None:
            return item
        return {**item, "tags": await tag_cache.resolve(item, extractor)}

    items = await asyncio.gather(*[_with_tags(item) for item in payload.items])
    window = timedelta(days=payload.window_days) if payload.window_days else None

    try:
        ranked = await run_in_threadpool(service.rank_emails, payload.user_id, items, mode, window)
    except Exception as exc:
        logger.error(f"[{redact_user_id(payload.user_id)}] Ranking failed: {exc}")
        raise HTTPException(status_code=500, detail="Failed to rank emails")

    return {"success": True, "emails": ranked, "totalEmails": len(ranked), "timestamp": _now()}


@router.get("/profile/{user_id}")
async def get_profile(user_id: str, service: PreferenceService = Depends(get_preference_service)):
    try:
        profile, insights = await run_in_threadpool(service.get_profile, user_id)
    except Exception as exc:
        logger.error(f"[{redact_user_id(user_id)}] Profile lookup failed: {exc}")
        raise HTTPException(status_code=500, detail="Failed to load profile")

    return {
        "success": True,
        "profile": profile.to_record(),
        "insights": insights.model_dump(by_alias=True),
    }


@router.delete("/profile/{user_id}")
async def reset_profile(user_id: str, service: PreferenceService = Depends(get_preference_service)):
    success = await run_in_threadpool(service.reset_profile, user_id)
    if not success:
        return JSONResponse(status_code=500, content={"success": False, "error": "Failed to reset profile"})
    return {"success": True, "message": f"Profile reset for user {user_id}"}


@router.get("/test")
async def test_extractor(extractor: TagExtractor = Depends(get_tag_extractor)):
    return await extractor.test_connection()
