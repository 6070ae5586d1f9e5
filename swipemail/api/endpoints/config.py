from fastapi import APIRouter, Depends

from swipemail.api.dependencies import get_tag_extractor
from swipemail.core.config import settings
from swipemail.services.tag_extractor import TagExtractor

router = APIRouter(prefix="/api", tags=["config"])


@router.get("/config")
async def get_config(extractor: TagExtractor = Depends(get_tag_extractor)) -> dict:
    """Feature flags and endpoint map for the UI."""
    return {
        "features": {
            "aiClassification": True,
            "mlLearning": True,
        },
        "limits": {
            "maxEmailsPerRequest": settings.MAX_ITEMS_PER_RANK_REQUEST,
        },
        "ml": {
            "tagModelEnabled": extractor.enabled,
            "defaultUserId": settings.DEFAULT_USER_ID,
            "endpoints": {
                "extractTokens": "/api/ml/extract-tokens",
                "updatePreferences": "/api/ml/update-preferences",
                "getProfile": "/api/ml/profile/{userId}",
                "scoreEmail": "/api/ml/score-email",
                "rankEmails": "/api/ml/rank-emails",
                "test": "/api/ml/test",
            },
        },
    }
