from fastapi import APIRouter

from .endpoints.config import router as config_router
from .endpoints.health import router as health_router
from .endpoints.ml import router as ml_router

api_router = APIRouter()


@api_router.get("/")
async def root():
    return {"message": "SwipeMail API is running"}


api_router.include_router(health_router)
api_router.include_router(config_router)
api_router.include_router(ml_router)
