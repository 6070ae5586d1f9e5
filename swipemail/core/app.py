from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from swipemail.api.dependencies import get_tag_extractor
from swipemail.api.main import api_router

from .config import settings
from .version import __version__


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events (startup/shutdown).
    """
    logger.info(f"Profiles stored in {settings.PROFILES_DIR.resolve()}")
    yield
    try:
        await get_tag_extractor().close()
        logger.info("Tag extractor HTTP client closed")
    except Exception as exc:
        logger.warning(f"Failed to close tag extractor HTTP client: {exc}")


app = FastAPI(
    title="SwipeMail",
    description="Preference learning and ranking API for the SwipeMail client",
    version=__version__,
    lifespan=lifespan,
    docs_url=None if settings.APP_ENV != "development" else "/docs",
    redoc_url=None if settings.APP_ENV != "development" else "/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)
