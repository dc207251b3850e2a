"""
FlowViz AI service — FastAPI application entry point.
Structured logging and startup validation of provider configuration.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from flowviz.ai.providers import ConfigurationError, ProviderSelector
from flowviz.ai.router import router as ai_router
from flowviz.config import get_settings
from flowviz.core.logging import get_logger, setup_logging

settings = get_settings()

# Initialize structured logging FIRST
setup_logging(level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    selector = ProviderSelector(settings)
    try:
        selector.require_any_provider()
    except ConfigurationError as exc:
        logger.critical(str(exc), extra={"event": "startup_config_error"})
        raise

    logger.info(
        f"Starting {settings.APP_NAME}",
        extra={"event": "startup", **selector.describe()},
    )

    yield

    logger.info("Application shutdown complete", extra={"event": "shutdown"})


app = FastAPI(
    title=settings.APP_NAME,
    version="0.2.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ai_router, prefix="/api/ai", tags=["AI"])


@app.get("/health")
async def health():
    return {"status": "ok"}
