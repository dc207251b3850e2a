"""
AI analysis API endpoints + provider listing.
The provider for a request comes from the X-AI-Provider header; the
configured default applies when it is absent.
"""
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import StreamingResponse

from flowviz.ai.providers import (
    AIProviderError,
    AIService,
    MissingCredentialError,
    ProviderSelector,
    UnsupportedProviderError,
    VisionInputError,
    create_ai_service,
)
from flowviz.ai.schemas import (
    ProviderListing,
    StreamAnalysisRequest,
    VisionAnalysisRequest,
    VisionAnalysisResponse,
)
from flowviz.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


def get_selector() -> ProviderSelector:
    return ProviderSelector()


def get_ai_service(
    x_ai_provider: Optional[str] = Header(default=None),
    selector: ProviderSelector = Depends(get_selector),
) -> AIService:
    """Resolve the AIService for this request from the X-AI-Provider header."""
    try:
        config = selector.config_from_environment(x_ai_provider)
        return create_ai_service(config)
    except UnsupportedProviderError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except MissingCredentialError as exc:
        raise HTTPException(status_code=503, detail=f"AI service unavailable: {exc}")


async def _sse(events: AsyncIterator) -> AsyncIterator[str]:
    """Frame stream events as server-sent events; closes the source on disconnect."""
    try:
        async for event in events:
            yield f"data: {event.model_dump_json()}\n\n"
    finally:
        await events.aclose()


@router.get("/providers", response_model=ProviderListing)
async def list_providers(selector: ProviderSelector = Depends(get_selector)):
    """Return available providers and the configured default (no secrets)."""
    return selector.describe()


@router.post("/analyze/stream")
async def stream_analysis(
    data: StreamAnalysisRequest,
    service: AIService = Depends(get_ai_service),
):
    """Stream an article analysis as server-sent events."""
    logger.info(
        "Streaming analysis requested",
        extra={"event": "analysis_stream", "provider": service.provider.value, "model": service.model},
    )
    events = service.stream_analysis(data.prompt, data.system_prompt)
    return StreamingResponse(
        _sse(events),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post("/analyze/vision", response_model=VisionAnalysisResponse)
async def vision_analysis(
    data: VisionAnalysisRequest,
    service: AIService = Depends(get_ai_service),
):
    """Analyse an ordered text/image prompt in one round trip."""
    try:
        text = await service.vision_analysis(data.content, max_tokens=data.max_tokens)
    except VisionInputError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except AIProviderError as exc:
        logger.error(
            "Vision analysis failed",
            extra={"event": "ai_call_error", "operation": "vision_analysis",
                   "provider": service.provider.value, "error": str(exc)},
        )
        raise HTTPException(status_code=503, detail=f"AI service unavailable: {exc}")
    return VisionAnalysisResponse(text=text, model=service.get_model_info())
