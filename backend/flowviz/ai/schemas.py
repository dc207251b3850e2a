"""
AI Pydantic schemas.
"""
from typing import Optional

from pydantic import BaseModel, Field

from flowviz.ai.providers import ModelDescriptor, VisionContent


class StreamAnalysisRequest(BaseModel):
    prompt: str = Field(min_length=1)
    system_prompt: Optional[str] = None


class VisionAnalysisRequest(BaseModel):
    content: list[VisionContent]
    max_tokens: Optional[int] = Field(default=None, gt=0)


class VisionAnalysisResponse(BaseModel):
    text: str
    model: ModelDescriptor


class ProviderListing(BaseModel):
    available: list[str]
    default: str
    configured: dict[str, bool]
