"""
AI Provider abstraction layer.
Supports Anthropic Claude and OpenAI ChatGPT with unified interface.
"""
from flowviz.ai.providers.base import (
    AIProviderError,
    AIService,
    ConfigurationError,
    ContentEvent,
    DoneEvent,
    ErrorEvent,
    ImageData,
    ImageFragment,
    MissingCredentialError,
    ModelDescriptor,
    ProviderConfig,
    ProviderIdentity,
    StreamEvent,
    TextFragment,
    UnsupportedProviderError,
    VisionContent,
    VisionInputError,
)
from flowviz.ai.providers.factory import KNOWN_PROVIDERS, ProviderSelector, create_ai_service

__all__ = [
    "AIProviderError",
    "AIService",
    "ConfigurationError",
    "ContentEvent",
    "DoneEvent",
    "ErrorEvent",
    "ImageData",
    "ImageFragment",
    "KNOWN_PROVIDERS",
    "MissingCredentialError",
    "ModelDescriptor",
    "ProviderConfig",
    "ProviderIdentity",
    "ProviderSelector",
    "StreamEvent",
    "TextFragment",
    "UnsupportedProviderError",
    "VisionContent",
    "VisionInputError",
    "create_ai_service",
]
