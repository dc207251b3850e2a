"""
Abstract base class and value objects for AI providers.
All providers must implement stream_analysis(), vision_analysis() and get_model_info().
"""
import abc
import enum
import time
from typing import Annotated, AsyncIterator, Literal, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr, TypeAdapter, ValidationError

from flowviz.ai.llm_audit_logger import LLMCallRecord, hash_prompt

# Generation parameters shared by every provider
STREAM_MAX_TOKENS = 16000
VISION_MAX_TOKENS = 4000
TEMPERATURE = 0.1


# ═══════════════════════════════════════════════════════════════════
#  Errors
# ═══════════════════════════════════════════════════════════════════

class AIProviderError(Exception):
    """Raised when an AI provider call fails."""

    def __init__(self, message: str, provider: str = "", model: str = ""):
        self.provider = provider
        self.model = model
        super().__init__(message)


class ConfigurationError(AIProviderError):
    """Provider configuration is unusable. Raised before any network call."""


class UnsupportedProviderError(ConfigurationError):
    """The provider tag is not one of the known identities."""


class MissingCredentialError(ConfigurationError):
    """The resolved provider has no API key configured."""


class VisionInputError(AIProviderError):
    """Vision content failed validation. Raised before any network call."""


# ═══════════════════════════════════════════════════════════════════
#  Value objects
# ═══════════════════════════════════════════════════════════════════

class ProviderIdentity(str, enum.Enum):
    ANTHROPIC = "anthropic"
    OPENAI = "openai"

    @classmethod
    def parse(cls, value: "str | ProviderIdentity") -> "ProviderIdentity":
        """Resolve a provider tag, raising UnsupportedProviderError for unknown ones."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnsupportedProviderError(
                f"Unsupported AI provider: '{value}'. "
                f"Must be one of: {', '.join(p.value for p in cls)}.",
                provider=str(value),
            ) from None


DEFAULT_PROVIDER = ProviderIdentity.ANTHROPIC


class ProviderConfig(BaseModel):
    """Connection settings for one provider. The key is never echoed."""
    model_config = ConfigDict(frozen=True)

    provider: str
    api_key: SecretStr
    base_url: Optional[str] = None
    model: Optional[str] = None


class ImageData(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    base64_data: str = Field(min_length=1)
    media_type: str = Field(min_length=1)


class TextFragment(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class ImageFragment(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["image"] = "image"
    image: ImageData


VisionContent = Annotated[Union[TextFragment, ImageFragment], Field(discriminator="type")]

_vision_content_adapter = TypeAdapter(list[VisionContent])


class ContentEvent(BaseModel):
    type: Literal["content"] = "content"
    text: str


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    error: str
    recoverable: bool = False


class DoneEvent(BaseModel):
    type: Literal["done"] = "done"


StreamEvent = Annotated[Union[ContentEvent, ErrorEvent, DoneEvent], Field(discriminator="type")]


class ModelDescriptor(BaseModel):
    """Read-only metadata about the model an adapter is bound to."""
    model_config = ConfigDict(frozen=True)

    provider: str
    model: str
    supports_vision: bool


def validate_vision_content(
    content: Sequence["TextFragment | ImageFragment | dict"],
) -> list["TextFragment | ImageFragment"]:
    """Coerce and validate vision fragments, preserving order.

    Raises:
        VisionInputError if the list is empty, a fragment is malformed, or
        nothing would be sent (only empty text fragments).
    """
    if not content:
        raise VisionInputError("Vision analysis requires at least one content fragment")
    try:
        fragments = _vision_content_adapter.validate_python(
            [f.model_dump() if isinstance(f, BaseModel) else f for f in content]
        )
    except ValidationError as exc:
        raise VisionInputError(f"Invalid vision content: {exc}") from exc

    # Empty text is dropped on serialization
    if not any(isinstance(f, ImageFragment) or f.text for f in fragments):
        raise VisionInputError("Vision analysis requires an image or non-empty text")
    return fragments


# ═══════════════════════════════════════════════════════════════════
#  Capability contract
# ═══════════════════════════════════════════════════════════════════

class AIService(abc.ABC):
    """Abstract AI provider. One instance is bound to one model and one key."""

    provider: ProviderIdentity
    display_name: str = "base"
    default_model: str = ""

    def __init__(self, config: ProviderConfig):
        self._model = config.model or self.default_model

    @property
    def model(self) -> str:
        return self._model

    @abc.abstractmethod
    def stream_analysis(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
    ) -> AsyncIterator[ContentEvent | ErrorEvent | DoneEvent]:
        """
        Stream a text analysis as it is generated.

        Args:
            prompt: User-level prompt content.
            system_prompt: Optional system-level instruction.

        Yields:
            ContentEvent per text delta in vendor order, then exactly one
            DoneEvent, or exactly one ErrorEvent if the call fails.
            Closing the iterator early releases the vendor stream.
        """
        ...

    @abc.abstractmethod
    async def vision_analysis(
        self,
        content: Sequence["TextFragment | ImageFragment | dict"],
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Send an ordered multimodal prompt and return the response text.

        Returns:
            The response text, or "" when the vendor returned no text.

        Raises:
            VisionInputError before any network call if content is invalid.
            AIProviderError on any vendor failure.
        """
        ...

    @abc.abstractmethod
    def get_model_info(self) -> ModelDescriptor:
        """Describe the bound model. No network I/O."""
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model={self._model!r})"

    def _record(
        self,
        prompt: str,
        system_prompt: Optional[str],
        start: float,
        operation: str = "stream_analysis",
        chunks: int = 0,
        prompt_tokens: int = 0,
        completion_tokens: int = 0,
        error: Optional[str] = None,
        cancelled: bool = False,
    ) -> LLMCallRecord:
        """Build the audit record for one vendor call started at `start`."""
        return LLMCallRecord(
            provider=self.provider.value,
            model=self._model,
            operation=operation,
            prompt_hash=hash_prompt(prompt),
            prompt_length=len(prompt),
            system_prompt_length=len(system_prompt or ""),
            success=error is None and not cancelled,
            latency_ms=round((time.perf_counter() - start) * 1000, 2),
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
            chunks=chunks,
            temperature=TEMPERATURE,
            cancelled=cancelled,
            error=error,
        )
