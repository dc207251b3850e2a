"""
Anthropic Claude provider — implements AIService on the Messages API.
Text deltas arrive as typed `content_block_delta` events; images are sent
as nested base64 `source` objects.
"""
import time
from typing import Any, AsyncIterator, Optional, Sequence

import anthropic

from flowviz.ai.llm_audit_logger import log_llm_call
from flowviz.ai.providers.base import (
    STREAM_MAX_TOKENS,
    TEMPERATURE,
    VISION_MAX_TOKENS,
    AIProviderError,
    AIService,
    ContentEvent,
    DoneEvent,
    ErrorEvent,
    ImageFragment,
    ModelDescriptor,
    ProviderConfig,
    ProviderIdentity,
    TextFragment,
    validate_vision_content,
)
from flowviz.core.logging import get_logger

logger = get_logger(__name__)


def to_anthropic_content(fragments: Sequence[TextFragment | ImageFragment]) -> list[dict]:
    """Serialize validated vision fragments into Messages API content blocks."""
    content: list[dict] = []
    for fragment in fragments:
        if isinstance(fragment, TextFragment):
            if fragment.text:
                content.append({"type": "text", "text": fragment.text})
        else:
            content.append({
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": fragment.image.media_type,
                    "data": fragment.image.base64_data,
                },
            })
    return content


def _usage_value(holder: Any, field: str) -> int:
    """Token count from an event's `usage`, 0 when the vendor omitted it."""
    return getattr(getattr(holder, "usage", None), field, 0) or 0


def _is_recoverable(exc: Exception) -> bool:
    if isinstance(exc, (anthropic.RateLimitError, anthropic.APIConnectionError)):
        return True
    return isinstance(exc, anthropic.APIStatusError) and exc.status_code >= 500


def _describe(exc: Exception) -> str:
    if isinstance(exc, anthropic.AuthenticationError):
        return "Anthropic authentication failed; check ANTHROPIC_API_KEY"
    if isinstance(exc, anthropic.RateLimitError):
        return f"Anthropic rate limit exceeded: {exc}"
    return f"Anthropic API error: {exc}" if str(exc) else "Anthropic API error"


class AnthropicService(AIService):
    """Anthropic Claude provider."""

    provider = ProviderIdentity.ANTHROPIC
    display_name = "Anthropic Claude"
    default_model = "claude-sonnet-4-20250514"

    def __init__(self, config: ProviderConfig, client: Optional[Any] = None):
        super().__init__(config)
        # Constructing the SDK client opens no connection
        self._client = client or anthropic.AsyncAnthropic(
            api_key=config.api_key.get_secret_value(),
            base_url=config.base_url,
        )

    async def stream_analysis(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
    ) -> AsyncIterator[ContentEvent | ErrorEvent | DoneEvent]:
        start = time.perf_counter()
        chunks = 0
        request: dict[str, Any] = {
            "model": self._model,
            "max_tokens": STREAM_MAX_TOKENS,
            "temperature": TEMPERATURE,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            request["system"] = system_prompt

        usage = {"prompt_tokens": 0, "completion_tokens": 0}

        try:
            async with self._client.messages.stream(**request) as stream:
                async for event in stream:
                    if event.type == "content_block_delta" and event.delta.type == "text_delta":
                        chunks += 1
                        yield ContentEvent(text=event.delta.text)
                    elif event.type == "message_start":
                        usage["prompt_tokens"] = _usage_value(getattr(event, "message", None), "input_tokens")
                    elif event.type == "message_delta":
                        # Cumulative output count for the message so far
                        usage["completion_tokens"] = _usage_value(event, "output_tokens")
        except GeneratorExit:
            logger.info(
                "Anthropic stream closed by consumer",
                extra={"event": "stream_cancelled", "provider": "anthropic",
                       "model": self._model, "chunks": chunks},
            )
            log_llm_call(self._record(
                prompt, system_prompt, start, chunks=chunks, cancelled=True, **usage,
            ))
            raise
        except Exception as exc:
            message = _describe(exc)
            log_llm_call(self._record(prompt, system_prompt, start, chunks=chunks, error=message, **usage))
            yield ErrorEvent(error=message, recoverable=_is_recoverable(exc))
            return

        log_llm_call(self._record(prompt, system_prompt, start, chunks=chunks, **usage))
        yield DoneEvent()

    async def vision_analysis(
        self,
        content: Sequence[TextFragment | ImageFragment | dict],
        max_tokens: Optional[int] = None,
    ) -> str:
        fragments = validate_vision_content(content)
        prompt_text = "\n".join(f.text for f in fragments if isinstance(f, TextFragment))
        start = time.perf_counter()

        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=max_tokens or VISION_MAX_TOKENS,
                temperature=TEMPERATURE,
                messages=[{"role": "user", "content": to_anthropic_content(fragments)}],
            )
        except Exception as exc:
            message = _describe(exc)
            log_llm_call(self._record(prompt_text, None, start, operation="vision_analysis", error=message))
            raise AIProviderError(message, provider="anthropic", model=self._model) from exc

        try:
            text = next(
                (block.text for block in response.content if block.type == "text"),
                "",
            )
        except (AttributeError, TypeError) as exc:
            message = f"Anthropic returned an unexpected response shape: {exc}"
            log_llm_call(self._record(prompt_text, None, start, operation="vision_analysis", error=message))
            raise AIProviderError(message, provider="anthropic", model=self._model) from exc

        usage = getattr(response, "usage", None)
        input_tokens = getattr(usage, "input_tokens", 0) or 0
        output_tokens = getattr(usage, "output_tokens", 0) or 0
        log_llm_call(self._record(
            prompt_text, None, start,
            operation="vision_analysis",
            prompt_tokens=input_tokens,
            completion_tokens=output_tokens,
        ))
        return text

    def get_model_info(self) -> ModelDescriptor:
        return ModelDescriptor(
            provider=self.display_name,
            model=self._model,
            supports_vision=True,
        )
