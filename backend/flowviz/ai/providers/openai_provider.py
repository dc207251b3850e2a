"""
OpenAI ChatGPT provider — implements AIService on Chat Completions.
Text deltas arrive as `choices[0].delta.content` chunks (the SDK consumes the
`[DONE]` sentinel); images are sent inline as base64 data URLs.
"""
import time
from typing import Any, AsyncIterator, Optional, Sequence

import openai

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


def to_data_url(media_type: str, base64_data: str) -> str:
    return f"data:{media_type};base64,{base64_data}"


def to_openai_content(fragments: Sequence[TextFragment | ImageFragment]) -> list[dict]:
    """Serialize validated vision fragments into chat message content parts."""
    content: list[dict] = []
    for fragment in fragments:
        if isinstance(fragment, TextFragment):
            if fragment.text:
                content.append({"type": "text", "text": fragment.text})
        else:
            content.append({
                "type": "image_url",
                "image_url": {
                    "url": to_data_url(fragment.image.media_type, fragment.image.base64_data),
                },
            })
    return content


def _is_recoverable(exc: Exception) -> bool:
    if isinstance(exc, (openai.RateLimitError, openai.APIConnectionError)):
        return True
    return isinstance(exc, openai.APIStatusError) and exc.status_code >= 500


def _describe(exc: Exception) -> str:
    if isinstance(exc, openai.AuthenticationError):
        return "OpenAI authentication failed; check OPENAI_API_KEY"
    if isinstance(exc, openai.RateLimitError):
        return f"OpenAI rate limit or quota exceeded: {exc}"
    return f"OpenAI API error: {exc}" if str(exc) else "OpenAI API error"


class OpenAIService(AIService):
    """OpenAI ChatCompletion provider."""

    provider = ProviderIdentity.OPENAI
    display_name = "OpenAI ChatGPT"
    default_model = "gpt-4o"

    def __init__(self, config: ProviderConfig, client: Optional[Any] = None):
        super().__init__(config)
        self._client = client or openai.AsyncOpenAI(
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
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        usage = {"prompt_tokens": 0, "completion_tokens": 0}

        try:
            stream = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                max_tokens=STREAM_MAX_TOKENS,
                temperature=TEMPERATURE,
                stream=True,
                stream_options={"include_usage": True},
            )
            async with stream:
                async for chunk in stream:
                    chunk_usage = getattr(chunk, "usage", None)
                    if chunk_usage is not None:
                        usage["prompt_tokens"] = chunk_usage.prompt_tokens or 0
                        usage["completion_tokens"] = chunk_usage.completion_tokens or 0
                    # The usage tail carries no choices
                    if not chunk.choices:
                        continue
                    text = chunk.choices[0].delta.content
                    if text:
                        chunks += 1
                        yield ContentEvent(text=text)
        except GeneratorExit:
            logger.info(
                "OpenAI stream closed by consumer",
                extra={"event": "stream_cancelled", "provider": "openai",
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
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[{"role": "user", "content": to_openai_content(fragments)}],
                max_tokens=max_tokens or VISION_MAX_TOKENS,
                temperature=TEMPERATURE,
            )
        except Exception as exc:
            message = _describe(exc)
            log_llm_call(self._record(prompt_text, None, start, operation="vision_analysis", error=message))
            raise AIProviderError(message, provider="openai", model=self._model) from exc

        try:
            text = (response.choices[0].message.content or "") if response.choices else ""
        except (AttributeError, TypeError) as exc:
            message = f"OpenAI returned an unexpected response shape: {exc}"
            log_llm_call(self._record(prompt_text, None, start, operation="vision_analysis", error=message))
            raise AIProviderError(message, provider="openai", model=self._model) from exc

        usage = getattr(response, "usage", None)
        log_llm_call(self._record(
            prompt_text, None, start,
            operation="vision_analysis",
            prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
        ))
        return text

    def get_model_info(self) -> ModelDescriptor:
        return ModelDescriptor(
            provider=self.display_name,
            model=self._model,
            supports_vision="gpt-4" in self._model,
        )
