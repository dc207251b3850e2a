"""
Shared fixtures: fabricated settings and in-memory stand-ins for vendor SDK clients.
No test reaches the network or reads the real process environment.
"""
from types import SimpleNamespace
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from flowviz.config import Settings

_BLANK_AI_ENV = {
    "AI_PROVIDER": None,
    "ANTHROPIC_API_KEY": None,
    "ANTHROPIC_BASE_URL": None,
    "ANTHROPIC_MODEL": None,
    "OPENAI_API_KEY": None,
    "OPENAI_BASE_URL": None,
    "OPENAI_MODEL": None,
}


def build_settings(**overrides: Any) -> Settings:
    """Settings with every AI variable unset except `overrides`."""
    return Settings(_env_file=None, **{**_BLANK_AI_ENV, **overrides})


@pytest.fixture
def make_settings():
    return build_settings


class FakeStream:
    """Async-iterable, async-context-managed vendor stream.

    Yields `items` in order; raises `error` after `fail_after` items when set.
    """

    def __init__(self, items: list, error: Optional[Exception] = None, fail_after: Optional[int] = None):
        self.items = items
        self.error = error
        self.fail_after = len(items) if error is not None and fail_after is None else fail_after
        self.entered = False
        self.closed = False
        self.pulled = 0

    async def __aenter__(self):
        self.entered = True
        return self

    async def __aexit__(self, *exc_info):
        self.closed = True
        return False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for index, item in enumerate(self.items):
            if self.fail_after is not None and index == self.fail_after:
                raise self.error
            self.pulled += 1
            yield item
        if self.fail_after is not None and self.fail_after >= len(self.items):
            raise self.error


def anthropic_text_delta(text: str) -> SimpleNamespace:
    return SimpleNamespace(
        type="content_block_delta",
        delta=SimpleNamespace(type="text_delta", text=text),
    )


def anthropic_events(chunks: list[str], input_tokens: int = 12, output_tokens: Optional[int] = None) -> list:
    """A realistic Messages stream: framing events around the text deltas.

    Input usage rides on `message_start`, cumulative output usage on `message_delta`.
    """
    if output_tokens is None:
        output_tokens = len(chunks)
    return (
        [
            SimpleNamespace(
                type="message_start",
                message=SimpleNamespace(usage=SimpleNamespace(input_tokens=input_tokens, output_tokens=1)),
            ),
            SimpleNamespace(type="content_block_start"),
        ]
        + [anthropic_text_delta(c) for c in chunks]
        + [
            SimpleNamespace(type="content_block_stop"),
            SimpleNamespace(type="message_delta", usage=SimpleNamespace(output_tokens=output_tokens)),
            SimpleNamespace(type="message_stop"),
        ]
    )


def openai_chunk(text: Optional[str]) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=text))], usage=None)


def openai_chunks(chunks: list[str], prompt_tokens: int = 12, completion_tokens: Optional[int] = None) -> list:
    """Chat completion chunks: role-only opener, text deltas, empty finish, usage-only tail."""
    if completion_tokens is None:
        completion_tokens = len(chunks)
    usage = SimpleNamespace(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens)
    return (
        [openai_chunk(None)]
        + [openai_chunk(c) for c in chunks]
        + [openai_chunk(None), SimpleNamespace(choices=[], usage=usage)]
    )


def fake_anthropic_client(stream: Optional[FakeStream] = None, response: Any = None) -> MagicMock:
    client = MagicMock()
    client.messages.stream = MagicMock(return_value=stream)
    client.messages.create = AsyncMock(return_value=response)
    return client


def fake_openai_client(stream: Optional[FakeStream] = None, response: Any = None) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=stream if stream is not None else response)
    return client


@pytest.fixture
def fakes():
    """Namespace of fake-building helpers for vendor SDK clients."""
    return SimpleNamespace(
        FakeStream=FakeStream,
        anthropic_events=anthropic_events,
        openai_chunks=openai_chunks,
        anthropic_client=fake_anthropic_client,
        openai_client=fake_openai_client,
    )
