"""
Tests for the AI router: provider listing, header-based provider selection,
server-sent event framing and error mapping.
"""
import json
from unittest.mock import patch

from fastapi import FastAPI
from fastapi.testclient import TestClient

from flowviz.ai.providers import (
    AIProviderError,
    AIService,
    ContentEvent,
    DoneEvent,
    ErrorEvent,
    ModelDescriptor,
    ProviderIdentity,
    ProviderSelector,
    VisionInputError,
)
from flowviz.ai.router import get_ai_service, get_selector, router


class StubService(AIService):
    """In-memory AIService that replays fixed events."""

    provider = ProviderIdentity.OPENAI
    display_name = "Stub"
    default_model = "stub-model"

    def __init__(self, events=None, vision_result="", vision_error=None):
        self._model = self.default_model
        self.events = events or []
        self.vision_result = vision_result
        self.vision_error = vision_error
        self.stream_calls = []
        self.closed = False

    async def stream_analysis(self, prompt, system_prompt=None):
        self.stream_calls.append((prompt, system_prompt))
        try:
            for event in self.events:
                yield event
        finally:
            self.closed = True

    async def vision_analysis(self, content, max_tokens=None):
        if self.vision_error:
            raise self.vision_error
        return self.vision_result

    def get_model_info(self):
        return ModelDescriptor(provider=self.display_name, model=self._model, supports_vision=True)


def _client(selector=None, service=None) -> TestClient:
    app = FastAPI()
    app.include_router(router, prefix="/api/ai")
    if selector is not None:
        app.dependency_overrides[get_selector] = lambda: selector
    if service is not None:
        app.dependency_overrides[get_ai_service] = lambda: service
    return TestClient(app)


def _sse_events(body: str) -> list[dict]:
    return [
        json.loads(line[len("data: "):])
        for line in body.splitlines()
        if line.startswith("data: ")
    ]


# ═══════════════════════════════════════════════════════════════════
#  Provider listing
# ═══════════════════════════════════════════════════════════════════

class TestProviderListing:

    def test_lists_available_and_default(self, make_settings):
        selector = ProviderSelector(make_settings(ANTHROPIC_API_KEY="sk-ant-secret"))
        resp = _client(selector=selector).get("/api/ai/providers")

        assert resp.status_code == 200
        assert resp.json() == {
            "available": ["anthropic"],
            "default": "anthropic",
            "configured": {"anthropic": True, "openai": False},
        }
        assert "sk-ant-secret" not in resp.text


# ═══════════════════════════════════════════════════════════════════
#  Header-based selection
# ═══════════════════════════════════════════════════════════════════

class TestProviderHeader:

    def test_unknown_provider_is_400(self, make_settings):
        selector = ProviderSelector(make_settings(ANTHROPIC_API_KEY="a"))
        resp = _client(selector=selector).post(
            "/api/ai/analyze/stream",
            json={"prompt": "hi"},
            headers={"X-AI-Provider": "gemini"},
        )
        assert resp.status_code == 400
        assert "Unsupported AI provider" in resp.json()["detail"]

    def test_unconfigured_provider_is_503(self, make_settings):
        selector = ProviderSelector(make_settings(ANTHROPIC_API_KEY="a"))
        resp = _client(selector=selector).post(
            "/api/ai/analyze/vision",
            json={"content": [{"type": "text", "text": "hi"}]},
            headers={"X-AI-Provider": "openai"},
        )
        assert resp.status_code == 503
        assert "OPENAI_API_KEY not configured" in resp.json()["detail"]

    def test_header_selects_provider(self, make_settings):
        selector = ProviderSelector(make_settings(ANTHROPIC_API_KEY="a", OPENAI_API_KEY="o"))
        stub = StubService(vision_result="ok")
        with patch("flowviz.ai.router.create_ai_service", return_value=stub) as create:
            resp = _client(selector=selector).post(
                "/api/ai/analyze/vision",
                json={"content": [{"type": "text", "text": "hi"}]},
                headers={"X-AI-Provider": "openai"},
            )
        assert resp.status_code == 200
        assert create.call_args.args[0].provider == "openai"

    def test_missing_header_uses_default(self, make_settings):
        selector = ProviderSelector(make_settings(AI_PROVIDER="openai", OPENAI_API_KEY="o"))
        stub = StubService(vision_result="ok")
        with patch("flowviz.ai.router.create_ai_service", return_value=stub) as create:
            resp = _client(selector=selector).post(
                "/api/ai/analyze/vision",
                json={"content": [{"type": "text", "text": "hi"}]},
            )
        assert resp.status_code == 200
        assert create.call_args.args[0].provider == "openai"


# ═══════════════════════════════════════════════════════════════════
#  Streaming endpoint
# ═══════════════════════════════════════════════════════════════════

class TestStreamEndpoint:

    def test_events_framed_as_sse(self):
        stub = StubService(events=[ContentEvent(text="Ran"), ContentEvent(text="somware"), DoneEvent()])
        resp = _client(service=stub).post(
            "/api/ai/analyze/stream",
            json={"prompt": "Analyse", "system_prompt": "Be precise"},
        )

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        assert _sse_events(resp.text) == [
            {"type": "content", "text": "Ran"},
            {"type": "content", "text": "somware"},
            {"type": "done"},
        ]
        assert stub.stream_calls == [("Analyse", "Be precise")]
        assert stub.closed is True

    def test_error_event_passed_through(self):
        stub = StubService(events=[
            ContentEvent(text="partial"),
            ErrorEvent(error="OpenAI rate limit or quota exceeded", recoverable=True),
        ])
        resp = _client(service=stub).post("/api/ai/analyze/stream", json={"prompt": "Analyse"})
        events = _sse_events(resp.text)
        assert events[-1] == {
            "type": "error", "error": "OpenAI rate limit or quota exceeded", "recoverable": True,
        }
        assert all(e["type"] != "done" for e in events)

    def test_empty_prompt_rejected(self):
        resp = _client(service=StubService()).post("/api/ai/analyze/stream", json={"prompt": ""})
        assert resp.status_code == 422


# ═══════════════════════════════════════════════════════════════════
#  Vision endpoint
# ═══════════════════════════════════════════════════════════════════

class TestVisionEndpoint:

    def test_returns_text_and_model(self):
        stub = StubService(vision_result="Attack flow: phishing → loader")
        resp = _client(service=stub).post("/api/ai/analyze/vision", json={
            "content": [
                {"type": "text", "text": "Describe"},
                {"type": "image", "image": {"base64_data": "aGVsbG8=", "media_type": "image/png"}},
            ],
            "max_tokens": 500,
        })
        assert resp.status_code == 200
        assert resp.json() == {
            "text": "Attack flow: phishing → loader",
            "model": {"provider": "Stub", "model": "stub-model", "supports_vision": True},
        }

    def test_input_error_is_422(self):
        stub = StubService(vision_error=VisionInputError("Vision analysis requires at least one content fragment"))
        resp = _client(service=stub).post("/api/ai/analyze/vision", json={"content": []})
        assert resp.status_code == 422
        assert "at least one" in resp.json()["detail"]

    def test_provider_error_is_503(self):
        stub = StubService(vision_error=AIProviderError("OpenAI API error: boom", provider="openai"))
        resp = _client(service=stub).post(
            "/api/ai/analyze/vision", json={"content": [{"type": "text", "text": "x"}]},
        )
        assert resp.status_code == 503
        assert resp.json()["detail"] == "AI service unavailable: OpenAI API error: boom"
