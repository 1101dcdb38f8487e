from __future__ import annotations

from types import SimpleNamespace

import pytest

from auditready.core.errors import ProviderConfigError
from auditready.providers.llm.anthropic_claude import AnthropicCompletionProvider
from auditready.providers.llm.factory import get_completion_provider
from auditready.providers.llm.fake import FakeCompletionProvider
from auditready.providers.llm.gemini_vertex import GeminiVertexProvider


@pytest.mark.asyncio
async def test_fake_provider_is_deterministic() -> None:
    provider = FakeCompletionProvider('{"summary": "ok", "suggestions": []}')
    first = await provider.complete("prompt text", max_output_tokens=100)
    second = await provider.complete("prompt text", max_output_tokens=100)
    assert first == second
    assert first.text == '{"summary": "ok", "suggestions": []}'
    assert first.tokens_used > 0


def test_factory_selects_fake_provider(monkeypatch) -> None:
    monkeypatch.setenv("LLM_PROVIDER", "fake")
    monkeypatch.setenv("FAKE_LLM_RESPONSE", '{"summary": "canned"}')
    provider = get_completion_provider()
    assert provider.name == "fake"


def test_anthropic_requires_an_api_key(monkeypatch) -> None:
    monkeypatch.setenv("LLM_PROVIDER", "anthropic")
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    with pytest.raises(ProviderConfigError):
        get_completion_provider()


@pytest.mark.asyncio
async def test_anthropic_joins_text_blocks_and_counts_usage() -> None:
    provider = AnthropicCompletionProvider(api_key="test-key", model="claude-test")
    calls: list[dict] = []

    async def create(**kwargs):
        calls.append(kwargs)
        return SimpleNamespace(
            content=[SimpleNamespace(text='{"summary": '), SimpleNamespace(text='"ok"}')],
            usage=SimpleNamespace(input_tokens=300, output_tokens=25),
        )

    provider._client = SimpleNamespace(messages=SimpleNamespace(create=create))
    completion = await provider.complete("Analyze checkpoints", max_output_tokens=2000)

    assert completion.text == '{"summary": "ok"}'
    assert completion.tokens_used == 325
    assert calls[0]["max_tokens"] == 2000
    assert calls[0]["model"] == "claude-test"


@pytest.mark.asyncio
async def test_vertex_reports_missing_configuration(monkeypatch) -> None:
    monkeypatch.delenv("GOOGLE_CLOUD_PROJECT", raising=False)
    monkeypatch.delenv("GOOGLE_CLOUD_LOCATION", raising=False)
    provider = GeminiVertexProvider()
    with pytest.raises(ProviderConfigError, match="GOOGLE_CLOUD_PROJECT"):
        await provider.complete("prompt", max_output_tokens=10)
