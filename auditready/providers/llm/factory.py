from __future__ import annotations

from auditready.core.config import get_settings
from auditready.providers.llm.base import CompletionProvider
from auditready.providers.llm.fake import FakeCompletionProvider


def get_completion_provider() -> CompletionProvider:
    settings = get_settings()
    provider = (settings.llm_provider or "anthropic").lower()

    if provider == "fake":
        return FakeCompletionProvider(settings.fake_llm_response)
    if provider == "vertex":
        from auditready.providers.llm.gemini_vertex import GeminiVertexProvider

        return GeminiVertexProvider()
    from auditready.providers.llm.anthropic_claude import AnthropicCompletionProvider

    return AnthropicCompletionProvider()
