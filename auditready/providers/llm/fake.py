from __future__ import annotations

from auditready.providers.llm.base import Completion
from auditready.services.costs import estimate_tokens


class FakeCompletionProvider:
    name = "fake"

    def __init__(self, response: str = '{"summary": "Fake analysis complete.", "suggestions": []}') -> None:
        # Fixed response; no network access.
        self._response = response

    async def complete(self, prompt: str, *, max_output_tokens: int) -> Completion:
        tokens = estimate_tokens(prompt) + min(estimate_tokens(self._response), max_output_tokens)
        return Completion(text=self._response, tokens_used=tokens)
