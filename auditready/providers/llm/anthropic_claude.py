from __future__ import annotations

import logging

import anthropic

from auditready.core.config import get_settings
from auditready.core.errors import (
    CompletionRejectedError,
    CompletionServiceError,
    CompletionTimeoutError,
    CompletionTransportError,
    ProviderConfigError,
)
from auditready.providers.llm.base import Completion


logger = logging.getLogger(__name__)


class AnthropicCompletionProvider:
    name = "anthropic"

    def __init__(self, api_key: str | None = None, model: str | None = None) -> None:
        settings = get_settings()
        self._api_key = api_key or settings.anthropic_api_key
        self._model = model or settings.anthropic_model
        if not self._api_key:
            raise ProviderConfigError("Anthropic config missing: set ANTHROPIC_API_KEY in .env.")
        # Retries are owned by the caller's retry policy, not the SDK.
        self._client = anthropic.AsyncAnthropic(api_key=self._api_key, max_retries=0)

    async def complete(self, prompt: str, *, max_output_tokens: int) -> Completion:
        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=max_output_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APITimeoutError as exc:
            raise CompletionTimeoutError("Anthropic request timed out.") from exc
        except anthropic.APIConnectionError as exc:
            raise CompletionTransportError(f"Anthropic connection failed: {exc}") from exc
        except anthropic.RateLimitError as exc:
            raise CompletionTransportError("Anthropic rate limit exceeded.") from exc
        except (anthropic.AuthenticationError, anthropic.PermissionDeniedError) as exc:
            logger.warning("anthropic_auth_error model=%s", self._model)
            raise CompletionRejectedError("Anthropic rejected credentials: check ANTHROPIC_API_KEY.") from exc
        except anthropic.BadRequestError as exc:
            raise CompletionRejectedError(f"Anthropic rejected the request: {exc}") from exc
        except anthropic.APIStatusError as exc:
            if exc.status_code >= 500:
                raise CompletionTransportError(f"Anthropic upstream error {exc.status_code}.") from exc
            raise CompletionServiceError(f"Anthropic request failed with status {exc.status_code}.") from exc

        text = "".join(getattr(block, "text", "") for block in response.content)
        usage = response.usage
        tokens = int(usage.input_tokens or 0) + int(usage.output_tokens or 0)
        return Completion(text=text, tokens_used=tokens)
