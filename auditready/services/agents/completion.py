from __future__ import annotations

import logging
import time

from auditready.core.errors import CompletionServiceError
from auditready.providers.llm.base import Completion, CompletionProvider
from auditready.services.resilience import RetryPolicy, retry_async
from auditready.services.telemetry import record_completion_call


logger = logging.getLogger(__name__)


async def complete_with_retry(
    provider: CompletionProvider,
    prompt: str,
    *,
    max_output_tokens: int,
    policy: RetryPolicy | None = None,
) -> Completion:
    # One logical completion call: per-attempt timeout, bounded retries, no lock held.
    provider_name = getattr(provider, "name", type(provider).__name__)
    started = time.monotonic()
    try:
        completion = await retry_async(
            lambda: provider.complete(prompt, max_output_tokens=max_output_tokens),
            policy=policy,
        )
    except CompletionServiceError:
        record_completion_call(provider=provider_name, latency_ms=_elapsed_ms(started), success=False)
        raise
    except Exception as exc:
        record_completion_call(provider=provider_name, latency_ms=_elapsed_ms(started), success=False)
        raise CompletionServiceError(f"completion call failed: {type(exc).__name__}: {exc}") from exc
    record_completion_call(
        provider=provider_name,
        latency_ms=_elapsed_ms(started),
        success=True,
        tokens_used=completion.tokens_used,
    )
    logger.info(
        "completion_ok provider=%s tokens=%s latency_ms=%.0f",
        provider_name,
        completion.tokens_used,
        _elapsed_ms(started),
    )
    return completion


def _elapsed_ms(started: float) -> float:
    return (time.monotonic() - started) * 1000.0
