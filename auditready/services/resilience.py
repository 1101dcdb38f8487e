from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from auditready.core.config import get_settings
from auditready.core.errors import CompletionServiceError, CompletionTimeoutError
from auditready.services.telemetry import increment_counter


logger = logging.getLogger(__name__)


TransientException = (TimeoutError, asyncio.TimeoutError, ConnectionError, OSError)


def is_retryable(exc: BaseException) -> bool:
    # Retry only transient transport/timeout failures; rejections surface immediately.
    if isinstance(exc, CompletionServiceError):
        return exc.retryable
    if isinstance(exc, TransientException):
        return True
    status = getattr(exc, "status_code", None)
    if isinstance(status, int) and (status >= 500 or status == 429):
        return True
    return False


@dataclass(frozen=True)
class RetryPolicy:
    timeout_ms: int
    max_attempts: int
    backoff_ms: int


def default_retry_policy() -> RetryPolicy:
    settings = get_settings()
    return RetryPolicy(
        timeout_ms=settings.llm_timeout_ms,
        max_attempts=settings.llm_retry_max_attempts,
        backoff_ms=settings.llm_retry_backoff_ms,
    )


async def retry_async(
    func: Callable[[], Awaitable[Any]],
    *,
    policy: RetryPolicy | None = None,
    retryable: Callable[[BaseException], bool] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Any:
    # Retry helper with per-attempt timeout and jittered exponential backoff.
    policy = policy or default_retry_policy()
    retryable = retryable or is_retryable
    attempt = 1
    while True:
        try:
            try:
                return await asyncio.wait_for(func(), timeout=policy.timeout_ms / 1000.0)
            except asyncio.TimeoutError as exc:
                raise CompletionTimeoutError(
                    f"completion call timed out after {policy.timeout_ms}ms"
                ) from exc
        except Exception as exc:  # noqa: BLE001 - caller handles non-transient failures
            if attempt >= max(policy.max_attempts, 1) or not retryable(exc):
                raise
            increment_counter("completion_retries_total")
            jitter = random.uniform(0.5, 1.5)
            sleep_s = (policy.backoff_ms / 1000.0) * (2 ** (attempt - 1)) * jitter
            logger.warning(
                "completion_retry attempt=%s error=%s sleep_s=%.2f",
                attempt,
                type(exc).__name__,
                sleep_s,
            )
            await sleep(sleep_s)
            attempt += 1
