from __future__ import annotations

import asyncio

import pytest

from auditready.core.errors import (
    CompletionRejectedError,
    CompletionServiceError,
    CompletionTimeoutError,
    CompletionTransportError,
)
from auditready.providers.llm.base import Completion
from auditready.services.agents.completion import complete_with_retry
from auditready.services.resilience import RetryPolicy, is_retryable, retry_async
from auditready.services.telemetry import completion_stats_by_provider, counters_snapshot
from auditready.tests.utils.providers import HangingCompletionProvider, ScriptedCompletionProvider


async def _no_sleep(_seconds: float) -> None:
    return None


@pytest.mark.asyncio
async def test_retry_async_retries_transient() -> None:
    calls = {"count": 0}

    async def flaky() -> str:
        calls["count"] += 1
        if calls["count"] < 2:
            raise CompletionTransportError("connection reset")
        return "ok"

    result = await retry_async(
        flaky,
        policy=RetryPolicy(timeout_ms=100, max_attempts=2, backoff_ms=1),
        sleep=_no_sleep,
    )
    assert result == "ok"
    assert calls["count"] == 2
    assert counters_snapshot()["completion_retries_total"] == 1


@pytest.mark.asyncio
async def test_rejections_are_not_retried() -> None:
    calls = {"count": 0}

    async def rejected() -> str:
        calls["count"] += 1
        raise CompletionRejectedError("invalid api key")

    with pytest.raises(CompletionRejectedError):
        await retry_async(rejected, policy=RetryPolicy(timeout_ms=100, max_attempts=3, backoff_ms=1), sleep=_no_sleep)
    assert calls["count"] == 1


@pytest.mark.asyncio
async def test_attempt_timeout_raises_completion_timeout() -> None:
    async def slow() -> str:
        await asyncio.sleep(5)
        return "late"

    with pytest.raises(CompletionTimeoutError):
        await retry_async(slow, policy=RetryPolicy(timeout_ms=10, max_attempts=1, backoff_ms=0))


def test_is_retryable_classification() -> None:
    assert is_retryable(CompletionTimeoutError("t")) is True
    assert is_retryable(CompletionTransportError("t")) is True
    assert is_retryable(CompletionRejectedError("t")) is False
    assert is_retryable(ConnectionError("reset")) is True
    assert is_retryable(ValueError("bad")) is False


@pytest.mark.asyncio
async def test_complete_with_retry_records_outcomes_per_provider() -> None:
    provider = ScriptedCompletionProvider(['{"summary": "ok"}'], tokens_used=42)
    completion = await complete_with_retry(
        provider,
        "prompt",
        max_output_tokens=2000,
        policy=RetryPolicy(timeout_ms=1000, max_attempts=1, backoff_ms=0),
    )
    assert completion == Completion(text='{"summary": "ok"}', tokens_used=42)
    assert provider.max_output_tokens == [2000]
    stats = completion_stats_by_provider(60)["scripted"]
    assert stats["calls"] == 1
    assert stats["error_rate"] == 0
    assert stats["tokens"] == 42


@pytest.mark.asyncio
async def test_complete_with_retry_wraps_unexpected_errors() -> None:
    provider = ScriptedCompletionProvider([KeyError("choices")])
    with pytest.raises(CompletionServiceError):
        await complete_with_retry(
            provider,
            "prompt",
            max_output_tokens=10,
            policy=RetryPolicy(timeout_ms=1000, max_attempts=1, backoff_ms=0),
        )
    assert completion_stats_by_provider(60)["scripted"]["error_rate"] == 1


@pytest.mark.asyncio
async def test_hanging_provider_is_cut_off_after_each_attempt() -> None:
    provider = HangingCompletionProvider()
    with pytest.raises(CompletionTimeoutError):
        await complete_with_retry(
            provider,
            "prompt",
            max_output_tokens=10,
            policy=RetryPolicy(timeout_ms=10, max_attempts=2, backoff_ms=0),
        )
    assert provider.calls == 2
