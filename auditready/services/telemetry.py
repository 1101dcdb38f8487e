from __future__ import annotations

import math
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Deque


@dataclass(frozen=True)
class CompletionCallSample:
    ts: float
    provider: str
    latency_ms: float
    tokens_used: int
    success: bool


_completion_samples: Deque[CompletionCallSample] = deque(maxlen=10000)
_counters: dict[str, int] = defaultdict(int)


def record_completion_call(
    *,
    provider: str,
    latency_ms: float,
    success: bool,
    tokens_used: int = 0,
) -> None:
    _completion_samples.append(
        CompletionCallSample(
            ts=time.time(),
            provider=provider,
            latency_ms=latency_ms,
            tokens_used=tokens_used,
            success=success,
        )
    )


def increment_counter(name: str, value: int = 1) -> None:
    _counters[name] += value


def counters_snapshot() -> dict[str, int]:
    return dict(_counters)


def completion_stats_by_provider(window_s: int) -> dict[str, dict[str, float]]:
    """Summarize completion calls per provider over the trailing window.

    Each entry carries call count, p50/p95 latency, failure rate and the
    tokens billed by successful calls.
    """
    cutoff = time.time() - window_s
    grouped: dict[str, list[CompletionCallSample]] = defaultdict(list)
    for sample in _completion_samples:
        if sample.ts >= cutoff:
            grouped[sample.provider].append(sample)
    stats: dict[str, dict[str, float]] = {}
    for provider, samples in grouped.items():
        latencies = sorted(sample.latency_ms for sample in samples)
        failed = sum(1 for sample in samples if not sample.success)
        stats[provider] = {
            "calls": len(samples),
            "p50_ms": _percentile(latencies, 0.5),
            "p95_ms": _percentile(latencies, 0.95),
            "error_rate": failed / len(samples),
            "tokens": sum(sample.tokens_used for sample in samples if sample.success),
        }
    return stats


def _percentile(ordered: list[float], fraction: float) -> float:
    return ordered[max(0, math.ceil(fraction * len(ordered)) - 1)]


def reset_telemetry() -> None:
    _completion_samples.clear()
    _counters.clear()
