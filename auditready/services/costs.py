from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from auditready.core.config import get_settings


_SIX_PLACES = Decimal("0.000001")


def estimate_tokens(text: str, *, ratio: float = 4.0) -> int:
    # Deterministically estimate token counts when provider metadata is missing.
    if not text:
        return 0
    return max(1, int(len(text) / max(ratio, 0.1)))


def run_cost_usd(tokens_used: int, *, rate_per_1k: Decimal | None = None) -> Decimal:
    # Price a run from its token count at a flat per-1k rate.
    rate = rate_per_1k if rate_per_1k is not None else get_settings().llm_cost_per_1k_tokens_usd
    tokens = Decimal(max(0, int(tokens_used)))
    return ((tokens / Decimal("1000")) * Decimal(str(rate))).quantize(_SIX_PLACES, rounding=ROUND_HALF_UP)
