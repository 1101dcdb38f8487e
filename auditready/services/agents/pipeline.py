from __future__ import annotations

from dataclasses import dataclass
import logging

from auditready.providers.llm.base import CompletionProvider
from auditready.services.agents.completion import complete_with_retry
from auditready.services.agents.extraction import (
    AgentOutput,
    StructuredExtractor,
    extract_json,
    interpret_output,
)
from auditready.services.resilience import RetryPolicy
from auditready.services.telemetry import increment_counter


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentRunResult:
    run_id: str
    summary: str
    suggestion_count: int
    # True when the model output could not be parsed and the local summary was used.
    used_fallback: bool = False
    meeting_id: str | None = None


async def ask_model(
    provider: CompletionProvider,
    prompt: str,
    *,
    agent: str,
    max_output_tokens: int,
    retry_policy: RetryPolicy | None = None,
    extractor: StructuredExtractor = extract_json,
) -> tuple[AgentOutput, int]:
    completion = await complete_with_retry(
        provider,
        prompt,
        max_output_tokens=max_output_tokens,
        policy=retry_policy,
    )
    output = interpret_output(completion.text, extractor)
    if not output.parsed:
        # Unusable output degrades to the local summary; the run still completes.
        increment_counter("agent_extraction_fallback_total")
        logger.warning("agent_extraction_fallback agent=%s", agent)
    return output, completion.tokens_used
