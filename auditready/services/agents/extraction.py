from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable

from auditready.domain.suggestions import SuggestionInput, coerce_suggestions


logger = logging.getLogger(__name__)

_FENCE_OPEN_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
# Greedy: first "{" through the last "}" in the text.
_OBJECT_SPAN_RE = re.compile(r"\{.*\}", re.DOTALL)

# Swappable so a schema-constrained completion mode can replace regex recovery.
StructuredExtractor = Callable[[str], dict[str, Any] | None]


def extract_json(text: str | None) -> dict[str, Any] | None:
    """Recover one JSON object from free-form model text.

    Code fences are stripped, then the widest ``{...}`` span is parsed. Any
    failure returns ``None``; callers treat that as "no usable output".
    """
    if not text:
        return None
    stripped = _FENCE_OPEN_RE.sub("", text).replace("```", "")
    match = _OBJECT_SPAN_RE.search(stripped)
    if match is None:
        return None
    try:
        value = json.loads(match.group(0))
    except (ValueError, RecursionError):
        return None
    if not isinstance(value, dict):
        return None
    return value


@dataclass(frozen=True)
class AgentOutput:
    summary: str | None
    suggestions: list[SuggestionInput] = field(default_factory=list)
    payload: dict[str, Any] | None = None

    @property
    def parsed(self) -> bool:
        return self.payload is not None


def interpret_output(text: str | None, extractor: StructuredExtractor = extract_json) -> AgentOutput:
    payload = extractor(text or "")
    if payload is None:
        logger.info("agent_output_unparsed length=%s", len(text or ""))
        return AgentOutput(summary=None)
    summary = payload.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        summary = None
    return AgentOutput(
        summary=summary,
        suggestions=coerce_suggestions(payload.get("suggestions")),
        payload=payload,
    )
