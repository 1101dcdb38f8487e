from __future__ import annotations

import json
from typing import Iterable


def bullet_lines(lines: Iterable[str], *, empty: str = "None", limit: int | None = None) -> str:
    items = list(lines)
    if limit is not None:
        items = items[:limit]
    if not items:
        return empty
    return "\n".join(f"- {line}" for line in items)


def response_contract(
    *,
    summary_hint: str,
    entity_type: str,
    suggestion_type: str,
    confidence: float,
    extra_fields: dict[str, object] | None = None,
) -> str:
    """Closing instruction shared by every agent prompt.

    The model must answer with a single JSON object holding a ``summary``
    string and a ``suggestions`` array; ``extra_fields`` adds agent-specific
    keys (the QM packet agenda).
    """
    example: dict[str, object] = {"summary": summary_hint}
    if extra_fields:
        example.update(extra_fields)
    example["suggestions"] = [
        {
            "entity_type": entity_type,
            "entity_id": "optional id of the record this is about",
            "suggestion_type": suggestion_type,
            "title": "Short, specific title (under 80 chars)",
            "description": "Clear description of the issue and the recommended action",
            "suggested_changes": {"kind": "flag_issue", "severity": "high", "reason": "optional structured change"},
            "confidence": confidence,
        }
    ]
    return (
        "Return ONLY a valid JSON object (no markdown, no explanation before or after):\n"
        f"{json.dumps(example, indent=2)}\n\n"
        "suggestion_type is one of edit, create, flag, review. confidence is between 0 and 1. "
        "suggested_changes is optional; when present its kind is one of field_edit, "
        "create_record, flag_issue, schedule_review."
    )
