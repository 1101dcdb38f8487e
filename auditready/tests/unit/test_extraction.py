from __future__ import annotations

from auditready.services.agents.extraction import extract_json, interpret_output


def test_extracts_object_from_fenced_block_inside_prose() -> None:
    text = 'Here is my analysis.\n```json\n{"summary": "ok", "suggestions": []}\n```\nLet me know.'
    assert extract_json(text) == {"summary": "ok", "suggestions": []}


def test_extracts_bare_object_surrounded_by_prose() -> None:
    text = 'Sure! {"summary": "Two gaps", "suggestions": [{"title": "x"}]} Hope this helps.'
    assert extract_json(text) == {"summary": "Two gaps", "suggestions": [{"title": "x"}]}


def test_uppercase_fence_is_stripped() -> None:
    assert extract_json('```JSON\n{"a": 1}\n```') == {"a": 1}


def test_truncated_json_returns_none() -> None:
    assert extract_json('```json\n{"summary": "cut off", "suggestions": [') is None


def test_non_object_and_empty_input_return_none() -> None:
    assert extract_json("[1, 2, 3]") is None
    assert extract_json("no json here") is None
    assert extract_json("") is None
    assert extract_json(None) is None


def test_interpret_output_reads_summary_and_valid_suggestions() -> None:
    text = """```json
{"summary": "ok", "suggestions": [
  {"entity_type": "checkpoint", "suggestion_type": "flag", "title": "Escalate CLIN-DOC-001",
   "description": "Overdue", "confidence": 0.8,
   "suggested_changes": {"kind": "flag_issue", "severity": "high"}},
  {"entity_type": "checkpoint", "suggestion_type": "flag", "description": "missing title"}
]}
```"""
    output = interpret_output(text)
    assert output.parsed is True
    assert output.summary == "ok"
    assert [item.title for item in output.suggestions] == ["Escalate CLIN-DOC-001"]


def test_interpret_output_without_json_is_unparsed() -> None:
    output = interpret_output("The model rambled without structure.")
    assert output.parsed is False
    assert output.summary is None
    assert output.suggestions == []


def test_blank_summary_is_treated_as_missing() -> None:
    output = interpret_output('{"summary": "   ", "suggestions": "not a list"}')
    assert output.parsed is True
    assert output.summary is None
    assert output.suggestions == []


def test_custom_extractor_replaces_regex_recovery() -> None:
    output = interpret_output("ignored", extractor=lambda _text: {"summary": "structured"})
    assert output.summary == "structured"
