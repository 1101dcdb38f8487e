from __future__ import annotations

from datetime import date

from auditready.domain.suggestions import (
    FlagIssue,
    ScheduleReview,
    SuggestionInput,
    coerce_suggestions,
    parse_suggested_changes,
)


def test_tagged_changes_parse_to_their_variant() -> None:
    changes = parse_suggested_changes({"kind": "schedule_review", "review_by": "2026-05-01"})
    assert isinstance(changes, ScheduleReview)
    assert changes.review_by == date(2026, 5, 1)


def test_untagged_or_invalid_changes_are_dropped() -> None:
    assert parse_suggested_changes({"status": "passed"}) is None
    assert parse_suggested_changes({"kind": "flag_issue", "severity": "apocalyptic"}) is None
    assert parse_suggested_changes("free text") is None


def test_confidence_is_clamped_and_type_normalized() -> None:
    suggestion = SuggestionInput.model_validate(
        {
            "entity_type": "policy",
            "entity_id": 42,
            "suggestion_type": " REVIEW ",
            "title": "Schedule review",
            "confidence": 7,
        }
    )
    assert suggestion.suggestion_type == "review"
    assert suggestion.entity_id == "42"
    assert suggestion.confidence == 1.0
    assert SuggestionInput.model_validate(
        {"entity_type": "policy", "suggestion_type": "edit", "title": "t", "confidence": "n/a"}
    ).confidence == 0.5


def test_coerce_keeps_valid_entries_only() -> None:
    raw = [
        {
            "entity_type": "checkpoint",
            "suggestion_type": "flag",
            "title": "Missing evidence",
            "suggested_changes": {"kind": "flag_issue", "severity": "critical", "reason": "no upload"},
        },
        {"entity_type": "checkpoint", "suggestion_type": "delete", "title": "Bad type"},
        {"entity_type": "checkpoint", "suggestion_type": "flag", "title": ""},
        "not an object",
    ]
    accepted = coerce_suggestions(raw)
    assert len(accepted) == 1
    assert isinstance(accepted[0].suggested_changes, FlagIssue)
    assert accepted[0].changes_payload() == {"kind": "flag_issue", "severity": "critical", "reason": "no upload"}
    assert coerce_suggestions({"title": "not a list"}) == []


def test_null_description_keeps_the_suggestion() -> None:
    (suggestion,) = coerce_suggestions(
        [
            {
                "entity_type": "capa",
                "suggestion_type": "create",
                "title": "Open CAPA for chart audits",
                "description": None,
            }
        ]
    )
    assert suggestion.description == ""
    assert suggestion.title == "Open CAPA for chart audits"
