from __future__ import annotations

import logging
from datetime import date
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator


logger = logging.getLogger(__name__)


class FieldEdit(BaseModel):
    # Proposed replacement values for named fields on the target entity.
    kind: Literal["field_edit"] = "field_edit"
    fields: dict[str, str | int | float | bool | None]


class CreateRecord(BaseModel):
    # A new record the reviewer may create (e.g. a missing checkpoint or CAPA).
    kind: Literal["create_record"] = "create_record"
    entity_type: str
    values: dict[str, str | int | float | bool | None] = Field(default_factory=dict)


class FlagIssue(BaseModel):
    kind: Literal["flag_issue"] = "flag_issue"
    severity: Literal["low", "medium", "high", "critical"] = "medium"
    reason: str | None = None


class ScheduleReview(BaseModel):
    kind: Literal["schedule_review"] = "schedule_review"
    review_by: date | None = None
    reviewer_role: str | None = None


SuggestedChanges = Annotated[
    Union[FieldEdit, CreateRecord, FlagIssue, ScheduleReview],
    Field(discriminator="kind"),
]

_changes_adapter: TypeAdapter[Any] = TypeAdapter(SuggestedChanges)


def parse_suggested_changes(raw: Any) -> FieldEdit | CreateRecord | FlagIssue | ScheduleReview | None:
    # Untagged or malformed payloads are dropped rather than stored untyped.
    if not isinstance(raw, dict) or "kind" not in raw:
        return None
    try:
        return _changes_adapter.validate_python(raw)
    except ValidationError:
        return None


class SuggestionInput(BaseModel):
    """One recommendation as emitted by a pipeline, before persistence."""

    model_config = ConfigDict(extra="ignore")

    entity_type: str
    entity_id: str | None = None
    suggestion_type: Literal["edit", "create", "flag", "review"]
    title: str = Field(min_length=1)
    description: str = ""
    suggested_changes: FieldEdit | CreateRecord | FlagIssue | ScheduleReview | None = None
    confidence: float = 0.5

    @field_validator("entity_id", mode="before")
    @classmethod
    def _coerce_entity_id(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        return str(value)

    @field_validator("description", mode="before")
    @classmethod
    def _blank_description(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("suggestion_type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("suggested_changes", mode="before")
    @classmethod
    def _typed_changes(cls, value: Any) -> Any:
        if value is None or isinstance(value, BaseModel):
            return value
        return parse_suggested_changes(value)

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> float:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return 0.5
        if number != number:
            return 0.5
        return min(1.0, max(0.0, number))

    def changes_payload(self) -> dict[str, Any] | None:
        if self.suggested_changes is None:
            return None
        return self.suggested_changes.model_dump(mode="json")


def coerce_suggestions(raw: Any) -> list[SuggestionInput]:
    """Validate model-produced suggestion objects, keeping the valid ones.

    Anything that is not a list yields no suggestions; individual entries that
    fail validation are skipped so one bad object does not discard the batch.
    """
    if not isinstance(raw, list):
        return []
    accepted: list[SuggestionInput] = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            continue
        try:
            accepted.append(SuggestionInput.model_validate(item))
        except ValidationError as exc:
            logger.info("suggestion_discarded index=%s errors=%s", index, exc.error_count())
    return accepted


__all__ = [
    "CreateRecord",
    "FieldEdit",
    "FlagIssue",
    "ScheduleReview",
    "SuggestedChanges",
    "SuggestionInput",
    "coerce_suggestions",
    "parse_suggested_changes",
]
