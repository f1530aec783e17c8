"""Mapping of pattern-analysis suggestions onto validated marker drafts."""

from __future__ import annotations

from typing import Literal, Protocol
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from markers.domain import ConditionOperator, Marker, MarkerCategory, TriggerType
from markers.validation import build_marker

SuggestionType = Literal["counter_value", "row_range", "row_interval"]

_CATEGORY_BY_TYPE = {
    TriggerType.COUNTER_VALUE: MarkerCategory.MILESTONE,
    TriggerType.ROW_INTERVAL: MarkerCategory.REMINDER,
    TriggerType.ROW_RANGE: MarkerCategory.SHAPING,
}

_COLOR_BY_CATEGORY = {
    MarkerCategory.MILESTONE: "blue",
    MarkerCategory.REMINDER: "purple",
    MarkerCategory.SHAPING: "orange",
    MarkerCategory.AT_SAME_TIME: "yellow",
    MarkerCategory.NOTE: "gray",
}

_DEFAULT_COLOR = "blue"


class MarkerSuggestion(BaseModel):
    """A marker proposed by the pattern analyzer."""

    model_config = ConfigDict(extra="ignore")

    type: SuggestionType
    start_row: int = Field(..., ge=0)
    end_row: int | None = Field(default=None, ge=0)
    repeat_interval: int | None = Field(default=None, gt=0)
    message: str
    name: str | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    reason: str = ""

    @field_validator("message")
    @classmethod
    def _strip_message(cls, value: str) -> str:
        """Normalize the alert message."""
        normalized = value.strip()
        if not normalized:
            raise ValueError("message must be a non-empty string.")
        return normalized

    @model_validator(mode="after")
    def _validate_shape(self) -> "MarkerSuggestion":
        """Ensure the fields required by the suggestion type are present."""
        if self.type == "row_range":
            if self.end_row is None:
                raise ValueError("row_range suggestions require end_row.")
        if self.type == "row_interval":
            interval = self.repeat_interval or self.start_row
            if interval < 1:
                raise ValueError("row_interval suggestions require a positive interval.")
            first = _first_multiple_at_or_after(self.start_row, interval)
            if self.end_row is not None and self.end_row < first:
                raise ValueError("end_row must allow at least one interval occurrence.")
        elif self.end_row is not None and self.end_row < self.start_row:
            raise ValueError("end_row must be >= start_row.")
        return self


class SuggestionAnalyzer(Protocol):
    """Protocol for the free-text pattern analyzer."""

    def analyze(self, text: str) -> list[MarkerSuggestion]:
        """Return marker suggestions for a pattern's instruction text."""
        ...


def category_for_type(trigger_type: TriggerType | str) -> MarkerCategory:
    """Return the default category for a suggested trigger type."""
    return _CATEGORY_BY_TYPE.get(TriggerType(trigger_type), MarkerCategory.REMINDER)


def color_for_category(category: MarkerCategory | str) -> str:
    """Return the palette color for a marker category."""
    return _COLOR_BY_CATEGORY.get(MarkerCategory(category), _DEFAULT_COLOR)


def marker_from_suggestion(
    suggestion: MarkerSuggestion,
    *,
    project_id: str | int,
    marker_id: str | int | None = None,
) -> Marker:
    """Convert an accepted suggestion into a validated marker draft.

    ``row_interval`` suggestions anchor their cadence at the first multiple of
    the interval at or after ``start_row`` so the cadence and the interval
    condition agree.
    """
    trigger_type = TriggerType(suggestion.type)
    category = category_for_type(trigger_type)
    fields: dict[str, object] = {
        "name": suggestion.name or _default_name(trigger_type, suggestion),
        "alert_message": suggestion.message,
        "category": category,
        "color": color_for_category(category),
        "suggested_by_ai": True,
    }

    if trigger_type == TriggerType.COUNTER_VALUE:
        condition: dict[str, object] = {
            "operator": ConditionOperator.EQUALS.value,
            "value": suggestion.start_row,
        }
        fields["start_row"] = suggestion.start_row
    elif trigger_type == TriggerType.ROW_INTERVAL:
        interval = suggestion.repeat_interval or suggestion.start_row
        condition = {"interval": interval}
        fields["start_row"] = _first_multiple_at_or_after(suggestion.start_row, interval)
        fields["end_row"] = suggestion.end_row
        fields["repeat_interval"] = interval
    elif trigger_type == TriggerType.ROW_RANGE:
        condition = {"start": suggestion.start_row, "end": suggestion.end_row}
        fields["start_row"] = suggestion.start_row
        fields["end_row"] = suggestion.end_row
    else:
        raise ValueError(f"Unsupported suggestion type: {suggestion.type}")

    return build_marker(
        id=marker_id if marker_id is not None else str(uuid4()),
        project_id=project_id,
        trigger_type=trigger_type,
        trigger_condition=condition,
        **fields,
    )


def _first_multiple_at_or_after(row: int, interval: int) -> int:
    if row <= interval:
        return interval
    return -(-row // interval) * interval


def _default_name(trigger_type: TriggerType, suggestion: MarkerSuggestion) -> str:
    if trigger_type == TriggerType.ROW_INTERVAL:
        return f"Every {suggestion.repeat_interval or suggestion.start_row} rows reminder"
    if trigger_type == TriggerType.ROW_RANGE:
        return f"Rows {suggestion.start_row}-{suggestion.end_row}"
    return f"Row {suggestion.start_row}"


__all__ = [
    "MarkerSuggestion",
    "SuggestionAnalyzer",
    "category_for_type",
    "color_for_category",
    "marker_from_suggestion",
]
