"""Pure edit operations for stored marker definitions.

Edits only touch the definition. Counters, status and snooze state move
through the lifecycle tracker and cannot be changed here.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Mapping

from markers.domain import (
    AlertType,
    ConditionOperator,
    CounterValueCondition,
    DisplayStyle,
    Marker,
    MarkerCategory,
    MarkerPriority,
    RowRangeCondition,
    StitchCountCondition,
    TriggerType,
)
from markers.errors import MarkerValidationError
from markers.validation import (
    build_trigger_condition,
    coerce_row,
    parse_enum,
    parse_trigger_type,
    validate_marker,
)

MARKER_COLORS = ("blue", "green", "yellow", "orange", "red", "purple", "pink", "gray")

_EDITABLE_ENUMS = {
    "alert_type": AlertType,
    "priority": MarkerPriority,
    "display_style": DisplayStyle,
    "category": MarkerCategory,
}
_ROW_FIELDS = ("start_row", "end_row", "repeat_interval", "repeat_offset")
_LABEL_FIELDS = ("name", "alert_message")
_EDITABLE_FIELDS = frozenset(
    [
        "name",
        "counter_id",
        "trigger_type",
        "trigger_condition",
        *_ROW_FIELDS,
        "alert_message",
        "alert_type",
        "priority",
        "display_style",
        "color",
        "category",
        "is_active",
    ]
)


def validate_labels(marker: Marker) -> Marker:
    """Ensure the marker has a non-blank name and alert message."""
    for label_field in _LABEL_FIELDS:
        value = getattr(marker, label_field)
        if not isinstance(value, str) or not value.strip():
            raise MarkerValidationError(
                "Name and alert message are required.",
                {"field": label_field},
            )
    return marker


def validate_color(color: object) -> str:
    """Ensure ``color`` is one of the marker palette colors."""
    if color not in MARKER_COLORS:
        raise MarkerValidationError(
            f"Color must be one of: {', '.join(MARKER_COLORS)}.",
            {"field": "color", "color": str(color)},
        )
    return color  # type: ignore[return-value]


def apply_marker_changes(marker: Marker, changes: Mapping[str, object]) -> Marker:
    """Return ``marker`` with a partial update applied and re-validated.

    Raw values are coerced like ``build_marker`` does. Changing
    ``trigger_type`` requires a matching ``trigger_condition`` in the same
    update.
    """
    unknown = sorted(set(changes) - _EDITABLE_FIELDS)
    if unknown:
        raise MarkerValidationError(
            f"Fields cannot be updated: {', '.join(unknown)}.",
            {"field": unknown[0], "fields": unknown},
        )

    fields: dict[str, object] = {}
    for row_field in _ROW_FIELDS:
        if row_field in changes:
            value = changes[row_field]
            fields[row_field] = None if value is None else coerce_row(value, row_field)
    for enum_field, enum_cls in _EDITABLE_ENUMS.items():
        if enum_field in changes:
            fields[enum_field] = parse_enum(enum_cls, changes[enum_field], enum_field)  # type: ignore[arg-type]
    for plain_field in ("name", "alert_message", "counter_id"):
        if plain_field in changes:
            fields[plain_field] = changes[plain_field]
    if "is_active" in changes:
        fields["is_active"] = bool(changes["is_active"])
    if changes.get("color") is not None:
        fields["color"] = validate_color(changes["color"])
    elif "color" in changes:
        fields["color"] = None

    trigger_type = marker.trigger_type
    if "trigger_type" in changes:
        trigger_type = parse_trigger_type(changes["trigger_type"])  # type: ignore[arg-type]
        if trigger_type != marker.trigger_type and "trigger_condition" not in changes:
            raise MarkerValidationError(
                "Changing the trigger type requires a new trigger condition.",
                {"field": "trigger_condition", "trigger_type": trigger_type.value},
            )
        fields["trigger_type"] = trigger_type
    if "trigger_condition" in changes:
        raw = changes["trigger_condition"]
        if raw is None or isinstance(raw, Mapping):
            raw = build_trigger_condition(
                trigger_type,
                raw,
                start_row=fields.get("start_row", marker.start_row),  # type: ignore[arg-type]
                end_row=fields.get("end_row", marker.end_row),  # type: ignore[arg-type]
            )
        fields["trigger_condition"] = raw

    updated = validate_marker(replace(marker, **fields))  # type: ignore[arg-type]
    if any(label_field in changes for label_field in _LABEL_FIELDS):
        validate_labels(updated)
    return updated


def reposition(marker: Marker, position: int, end_position: int | None = None) -> Marker:
    """Move a marker's trigger point, as when it is dragged on a timeline.

    Fixed-value conditions take the new value. Range markers keep their span
    unless ``end_position`` is given. Markers without a fixed value are
    re-anchored through ``start_row``.
    """
    position = coerce_row(position, "position")
    if position < 1:
        raise MarkerValidationError(
            "Trigger position must be at least 1.",
            {"field": "position", "position": position},
        )
    end = None if end_position is None else coerce_row(end_position, "end_position")
    if end is not None and end < position:
        raise MarkerValidationError(
            "End position must be greater than or equal to the trigger position.",
            {"field": "end_position", "position": position, "end_position": end},
        )

    condition = marker.trigger_condition
    fields: dict[str, object] = {}
    if isinstance(condition, RowRangeCondition) and marker.trigger_type == TriggerType.ROW_RANGE:
        span_end = end if end is not None else position + (condition.end - condition.start)
        fields["trigger_condition"] = RowRangeCondition(start=position, end=span_end)
        if marker.start_row is not None:
            fields["start_row"] = position
        if marker.end_row is not None or end is not None:
            fields["end_row"] = span_end
    elif (
        isinstance(condition, CounterValueCondition)
        and condition.operator == ConditionOperator.EQUALS
    ):
        fields["trigger_condition"] = replace(condition, value=position)
        fields.update(_window_around(marker, position, end))
    elif isinstance(condition, StitchCountCondition):
        fields["trigger_condition"] = replace(condition, stitch_count=position)
        fields.update(_window_around(marker, position, end))
    else:
        fields["start_row"] = position
        if end is not None:
            fields["end_row"] = end
        elif marker.end_row is not None and marker.end_row < position:
            fields["end_row"] = position

    return validate_marker(replace(marker, **fields))  # type: ignore[arg-type]


def _window_around(marker: Marker, position: int, end: int | None) -> dict[str, object]:
    """Return row window changes that keep a fixed position in scope."""
    fields: dict[str, object] = {}
    if marker.start_row is not None and marker.start_row > position:
        fields["start_row"] = position
    if end is not None:
        fields["end_row"] = end
    elif marker.end_row is not None and marker.end_row < position:
        fields["end_row"] = position
    return fields


__all__ = [
    "MARKER_COLORS",
    "apply_marker_changes",
    "reposition",
    "validate_color",
    "validate_labels",
]
