"""Construction-time validation for marker definitions.

Invalid trigger configurations are rejected here so the evaluator never has
to decide whether a malformed marker "does not fire".
"""

from __future__ import annotations

from enum import Enum
from typing import Mapping, TypeVar

from markers.domain import (
    DELEGATED_TRIGGER_TYPES,
    AlertType,
    ConditionOperator,
    CounterValueCondition,
    DelegatedCondition,
    DisplayStyle,
    Marker,
    MarkerCategory,
    MarkerPriority,
    MarkerStatus,
    RowIntervalCondition,
    RowRangeCondition,
    StitchCountCondition,
    TriggerCondition,
    TriggerType,
)
from markers.errors import InvalidTriggerConditionError, MarkerValidationError

_E = TypeVar("_E", bound=Enum)

_ENUM_FIELDS: dict[str, type[Enum]] = {
    "alert_type": AlertType,
    "priority": MarkerPriority,
    "display_style": DisplayStyle,
    "category": MarkerCategory,
    "status": MarkerStatus,
}


def parse_trigger_type(value: TriggerType | str) -> TriggerType:
    """Coerce a raw trigger type into the closed ``TriggerType`` set."""
    try:
        return TriggerType(value)
    except ValueError as exc:
        allowed = ", ".join(item.value for item in TriggerType)
        raise InvalidTriggerConditionError(
            f"Trigger type must be one of: {allowed}.",
            {"field": "trigger_type", "trigger_type": str(value)},
        ) from exc


def parse_enum(enum_cls: type[_E], value: _E | str, field: str) -> _E:
    """Coerce a raw value into ``enum_cls`` or raise a validation error."""
    try:
        return enum_cls(value)
    except ValueError as exc:
        allowed = ", ".join(str(item.value) for item in enum_cls)
        raise MarkerValidationError(
            f"{field} must be one of: {allowed}.",
            {"field": field, field: str(value)},
        ) from exc


def coerce_row(value: object, field: str) -> int:
    """Coerce a row-like value to ``int``, rejecting non-integral input."""
    if isinstance(value, bool):
        raise InvalidTriggerConditionError(f"{field} must be numeric.", {"field": field})
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise InvalidTriggerConditionError(
            f"{field} must be a whole number.", {"field": field, field: value}
        )
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError as exc:
            raise InvalidTriggerConditionError(
                f"{field} must be numeric.", {"field": field, field: value}
            ) from exc
    raise InvalidTriggerConditionError(f"{field} must be numeric.", {"field": field})


def build_trigger_condition(
    trigger_type: TriggerType | str,
    payload: Mapping[str, object] | None,
    *,
    start_row: int | None = None,
    end_row: int | None = None,
) -> TriggerCondition:
    """Build the tagged condition variant for ``trigger_type`` from a raw payload.

    Both camelCase and snake_case payload keys are accepted. Range conditions
    fall back to the marker's ``start_row``/``end_row`` when the payload
    omits them.
    """
    resolved = parse_trigger_type(trigger_type)
    data: Mapping[str, object] = payload or {}

    if resolved == TriggerType.COUNTER_VALUE:
        raw_operator = data.get("operator")
        if raw_operator is None:
            raise InvalidTriggerConditionError(
                "Counter trigger requires an operator.", {"field": "operator"}
            )
        try:
            operator = ConditionOperator(raw_operator)
        except ValueError as exc:
            allowed = ", ".join(item.value for item in ConditionOperator)
            raise InvalidTriggerConditionError(
                f"Counter trigger requires operator: {allowed}.",
                {"field": "operator", "operator": str(raw_operator)},
            ) from exc
        if data.get("value") is None:
            raise InvalidTriggerConditionError(
                "Counter trigger requires a numeric value.", {"field": "value"}
            )
        condition: TriggerCondition = CounterValueCondition(
            operator=operator,
            value=coerce_row(data.get("value"), "value"),
        )
    elif resolved == TriggerType.ROW_INTERVAL:
        raw_interval = data.get("interval")
        if raw_interval is None:
            raise InvalidTriggerConditionError(
                "Row interval trigger requires a positive interval.", {"field": "interval"}
            )
        condition = RowIntervalCondition(interval=coerce_row(raw_interval, "interval"))
    elif resolved == TriggerType.ROW_RANGE:
        raw_start = _first_present(data, "start", "start_row", "startRow")
        raw_end = _first_present(data, "end", "end_row", "endRow")
        start = coerce_row(raw_start, "start") if raw_start is not None else start_row
        end = coerce_row(raw_end, "end") if raw_end is not None else end_row
        if start is None or end is None:
            raise InvalidTriggerConditionError(
                "Row range trigger requires both start and end rows.",
                {"field": "start" if start is None else "end"},
            )
        condition = RowRangeCondition(start=start, end=end)
    elif resolved == TriggerType.STITCH_COUNT:
        raw_count = _first_present(data, "stitch_count", "stitchCount")
        if raw_count is None:
            raise InvalidTriggerConditionError(
                "Stitch count trigger requires stitchCount.", {"field": "stitch_count"}
            )
        condition = StitchCountCondition(stitch_count=coerce_row(raw_count, "stitch_count"))
    elif resolved in DELEGATED_TRIGGER_TYPES:
        condition = DelegatedCondition(payload=dict(data))
    else:
        raise InvalidTriggerConditionError(
            f"Unsupported trigger type: {resolved.value}.",
            {"field": "trigger_type", "trigger_type": resolved.value},
        )

    validate_trigger_condition(resolved, condition)
    return condition


def validate_trigger_condition(trigger_type: TriggerType, condition: TriggerCondition) -> None:
    """Validate that ``condition`` is the right variant and semantically sound."""
    expected = _CONDITION_TYPES.get(trigger_type)
    if expected is None or not isinstance(condition, expected):
        raise InvalidTriggerConditionError(
            f"Condition does not match trigger type '{trigger_type.value}'.",
            {
                "field": "trigger_condition",
                "trigger_type": trigger_type.value,
                "condition_type": type(condition).__name__,
            },
        )

    if isinstance(condition, CounterValueCondition):
        if condition.operator == ConditionOperator.MULTIPLE_OF and condition.value == 0:
            raise InvalidTriggerConditionError(
                "multiple_of requires a non-zero value.",
                {"field": "value", "operator": condition.operator.value},
            )
    elif isinstance(condition, RowIntervalCondition):
        if condition.interval <= 0:
            raise InvalidTriggerConditionError(
                "Row interval trigger requires a positive interval.",
                {"field": "interval", "interval": condition.interval},
            )
    elif isinstance(condition, RowRangeCondition):
        if condition.end < condition.start:
            raise InvalidTriggerConditionError(
                "Range start must be less than or equal to range end.",
                {"field": "end", "start": condition.start, "end": condition.end},
            )
    elif isinstance(condition, StitchCountCondition):
        if condition.stitch_count < 0:
            raise InvalidTriggerConditionError(
                "Stitch count must be >= 0.",
                {"field": "stitch_count", "stitch_count": condition.stitch_count},
            )


def validate_marker(marker: Marker) -> Marker:
    """Validate a marker definition and return it unchanged."""
    validate_trigger_condition(marker.trigger_type, marker.trigger_condition)

    if marker.repeat_interval is not None and marker.repeat_interval <= 0:
        raise InvalidTriggerConditionError(
            "Repeat interval must be a positive number.",
            {"field": "repeat_interval", "repeat_interval": marker.repeat_interval},
        )
    if (
        marker.start_row is not None
        and marker.end_row is not None
        and marker.end_row < marker.start_row
    ):
        raise InvalidTriggerConditionError(
            "Start row must be less than or equal to end row.",
            {"field": "end_row", "start_row": marker.start_row, "end_row": marker.end_row},
        )
    for counter_field in ("times_triggered", "times_snoozed", "times_acknowledged"):
        if getattr(marker, counter_field) < 0:
            raise MarkerValidationError(
                f"{counter_field} must be >= 0.", {"field": counter_field}
            )
    return marker


def build_marker(
    *,
    id: str | int,
    project_id: str | int,
    trigger_type: TriggerType | str,
    trigger_condition: TriggerCondition | Mapping[str, object] | None = None,
    **fields: object,
) -> Marker:
    """Build and validate a marker from raw host values.

    Enum-valued fields may be given as strings, and ``trigger_condition`` may
    be a raw payload mapping; both are coerced before validation.
    """
    resolved_type = parse_trigger_type(trigger_type)
    for row_field in ("start_row", "end_row", "repeat_interval", "repeat_offset"):
        if fields.get(row_field) is not None:
            fields[row_field] = coerce_row(fields[row_field], row_field)
    for enum_field, enum_cls in _ENUM_FIELDS.items():
        if fields.get(enum_field) is not None:
            fields[enum_field] = parse_enum(enum_cls, fields[enum_field], enum_field)

    if trigger_condition is None or isinstance(trigger_condition, Mapping):
        condition = build_trigger_condition(
            resolved_type,
            trigger_condition,
            start_row=fields.get("start_row"),  # type: ignore[arg-type]
            end_row=fields.get("end_row"),  # type: ignore[arg-type]
        )
    else:
        condition = trigger_condition

    marker = Marker(
        id=id,
        project_id=project_id,
        trigger_type=resolved_type,
        trigger_condition=condition,
        **fields,  # type: ignore[arg-type]
    )
    return validate_marker(marker)


def validate_snooze_minutes(minutes: int | float) -> None:
    """Ensure a snooze duration is a positive number of minutes."""
    if isinstance(minutes, bool) or not isinstance(minutes, (int, float)) or minutes <= 0:
        raise InvalidTriggerConditionError(
            "Snooze duration must be a positive number of minutes.",
            {"field": "snooze_minutes", "snooze_minutes": minutes},
        )


def _first_present(data: Mapping[str, object], *keys: str) -> object | None:
    """Return the first non-None value among ``keys``."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


_CONDITION_TYPES: dict[TriggerType, type] = {
    TriggerType.COUNTER_VALUE: CounterValueCondition,
    TriggerType.ROW_INTERVAL: RowIntervalCondition,
    TriggerType.ROW_RANGE: RowRangeCondition,
    TriggerType.STITCH_COUNT: StitchCountCondition,
    TriggerType.TIME_BASED: DelegatedCondition,
    TriggerType.CUSTOM: DelegatedCondition,
    TriggerType.AT_SAME_TIME: DelegatedCondition,
}


__all__ = [
    "build_marker",
    "build_trigger_condition",
    "coerce_row",
    "parse_enum",
    "parse_trigger_type",
    "validate_marker",
    "validate_snooze_minutes",
    "validate_trigger_condition",
]
