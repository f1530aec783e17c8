"""Unit tests for marker definition edits."""

from __future__ import annotations

from dataclasses import replace

import pytest

from markers.domain import (
    ConditionOperator,
    CounterValueCondition,
    MarkerPriority,
    MarkerStatus,
    RowIntervalCondition,
    RowRangeCondition,
)
from markers.editing import (
    MARKER_COLORS,
    apply_marker_changes,
    reposition,
    validate_color,
    validate_labels,
)
from markers.errors import InvalidTriggerConditionError, MarkerValidationError
from markers.validation import build_marker


def _marker(**fields):
    """Build a named counter_value marker with overridable fields."""
    fields.setdefault("trigger_type", "counter_value")
    fields.setdefault("trigger_condition", {"operator": "equals", "value": 10})
    fields.setdefault("name", "Decrease")
    fields.setdefault("alert_message", "Decrease at both ends")
    return build_marker(id="m1", project_id="p1", **fields)


def test_partial_update_coerces_values() -> None:
    """Ensure raw update values are coerced like marker construction does."""
    updated = apply_marker_changes(
        _marker(),
        {"priority": "high", "start_row": "4", "name": "Decrease row"},
    )

    assert updated.priority == MarkerPriority.HIGH
    assert updated.start_row == 4
    assert updated.name == "Decrease row"
    assert updated.trigger_condition == CounterValueCondition(ConditionOperator.EQUALS, 10)


def test_update_rebuilds_condition_for_new_trigger_type() -> None:
    """Ensure a trigger type change carries its new condition."""
    updated = apply_marker_changes(
        _marker(),
        {"trigger_type": "row_interval", "trigger_condition": {"interval": 6}},
    )

    assert updated.trigger_condition == RowIntervalCondition(6)


def test_update_rejects_trigger_type_without_condition() -> None:
    """Ensure a trigger type change alone is rejected."""
    with pytest.raises(MarkerValidationError) as excinfo:
        apply_marker_changes(_marker(), {"trigger_type": "row_interval"})

    assert excinfo.value.details["field"] == "trigger_condition"


def test_update_revalidates_merged_window() -> None:
    """Ensure the merged marker still has a valid row window and condition."""
    marker = _marker(start_row=10, end_row=20)

    with pytest.raises(InvalidTriggerConditionError):
        apply_marker_changes(marker, {"end_row": 5})
    with pytest.raises(InvalidTriggerConditionError):
        apply_marker_changes(marker, {"repeat_interval": 0})
    with pytest.raises(InvalidTriggerConditionError):
        apply_marker_changes(
            marker,
            {"trigger_condition": {"operator": "multiple_of", "value": 0}},
        )


def test_update_rejects_lifecycle_fields() -> None:
    """Ensure counters and status cannot be edited directly."""
    with pytest.raises(MarkerValidationError) as excinfo:
        apply_marker_changes(_marker(), {"times_triggered": 0, "status": "active"})

    assert excinfo.value.details["fields"] == ["status", "times_triggered"]


def test_update_rejects_blank_labels_and_unknown_colors() -> None:
    """Ensure edited labels stay non-blank and colors stay in the palette."""
    with pytest.raises(MarkerValidationError):
        apply_marker_changes(_marker(), {"alert_message": "   "})
    with pytest.raises(MarkerValidationError):
        apply_marker_changes(_marker(), {"color": "teal"})

    assert apply_marker_changes(_marker(), {"color": "green"}).color == "green"


def test_update_keeps_lifecycle_state() -> None:
    """Ensure edits never touch counters or status."""
    marker = replace(_marker(), times_triggered=3, status=MarkerStatus.COMPLETED)

    updated = apply_marker_changes(marker, {"is_active": False})

    assert updated.is_active is False
    assert updated.times_triggered == 3
    assert updated.status == MarkerStatus.COMPLETED


def test_validate_labels_requires_name_and_message() -> None:
    """Ensure markers without a name or alert message are rejected."""
    with pytest.raises(MarkerValidationError) as excinfo:
        validate_labels(_marker(name=""))
    assert excinfo.value.details["field"] == "name"

    with pytest.raises(MarkerValidationError) as excinfo:
        validate_labels(_marker(alert_message=" "))
    assert excinfo.value.details["field"] == "alert_message"


def test_validate_color_accepts_palette_only() -> None:
    """Ensure only palette colors are accepted."""
    for color in MARKER_COLORS:
        assert validate_color(color) == color

    with pytest.raises(MarkerValidationError):
        validate_color("#ff0000")


def test_reposition_moves_exact_value() -> None:
    """Ensure dragging an equals marker moves its trigger value."""
    moved = reposition(_marker(start_row=8), 5)

    assert moved.trigger_condition == CounterValueCondition(ConditionOperator.EQUALS, 5)
    assert moved.start_row == 5
    assert moved.trigger_position == 5


def test_reposition_keeps_range_span() -> None:
    """Ensure a range marker keeps its length unless an end is given."""
    marker = _marker(trigger_type="row_range", trigger_condition={"start": 10, "end": 14})

    assert reposition(marker, 20).trigger_condition == RowRangeCondition(20, 24)
    assert reposition(marker, 20, 30).trigger_condition == RowRangeCondition(20, 30)


def test_reposition_reanchors_markers_without_fixed_value() -> None:
    """Ensure repeating markers move through their start row."""
    marker = _marker(
        trigger_condition={"operator": "greater_than", "value": 0},
        start_row=4,
        repeat_interval=6,
    )

    moved = reposition(marker, 7)

    assert moved.start_row == 7
    assert moved.repeat_anchor == 7


def test_reposition_rejects_positions_below_one() -> None:
    """Ensure trigger positions start at row 1."""
    with pytest.raises(MarkerValidationError) as excinfo:
        reposition(_marker(), 0)
    assert excinfo.value.details["field"] == "position"

    with pytest.raises(MarkerValidationError):
        reposition(_marker(), 10, 5)
