"""Unit tests for converting analyzer suggestions into markers."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from markers.domain import (
    ConditionOperator,
    CounterValueCondition,
    MarkerCategory,
    RowIntervalCondition,
    RowRangeCondition,
    TriggerType,
)
from markers.suggestions import (
    MarkerSuggestion,
    category_for_type,
    color_for_category,
    marker_from_suggestion,
)
from markers.trigger_evaluation import fires


def test_counter_value_suggestion_becomes_equals_marker() -> None:
    """Ensure a counter_value suggestion fires exactly at its start row."""
    suggestion = MarkerSuggestion(
        type="counter_value",
        name="Simultaneous Instruction",
        start_row=24,
        message="Remember: begin neck shaping",
        confidence=0.85,
        reason="Found 'at the same time' instruction",
    )

    marker = marker_from_suggestion(suggestion, project_id="p1", marker_id="m1")

    assert marker.id == "m1"
    assert marker.trigger_type == TriggerType.COUNTER_VALUE
    assert marker.trigger_condition == CounterValueCondition(ConditionOperator.EQUALS, 24)
    assert marker.category == MarkerCategory.MILESTONE
    assert marker.color == "blue"
    assert marker.suggested_by_ai is True
    assert marker.alert_message == "Remember: begin neck shaping"
    assert fires(marker, 24) is True
    assert fires(marker, 25) is False


def test_row_interval_suggestion_repeats_on_interval() -> None:
    """Ensure an interval suggestion fires on every multiple of its interval."""
    suggestion = MarkerSuggestion(
        type="row_interval",
        start_row=6,
        repeat_interval=6,
        message="Time to decrease",
    )

    marker = marker_from_suggestion(suggestion, project_id="p1")

    assert marker.trigger_condition == RowIntervalCondition(6)
    assert marker.repeat_interval == 6
    assert marker.category == MarkerCategory.REMINDER
    assert marker.color == "purple"
    assert marker.name == "Every 6 rows reminder"
    assert [row for row in range(1, 25) if fires(marker, row)] == [6, 12, 18, 24]


def test_row_interval_suggestion_falls_back_to_start_row() -> None:
    """Ensure an interval suggestion without repeat_interval uses start_row."""
    suggestion = MarkerSuggestion(type="row_interval", start_row=4, message="Cable row")

    marker = marker_from_suggestion(suggestion, project_id="p1")

    assert marker.trigger_condition == RowIntervalCondition(4)
    assert [row for row in range(1, 13) if fires(marker, row)] == [4, 8, 12]


def test_row_interval_cadence_matches_interval_condition() -> None:
    """Ensure an offset start row still yields occurrences on the interval."""
    suggestion = MarkerSuggestion(
        type="row_interval", start_row=3, repeat_interval=4, message="Twist"
    )

    marker = marker_from_suggestion(suggestion, project_id="p1")

    assert marker.start_row == 4
    assert [row for row in range(1, 17) if fires(marker, row)] == [4, 8, 12, 16]


def test_row_range_suggestion_spans_rows() -> None:
    """Ensure a range suggestion covers its inclusive row span."""
    suggestion = MarkerSuggestion(
        type="row_range",
        start_row=10,
        end_row=14,
        message="Work increases at the same time",
    )

    marker = marker_from_suggestion(suggestion, project_id="p1")

    assert marker.trigger_condition == RowRangeCondition(10, 14)
    assert marker.category == MarkerCategory.SHAPING
    assert marker.color == "orange"
    assert [row for row in range(8, 17) if fires(marker, row)] == [10, 11, 12, 13, 14]


def test_malformed_suggestions_are_rejected() -> None:
    """Ensure suggestions missing required fields fail model validation."""
    with pytest.raises(ValidationError):
        MarkerSuggestion(type="row_range", start_row=10, message="No end")
    with pytest.raises(ValidationError):
        MarkerSuggestion(type="row_range", start_row=10, end_row=5, message="Backwards")
    with pytest.raises(ValidationError):
        MarkerSuggestion(type="stitch_count", start_row=10, message="Unsupported")
    with pytest.raises(ValidationError):
        MarkerSuggestion(type="counter_value", start_row=10, message="   ")
    with pytest.raises(ValidationError):
        MarkerSuggestion(type="counter_value", start_row=10, message="x", confidence=1.5)


def test_category_and_color_mapping() -> None:
    """Ensure category and color follow the suggested trigger type."""
    assert category_for_type("row_range") == MarkerCategory.SHAPING
    assert category_for_type(TriggerType.STITCH_COUNT) == MarkerCategory.REMINDER
    assert color_for_category("note") == "gray"
    assert color_for_category(MarkerCategory.MILESTONE) == "blue"
