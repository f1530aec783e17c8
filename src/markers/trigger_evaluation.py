"""Trigger evaluation for magic markers.

``fires`` is a pure predicate over a marker snapshot and a counter value. It
never raises for a marker that passed validation; the zero-divisor guard
below only matters when validation was bypassed.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterable

from markers.domain import (
    DELEGATED_TRIGGER_TYPES,
    ConditionOperator,
    CounterValueCondition,
    Marker,
    RowIntervalCondition,
    RowRangeCondition,
    StitchCountCondition,
    TriggerType,
)
from markers.intervals import is_occurrence
from time_utils import to_utc, utc_now

logger = logging.getLogger(__name__)

TriggerDelegate = Callable[[Marker, int], bool]


def fires(
    marker: Marker,
    current_value: int,
    *,
    delegate: TriggerDelegate | None = None,
) -> bool:
    """Return True when ``marker`` fires at ``current_value``."""
    if not marker.participates:
        return False
    if not _within_scope(marker, current_value):
        return False
    return _condition_fires(marker, current_value, delegate)


def evaluate_markers(
    markers: Iterable[Marker],
    current_value: int,
    *,
    counter_id: str | int | None = None,
    include_unbound: bool = False,
    now: datetime | None = None,
    delegate: TriggerDelegate | None = None,
) -> list[Marker]:
    """Return the markers that fire at ``current_value``, most urgent first.

    Only markers driven by ``counter_id`` are considered. Markers without a
    counter follow the primary row counter, so they are included when
    ``counter_id`` is None or ``include_unbound`` is set. Markers whose snooze
    has not yet expired are skipped. Ordering within a priority keeps the
    input order.
    """
    timestamp = to_utc(now) if now is not None else utc_now()
    fired = [
        marker
        for marker in markers
        if _matches_counter(marker, counter_id, include_unbound)
        and not marker.is_snoozed(timestamp)
        and fires(marker, current_value, delegate=delegate)
    ]
    return sorted(fired, key=lambda marker: marker.priority.rank, reverse=True)


def _matches_counter(
    marker: Marker,
    counter_id: str | int | None,
    include_unbound: bool,
) -> bool:
    """Return True when the marker is driven by the evaluated counter."""
    if marker.counter_id is None:
        return counter_id is None or include_unbound
    return marker.counter_id == counter_id


def _within_scope(marker: Marker, current_value: int) -> bool:
    """Apply the marker's row window and repeat cadence."""
    if marker.trigger_type != TriggerType.ROW_RANGE:
        if marker.start_row is not None and current_value < marker.start_row:
            return False
        if marker.end_row is not None and current_value > marker.end_row:
            return False
    if marker.is_repeating:
        return is_occurrence(marker.repeat_anchor, marker.repeat_interval, current_value)
    return True


def _condition_fires(
    marker: Marker,
    current_value: int,
    delegate: TriggerDelegate | None,
) -> bool:
    """Dispatch on the trigger type and evaluate its condition."""
    trigger_type = marker.trigger_type
    condition = marker.trigger_condition

    if trigger_type == TriggerType.COUNTER_VALUE:
        if not isinstance(condition, CounterValueCondition):
            return _mismatched(marker)
        return _counter_value_fires(marker, condition, current_value)
    if trigger_type == TriggerType.ROW_INTERVAL:
        if not isinstance(condition, RowIntervalCondition):
            return _mismatched(marker)
        if condition.interval <= 0:
            logger.warning(
                "Skipping row_interval marker with non-positive interval: marker_id=%s",
                marker.id,
            )
            return False
        return current_value > 0 and current_value % condition.interval == 0
    if trigger_type == TriggerType.STITCH_COUNT:
        if not isinstance(condition, StitchCountCondition):
            return _mismatched(marker)
        return current_value == condition.stitch_count
    if trigger_type == TriggerType.ROW_RANGE:
        if not isinstance(condition, RowRangeCondition):
            return _mismatched(marker)
        return condition.start <= current_value <= condition.end
    if trigger_type in DELEGATED_TRIGGER_TYPES:
        if delegate is None:
            logger.debug(
                "No delegate for %s marker; treating as not fired: marker_id=%s",
                trigger_type.value,
                marker.id,
            )
            return False
        return bool(delegate(marker, current_value))
    raise ValueError(f"Unsupported trigger type: {trigger_type}")


def _counter_value_fires(
    marker: Marker,
    condition: CounterValueCondition,
    current_value: int,
) -> bool:
    """Evaluate a counter_value comparison."""
    operator = condition.operator
    if operator == ConditionOperator.EQUALS:
        return current_value == condition.value
    if operator == ConditionOperator.GREATER_THAN:
        return current_value > condition.value
    if operator == ConditionOperator.LESS_THAN:
        return current_value < condition.value
    if operator == ConditionOperator.MULTIPLE_OF:
        if condition.value == 0:
            logger.warning(
                "multiple_of marker has a zero divisor; validation was bypassed: marker_id=%s",
                marker.id,
            )
            return False
        return current_value % condition.value == 0
    raise ValueError(f"Unsupported counter operator: {operator}")


def _mismatched(marker: Marker) -> bool:
    """Log a condition/trigger-type mismatch and report the marker as not fired."""
    logger.warning(
        "Condition %s does not match trigger type %s; validation was bypassed: marker_id=%s",
        type(marker.trigger_condition).__name__,
        marker.trigger_type.value,
        marker.id,
    )
    return False


__all__ = ["TriggerDelegate", "evaluate_markers", "fires"]
