"""Timeline projection of markers onto a normalized project scale."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from markers.domain import Marker, RowRangeCondition, TriggerType
from markers.intervals import occurrences_between

DEFAULT_MAX_EXPANSIONS = 500


class TimelinePhase(str, Enum):
    """Where a marker sits relative to the current counter value."""

    PAST = "past"
    CURRENT = "current"
    UPCOMING = "upcoming"


@dataclass(frozen=True)
class PositionedMarker:
    """A marker placed on the timeline.

    ``position`` and ``end_position`` are fractions of the project length in
    ``[0, 1]``. ``end_row``/``end_position`` are only set for range markers.
    ``occurrence`` is the zero-based index of a repeating marker's expansion.
    """

    marker: Marker
    row: int
    position: float
    phase: TimelinePhase
    end_row: int | None = None
    end_position: float | None = None
    occurrence: int = 0

    @property
    def is_range(self) -> bool:
        """Return True for start/end pairs."""
        return self.end_row is not None


def generate_timeline(
    markers: Iterable[Marker],
    current_value: int,
    project_length: int,
    *,
    max_expansions: int = DEFAULT_MAX_EXPANSIONS,
) -> list[PositionedMarker]:
    """Project ``markers`` onto the project timeline.

    Range markers produce one start/end entry. Repeating markers expand to
    every occurrence within ``[0, project_length]`` (never past ``end_row``),
    at most ``max_expansions`` entries per marker. Markers without a fixed
    position are omitted. ``project_length <= 0`` is treated as 1.
    """
    length = project_length if project_length > 0 else 1
    entries: list[PositionedMarker] = []
    for marker in markers:
        entries.extend(_position_marker(marker, current_value, length, max_expansions))
    return sorted(entries, key=lambda entry: entry.row)


def _position_marker(
    marker: Marker,
    current_value: int,
    length: int,
    max_expansions: int,
) -> list[PositionedMarker]:
    """Return the timeline entries for one marker."""
    span = _range_span(marker)
    if span is not None:
        start, end = span
        return [
            PositionedMarker(
                marker=marker,
                row=start,
                position=_normalize(start, length),
                phase=_range_phase(start, end, current_value),
                end_row=end,
                end_position=_normalize(end, length),
            )
        ]

    if marker.is_repeating:
        upper = length if marker.end_row is None else min(length, marker.end_row)
        rows = occurrences_between(
            marker.repeat_anchor,
            marker.repeat_interval,
            0,
            upper,
            limit=max_expansions,
        )
        return [
            PositionedMarker(
                marker=marker,
                row=row,
                position=_normalize(row, length),
                phase=_point_phase(row, current_value),
                occurrence=index,
            )
            for index, row in enumerate(rows)
        ]

    row = marker.trigger_position
    if row is None:
        return []
    return [
        PositionedMarker(
            marker=marker,
            row=row,
            position=_normalize(row, length),
            phase=_point_phase(row, current_value),
        )
    ]


def _range_span(marker: Marker) -> tuple[int, int] | None:
    """Return the start/end rows of a non-repeating range marker."""
    if marker.trigger_type != TriggerType.ROW_RANGE or marker.is_repeating:
        return None
    condition = marker.trigger_condition
    if isinstance(condition, RowRangeCondition):
        return condition.start, condition.end
    if marker.start_row is not None and marker.end_row is not None:
        return marker.start_row, marker.end_row
    return None


def _normalize(row: int, length: int) -> float:
    """Return ``row / length`` clamped to ``[0, 1]``."""
    return min(1.0, max(0.0, row / length))


def _point_phase(row: int, current_value: int) -> TimelinePhase:
    """Classify a single position."""
    if row < current_value:
        return TimelinePhase.PAST
    if row == current_value:
        return TimelinePhase.CURRENT
    return TimelinePhase.UPCOMING


def _range_phase(start: int, end: int, current_value: int) -> TimelinePhase:
    """Classify a start/end span."""
    if end < current_value:
        return TimelinePhase.PAST
    if start <= current_value:
        return TimelinePhase.CURRENT
    return TimelinePhase.UPCOMING


__all__ = [
    "DEFAULT_MAX_EXPANSIONS",
    "PositionedMarker",
    "TimelinePhase",
    "generate_timeline",
]
