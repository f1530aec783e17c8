"""Lookahead scheduling: which markers fire within the next N rows."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from markers.domain import Marker
from markers.intervals import next_occurrence


@dataclass(frozen=True)
class UpcomingOccurrence:
    """A marker paired with the position at which it next fires."""

    marker: Marker
    position: int
    repeating: bool


def upcoming_occurrences(
    markers: Iterable[Marker],
    current_value: int,
    lookahead_window: int,
) -> list[UpcomingOccurrence]:
    """Return markers firing in ``(current_value, current_value + window]`` with positions.

    One-shot markers contribute their fixed trigger position. Repeating
    markers contribute their next occurrence, which is the anchor row itself
    while the anchor is still ahead. Each marker id is reported at most once.
    Results are ordered by position, keeping input order for ties.
    """
    if lookahead_window <= 0:
        return []
    horizon = current_value + lookahead_window

    found: list[tuple[int, int, UpcomingOccurrence]] = []
    seen: set[str | int] = set()
    for index, marker in enumerate(markers):
        if not marker.participates or marker.id in seen:
            continue
        occurrence = _next_within(marker, current_value, horizon)
        if occurrence is None:
            continue
        seen.add(marker.id)
        found.append((occurrence.position, index, occurrence))

    found.sort(key=lambda item: (item[0], item[1]))
    return [occurrence for _, _, occurrence in found]


def upcoming(
    markers: Iterable[Marker],
    current_value: int,
    lookahead_window: int,
) -> list[Marker]:
    """Return the markers that fire within ``lookahead_window`` rows, soonest first."""
    return [
        occurrence.marker
        for occurrence in upcoming_occurrences(markers, current_value, lookahead_window)
    ]


def _next_within(marker: Marker, current_value: int, horizon: int) -> UpcomingOccurrence | None:
    """Return the marker's next firing position when it lies inside the window."""
    if marker.is_repeating:
        position = next_occurrence(marker.repeat_anchor, marker.repeat_interval, current_value)
        if position > horizon:
            return None
        if marker.end_row is not None and position > marker.end_row:
            return None
        return UpcomingOccurrence(marker=marker, position=position, repeating=True)

    position = marker.trigger_position
    if position is None or not current_value < position <= horizon:
        return None
    return UpcomingOccurrence(marker=marker, position=position, repeating=False)


__all__ = ["UpcomingOccurrence", "upcoming", "upcoming_occurrences"]
