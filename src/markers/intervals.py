"""Interval math for repeating markers."""

from __future__ import annotations

from typing import Iterator

from markers.errors import InvalidTriggerConditionError


def next_occurrence(start: int, interval: int, current_value: int) -> int:
    """Return the first occurrence of ``start + k * interval`` after ``current_value``.

    When ``current_value`` is still before ``start`` the first occurrence has
    not happened yet and ``start`` itself is returned. The result is always
    strictly greater than ``current_value``.
    """
    _require_positive_interval(interval)
    if current_value < start:
        return start
    return start + ((current_value - start) // interval + 1) * interval


def is_occurrence(start: int, interval: int, value: int) -> bool:
    """Return True when ``value`` lies on the cadence ``start + k * interval``, k >= 0."""
    _require_positive_interval(interval)
    return value >= start and (value - start) % interval == 0


def occurrences_between(
    start: int,
    interval: int,
    low: int,
    high: int,
    *,
    limit: int | None = None,
) -> Iterator[int]:
    """Yield cadence occurrences within ``[low, high]`` in ascending order.

    Iteration stops after ``limit`` occurrences when a limit is given.
    """
    _require_positive_interval(interval)
    if high < low or (limit is not None and limit <= 0):
        return
    if low <= start:
        position = start
    else:
        position = next_occurrence(start, interval, low - 1)
    emitted = 0
    while position <= high:
        yield position
        emitted += 1
        if limit is not None and emitted >= limit:
            return
        position += interval


def _require_positive_interval(interval: int) -> None:
    """Reject non-positive intervals."""
    if interval <= 0:
        raise InvalidTriggerConditionError(
            "Repeat interval must be a positive number.",
            {"field": "repeat_interval", "repeat_interval": interval},
        )


__all__ = ["is_occurrence", "next_occurrence", "occurrences_between"]
