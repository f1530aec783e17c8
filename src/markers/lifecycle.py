"""Marker interaction lifecycle: event recording and counter projection.

The marker event log is the source of truth. ``times_triggered``,
``times_snoozed`` and ``times_acknowledged`` on a marker are cached
projections of that log and can be rebuilt with ``replay_events``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
import logging
from typing import Iterable

from markers.domain import Marker, MarkerEvent, MarkerEventType, MarkerStatus
from markers.errors import InvalidTransitionError, MarkerNotFoundError
from markers.validation import parse_enum, validate_snooze_minutes
from time_utils import to_utc, utc_now

logger = logging.getLogger(__name__)

_COUNTER_FIELDS = {
    MarkerEventType.TRIGGERED: "times_triggered",
    MarkerEventType.SNOOZED: "times_snoozed",
    MarkerEventType.ACKNOWLEDGED: "times_acknowledged",
}


@dataclass(frozen=True)
class MarkerCounters:
    """Event counts derived from a marker's event log."""

    times_triggered: int = 0
    times_snoozed: int = 0
    times_acknowledged: int = 0


def record_event(
    marker: Marker | None,
    event_type: MarkerEventType | str,
    at_row: int | None = None,
    *,
    now: datetime | None = None,
    snooze_minutes: int | float | None = None,
) -> tuple[Marker, MarkerEvent]:
    """Apply a lifecycle event and return the updated marker with the new event.

    ``completed`` is terminal: completing an already completed marker raises
    ``InvalidTransitionError``. When ``snooze_minutes`` accompanies a
    ``snoozed`` event, the marker is suppressed from batch evaluation until
    the snooze expires.
    """
    resolved = parse_enum(MarkerEventType, event_type, "event_type")
    if marker is None:
        raise InvalidTransitionError(
            f"Cannot record '{resolved.value}' for a marker that does not exist.",
            {"event_type": resolved.value},
        )
    timestamp = to_utc(now) if now is not None else utc_now()

    if resolved == MarkerEventType.COMPLETED:
        if marker.status == MarkerStatus.COMPLETED:
            raise InvalidTransitionError(
                f"Marker {marker.id} is already completed.",
                {
                    "marker_id": str(marker.id),
                    "current_status": marker.status.value,
                    "event_type": resolved.value,
                },
            )
        updated = replace(marker, status=MarkerStatus.COMPLETED, completed_at=timestamp)
    elif resolved == MarkerEventType.TRIGGERED:
        updated = replace(
            marker,
            times_triggered=marker.times_triggered + 1,
            last_triggered_at=timestamp,
        )
    elif resolved == MarkerEventType.SNOOZED:
        snoozed_until = marker.snoozed_until
        if snooze_minutes is not None:
            validate_snooze_minutes(snooze_minutes)
            snoozed_until = timestamp + timedelta(minutes=snooze_minutes)
        updated = replace(
            marker,
            times_snoozed=marker.times_snoozed + 1,
            snoozed_until=snoozed_until,
        )
    elif resolved == MarkerEventType.ACKNOWLEDGED:
        updated = replace(marker, times_acknowledged=marker.times_acknowledged + 1)
    else:
        raise ValueError(f"Unsupported marker event type: {resolved}")

    event = MarkerEvent(
        marker_id=marker.id,
        event_type=resolved,
        at_row=at_row,
        timestamp=timestamp,
    )
    logger.debug(
        "Recorded marker event: marker_id=%s event_type=%s at_row=%s",
        marker.id,
        resolved.value,
        at_row,
    )
    return updated, event


def counters_from_events(events: Iterable[MarkerEvent]) -> MarkerCounters:
    """Count triggered, snoozed and acknowledged events in a log."""
    counts = {field: 0 for field in _COUNTER_FIELDS.values()}
    for event in events:
        field = _COUNTER_FIELDS.get(event.event_type)
        if field is not None:
            counts[field] += 1
    return MarkerCounters(**counts)


def replay_events(marker: Marker, events: Iterable[MarkerEvent]) -> Marker:
    """Rebuild a marker's status and counters from its event log.

    Events for other markers are ignored. The log is replayed in the given
    order through ``record_event``, so an inconsistent log (for example two
    completions) raises ``InvalidTransitionError``.
    """
    rebuilt = replace(
        marker,
        status=MarkerStatus.ACTIVE,
        times_triggered=0,
        times_snoozed=0,
        times_acknowledged=0,
        last_triggered_at=None,
        completed_at=None,
    )
    for event in events:
        if event.marker_id != marker.id:
            continue
        rebuilt, _ = record_event(
            rebuilt,
            event.event_type,
            event.at_row,
            now=event.timestamp,
        )
    return replace(rebuilt, snoozed_until=marker.snoozed_until)


def verify_counters(marker: Marker, events: Iterable[MarkerEvent]) -> bool:
    """Return True when the marker's cached counters match its event log."""
    counters = counters_from_events(event for event in events if event.marker_id == marker.id)
    consistent = (
        counters.times_triggered == marker.times_triggered
        and counters.times_snoozed == marker.times_snoozed
        and counters.times_acknowledged == marker.times_acknowledged
    )
    if not consistent:
        logger.warning(
            "Marker counters drifted from event log: marker_id=%s cached=%s derived=%s",
            marker.id,
            (marker.times_triggered, marker.times_snoozed, marker.times_acknowledged),
            (counters.times_triggered, counters.times_snoozed, counters.times_acknowledged),
        )
    return consistent


def find_marker(markers: Iterable[Marker], marker_id: str | int) -> Marker:
    """Return the marker with ``marker_id`` from a caller-supplied set."""
    for marker in markers:
        if marker.id == marker_id:
            return marker
    raise MarkerNotFoundError(
        f"Marker not found: {marker_id}",
        {"marker_id": str(marker_id)},
    )


__all__ = [
    "MarkerCounters",
    "counters_from_events",
    "find_marker",
    "record_event",
    "replay_events",
    "verify_counters",
]
