"""Usage analytics over a project's marker set."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from markers.domain import Marker, MarkerStatus


@dataclass(frozen=True)
class MarkerUsage:
    """Per-marker interaction counts and rates."""

    marker_id: str | int
    name: str
    trigger_type: str
    times_triggered: int
    times_snoozed: int
    times_acknowledged: int
    snooze_rate: float
    acknowledgement_rate: float


@dataclass(frozen=True)
class AnalyticsSummary:
    """Aggregate marker usage for one project."""

    total_markers: int = 0
    active_markers: int = 0
    completed_markers: int = 0
    ai_suggested_count: int = 0
    total_triggers: int = 0
    total_snoozes: int = 0
    total_acknowledgements: int = 0
    snooze_rate: float = 0.0
    acknowledgement_rate: float = 0.0
    markers_by_type: dict[str, int] = field(default_factory=dict)
    most_effective: MarkerUsage | None = None
    usage: tuple[MarkerUsage, ...] = ()


def summarize(markers: Iterable[Marker]) -> AnalyticsSummary:
    """Roll marker counters into an ``AnalyticsSummary``.

    Rates divide by ``max(times_triggered, 1)`` so markers that never fired
    report 0.0. Active and completed counts follow lifecycle status, so a
    paused marker still counts as active. The most effective marker has the
    highest non-zero acknowledgement rate; ties keep the earliest marker.
    """
    marker_list = list(markers)
    usage = tuple(_usage_for(marker) for marker in marker_list)

    total_triggers = sum(marker.times_triggered for marker in marker_list)
    total_snoozes = sum(marker.times_snoozed for marker in marker_list)
    total_acknowledgements = sum(marker.times_acknowledged for marker in marker_list)

    markers_by_type: dict[str, int] = {}
    for marker in marker_list:
        key = marker.trigger_type.value
        markers_by_type[key] = markers_by_type.get(key, 0) + 1

    most_effective: MarkerUsage | None = None
    best_rate = 0.0
    for entry in usage:
        if entry.times_triggered > 0 and entry.acknowledgement_rate > best_rate:
            most_effective = entry
            best_rate = entry.acknowledgement_rate

    return AnalyticsSummary(
        total_markers=len(marker_list),
        active_markers=sum(1 for marker in marker_list if marker.status == MarkerStatus.ACTIVE),
        completed_markers=sum(
            1 for marker in marker_list if marker.status == MarkerStatus.COMPLETED
        ),
        ai_suggested_count=sum(1 for marker in marker_list if marker.suggested_by_ai),
        total_triggers=total_triggers,
        total_snoozes=total_snoozes,
        total_acknowledgements=total_acknowledgements,
        snooze_rate=_rate(total_snoozes, total_triggers),
        acknowledgement_rate=_rate(total_acknowledgements, total_triggers),
        markers_by_type=markers_by_type,
        most_effective=most_effective,
        usage=usage,
    )


def _usage_for(marker: Marker) -> MarkerUsage:
    return MarkerUsage(
        marker_id=marker.id,
        name=marker.name,
        trigger_type=marker.trigger_type.value,
        times_triggered=marker.times_triggered,
        times_snoozed=marker.times_snoozed,
        times_acknowledged=marker.times_acknowledged,
        snooze_rate=_rate(marker.times_snoozed, marker.times_triggered),
        acknowledgement_rate=_rate(marker.times_acknowledged, marker.times_triggered),
    )


def _rate(count: int, triggered: int) -> float:
    return count / max(triggered, 1)


__all__ = ["AnalyticsSummary", "MarkerUsage", "summarize"]
