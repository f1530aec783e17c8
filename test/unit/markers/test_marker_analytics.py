"""Unit tests for marker usage analytics."""

from __future__ import annotations

from dataclasses import replace

import pytest

from markers.analytics import summarize
from markers.domain import MarkerStatus
from markers.validation import build_marker


def _marker(marker_id: str, trigger_type: str = "counter_value", **fields):
    """Build a marker with the given counters."""
    condition = (
        {"operator": "equals", "value": 10}
        if trigger_type == "counter_value"
        else {"interval": 4}
    )
    return build_marker(
        id=marker_id,
        project_id="p1",
        trigger_type=trigger_type,
        trigger_condition=condition,
        **fields,
    )


def test_empty_marker_set_summarizes_to_zero() -> None:
    """Ensure an empty project yields zeroed analytics."""
    summary = summarize([])

    assert summary.total_markers == 0
    assert summary.snooze_rate == 0.0
    assert summary.most_effective is None
    assert summary.usage == ()


def test_summary_totals_and_rates() -> None:
    """Ensure totals, rates, and breakdowns are aggregated across markers."""
    busy = _marker("busy", times_triggered=4, times_snoozed=2, times_acknowledged=1)
    steady = _marker(
        "steady",
        trigger_type="row_interval",
        times_triggered=2,
        times_acknowledged=2,
        suggested_by_ai=True,
    )
    idle = replace(_marker("idle"), status=MarkerStatus.COMPLETED)
    paused = _marker("paused", is_active=False)

    summary = summarize([busy, steady, idle, paused])

    assert summary.total_markers == 4
    assert summary.active_markers == 3
    assert summary.completed_markers == 1
    assert summary.ai_suggested_count == 1
    assert summary.total_triggers == 6
    assert summary.total_snoozes == 2
    assert summary.total_acknowledgements == 3
    assert summary.snooze_rate == pytest.approx(2 / 6)
    assert summary.acknowledgement_rate == pytest.approx(3 / 6)
    assert summary.markers_by_type == {"counter_value": 3, "row_interval": 1}


def test_per_marker_usage_divides_by_at_least_one() -> None:
    """Ensure markers that never fired report zero rates."""
    summary = summarize([_marker("never", times_snoozed=0), _marker("busy", times_triggered=4, times_snoozed=1)])

    rates = {usage.marker_id: usage.snooze_rate for usage in summary.usage}
    assert rates == {"never": 0.0, "busy": pytest.approx(0.25)}


def test_most_effective_marker_has_highest_acknowledgement_rate() -> None:
    """Ensure the most effective marker ignores markers that never triggered."""
    low = _marker("low", times_triggered=4, times_acknowledged=1)
    high = _marker("high", times_triggered=2, times_acknowledged=2)
    unused = _marker("unused", times_acknowledged=5)

    summary = summarize([low, high, unused])

    assert summary.most_effective is not None
    assert summary.most_effective.marker_id == "high"
    assert summary.most_effective.acknowledgement_rate == pytest.approx(1.0)


def test_paused_markers_count_as_active() -> None:
    """Ensure active and completed counts follow status and cover every marker."""
    running = _marker("running", times_triggered=2)
    paused = _marker("paused", is_active=False, times_triggered=4)
    done = replace(_marker("done"), status=MarkerStatus.COMPLETED)

    summary = summarize([running, paused, done])

    assert summary.active_markers == 2
    assert summary.completed_markers == 1
    assert summary.active_markers + summary.completed_markers == summary.total_markers


def test_most_effective_requires_an_acknowledgement() -> None:
    """Ensure no marker is most effective when none was ever acknowledged."""
    summary = summarize([_marker("a", times_triggered=2), _marker("b", times_triggered=4)])

    assert summary.most_effective is None
