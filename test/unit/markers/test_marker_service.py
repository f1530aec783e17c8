"""Unit tests for the marker engine service."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import logging

import pytest
from sqlalchemy.orm import sessionmaker

from config import MarkerConfig
from markers.domain import MarkerEventType
from markers.errors import InvalidTransitionError, MarkerValidationError
from markers.repository import MarkerRepository
from markers.service import MarkerEngineService
from markers.suggestions import MarkerSuggestion
from markers.timeline import TimelinePhase
from markers.validation import build_marker

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class _FakeCounters:
    """Counter provider returning fixed values per counter."""

    def __init__(self, values: dict) -> None:
        self.values = values
        self.calls: list[tuple] = []

    def get_current_value(self, project_id, counter_id=None) -> int:
        self.calls.append((project_id, counter_id))
        return self.values[counter_id]


class _FakeAnalyzer:
    """Analyzer returning canned suggestions."""

    def __init__(self, suggestions: list[MarkerSuggestion]) -> None:
        self.suggestions = suggestions
        self.texts: list[str] = []

    def analyze(self, text: str) -> list[MarkerSuggestion]:
        self.texts.append(text)
        return self.suggestions


def _service(factory: sessionmaker, **kwargs) -> MarkerEngineService:
    """Build a service with small, explicit defaults."""
    kwargs.setdefault(
        "config",
        MarkerConfig(
            default_lookahead_rows=5,
            default_project_length=100,
            timeline_max_expansions=20,
            default_snooze_minutes=15,
            default_current_row=1,
        ),
    )
    return MarkerEngineService(MarkerRepository(factory), **kwargs)


def _store(factory: sessionmaker, marker_id: str, **fields) -> None:
    """Persist a marker for the default project."""
    fields.setdefault("trigger_type", "counter_value")
    fields.setdefault("trigger_condition", {"operator": "equals", "value": 10})
    MarkerRepository(factory).create(
        build_marker(id=marker_id, project_id="p1", **fields), now=NOW
    )


def test_check_markers_records_triggers_by_priority(
    sqlite_session_factory: sessionmaker,
    caplog,
) -> None:
    """Ensure fired markers are recorded and returned most urgent first."""
    _store(sqlite_session_factory, "normal")
    _store(sqlite_session_factory, "critical", priority="critical")
    _store(sqlite_session_factory, "miss", trigger_condition={"operator": "equals", "value": 11})
    service = _service(sqlite_session_factory)

    with caplog.at_level(logging.INFO, logger="markers.service"):
        fired = service.check_markers("p1", value=10, now=NOW)

    assert [marker.id for marker in fired] == ["critical", "normal"]
    assert all(marker.times_triggered == 1 for marker in fired)
    assert "Marker fired: marker_id=critical" in caplog.text
    assert [event.at_row for event in MarkerRepository(sqlite_session_factory).list_events("normal")] == [10]


def test_check_markers_reads_counter_provider(sqlite_session_factory: sessionmaker) -> None:
    """Ensure the counter value is read from the provider when not supplied."""
    _store(sqlite_session_factory, "sleeves", counter_id="sleeve")
    counters = _FakeCounters({"sleeve": 10})
    service = _service(sqlite_session_factory, counter_provider=counters)

    fired = service.check_markers("p1", "sleeve", now=NOW)

    assert [marker.id for marker in fired] == ["sleeves"]
    assert counters.calls == [("p1", "sleeve")]


def test_snoozed_marker_is_skipped_until_expiry(sqlite_session_factory: sessionmaker) -> None:
    """Ensure the default snooze suppresses a marker for the configured minutes."""
    _store(sqlite_session_factory, "m1")
    service = _service(sqlite_session_factory)

    marker, _ = service.record_event("m1", "snoozed", 10, now=NOW)

    assert marker.snoozed_until == NOW + timedelta(minutes=15)
    assert service.check_markers("p1", value=10, now=NOW + timedelta(minutes=5)) == []
    assert [m.id for m in service.check_markers("p1", value=10, now=NOW + timedelta(minutes=16))] == [
        "m1"
    ]


def test_record_event_rejection_is_logged(sqlite_session_factory: sessionmaker, caplog) -> None:
    """Ensure rejected transitions are logged and re-raised."""
    _store(sqlite_session_factory, "m1")
    service = _service(sqlite_session_factory)
    service.record_event("m1", MarkerEventType.COMPLETED, 100, now=NOW)

    with caplog.at_level(logging.WARNING, logger="markers.service"):
        with pytest.raises(InvalidTransitionError):
            service.record_event("m1", "completed", 100, now=NOW)

    assert "Marker event rejected: marker_id=m1" in caplog.text


def test_upcoming_and_timeline_use_configured_defaults(
    sqlite_session_factory: sessionmaker,
) -> None:
    """Ensure lookahead and timeline queries fall back to configured defaults."""
    _store(sqlite_session_factory, "soon", trigger_condition={"operator": "equals", "value": 4})
    _store(sqlite_session_factory, "later", trigger_condition={"operator": "equals", "value": 50})
    service = _service(sqlite_session_factory)

    upcoming = service.upcoming_for_project("p1")
    timeline = service.timeline_for_project("p1", current_value=60)

    assert [(item.marker.id, item.position) for item in upcoming] == [("soon", 4)]
    assert [(entry.marker.id, entry.position, entry.phase) for entry in timeline] == [
        ("soon", 0.04, TimelinePhase.PAST),
        ("later", 0.5, TimelinePhase.PAST),
    ]


def test_analytics_for_project(sqlite_session_factory: sessionmaker) -> None:
    """Ensure analytics reflect recorded interactions."""
    _store(sqlite_session_factory, "m1")
    service = _service(sqlite_session_factory)
    service.record_event("m1", "triggered", 10, now=NOW)
    service.record_event("m1", "acknowledged", 10, now=NOW)

    summary = service.analytics_for_project("p1")

    assert summary.total_markers == 1
    assert summary.total_triggers == 1
    assert summary.acknowledgement_rate == pytest.approx(1.0)
    assert summary.most_effective is not None


def test_accept_suggestion_persists_ai_marker(sqlite_session_factory: sessionmaker) -> None:
    """Ensure accepted suggestions are stored as AI-suggested markers."""
    service = _service(sqlite_session_factory)

    marker = service.accept_suggestion(
        "p1",
        {
            "type": "row_interval",
            "name": "Decrease Reminder",
            "start_row": 8,
            "repeat_interval": 8,
            "message": "Time to decrease",
            "confidence": 0.85,
            "reason": "Found every 8 rows",
        },
    )

    stored = MarkerRepository(sqlite_session_factory).get(marker.id)
    assert stored.suggested_by_ai is True
    assert stored.name == "Decrease Reminder"
    assert [m.id for m in service.check_markers("p1", value=16, now=NOW)] == [marker.id]


def test_accept_invalid_suggestion_raises_validation_error(
    sqlite_session_factory: sessionmaker,
) -> None:
    """Ensure malformed suggestion payloads surface as marker validation errors."""
    service = _service(sqlite_session_factory)

    with pytest.raises(MarkerValidationError) as excinfo:
        service.accept_suggestion("p1", {"type": "row_range", "start_row": 3, "message": "x"})

    assert excinfo.value.details["field"] == "suggestion"


def test_suggest_markers_delegates_to_analyzer(sqlite_session_factory: sessionmaker) -> None:
    """Ensure suggestions come from the configured analyzer and short text is skipped."""
    suggestion = MarkerSuggestion(type="counter_value", start_row=12, message="Join in the round")
    analyzer = _FakeAnalyzer([suggestion])
    service = _service(sqlite_session_factory, analyzer=analyzer)

    assert service.suggest_markers("p1", "short") == []
    assert service.suggest_markers("p1", "On row 12 join in the round.") == [suggestion]
    assert analyzer.texts == ["On row 12 join in the round."]
    assert _service(sqlite_session_factory).suggest_markers("p1", "On row 12 join.") == []


def test_create_marker_requires_name_and_message(sqlite_session_factory: sessionmaker) -> None:
    """Ensure host-defined markers need a name and an alert message."""
    service = _service(sqlite_session_factory)

    with pytest.raises(MarkerValidationError) as excinfo:
        service.create_marker(
            "p1",
            trigger_type="counter_value",
            trigger_condition={"operator": "equals", "value": 10},
            name="Decrease",
            alert_message="",
        )

    assert excinfo.value.details["field"] == "alert_message"
    assert service.analytics_for_project("p1").total_markers == 0


def test_create_marker_assigns_id(sqlite_session_factory: sessionmaker) -> None:
    """Ensure created markers get a generated id when none is given."""
    service = _service(sqlite_session_factory)

    marker = service.create_marker(
        "p1",
        trigger_type="counter_value",
        trigger_condition={"operator": "equals", "value": 3},
        name="Cable",
        alert_message="Cross the cable",
        now=NOW,
    )

    assert marker.id
    assert service.upcoming_for_project("p1", 1, 4)[0].marker.id == marker.id


def test_toggled_marker_is_skipped_by_checks(sqlite_session_factory: sessionmaker) -> None:
    """Ensure a deactivated marker no longer fires until toggled back."""
    _store(sqlite_session_factory, "m1")
    service = _service(sqlite_session_factory)

    service.toggle_marker("m1", now=NOW)
    assert service.check_markers("p1", value=10, now=NOW) == []

    service.toggle_marker("m1", now=NOW)
    assert [marker.id for marker in service.check_markers("p1", value=10, now=NOW)] == ["m1"]


def test_update_move_and_color_marker(sqlite_session_factory: sessionmaker) -> None:
    """Ensure definition edits flow through to lookahead."""
    _store(sqlite_session_factory, "m1")
    service = _service(sqlite_session_factory)

    service.update_marker("m1", {"priority": "critical"}, now=NOW)
    service.move_marker("m1", 3, now=NOW)
    marker = service.set_marker_color("m1", "red", now=NOW)

    assert marker.priority.value == "critical"
    assert marker.color == "red"
    assert [item.position for item in service.upcoming_for_project("p1", 1, 5)] == [3]


def test_from_settings_uses_configured_session_factory(
    monkeypatch, sqlite_session_factory: sessionmaker
) -> None:
    """Ensure the settings-built service stores through the configured database."""
    monkeypatch.setattr("markers.service.get_session_factory", lambda: sqlite_session_factory)
    service = MarkerEngineService.from_settings()

    service.create_marker(
        "p1",
        marker_id="m1",
        trigger_type="counter_value",
        trigger_condition={"operator": "equals", "value": 10},
        name="Decrease",
        alert_message="Decrease now",
        now=NOW,
    )

    assert MarkerRepository(sqlite_session_factory).get("m1").name == "Decrease"
