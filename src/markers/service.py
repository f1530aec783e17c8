"""Host-side service composing the marker engine with storage and counters."""

from __future__ import annotations

from datetime import datetime
import logging
import uuid
from typing import Mapping, Protocol

from pydantic import ValidationError

from config import MarkerConfig, settings
from database import get_session_factory
from logging_config import log_context
from markers.analytics import AnalyticsSummary, summarize
from markers.domain import Marker, MarkerEvent, MarkerEventType
from markers.editing import validate_labels
from markers.errors import InvalidTransitionError, MarkerValidationError
from markers.lookahead import UpcomingOccurrence, upcoming_occurrences
from markers.repository import MarkerRepository
from markers.suggestions import MarkerSuggestion, SuggestionAnalyzer, marker_from_suggestion
from markers.timeline import PositionedMarker, generate_timeline
from markers.trigger_evaluation import TriggerDelegate, evaluate_markers
from markers.validation import build_marker, parse_enum

logger = logging.getLogger(__name__)

_MIN_ANALYSIS_TEXT_LENGTH = 10


class CounterValueProvider(Protocol):
    """Protocol for reading a project's current counter value."""

    def get_current_value(self, project_id: str | int, counter_id: str | int | None = None) -> int:
        """Return the current value of a counter; None selects the primary row counter."""
        ...


class MarkerEngineService:
    """Run marker checks and queries against a project's stored markers."""

    def __init__(
        self,
        repository: MarkerRepository,
        *,
        counter_provider: CounterValueProvider | None = None,
        analyzer: SuggestionAnalyzer | None = None,
        delegate: TriggerDelegate | None = None,
        config: MarkerConfig | None = None,
    ) -> None:
        """Initialize the service with its collaborators."""
        self._repository = repository
        self._counter_provider = counter_provider
        self._analyzer = analyzer
        self._delegate = delegate
        self._config = config or settings.markers

    @classmethod
    def from_settings(cls, **kwargs) -> MarkerEngineService:
        """Build a service on the session factory configured in settings."""
        return cls(MarkerRepository(get_session_factory()), **kwargs)

    def create_marker(
        self,
        project_id: str | int,
        *,
        marker_id: str | int | None = None,
        now: datetime | None = None,
        **fields: object,
    ) -> Marker:
        """Build, validate and store a host-defined marker.

        Host-defined markers must carry a name and an alert message.
        """
        marker = validate_labels(
            build_marker(
                id=marker_id if marker_id is not None else str(uuid.uuid4()),
                project_id=project_id,
                **fields,  # type: ignore[arg-type]
            )
        )
        return self._repository.create(marker, now=now)

    def update_marker(
        self,
        marker_id: str | int,
        changes: Mapping[str, object],
        *,
        now: datetime | None = None,
    ) -> Marker:
        """Apply a partial update to a marker's definition."""
        with log_context({"marker_id": marker_id}):
            return self._repository.update(marker_id, changes, now=now)

    def toggle_marker(self, marker_id: str | int, *, now: datetime | None = None) -> Marker:
        """Flip whether a marker takes part in checks and lookahead."""
        with log_context({"marker_id": marker_id}):
            return self._repository.toggle(marker_id, now=now)

    def move_marker(
        self,
        marker_id: str | int,
        position: int,
        end_position: int | None = None,
        *,
        now: datetime | None = None,
    ) -> Marker:
        """Move a marker's trigger point on the project timeline."""
        with log_context({"marker_id": marker_id}):
            return self._repository.reposition(marker_id, position, end_position, now=now)

    def set_marker_color(
        self,
        marker_id: str | int,
        color: str,
        *,
        now: datetime | None = None,
    ) -> Marker:
        """Set a marker's palette color."""
        with log_context({"marker_id": marker_id}):
            return self._repository.set_color(marker_id, color, now=now)

    def check_markers(
        self,
        project_id: str | int,
        counter_id: str | int | None = None,
        value: int | None = None,
        *,
        include_unbound: bool = False,
        now: datetime | None = None,
    ) -> list[Marker]:
        """Evaluate a project's markers at ``value`` and record a trigger for each fired one.

        When ``value`` is omitted it is read from the counter provider. The
        returned markers carry their updated counters, most urgent first.
        """
        with log_context({"project_id": project_id, "counter_id": counter_id}):
            current = self._resolve_value(project_id, counter_id, value)
            markers = self._repository.list_for_project(project_id, active_only=True)
            fired = evaluate_markers(
                markers,
                current,
                counter_id=counter_id,
                include_unbound=include_unbound,
                now=now,
                delegate=self._delegate,
            )
            results: list[Marker] = []
            for marker in fired:
                updated, _ = self._repository.record_event(
                    marker.id,
                    MarkerEventType.TRIGGERED,
                    current,
                    now=now,
                )
                logger.info(
                    "Marker fired: marker_id=%s value=%s priority=%s",
                    marker.id,
                    current,
                    marker.priority.value,
                )
                results.append(updated)
            logger.debug(
                "Marker check complete: value=%s evaluated=%s fired=%s",
                current,
                len(markers),
                len(results),
            )
            return results

    def upcoming_for_project(
        self,
        project_id: str | int,
        current_value: int | None = None,
        lookahead_rows: int | None = None,
    ) -> list[UpcomingOccurrence]:
        """Return the project's markers firing within the lookahead window."""
        current = self._resolve_value(project_id, None, current_value)
        window = (
            lookahead_rows if lookahead_rows is not None else self._config.default_lookahead_rows
        )
        markers = self._repository.list_for_project(project_id, active_only=True)
        return upcoming_occurrences(markers, current, window)

    def timeline_for_project(
        self,
        project_id: str | int,
        current_value: int | None = None,
        project_length: int | None = None,
    ) -> list[PositionedMarker]:
        """Return the project's markers laid out on its timeline."""
        current = self._resolve_value(project_id, None, current_value)
        length = (
            project_length if project_length is not None else self._config.default_project_length
        )
        markers = self._repository.list_for_project(project_id)
        return generate_timeline(
            markers,
            current,
            length,
            max_expansions=self._config.timeline_max_expansions,
        )

    def analytics_for_project(self, project_id: str | int) -> AnalyticsSummary:
        """Return usage analytics for all of the project's markers."""
        return summarize(self._repository.list_for_project(project_id))

    def record_event(
        self,
        marker_id: str | int,
        event_type: MarkerEventType | str,
        at_row: int | None = None,
        *,
        now: datetime | None = None,
        snooze_minutes: int | float | None = None,
    ) -> tuple[Marker, MarkerEvent]:
        """Record a user interaction with a marker.

        Snoozes without an explicit duration use the configured default.
        """
        resolved = parse_enum(MarkerEventType, event_type, "event_type")
        if resolved == MarkerEventType.SNOOZED and snooze_minutes is None:
            snooze_minutes = self._config.default_snooze_minutes
        with log_context({"marker_id": marker_id}):
            try:
                return self._repository.record_event(
                    marker_id,
                    resolved,
                    at_row,
                    now=now,
                    snooze_minutes=snooze_minutes,
                )
            except InvalidTransitionError as exc:
                logger.warning(
                    "Marker event rejected: marker_id=%s event_type=%s reason=%s",
                    marker_id,
                    resolved.value,
                    exc.message,
                )
                raise

    def accept_suggestion(
        self,
        project_id: str | int,
        suggestion: MarkerSuggestion | Mapping[str, object],
    ) -> Marker:
        """Persist an accepted analyzer suggestion as a marker."""
        if not isinstance(suggestion, MarkerSuggestion):
            try:
                suggestion = MarkerSuggestion.model_validate(dict(suggestion))
            except ValidationError as exc:
                raise MarkerValidationError(
                    "Suggestion is invalid.",
                    {"field": "suggestion", "errors": exc.errors(include_url=False)},
                ) from exc
        marker = self._repository.create(marker_from_suggestion(suggestion, project_id=project_id))
        logger.info(
            "Accepted marker suggestion: marker_id=%s project_id=%s type=%s confidence=%s",
            marker.id,
            project_id,
            suggestion.type,
            suggestion.confidence,
        )
        return marker

    def suggest_markers(self, project_id: str | int, text: str) -> list[MarkerSuggestion]:
        """Ask the pattern analyzer for marker suggestions."""
        if self._analyzer is None:
            logger.debug("No suggestion analyzer configured: project_id=%s", project_id)
            return []
        if not text or len(text.strip()) < _MIN_ANALYSIS_TEXT_LENGTH:
            return []
        suggestions = list(self._analyzer.analyze(text))
        logger.info(
            "Pattern analyzed: project_id=%s suggestions=%s",
            project_id,
            len(suggestions),
        )
        return suggestions

    def _resolve_value(
        self,
        project_id: str | int,
        counter_id: str | int | None,
        value: int | None,
    ) -> int:
        """Return the explicit value, the provider's value, or the configured default."""
        if value is not None:
            return value
        if self._counter_provider is not None:
            return self._counter_provider.get_current_value(project_id, counter_id)
        return self._config.default_current_row


__all__ = ["CounterValueProvider", "MarkerEngineService"]
