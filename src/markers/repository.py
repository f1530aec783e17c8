"""SQLAlchemy repository for magic markers and their event log."""

from __future__ import annotations

from contextlib import closing
from dataclasses import asdict, replace
from datetime import datetime
from enum import Enum
import logging
from typing import Any, Callable, Mapping

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from markers.domain import (
    AlertType,
    DelegatedCondition,
    DisplayStyle,
    Marker,
    MarkerCategory,
    MarkerEvent,
    MarkerEventType,
    MarkerPriority,
    MarkerStatus,
    TriggerCondition,
    TriggerType,
)
from markers.editing import apply_marker_changes, validate_color
from markers.editing import reposition as reposition_marker
from markers.errors import InvalidTransitionError, MarkerNotFoundError
from markers.lifecycle import record_event as apply_event
from markers.validation import build_trigger_condition, validate_marker
from models import MagicMarker, MarkerEventRecord
from time_utils import ensure_utc, to_utc, utc_now

logger = logging.getLogger(__name__)

_COUNTER_COLUMNS = {
    MarkerEventType.TRIGGERED: MagicMarker.times_triggered,
    MarkerEventType.SNOOZED: MagicMarker.times_snoozed,
    MarkerEventType.ACKNOWLEDGED: MagicMarker.times_acknowledged,
}


class MarkerRepository:
    """Repository for marker CRUD and event recording."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        """Initialize repository with a SQLAlchemy session factory."""
        self._session_factory = session_factory

    def create(self, marker: Marker, *, now: datetime | None = None) -> Marker:
        """Validate and persist a new marker."""
        validate_marker(marker)

        def handler(session: Session) -> Marker:
            timestamp = to_utc(now) if now is not None else utc_now()
            row = MagicMarker(
                id=str(marker.id),
                project_id=str(marker.project_id),
                counter_id=_optional_str(marker.counter_id),
                name=marker.name,
                trigger_type=marker.trigger_type.value,
                trigger_condition=_condition_payload(marker.trigger_condition),
                start_row=marker.start_row,
                end_row=marker.end_row,
                repeat_interval=marker.repeat_interval,
                repeat_offset=marker.repeat_offset,
                alert_message=marker.alert_message,
                alert_type=marker.alert_type.value,
                priority=marker.priority.value,
                display_style=marker.display_style.value,
                color=marker.color,
                category=marker.category.value,
                is_active=marker.is_active,
                status=marker.status.value,
                suggested_by_ai=marker.suggested_by_ai,
                times_triggered=marker.times_triggered,
                times_snoozed=marker.times_snoozed,
                times_acknowledged=marker.times_acknowledged,
                snoozed_until=marker.snoozed_until,
                last_triggered_at=marker.last_triggered_at,
                completed_at=marker.completed_at,
                created_at=timestamp,
                updated_at=timestamp,
            )
            session.add(row)
            session.flush()
            logger.info(
                "Marker created: marker_id=%s project_id=%s trigger_type=%s",
                row.id,
                row.project_id,
                row.trigger_type,
            )
            return _to_domain(row)

        return self._execute(handler)

    def get(self, marker_id: str | int) -> Marker:
        """Fetch a marker by id or raise ``MarkerNotFoundError``."""

        def handler(session: Session) -> Marker:
            return _to_domain(_fetch_marker(session, marker_id))

        return self._execute(handler)

    def list_for_project(
        self,
        project_id: str | int,
        *,
        active_only: bool = False,
    ) -> list[Marker]:
        """Return a project's markers in creation order."""

        def handler(session: Session) -> list[Marker]:
            stmt = select(MagicMarker).where(MagicMarker.project_id == str(project_id))
            if active_only:
                stmt = stmt.where(
                    MagicMarker.is_active.is_(True),
                    MagicMarker.status == MarkerStatus.ACTIVE.value,
                )
            stmt = stmt.order_by(MagicMarker.created_at, MagicMarker.id)
            return [_to_domain(row) for row in session.execute(stmt).scalars()]

        return self._execute(handler)

    def list_events(self, marker_id: str | int) -> list[MarkerEvent]:
        """Return a marker's event log in insertion order."""

        def handler(session: Session) -> list[MarkerEvent]:
            stmt = (
                select(MarkerEventRecord)
                .where(MarkerEventRecord.marker_id == str(marker_id))
                .order_by(MarkerEventRecord.id)
            )
            return [_event_to_domain(row) for row in session.execute(stmt).scalars()]

        return self._execute(handler)

    def record_event(
        self,
        marker_id: str | int,
        event_type: MarkerEventType | str,
        at_row: int | None = None,
        *,
        now: datetime | None = None,
        snooze_minutes: int | float | None = None,
    ) -> tuple[Marker, MarkerEvent]:
        """Append an event and update the marker's projection in one transaction.

        Counter columns are incremented in SQL and completion is a conditional
        update on ``status = 'active'``, so concurrent writers never lose an
        increment or complete a marker twice.
        """

        def handler(session: Session) -> tuple[Marker, MarkerEvent]:
            row = session.get(MagicMarker, str(marker_id))
            snapshot = _to_domain(row) if row is not None else None
            updated, event = apply_event(
                snapshot,
                event_type,
                at_row,
                now=now,
                snooze_minutes=snooze_minutes,
            )
            _persist_projection(session, updated, event)
            session.add(
                MarkerEventRecord(
                    marker_id=str(marker_id),
                    event_type=event.event_type.value,
                    at_row=event.at_row,
                    occurred_at=event.timestamp,
                )
            )
            session.flush()
            refreshed = session.get(MagicMarker, str(marker_id), populate_existing=True)
            return _to_domain(refreshed), event

        return self._execute(handler)

    def update(
        self,
        marker_id: str | int,
        changes: Mapping[str, object],
        *,
        now: datetime | None = None,
    ) -> Marker:
        """Apply a partial definition update and re-validate the merged marker."""
        return self._rewrite(
            marker_id,
            lambda marker: apply_marker_changes(marker, changes),
            now=now,
            action="updated",
        )

    def set_active(
        self,
        marker_id: str | int,
        is_active: bool,
        *,
        now: datetime | None = None,
    ) -> Marker:
        """Enable or disable a marker without touching its lifecycle status."""
        return self._rewrite(
            marker_id,
            lambda marker: replace(marker, is_active=bool(is_active)),
            now=now,
            action="activated" if is_active else "deactivated",
        )

    def toggle(self, marker_id: str | int, *, now: datetime | None = None) -> Marker:
        """Flip a marker's ``is_active`` flag."""
        return self._rewrite(
            marker_id,
            lambda marker: replace(marker, is_active=not marker.is_active),
            now=now,
            action="toggled",
        )

    def reposition(
        self,
        marker_id: str | int,
        position: int,
        end_position: int | None = None,
        *,
        now: datetime | None = None,
    ) -> Marker:
        """Move a marker's trigger point."""
        return self._rewrite(
            marker_id,
            lambda marker: reposition_marker(marker, position, end_position),
            now=now,
            action="repositioned",
        )

    def set_color(
        self,
        marker_id: str | int,
        color: str,
        *,
        now: datetime | None = None,
    ) -> Marker:
        """Set a marker's palette color."""
        validate_color(color)
        return self._rewrite(
            marker_id,
            lambda marker: replace(marker, color=color),
            now=now,
            action="recolored",
        )

    def delete(self, marker_id: str | int) -> None:
        """Delete a marker and its event log."""

        def handler(session: Session) -> None:
            row = _fetch_marker(session, marker_id)
            session.execute(
                delete(MarkerEventRecord).where(MarkerEventRecord.marker_id == row.id)
            )
            session.delete(row)
            logger.info("Marker deleted: marker_id=%s", row.id)

        self._execute(handler)

    def _rewrite(
        self,
        marker_id: str | int,
        transform: Callable[[Marker], Marker],
        *,
        now: datetime | None,
        action: str,
    ) -> Marker:
        """Load a marker, transform its definition, and store the result."""

        def handler(session: Session) -> Marker:
            row = _fetch_marker(session, marker_id)
            updated = transform(_to_domain(row))
            _apply_definition(row, updated)
            row.updated_at = to_utc(now) if now is not None else utc_now()
            session.flush()
            logger.info("Marker %s: marker_id=%s is_active=%s", action, row.id, row.is_active)
            return _to_domain(row)

        return self._execute(handler)

    def _execute(self, handler):
        """Execute repository work inside a managed session."""
        with closing(self._session_factory()) as session:
            session.expire_on_commit = False
            try:
                result = handler(session)
                session.commit()
            except Exception:
                session.rollback()
                raise
        return result


def _persist_projection(session: Session, updated: Marker, event: MarkerEvent) -> None:
    """Apply the event to the marker row with a single UPDATE statement."""
    marker_id = str(event.marker_id)
    values: dict[str, Any] = {"updated_at": event.timestamp}
    conditions = [MagicMarker.id == marker_id]

    if event.event_type == MarkerEventType.COMPLETED:
        conditions.append(MagicMarker.status == MarkerStatus.ACTIVE.value)
        values.update(status=MarkerStatus.COMPLETED.value, completed_at=event.timestamp)
    else:
        column = _COUNTER_COLUMNS[event.event_type]
        values[column.key] = column + 1
        if event.event_type == MarkerEventType.TRIGGERED:
            values["last_triggered_at"] = event.timestamp
        if event.event_type == MarkerEventType.SNOOZED:
            values["snoozed_until"] = updated.snoozed_until

    result = session.execute(
        update(MagicMarker)
        .where(*conditions)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise InvalidTransitionError(
            f"Marker {marker_id} is already completed.",
            {
                "marker_id": marker_id,
                "current_status": MarkerStatus.COMPLETED.value,
                "event_type": event.event_type.value,
            },
        )


def _apply_definition(row: MagicMarker, marker: Marker) -> None:
    """Copy a marker's editable definition onto its row."""
    row.counter_id = _optional_str(marker.counter_id)
    row.name = marker.name
    row.trigger_type = marker.trigger_type.value
    row.trigger_condition = _condition_payload(marker.trigger_condition)
    row.start_row = marker.start_row
    row.end_row = marker.end_row
    row.repeat_interval = marker.repeat_interval
    row.repeat_offset = marker.repeat_offset
    row.alert_message = marker.alert_message
    row.alert_type = marker.alert_type.value
    row.priority = marker.priority.value
    row.display_style = marker.display_style.value
    row.color = marker.color
    row.category = marker.category.value
    row.is_active = marker.is_active


def _fetch_marker(session: Session, marker_id: str | int) -> MagicMarker:
    """Return a marker row or raise when missing."""
    row = session.get(MagicMarker, str(marker_id))
    if row is None:
        raise MarkerNotFoundError(
            f"Marker not found: {marker_id}",
            {"marker_id": str(marker_id)},
        )
    return row


def _condition_payload(condition: TriggerCondition) -> dict[str, Any]:
    """Serialize a trigger condition for the JSON column."""
    if isinstance(condition, DelegatedCondition):
        return dict(condition.payload)
    return {
        key: value.value if isinstance(value, Enum) else value
        for key, value in asdict(condition).items()
    }


def _to_domain(row: MagicMarker) -> Marker:
    """Map a marker row to its immutable domain snapshot."""
    trigger_type = TriggerType(row.trigger_type)
    return Marker(
        id=row.id,
        project_id=row.project_id,
        counter_id=row.counter_id,
        name=row.name or "",
        trigger_type=trigger_type,
        trigger_condition=build_trigger_condition(
            trigger_type,
            row.trigger_condition or {},
            start_row=row.start_row,
            end_row=row.end_row,
        ),
        start_row=row.start_row,
        end_row=row.end_row,
        repeat_interval=row.repeat_interval,
        repeat_offset=row.repeat_offset,
        alert_message=row.alert_message or "",
        alert_type=AlertType(row.alert_type),
        priority=MarkerPriority(row.priority),
        display_style=DisplayStyle(row.display_style),
        color=row.color,
        category=MarkerCategory(row.category),
        is_active=bool(row.is_active),
        status=MarkerStatus(row.status),
        suggested_by_ai=bool(row.suggested_by_ai),
        times_triggered=row.times_triggered or 0,
        times_snoozed=row.times_snoozed or 0,
        times_acknowledged=row.times_acknowledged or 0,
        snoozed_until=ensure_utc(row.snoozed_until),
        last_triggered_at=ensure_utc(row.last_triggered_at),
        completed_at=ensure_utc(row.completed_at),
    )


def _event_to_domain(row: MarkerEventRecord) -> MarkerEvent:
    return MarkerEvent(
        marker_id=row.marker_id,
        event_type=MarkerEventType(row.event_type),
        at_row=row.at_row,
        timestamp=ensure_utc(row.occurred_at),
    )


def _optional_str(value: str | int | None) -> str | None:
    return None if value is None else str(value)


__all__ = ["MarkerRepository"]
