"""Persistence models for magic markers."""

from datetime import datetime, timezone
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    event,
)
from sqlalchemy.orm import declarative_base

from time_utils import ensure_utc

# SQLAlchemy base
Base = declarative_base()

# Marker enums
TriggerTypeEnum = Enum(
    "counter_value",
    "row_interval",
    "row_range",
    "stitch_count",
    "time_based",
    "custom",
    "at_same_time",
    name="marker_trigger_type",
    native_enum=False,
)
AlertTypeEnum = Enum(
    "notification",
    "sound",
    "vibration",
    "visual",
    name="marker_alert_type",
    native_enum=False,
)
PriorityEnum = Enum(
    "low",
    "normal",
    "high",
    "critical",
    name="marker_priority",
    native_enum=False,
)
DisplayStyleEnum = Enum(
    "banner",
    "popup",
    "toast",
    "inline",
    name="marker_display_style",
    native_enum=False,
)
CategoryEnum = Enum(
    "reminder",
    "at_same_time",
    "milestone",
    "shaping",
    "note",
    name="marker_category",
    native_enum=False,
)
MarkerStatusEnum = Enum(
    "active",
    "completed",
    name="marker_status",
    native_enum=False,
)
MarkerEventTypeEnum = Enum(
    "triggered",
    "snoozed",
    "acknowledged",
    "completed",
    name="marker_event_type",
    native_enum=False,
)


def _new_marker_id() -> str:
    return str(uuid.uuid4())


class MagicMarker(Base):
    """Progress-linked alert rule attached to a project."""

    __tablename__ = "magic_markers"
    __table_args__ = (
        CheckConstraint(
            "repeat_interval IS NULL OR repeat_interval > 0",
            name="ck_magic_markers_repeat_interval",
        ),
        CheckConstraint(
            "start_row IS NULL OR end_row IS NULL OR end_row >= start_row",
            name="ck_magic_markers_row_window",
        ),
        CheckConstraint(
            "times_triggered >= 0 AND times_snoozed >= 0 AND times_acknowledged >= 0",
            name="ck_magic_markers_counters",
        ),
        Index("ix_magic_markers_project_id", "project_id"),
    )

    id = Column(String(64), primary_key=True, default=_new_marker_id)
    project_id = Column(String(64), nullable=False)
    counter_id = Column(String(64), nullable=True)
    name = Column(String(255), nullable=False, default="")
    trigger_type = Column(TriggerTypeEnum, nullable=False)
    trigger_condition = Column(JSON, nullable=False, default=dict)
    start_row = Column(Integer, nullable=True)
    end_row = Column(Integer, nullable=True)
    repeat_interval = Column(Integer, nullable=True)
    repeat_offset = Column(Integer, nullable=True)
    alert_message = Column(Text, nullable=False, default="")
    alert_type = Column(AlertTypeEnum, nullable=False, default="notification")
    priority = Column(PriorityEnum, nullable=False, default="normal")
    display_style = Column(DisplayStyleEnum, nullable=False, default="banner")
    color = Column(String(20), nullable=True)
    category = Column(CategoryEnum, nullable=False, default="reminder")
    is_active = Column(Boolean, nullable=False, default=True)
    status = Column(MarkerStatusEnum, nullable=False, default="active")
    suggested_by_ai = Column(Boolean, nullable=False, default=False)
    times_triggered = Column(Integer, nullable=False, default=0)
    times_snoozed = Column(Integer, nullable=False, default=0)
    times_acknowledged = Column(Integer, nullable=False, default=0)
    snoozed_until = Column(DateTime(timezone=True), nullable=True)
    last_triggered_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


class MarkerEventRecord(Base):
    """Append-only interaction log entry for a magic marker."""

    __tablename__ = "marker_events"
    __table_args__ = (Index("ix_marker_events_marker_id", "marker_id"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    marker_id = Column(
        String(64),
        ForeignKey("magic_markers.id", ondelete="CASCADE"),
        nullable=False,
    )
    event_type = Column(MarkerEventTypeEnum, nullable=False)
    at_row = Column(Integer, nullable=True)
    occurred_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )


@event.listens_for(MagicMarker, "load")
def _normalize_marker_on_load(target: MagicMarker, _context: object) -> None:
    """Ensure loaded marker timestamps retain timezone awareness."""
    target.snoozed_until = ensure_utc(target.snoozed_until)
    target.last_triggered_at = ensure_utc(target.last_triggered_at)
    target.completed_at = ensure_utc(target.completed_at)
    target.created_at = ensure_utc(target.created_at)
    target.updated_at = ensure_utc(target.updated_at)


@event.listens_for(MarkerEventRecord, "load")
def _normalize_marker_event_on_load(target: MarkerEventRecord, _context: object) -> None:
    """Ensure loaded event timestamps retain timezone awareness."""
    target.occurred_at = ensure_utc(target.occurred_at)
