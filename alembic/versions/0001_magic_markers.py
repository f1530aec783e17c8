"""Create magic marker and marker event tables.

Revision ID: 0001_magic_markers
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_magic_markers"
down_revision = None
branch_labels = None
depends_on = None


def _enum(name: str, *values: str) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False)


def upgrade() -> None:
    """Create magic_markers and marker_events."""
    op.create_table(
        "magic_markers",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("project_id", sa.String(length=64), nullable=False),
        sa.Column("counter_id", sa.String(length=64), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column(
            "trigger_type",
            _enum(
                "marker_trigger_type",
                "counter_value",
                "row_interval",
                "row_range",
                "stitch_count",
                "time_based",
                "custom",
                "at_same_time",
            ),
            nullable=False,
        ),
        sa.Column("trigger_condition", sa.JSON(), nullable=False),
        sa.Column("start_row", sa.Integer(), nullable=True),
        sa.Column("end_row", sa.Integer(), nullable=True),
        sa.Column("repeat_interval", sa.Integer(), nullable=True),
        sa.Column("repeat_offset", sa.Integer(), nullable=True),
        sa.Column("alert_message", sa.Text(), nullable=False),
        sa.Column(
            "alert_type",
            _enum("marker_alert_type", "notification", "sound", "vibration", "visual"),
            nullable=False,
        ),
        sa.Column(
            "priority",
            _enum("marker_priority", "low", "normal", "high", "critical"),
            nullable=False,
        ),
        sa.Column(
            "display_style",
            _enum("marker_display_style", "banner", "popup", "toast", "inline"),
            nullable=False,
        ),
        sa.Column("color", sa.String(length=20), nullable=True),
        sa.Column(
            "category",
            _enum(
                "marker_category",
                "reminder",
                "at_same_time",
                "milestone",
                "shaping",
                "note",
            ),
            nullable=False,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("status", _enum("marker_status", "active", "completed"), nullable=False),
        sa.Column("suggested_by_ai", sa.Boolean(), nullable=False),
        sa.Column("times_triggered", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("times_snoozed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("times_acknowledged", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("snoozed_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_triggered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "repeat_interval IS NULL OR repeat_interval > 0",
            name="ck_magic_markers_repeat_interval",
        ),
        sa.CheckConstraint(
            "start_row IS NULL OR end_row IS NULL OR end_row >= start_row",
            name="ck_magic_markers_row_window",
        ),
        sa.CheckConstraint(
            "times_triggered >= 0 AND times_snoozed >= 0 AND times_acknowledged >= 0",
            name="ck_magic_markers_counters",
        ),
    )
    op.create_index("ix_magic_markers_project_id", "magic_markers", ["project_id"])

    op.create_table(
        "marker_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "marker_id",
            sa.String(length=64),
            sa.ForeignKey("magic_markers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "event_type",
            _enum("marker_event_type", "triggered", "snoozed", "acknowledged", "completed"),
            nullable=False,
        ),
        sa.Column("at_row", sa.Integer(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_marker_events_marker_id", "marker_events", ["marker_id"])


def downgrade() -> None:
    """Drop marker tables."""
    op.drop_index("ix_marker_events_marker_id", table_name="marker_events")
    op.drop_table("marker_events")
    op.drop_index("ix_magic_markers_project_id", table_name="magic_markers")
    op.drop_table("magic_markers")
