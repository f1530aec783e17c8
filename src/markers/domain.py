"""Domain types for progress-linked magic markers.

Markers are immutable snapshots. Engine functions never mutate a marker in
place; lifecycle changes return a new instance built with
``dataclasses.replace``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Mapping, Union

from time_utils import to_utc, utc_now


class TriggerType(str, Enum):
    """Closed set of marker trigger types."""

    COUNTER_VALUE = "counter_value"
    ROW_INTERVAL = "row_interval"
    ROW_RANGE = "row_range"
    STITCH_COUNT = "stitch_count"
    TIME_BASED = "time_based"
    CUSTOM = "custom"
    AT_SAME_TIME = "at_same_time"


DELEGATED_TRIGGER_TYPES = frozenset(
    [TriggerType.TIME_BASED, TriggerType.CUSTOM, TriggerType.AT_SAME_TIME]
)


class ConditionOperator(str, Enum):
    """Comparison operators supported by counter_value conditions."""

    EQUALS = "equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    MULTIPLE_OF = "multiple_of"


class AlertType(str, Enum):
    """How the host should surface a fired marker."""

    NOTIFICATION = "notification"
    SOUND = "sound"
    VIBRATION = "vibration"
    VISUAL = "visual"


class MarkerPriority(str, Enum):
    """Marker priority, ordered from least to most urgent."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Return the numeric rank used for ordering fired markers."""
        return _PRIORITY_RANKS[self]


_PRIORITY_RANKS = {
    MarkerPriority.LOW: 1,
    MarkerPriority.NORMAL: 2,
    MarkerPriority.HIGH: 3,
    MarkerPriority.CRITICAL: 4,
}


class DisplayStyle(str, Enum):
    """Presentation style hint for fired alerts."""

    BANNER = "banner"
    POPUP = "popup"
    TOAST = "toast"
    INLINE = "inline"


class MarkerCategory(str, Enum):
    """User-facing marker categories."""

    REMINDER = "reminder"
    AT_SAME_TIME = "at_same_time"
    MILESTONE = "milestone"
    SHAPING = "shaping"
    NOTE = "note"


class MarkerStatus(str, Enum):
    """Lifecycle status; completed is terminal."""

    ACTIVE = "active"
    COMPLETED = "completed"


class MarkerEventType(str, Enum):
    """Interaction events recorded against a marker."""

    TRIGGERED = "triggered"
    SNOOZED = "snoozed"
    ACKNOWLEDGED = "acknowledged"
    COMPLETED = "completed"


@dataclass(frozen=True)
class CounterValueCondition:
    """Compare the counter value against a fixed number."""

    operator: ConditionOperator
    value: int


@dataclass(frozen=True)
class RowIntervalCondition:
    """Fire on every positive multiple of ``interval``."""

    interval: int


@dataclass(frozen=True)
class RowRangeCondition:
    """Fire for every value in ``[start, end]`` inclusive."""

    start: int
    end: int


@dataclass(frozen=True)
class StitchCountCondition:
    """Fire when the counter equals ``stitch_count`` exactly."""

    stitch_count: int


@dataclass(frozen=True)
class DelegatedCondition:
    """Opaque payload for trigger types evaluated by a caller-supplied predicate."""

    payload: Mapping[str, object] = field(default_factory=dict)


TriggerCondition = Union[
    CounterValueCondition,
    RowIntervalCondition,
    RowRangeCondition,
    StitchCountCondition,
    DelegatedCondition,
]


@dataclass(frozen=True)
class Marker:
    """A user-defined rule bound to a project and optionally to one counter."""

    id: str | int
    project_id: str | int
    trigger_type: TriggerType
    trigger_condition: TriggerCondition
    name: str = ""
    counter_id: str | int | None = None
    start_row: int | None = None
    end_row: int | None = None
    repeat_interval: int | None = None
    repeat_offset: int | None = None
    alert_message: str = ""
    alert_type: AlertType = AlertType.NOTIFICATION
    priority: MarkerPriority = MarkerPriority.NORMAL
    display_style: DisplayStyle = DisplayStyle.BANNER
    color: str | None = None
    category: MarkerCategory = MarkerCategory.REMINDER
    is_active: bool = True
    status: MarkerStatus = MarkerStatus.ACTIVE
    suggested_by_ai: bool = False
    times_triggered: int = 0
    times_snoozed: int = 0
    times_acknowledged: int = 0
    snoozed_until: datetime | None = None
    last_triggered_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def participates(self) -> bool:
        """Return True when the marker may be evaluated or scheduled."""
        return self.is_active and self.status == MarkerStatus.ACTIVE

    @property
    def is_repeating(self) -> bool:
        """Return True when the marker has a positive repeat cadence."""
        return self.repeat_interval is not None and self.repeat_interval > 0

    @property
    def repeat_anchor(self) -> int:
        """Return the first occurrence of the repeat cadence."""
        if self.start_row is not None:
            return self.start_row
        return self.repeat_offset or 0

    @property
    def trigger_position(self) -> int | None:
        """Return the fixed position at which a one-shot marker fires, if any.

        A condition's own exact value wins over ``start_row``, which then only
        limits scope. A fixed value outside the row window never fires.
        """
        condition = self.trigger_condition
        value: int | None = None
        if (
            isinstance(condition, CounterValueCondition)
            and condition.operator == ConditionOperator.EQUALS
        ):
            value = condition.value
        elif isinstance(condition, StitchCountCondition):
            value = condition.stitch_count
        elif isinstance(condition, RowRangeCondition):
            return condition.start
        if value is not None:
            if self.start_row is not None and value < self.start_row:
                return None
            if self.end_row is not None and value > self.end_row:
                return None
            return value
        return self.start_row

    def is_snoozed(self, now: datetime | None = None) -> bool:
        """Return True while a snooze expiry lies in the future.

        Naive timestamps are read as local wall-clock time.
        """
        if self.snoozed_until is None:
            return False
        current = to_utc(now) if now is not None else utc_now()
        return to_utc(self.snoozed_until) > current


@dataclass(frozen=True)
class MarkerEvent:
    """Append-only fact describing an interaction with a marker."""

    marker_id: str | int
    event_type: MarkerEventType
    at_row: int | None
    timestamp: datetime


__all__ = [
    "AlertType",
    "ConditionOperator",
    "CounterValueCondition",
    "DELEGATED_TRIGGER_TYPES",
    "DelegatedCondition",
    "DisplayStyle",
    "Marker",
    "MarkerCategory",
    "MarkerEvent",
    "MarkerEventType",
    "MarkerPriority",
    "MarkerStatus",
    "RowIntervalCondition",
    "RowRangeCondition",
    "StitchCountCondition",
    "TriggerCondition",
    "TriggerType",
]
