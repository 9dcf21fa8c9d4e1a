"""Dataclasses for threshold rules, metric samples and breach events."""
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional

from models.enums import Comparator
from utils.formatters import parse_timestamp, to_iso, utcnow


@dataclass
class Rule:
    id: str = ""
    metric_name: str = ""
    threshold: float = 0.0
    comparator: Comparator = Comparator.GREATER_THAN
    message: str = ""
    cooldown_seconds: float = 0
    last_triggered: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        if not self.id:
            self.id = uuid.uuid4().hex

    def in_cooldown(self, now: datetime) -> bool:
        """True if a trigger at `now` would fall inside this rule's cooldown window."""
        if not self.cooldown_seconds or self.last_triggered is None:
            return False
        elapsed = (now - self.last_triggered).total_seconds()
        return elapsed < self.cooldown_seconds

    def matches(self, value: float) -> bool:
        return self.comparator.compare(float(value), self.threshold)

    def describe(self) -> str:
        return f"{self.metric_name} {self.comparator.symbol} {self.threshold:g}"

    def to_dict(self):
        return {
            "id": self.id,
            "metricName": self.metric_name,
            "threshold": self.threshold,
            "comparator": self.comparator.value,
            "message": self.message,
            "cooldownSeconds": self.cooldown_seconds,
            "lastTriggered": to_iso(self.last_triggered),
            "createdAt": to_iso(self.created_at),
        }

    @classmethod
    def from_row(cls, row) -> "Rule":
        last = row["last_triggered"]
        return cls(
            id=row["id"],
            metric_name=row["metric_name"],
            threshold=row["threshold"],
            comparator=Comparator(row["comparator"]),
            message=row["message"],
            cooldown_seconds=row["cooldown_seconds"],
            last_triggered=parse_timestamp(last) if last else None,
            created_at=parse_timestamp(row["created_at"]),
        )


@dataclass
class Sample:
    """One metric observation. Never stored as-is."""
    metric_name: str
    value: float
    timestamp: Optional[str] = None


@dataclass(frozen=True)
class Event:
    """Immutable record of one confirmed breach."""
    alert_id: str
    metric_name: str
    metric_value: float
    timestamp: datetime
    message: str
    id: Optional[int] = None
    created_at: datetime = field(default_factory=utcnow)

    def with_id(self, event_id: int) -> "Event":
        return replace(self, id=event_id)

    def to_dict(self):
        return {
            "id": self.id,
            "alertId": self.alert_id,
            "metricName": self.metric_name,
            "metricValue": self.metric_value,
            "timestamp": to_iso(self.timestamp),
            "message": self.message,
            "createdAt": to_iso(self.created_at),
        }

    @classmethod
    def from_row(cls, row) -> "Event":
        return cls(
            id=row["id"],
            alert_id=row["alert_id"],
            metric_name=row["metric_name"],
            metric_value=row["metric_value"],
            timestamp=parse_timestamp(row["timestamp"]),
            message=row["message"],
            created_at=parse_timestamp(row["created_at"]),
        )
