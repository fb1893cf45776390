from enum import Enum

from sqlalchemy import Enum as SAEnum


def enum_column(enum_cls, name: str) -> SAEnum:
    """Persist enum values (not member names) under a named DB enum type."""
    return SAEnum(enum_cls, name=name, values_callable=lambda e: [m.value for m in e])


class EncounterType(str, Enum):
    OPD = "OPD"
    IPD = "IPD"
    Emergency = "EMERGENCY"


class EncounterStatus(str, Enum):
    Open = "open"
    Closed = "closed"


class OrderType(str, Enum):
    Lab = "lab"
    Radiology = "radiology"


class OrderStatus(str, Enum):
    Pending = "pending"
    Collected = "collected"
    InProgress = "in_progress"
    Completed = "completed"
    Cancelled = "cancelled"


class OrderPriority(str, Enum):
    Routine = "routine"
    Urgent = "urgent"
    Stat = "stat"


class IssueStatus(str, Enum):
    Open = "open"
    InProgress = "in_progress"
    Resolved = "resolved"
    Dismissed = "dismissed"


class IssueSeverity(str, Enum):
    Low = "low"
    Medium = "medium"
    High = "high"
    Critical = "critical"
