"""
Session Event Models

The session controller, security gate and recommendation service
announce every state change as a SessionEvent. Consumers (UI, caches,
the recommendation service) subscribe to the event bus instead of
observing properties.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class SessionEventType(str, Enum):
    """Types of events emitted on the bus."""
    # Identity
    IDENTITY_CHANGED = "identity_changed"

    # Records
    RECORDS_CHANGED = "records_changed"
    GUEST_DATA_PURGED = "guest_data_purged"

    # Remote
    REMOTE_SYNC_FAILED = "remote_sync_failed"
    CONFIGURATION_ERROR = "configuration_error"

    # Security gate
    SECURITY_LOCKED = "security_locked"
    SECURITY_UNLOCKED = "security_unlocked"
    SECURITY_UNLOCK_FAILED = "security_unlock_failed"

    # Recommendations
    RECOMMENDATIONS_UPDATED = "recommendations_updated"


class EventSeverity(str, Enum):
    """Severity level for session events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionEvent(BaseModel):
    """A single state change notification."""

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(default_factory=_utcnow)

    event_type: SessionEventType
    severity: EventSeverity = EventSeverity.INFO

    storage_key: Optional[str] = Field(
        default=None,
        description="Partition the event relates to, if any"
    )
    description: str = Field(
        ...,
        max_length=500,
    )
    details: dict[str, Any] = Field(default_factory=dict)

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "storage_key": self.storage_key,
            "description": self.description,
            "details": self.details,
        }


class SessionEventBuilder:
    """
    Helper class to build session events with common patterns.

    Usage:
        event = SessionEventBuilder.records_changed("guest", RecordKind.EXPENSES, "add", record_id)
    """

    @staticmethod
    def identity_changed(
        previous_key: str,
        storage_key: str,
        is_guest: bool,
        reason: str,
    ) -> SessionEvent:
        return SessionEvent(
            event_type=SessionEventType.IDENTITY_CHANGED,
            storage_key=storage_key,
            description=f"Identity changed ({reason})",
            details={
                "previous_key": previous_key,
                "is_guest": is_guest,
                "reason": reason,
            },
        )

    @staticmethod
    def records_changed(
        storage_key: str,
        kind: str,
        action: str,
        record_id: Optional[UUID] = None,
        count: Optional[int] = None,
    ) -> SessionEvent:
        details: dict[str, Any] = {"kind": kind, "action": action}
        if record_id is not None:
            details["record_id"] = str(record_id)
        if count is not None:
            details["count"] = count
        return SessionEvent(
            event_type=SessionEventType.RECORDS_CHANGED,
            storage_key=storage_key,
            description=f"{kind} {action}",
            details=details,
        )

    @staticmethod
    def guest_data_purged(reason: str) -> SessionEvent:
        return SessionEvent(
            event_type=SessionEventType.GUEST_DATA_PURGED,
            storage_key="guest",
            description=f"Guest data purged ({reason})",
            details={"reason": reason},
        )

    @staticmethod
    def remote_sync_failed(
        storage_key: str,
        operation: str,
        error_message: str,
        kind: Optional[str] = None,
    ) -> SessionEvent:
        return SessionEvent(
            event_type=SessionEventType.REMOTE_SYNC_FAILED,
            severity=EventSeverity.WARNING,
            storage_key=storage_key,
            description=f"Remote {operation} failed",
            details={
                "operation": operation,
                "kind": kind,
                "error": error_message,
            },
        )

    @staticmethod
    def configuration_error(error_message: str) -> SessionEvent:
        return SessionEvent(
            event_type=SessionEventType.CONFIGURATION_ERROR,
            severity=EventSeverity.ERROR,
            description="Remote store is misconfigured; running local-only",
            details={"error": error_message},
        )

    @staticmethod
    def security_locked(mode: str) -> SessionEvent:
        return SessionEvent(
            event_type=SessionEventType.SECURITY_LOCKED,
            description="Security gate locked",
            details={"mode": mode},
        )

    @staticmethod
    def security_unlocked(mode: str, factor: str) -> SessionEvent:
        return SessionEvent(
            event_type=SessionEventType.SECURITY_UNLOCKED,
            description=f"Security gate unlocked with {factor}",
            details={"mode": mode, "factor": factor},
        )

    @staticmethod
    def security_unlock_failed(mode: str, failed_attempts: int) -> SessionEvent:
        return SessionEvent(
            event_type=SessionEventType.SECURITY_UNLOCK_FAILED,
            severity=EventSeverity.WARNING,
            description="Security gate unlock denied",
            details={"mode": mode, "failed_attempts": failed_attempts},
        )

    @staticmethod
    def recommendations_updated(count: int) -> SessionEvent:
        return SessionEvent(
            event_type=SessionEventType.RECOMMENDATIONS_UPDATED,
            description=f"{count} recommendation(s) available",
            details={"count": count},
        )
