"""
Audit Models for PAI

Every significant store action is logged for audit purposes.
This provides:
1. Traceability of which path (local, remote, fallback) a mutation took
2. Debugging information when remote calls or local storage fail
3. A correlation id linking all siblings of one recurrence expansion

DESIGN DECISION: Audit events are append-only. We never modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Loading
    LOCAL_SNAPSHOT_LOADED = "local_snapshot_loaded"
    REMOTE_CACHE_PAINTED = "remote_cache_painted"
    REMOTE_SNAPSHOT_LOADED = "remote_snapshot_loaded"
    REMOTE_LOAD_FAILED = "remote_load_failed"

    # Mutations
    RECORD_CREATED = "record_created"
    RECORD_UPDATED = "record_updated"
    RECORD_DELETED = "record_deleted"
    MUTATION_REJECTED = "mutation_rejected"
    MUTATION_FAILED = "mutation_failed"

    # Degraded operation
    ACCESS_DENIED_FALLBACK = "access_denied_fallback"
    LOCAL_STORAGE_WRITE_FAILED = "local_storage_write_failed"

    # Background reconciliation
    BACKGROUND_SYNC_COMPLETED = "background_sync_completed"
    BACKGROUND_SYNC_FAILED = "background_sync_failed"

    # Lifecycle
    STORE_RESET = "store_reset"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - which store and record
    domain: Optional[str] = Field(
        default=None,
        description="Domain of the store that emitted the event"
    )
    record_id: Optional[str] = Field(
        default=None,
        description="ID of the record this event relates to"
    )
    path: Optional[str] = Field(
        default=None,
        description="Persistence path taken (local, remote, local_fallback)"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all siblings of one recurrence)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_status: Optional[int] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "domain": self.domain,
            "record_id": self.record_id,
            "path": self.path,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_status": self.error_status,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_mutated("create", "expenses", record_id, "remote")
        event = AuditEventBuilder.access_denied_fallback("tasks", "create", 403)
    """

    @staticmethod
    def snapshot_loaded(
        domain: str,
        source: str,
        record_count: int,
    ) -> AuditEvent:
        event_type = {
            "local": AuditEventType.LOCAL_SNAPSHOT_LOADED,
            "cache": AuditEventType.REMOTE_CACHE_PAINTED,
        }.get(source, AuditEventType.REMOTE_SNAPSHOT_LOADED)
        return AuditEvent(
            event_type=event_type,
            domain=domain,
            path=source,
            description=f"Loaded {record_count} {domain} records from {source}",
            details={"record_count": record_count},
        )

    @staticmethod
    def remote_load_failed(
        domain: str,
        error_message: str,
        status: Optional[int] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_LOAD_FAILED,
            severity=AuditSeverity.ERROR,
            domain=domain,
            path="remote",
            description=f"Could not load {domain} from the remote service",
            error_status=status,
            error_message=error_message,
        )

    @staticmethod
    def record_mutated(
        operation: str,
        domain: str,
        record_id: str,
        path: str,
        correlation_id: Optional[UUID] = None,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        event_type = {
            "create": AuditEventType.RECORD_CREATED,
            "update": AuditEventType.RECORD_UPDATED,
            "delete": AuditEventType.RECORD_DELETED,
        }[operation]
        return AuditEvent(
            event_type=event_type,
            domain=domain,
            record_id=record_id,
            path=path,
            correlation_id=correlation_id,
            description=f"{domain} record {operation}d via {path}",
            details=details or {},
        )

    @staticmethod
    def mutation_rejected(
        operation: str,
        domain: str,
        issues: list[dict],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_REJECTED,
            severity=AuditSeverity.WARNING,
            domain=domain,
            description=f"{operation} rejected with {len(issues)} validation issues",
            details={"operation": operation, "issues": issues},
        )

    @staticmethod
    def mutation_failed(
        operation: str,
        domain: str,
        error_message: str,
        status: Optional[int] = None,
        record_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_FAILED,
            severity=AuditSeverity.ERROR,
            domain=domain,
            record_id=record_id,
            path="remote",
            correlation_id=correlation_id,
            description=f"Remote {operation} failed for {domain}",
            error_status=status,
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def access_denied_fallback(
        domain: str,
        operation: str,
        status: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCESS_DENIED_FALLBACK,
            severity=AuditSeverity.WARNING,
            domain=domain,
            path="local_fallback",
            correlation_id=correlation_id,
            description=f"Access denied on remote {operation}; continuing locally",
            error_status=status,
            details={"operation": operation},
        )

    @staticmethod
    def local_storage_write_failed(
        domain: str,
        key: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOCAL_STORAGE_WRITE_FAILED,
            severity=AuditSeverity.WARNING,
            domain=domain,
            path="local",
            description=f"Could not persist {domain} to local storage",
            error_message=error_message,
            details={"key": key},
        )

    @staticmethod
    def background_sync(
        domain: str,
        record_count: Optional[int] = None,
        error_message: Optional[str] = None,
    ) -> AuditEvent:
        if error_message is not None:
            return AuditEvent(
                event_type=AuditEventType.BACKGROUND_SYNC_FAILED,
                severity=AuditSeverity.ERROR,
                domain=domain,
                path="remote",
                description=f"Background sync of {domain} failed",
                error_message=error_message,
            )
        return AuditEvent(
            event_type=AuditEventType.BACKGROUND_SYNC_COMPLETED,
            domain=domain,
            path="remote",
            description=f"Background sync of {domain} refreshed {record_count} records",
            details={"record_count": record_count},
        )

    @staticmethod
    def store_reset(domain: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_RESET,
            severity=AuditSeverity.DEBUG,
            domain=domain,
            description=f"{domain} store reset after operating mode change",
        )
