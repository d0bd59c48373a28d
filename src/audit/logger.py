"""
Audit Logger

DESIGN DECISION: Every significant store action is logged.
This provides:
1. Traceability of the path each mutation took (local, remote, fallback)
2. Debugging capability when the remote service or local storage fails
3. A correlation id shared by all siblings of one recurrence

The audit logger:
- Is async so stores can await it at their suspension points
- Gracefully handles failures (never breaks a store mutation)
- Keeps a bounded in-memory trail of recent events
"""

import logging
from collections import deque
from typing import Optional
from uuid import UUID, uuid4

import structlog

from src.config import AppSettings
from src.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


def configure_logging(app_settings: Optional[AppSettings] = None) -> None:
    """
    Configure structlog on top of stdlib logging.

    JSON lines in production, a readable console renderer otherwise.
    """
    app_settings = app_settings or AppSettings()
    level = getattr(logging, app_settings.log_level)
    logging.basicConfig(format="%(message)s", level=level)
    logging.getLogger().setLevel(level)

    renderer = (
        structlog.processors.JSONRenderer()
        if app_settings.log_json
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs every event to the structured log and keeps the most recent
    events in memory for inspection.
    """

    def __init__(self, max_events: int = 1000):
        """
        Initialize audit logger.

        Args:
            max_events: Size of the in-memory trail (0 disables it)
        """
        self._events: deque[AuditEvent] = deque(maxlen=max_events or None)
        self._keep_events = max_events > 0
        self._logger = structlog.get_logger("audit")

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    def events_for(self, correlation_id: UUID) -> list[AuditEvent]:
        """All recorded events sharing a correlation id, oldest first."""
        return [e for e in self._events if e.correlation_id == correlation_id]

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if logging failed; never raises.
        """
        try:
            log_dict = event.to_log_dict()
            if event.severity == AuditSeverity.ERROR:
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Log failure but don't raise
            logging.getLogger(__name__).error("audit logging failed: %s", e)
            return False

        if self._keep_events:
            self._events.append(event)
        return True

    async def log_snapshot_loaded(
        self,
        domain: str,
        source: str,
        record_count: int,
    ) -> None:
        """Log a local, cached or remote snapshot load."""
        await self.log(AuditEventBuilder.snapshot_loaded(domain, source, record_count))

    async def log_remote_load_failed(
        self,
        domain: str,
        error_message: str,
        status: Optional[int] = None,
    ) -> None:
        await self.log(AuditEventBuilder.remote_load_failed(domain, error_message, status))

    async def log_record_mutated(
        self,
        operation: str,
        domain: str,
        record_id: str,
        path: str,
        correlation_id: Optional[UUID] = None,
        details: Optional[dict] = None,
    ) -> None:
        """Log a successful create, update or delete."""
        event = AuditEventBuilder.record_mutated(
            operation=operation,
            domain=domain,
            record_id=record_id,
            path=path,
            correlation_id=correlation_id,
            details=details,
        )
        await self.log(event)

    async def log_mutation_rejected(
        self,
        operation: str,
        domain: str,
        issues: list[dict],
    ) -> None:
        await self.log(AuditEventBuilder.mutation_rejected(operation, domain, issues))

    async def log_mutation_failed(
        self,
        operation: str,
        domain: str,
        error_message: str,
        status: Optional[int] = None,
        record_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.mutation_failed(
            operation=operation,
            domain=domain,
            error_message=error_message,
            status=status,
            record_id=record_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_access_denied_fallback(
        self,
        domain: str,
        operation: str,
        status: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.access_denied_fallback(
            domain=domain,
            operation=operation,
            status=status,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_local_storage_write_failed(
        self,
        domain: str,
        key: str,
        error_message: str,
    ) -> None:
        await self.log(AuditEventBuilder.local_storage_write_failed(domain, key, error_message))

    async def log_background_sync(
        self,
        domain: str,
        record_count: Optional[int] = None,
        error_message: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.background_sync(domain, record_count, error_message))

    async def log_store_reset(self, domain: str) -> None:
        await self.log(AuditEventBuilder.store_reset(domain))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g., a recurring expense).
    Pass it through all subsequent operations.
    """
    return uuid4()
