"""
Audit Logger

DESIGN DECISION: Every significant action in a session is logged.
This provides:
1. Complete traceability of who changed the split and how
2. Diagnostics for unusable assistant output
3. A history the user can look at

The audit logger:
- Writes structured JSON lines through structlog
- Keeps a bounded in-memory trail (sessions are memory-only)
- Is synchronous: the engine has a single logical writer
"""

from collections import deque
from typing import Optional
from uuid import UUID, uuid4

import structlog

from splitbills.models.audit import AuditEvent, AuditEventBuilder


# Configure structlog for local logging
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
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An in-memory trail (for the session's history view and tests)
    """

    def __init__(self, history_limit: int = 500):
        """
        Initialize audit logger.

        Args:
            history_limit: How many events to keep in memory.
                          0 disables the in-memory trail.
        """
        self._events: deque[AuditEvent] = deque(maxlen=history_limit or None)
        self._keep_history = history_limit > 0
        self._logger = structlog.get_logger("splitbills.audit")

    @property
    def events(self) -> list[AuditEvent]:
        """Events recorded so far, oldest first."""
        return list(self._events)

    def clear(self) -> None:
        self._events.clear()

    def log(self, event: AuditEvent) -> AuditEvent:
        """
        Log an audit event.

        Always logs locally, then appends to the in-memory trail.
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._keep_history:
            self._events.append(event)
        return event

    def log_session_started(self, session_code: str, attendee_count: int) -> None:
        self.log(AuditEventBuilder.session_started(session_code, attendee_count))

    def log_session_reset(self, session_code: Optional[str]) -> None:
        self.log(AuditEventBuilder.session_reset(session_code))

    def log_receipt_extraction_started(
        self,
        upload_id: UUID,
        mime_type: str,
        size_bytes: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.receipt_extraction_started(
            upload_id=upload_id,
            mime_type=mime_type,
            size_bytes=size_bytes,
            correlation_id=correlation_id,
        ))

    def log_receipt_extracted(
        self,
        upload_id: UUID,
        item_count: int,
        total: str,
        correlation_id: UUID,
    ) -> None:
        """Log a successful receipt extraction."""
        self.log(AuditEventBuilder.receipt_extraction_completed(
            upload_id=upload_id,
            item_count=item_count,
            total=total,
            correlation_id=correlation_id,
        ))

    def log_receipt_extraction_failed(
        self,
        upload_id: UUID,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.receipt_extraction_failed(
            upload_id=upload_id,
            reason=reason,
            correlation_id=correlation_id,
        ))

    def log_attendee_added(self, name: str) -> None:
        self.log(AuditEventBuilder.attendee_added(name))

    def log_attendee_removed(self, name: str) -> None:
        self.log(AuditEventBuilder.attendee_removed(name))

    def log_proposal_accepted(
        self,
        proposal_id: UUID,
        kind: str,
        origin: str,
        version: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.proposal_accepted(
            proposal_id=proposal_id,
            kind=kind,
            origin=origin,
            version=version,
            correlation_id=correlation_id,
        ))

    def log_proposal_rejected(
        self,
        proposal_id: UUID,
        kind: str,
        origin: str,
        reason: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a proposal the merge gate refused."""
        self.log(AuditEventBuilder.proposal_rejected(
            proposal_id=proposal_id,
            kind=kind,
            origin=origin,
            reason=reason,
            issues=issues,
            correlation_id=correlation_id,
        ))

    def log_assignees_dropped(
        self,
        proposal_id: UUID,
        names: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.assignees_dropped(
            proposal_id=proposal_id,
            names=names,
            correlation_id=correlation_id,
        ))

    def log_command_received(self, text: str, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.command_received(text, correlation_id))

    def log_command_answered(self, has_update: bool, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.command_answered(has_update, correlation_id))

    def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_malformed_output(
        self,
        service: str,
        error_message: str,
        raw_excerpt: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log assistant output that could not be parsed."""
        self.log(AuditEventBuilder.malformed_service_output(
            service=service,
            error_message=error_message,
            raw_excerpt=raw_excerpt,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (a photo upload, a chat command).
    Pass it through all subsequent operations.
    """
    return uuid4()
