"""
Audit Models for splitbills

Every significant action in a bill-splitting session is recorded as an
AuditEvent. The trail lives in memory for the lifetime of the session and is
mirrored to the structured log.

DESIGN DECISION: Audit events are append-only. We never modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step of a session has its own event type.
    """
    # Session lifecycle
    SESSION_STARTED = "session_started"
    SESSION_RESET = "session_reset"

    # Receipt extraction
    RECEIPT_EXTRACTION_STARTED = "receipt_extraction_started"
    RECEIPT_EXTRACTION_COMPLETED = "receipt_extraction_completed"
    RECEIPT_EXTRACTION_FAILED = "receipt_extraction_failed"

    # Roster
    ATTENDEE_ADDED = "attendee_added"
    ATTENDEE_REMOVED = "attendee_removed"

    # Merge gate
    PROPOSAL_ACCEPTED = "proposal_accepted"
    PROPOSAL_REJECTED = "proposal_rejected"
    ASSIGNEES_DROPPED = "assignees_dropped"

    # Assistant conversation
    COMMAND_RECEIVED = "command_received"
    COMMAND_ANSWERED = "command_answered"

    # System events
    EXTERNAL_SERVICE_ERROR = "external_service_error"
    MALFORMED_SERVICE_OUTPUT = "malformed_service_output"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


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
        default_factory=lambda: datetime.now(timezone.utc),
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

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'item', 'attendee', 'proposal')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one chat command)"
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

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.attendee_added("Ana")
        event = AuditEventBuilder.proposal_rejected(proposal_id, "replace", reason)
    """

    @staticmethod
    def session_started(session_code: str, attendee_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_STARTED,
            entity_type="session",
            entity_id=session_code,
            description=f"Session {session_code} started with {attendee_count} attendees",
            details={"attendee_count": attendee_count},
            is_user_action=True,
        )

    @staticmethod
    def session_reset(session_code: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_RESET,
            entity_type="session",
            entity_id=session_code,
            description="Session reset",
            is_user_action=True,
        )

    @staticmethod
    def receipt_extraction_started(
        upload_id: UUID,
        mime_type: str,
        size_bytes: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_EXTRACTION_STARTED,
            entity_type="receipt",
            entity_id=str(upload_id),
            correlation_id=correlation_id,
            description=f"Receipt photo received ({mime_type}, {size_bytes} bytes)",
            details={
                "mime_type": mime_type,
                "size_bytes": size_bytes,
            },
            is_user_action=True,
        )

    @staticmethod
    def receipt_extraction_completed(
        upload_id: UUID,
        item_count: int,
        total: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_EXTRACTION_COMPLETED,
            entity_type="receipt",
            entity_id=str(upload_id),
            correlation_id=correlation_id,
            description=f"Receipt extracted with {item_count} items",
            details={
                "item_count": item_count,
                "total": total,
            },
        )

    @staticmethod
    def receipt_extraction_failed(
        upload_id: UUID,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_EXTRACTION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="receipt",
            entity_id=str(upload_id),
            correlation_id=correlation_id,
            description="Receipt extraction failed",
            error_message=reason,
        )

    @staticmethod
    def attendee_added(name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ATTENDEE_ADDED,
            entity_type="attendee",
            entity_id=name,
            description=f"Attendee added: {name}",
            is_user_action=True,
        )

    @staticmethod
    def attendee_removed(name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ATTENDEE_REMOVED,
            entity_type="attendee",
            entity_id=name,
            description=f"Attendee removed: {name}",
            is_user_action=True,
        )

    @staticmethod
    def proposal_accepted(
        proposal_id: UUID,
        kind: str,
        origin: str,
        version: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROPOSAL_ACCEPTED,
            entity_type="proposal",
            entity_id=str(proposal_id),
            correlation_id=correlation_id,
            description=f"Proposal accepted ({kind} from {origin}), now at version {version}",
            details={
                "kind": kind,
                "origin": origin,
                "version": version,
            },
            is_user_action=origin == "manual",
        )

    @staticmethod
    def proposal_rejected(
        proposal_id: UUID,
        kind: str,
        origin: str,
        reason: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROPOSAL_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="proposal",
            entity_id=str(proposal_id),
            correlation_id=correlation_id,
            description=f"Proposal rejected ({kind} from {origin}): {reason}"[:500],
            details={
                "kind": kind,
                "origin": origin,
                "issues": issues,
            },
        )

    @staticmethod
    def assignees_dropped(
        proposal_id: UUID,
        names: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ASSIGNEES_DROPPED,
            severity=AuditSeverity.WARNING,
            entity_type="proposal",
            entity_id=str(proposal_id),
            correlation_id=correlation_id,
            description=f"Dropped {len(names)} names not on the roster",
            details={"names": names},
        )

    @staticmethod
    def command_received(text: str, correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMAND_RECEIVED,
            entity_type="command",
            correlation_id=correlation_id,
            description="Chat command received",
            details={"length": len(text)},
            is_user_action=True,
        )

    @staticmethod
    def command_answered(
        has_update: bool,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMAND_ANSWERED,
            entity_type="command",
            correlation_id=correlation_id,
            description=(
                "Assistant proposed a receipt update" if has_update
                else "Assistant answered without changes"
            ),
            details={"has_update": has_update},
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )

    @staticmethod
    def malformed_service_output(
        service: str,
        error_message: str,
        raw_excerpt: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MALFORMED_SERVICE_OUTPUT,
            severity=AuditSeverity.ERROR,
            description=f"Unusable output from {service}",
            error_message=error_message,
            details={
                "service": service,
                "raw_excerpt": (raw_excerpt or "")[:200],
            },
            correlation_id=correlation_id,
        )

