"""
Audit Models for the ZZP Assistant

Every step of a drafting conversation and every creation action is
recorded. This provides:
1. Traceability of which message led to which record
2. Debugging information when a draft got stuck
3. Accountability for everything created on a tenant's behalf

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
Raw action payloads are not stored by default; a SHA-256 hash identifies
them instead.
"""

import hashlib
import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from zzp_assistant.models.drafts import utc_now


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    The first block mirrors the steps of the drafting flow one to one.
    """
    # Drafting steps
    INTENT_DETECTED = "intent_detected"
    DRAFT_UPDATED = "draft_updated"
    VALIDATION_FAILED = "validation_failed"
    CREATE_STARTED = "create_started"
    CREATE_SUCCESS = "create_success"
    CREATE_FAILED = "create_failed"
    DRAFT_CANCELLED = "draft_cancelled"
    DRAFT_EXPIRED = "draft_expired"

    # Action records
    ACTION_RECORDED = "action_recorded"
    QUERY_EXECUTED = "query_executed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


_STEP_SEVERITY = {
    AuditEventType.VALIDATION_FAILED: AuditSeverity.INFO,
    AuditEventType.CREATE_FAILED: AuditSeverity.WARNING,
    AuditEventType.DRAFT_EXPIRED: AuditSeverity.INFO,
}

_STEP_DESCRIPTIONS = {
    AuditEventType.INTENT_DETECTED: "Intent detected",
    AuditEventType.DRAFT_UPDATED: "Draft updated",
    AuditEventType.VALIDATION_FAILED: "Draft incomplete or invalid",
    AuditEventType.CREATE_STARTED: "Creation started",
    AuditEventType.CREATE_SUCCESS: "Record created",
    AuditEventType.CREATE_FAILED: "Creation failed",
    AuditEventType.DRAFT_CANCELLED: "Draft cancelled",
    AuditEventType.DRAFT_EXPIRED: "Draft expired",
}


def hash_payload(payload: Any) -> str:
    """Stable SHA-256 of a JSON-serialisable payload."""
    encoded = json.dumps(payload, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of the audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Who and which request
    user_id: Optional[str] = None
    request_id: Optional[str] = Field(
        default=None,
        description="Correlates all events caused by one message"
    )

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g. 'draft', 'invoice', 'client')"
    )
    entity_id: Optional[str] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    payload_hash: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "request_id": self.request_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "payload_hash": self.payload_hash,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row for Google Sheets storage.

        Columns: [event_id, timestamp, event_type, severity, user_id,
        request_id, entity_type, entity_id, description, details_json,
        payload_hash, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.request_id or "",
            self.entity_type or "",
            self.entity_id or "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.payload_hash or "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.step("req_1", "draft_updated", "user-1", {...})
        event = AuditEventBuilder.action_recorded("req_1", "user-1", "create_factuur", payload, ...)
    """

    @staticmethod
    def step(
        request_id: str,
        step: str,
        user_id: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        event_type = AuditEventType(step)
        details = dict(details or {})
        return AuditEvent(
            event_type=event_type,
            severity=_STEP_SEVERITY.get(event_type, AuditSeverity.INFO),
            user_id=user_id,
            request_id=request_id,
            entity_type="draft" if details.get("conversation_id") else None,
            entity_id=details.get("conversation_id"),
            description=_STEP_DESCRIPTIONS.get(event_type, step),
            details=details,
        )

    @staticmethod
    def action_recorded(
        request_id: str,
        user_id: str,
        action: str,
        payload: dict,
        result_type: Optional[str] = None,
        result_id: Optional[str] = None,
        success: bool = True,
        store_payload: bool = False,
    ) -> AuditEvent:
        details: dict[str, Any] = {"action": action, "success": success}
        if store_payload:
            details["payload"] = payload
        return AuditEvent(
            event_type=AuditEventType.ACTION_RECORDED,
            severity=AuditSeverity.INFO if success else AuditSeverity.WARNING,
            user_id=user_id,
            request_id=request_id,
            entity_type=result_type,
            entity_id=result_id,
            description=f"Action {action} {'succeeded' if success else 'failed'}",
            details=details,
            payload_hash=hash_payload(payload),
        )

    @staticmethod
    def query_executed(
        request_id: str,
        user_id: str,
        query_type: str,
        result_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.QUERY_EXECUTED,
            user_id=user_id,
            request_id=request_id,
            entity_type="query",
            description=f"Query executed: {query_type} returned {result_count} results",
            details={
                "query_type": query_type,
                "result_count": result_count,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        request_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            request_id=request_id,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )
