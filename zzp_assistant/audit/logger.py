"""
Audit trail for drafting conversations

Each message gets a request id. Every conversation step logged under it
ends up in the local structlog output and, when configured, in audit storage.
Creations also get an action record with a hash of the payload.

The logger:
- Is async so it fits the rest of the engine
- NEVER raises: a failing audit sink must not break a conversation
- Correlates events through the request id of the message
"""

import time
from typing import Any, Optional
from uuid import uuid4

import structlog

from zzp_assistant.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from zzp_assistant.services.storage import AuditStorageInterface


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
    Writes audit events to the local log and to audit storage, if any.
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
        store_payloads: bool = False,
    ):
        """
        Args:
            storage: Where events are persisted. None logs locally only.
            store_payloads: Keep raw action payloads next to their hash.
        """
        self._storage = storage
        self._store_payloads = store_payloads
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        try:
            log_dict = event.to_log_dict()
            if event.severity == AuditSeverity.ERROR:
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception:
            pass  # Local logging must never break the flow

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_step(
        self,
        request_id: str,
        step: str,
        user_id: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        """Log one step of the drafting flow (intent_detected, draft_updated, ...)."""
        try:
            event = AuditEventBuilder.step(
                request_id=request_id,
                step=step,
                user_id=user_id,
                details=details,
            )
        except Exception as e:
            self._logger.error("audit_event_invalid", step=step, error=str(e))
            return
        await self.log(event)

    async def log_action(
        self,
        request_id: str,
        user_id: str,
        action: str,
        payload: dict[str, Any],
        result_type: Optional[str] = None,
        result_id: Optional[str] = None,
        success: bool = True,
    ) -> None:
        """Log the per-action audit record (payload hash, raw payload only if enabled)."""
        try:
            event = AuditEventBuilder.action_recorded(
                request_id=request_id,
                user_id=user_id,
                action=action,
                payload=payload,
                result_type=result_type,
                result_id=result_id,
                success=success,
                store_payload=self._store_payloads,
            )
        except Exception as e:
            self._logger.error("audit_event_invalid", action=action, error=str(e))
            return
        await self.log(event)

    async def log_query_executed(
        self,
        request_id: str,
        user_id: str,
        query_type: str,
        result_count: int,
    ) -> None:
        """Log query execution."""
        event = AuditEventBuilder.query_executed(
            request_id=request_id,
            user_id=user_id,
            query_type=query_type,
            result_count=result_count,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        request_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            request_id=request_id,
            user_id=user_id,
        )
        await self.log(event)


def create_request_id() -> str:
    """
    Create a new request id for tracking the events of one message.

    Format: req_<epoch milliseconds>_<16 hex chars>.
    """
    return f"req_{int(time.time() * 1000)}_{uuid4().hex[:16]}"
