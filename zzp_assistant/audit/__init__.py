"""Audit logging package."""

from zzp_assistant.audit.logger import AuditLogger, create_request_id

__all__ = ["AuditLogger", "create_request_id"]
