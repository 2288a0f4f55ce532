"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep drafts in memory for tests and single-process use
2. Keep them in Google Sheets where the user can look at them
3. Swap in a real database later without touching the conversation logic

The interface is intentionally small - just the draft lifecycle and the
append-only audit log.

CRITICAL: Expiry is evaluated by the interface itself (``lookup``/``get``)
so every backend applies the same TTL before a draft can be reused.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Callable, NamedTuple, Optional

from zzp_assistant.models.audit import AuditEvent
from zzp_assistant.models.drafts import (
    ConversationDraft,
    DraftIntent,
    DraftStatus,
    fields_for_intent,
    utc_now,
)


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class AccessDeniedError(StorageError):
    """Entity exists but belongs to another user."""
    pass


class DraftClosedError(StorageError):
    """Attempted to mutate a confirmed or cancelled draft."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class DraftLookup(NamedTuple):
    """Result of an active-draft lookup: the usable draft, or the one that just expired."""
    draft: Optional[ConversationDraft]
    expired: Optional[ConversationDraft] = None


class DraftStoreInterface(ABC):
    """
    Abstract interface for conversation draft storage.

    Drafts are tenant scoped: every method takes the user_id and never
    returns or touches another user's draft.
    """

    def __init__(
        self,
        ttl_minutes: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Args:
            ttl_minutes: Inactivity after which an active draft is cancelled
                         on lookup. None disables expiry.
            clock: Source of "now" (injectable for tests).
        """
        self._ttl = timedelta(minutes=ttl_minutes) if ttl_minutes else None
        self._clock = clock

    # -------------------------------------------------------------------------
    # Backend operations
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_active(self, user_id: str) -> list[ConversationDraft]:
        """
        All drafts of a user whose status is not terminal.

        Returns:
            Drafts in any order
        """
        pass

    @abstractmethod
    async def get_by_id(
        self,
        conversation_id: str,
        user_id: str,
    ) -> Optional[ConversationDraft]:
        """
        Retrieve one draft, whatever its status.

        Raises:
            AccessDeniedError: If the draft belongs to another user
        """
        pass

    @abstractmethod
    async def create(
        self,
        user_id: str,
        intent: DraftIntent,
        initial: Optional[dict[str, Any]] = None,
    ) -> ConversationDraft:
        """
        Start a new draft with status ``collecting``.

        Any other active draft of the same user and intent is cancelled
        first, so at most one stays active.
        """
        pass

    @abstractmethod
    async def update(
        self,
        conversation_id: str,
        user_id: str,
        updates: dict[str, Any],
        status: Optional[DraftStatus] = None,
    ) -> ConversationDraft:
        """
        Set the given fields (camelCase keys) and optionally the status.

        The merge policy is the caller's business; this writes what it gets.

        Raises:
            NotFoundError: If the draft doesn't exist
            AccessDeniedError: If it belongs to another user
            DraftClosedError: If it is confirmed or cancelled
        """
        pass

    @abstractmethod
    async def complete(self, conversation_id: str, user_id: str) -> ConversationDraft:
        """Mark a draft confirmed (terminal)."""
        pass

    @abstractmethod
    async def cancel(self, conversation_id: str, user_id: str) -> ConversationDraft:
        """Mark a draft cancelled (terminal)."""
        pass

    # -------------------------------------------------------------------------
    # Lookups shared by every backend
    # -------------------------------------------------------------------------

    async def lookup(
        self,
        user_id: str,
        intent: Optional[DraftIntent] = None,
    ) -> DraftLookup:
        """
        Find the most recently updated active draft, applying the TTL.

        A stale draft is cancelled and reported in ``expired``.
        """
        drafts = await self.list_active(user_id)
        if intent is not None:
            intent = DraftIntent(intent)
            drafts = [draft for draft in drafts if draft.intent == intent]
        if not drafts:
            return DraftLookup(draft=None)

        draft = max(drafts, key=lambda d: d.last_updated)
        if self.is_expired(draft):
            cancelled = await self.cancel(draft.conversation_id, user_id)
            return DraftLookup(draft=None, expired=cancelled)
        return DraftLookup(draft=draft)

    async def get(
        self,
        user_id: str,
        intent: Optional[DraftIntent] = None,
    ) -> Optional[ConversationDraft]:
        """The user's active draft (optionally for one intent), or None."""
        return (await self.lookup(user_id, intent)).draft

    def is_expired(self, draft: ConversationDraft) -> bool:
        if self._ttl is None or not draft.is_active:
            return False
        return self._clock() - draft.last_updated > self._ttl

    # -------------------------------------------------------------------------
    # Helpers for implementations
    # -------------------------------------------------------------------------

    def _new_draft(
        self,
        user_id: str,
        intent: DraftIntent,
        initial: Optional[dict[str, Any]] = None,
    ) -> ConversationDraft:
        intent = DraftIntent(intent)
        now = self._clock()
        return ConversationDraft(
            user_id=user_id,
            intent=intent,
            fields=fields_for_intent(intent, initial),
            status=DraftStatus.COLLECTING,
            created_at=now,
            last_updated=now,
        )

    def _check_access(
        self,
        draft: Optional[ConversationDraft],
        conversation_id: str,
        user_id: str,
    ) -> ConversationDraft:
        if draft is None:
            raise NotFoundError(f"Conversation not found: {conversation_id}")
        if draft.user_id != user_id:
            raise AccessDeniedError(f"Conversation {conversation_id} belongs to another user")
        return draft

    def _apply(
        self,
        draft: ConversationDraft,
        updates: Optional[dict[str, Any]] = None,
        status: Optional[DraftStatus] = None,
    ) -> ConversationDraft:
        """Return the mutated copy of an open draft."""
        if draft.status.is_terminal:
            raise DraftClosedError(
                f"Conversation {draft.conversation_id} is {draft.status.value}"
            )
        changes: dict[str, Any] = {"last_updated": self._clock()}
        if updates:
            payload = {**draft.fields.to_payload(), **updates}
            changes["fields"] = fields_for_intent(draft.intent, payload)
        if status is not None:
            changes["status"] = DraftStatus(status)
        return draft.model_copy(update=changes)


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_request_id(self, request_id: str) -> list[AuditEvent]:
        """
        Get all events caused by one message.

        Returns:
            Related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            Recent events, newest first
        """
        pass
