"""
In-Memory Storage Implementation

Process-local draft and audit storage. Used by the tests and whenever no
Google Sheets backend is configured.
"""

from datetime import datetime
from typing import Any, Callable, Optional

from zzp_assistant.models.audit import AuditEvent
from zzp_assistant.models.drafts import (
    ConversationDraft,
    DraftIntent,
    DraftStatus,
    utc_now,
)
from zzp_assistant.services.storage.interface import (
    AuditStorageInterface,
    DraftStoreInterface,
)


class InMemoryDraftStore(DraftStoreInterface):
    """Drafts kept in a dict keyed by conversation_id."""

    def __init__(
        self,
        ttl_minutes: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__(ttl_minutes=ttl_minutes, clock=clock)
        self._drafts: dict[str, ConversationDraft] = {}

    async def list_active(self, user_id: str) -> list[ConversationDraft]:
        return [
            draft for draft in self._drafts.values()
            if draft.user_id == user_id and draft.is_active
        ]

    async def get_by_id(
        self,
        conversation_id: str,
        user_id: str,
    ) -> Optional[ConversationDraft]:
        draft = self._drafts.get(conversation_id)
        if draft is None:
            return None
        return self._check_access(draft, conversation_id, user_id)

    async def create(
        self,
        user_id: str,
        intent: DraftIntent,
        initial: Optional[dict[str, Any]] = None,
    ) -> ConversationDraft:
        draft = self._new_draft(user_id, intent, initial)
        for existing in await self.list_active(user_id):
            if existing.intent == draft.intent:
                self._drafts[existing.conversation_id] = self._apply(
                    existing, status=DraftStatus.CANCELLED
                )
        self._drafts[draft.conversation_id] = draft
        return draft

    async def update(
        self,
        conversation_id: str,
        user_id: str,
        updates: dict[str, Any],
        status: Optional[DraftStatus] = None,
    ) -> ConversationDraft:
        draft = self._check_access(self._drafts.get(conversation_id), conversation_id, user_id)
        updated = self._apply(draft, updates, status)
        self._drafts[conversation_id] = updated
        return updated

    async def complete(self, conversation_id: str, user_id: str) -> ConversationDraft:
        return await self.update(conversation_id, user_id, {}, DraftStatus.CONFIRMED)

    async def cancel(self, conversation_id: str, user_id: str) -> ConversationDraft:
        return await self.update(conversation_id, user_id, {}, DraftStatus.CANCELLED)

    def count(self) -> int:
        """Number of drafts ever stored (any status)."""
        return len(self._drafts)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_request_id(self, request_id: str) -> list[AuditEvent]:
        events = [event for event in self.events if event.request_id == request_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]

    def steps(self, request_id: Optional[str] = None) -> list[str]:
        """Event types in append order (optionally for one request)."""
        return [
            event.event_type.value
            for event in self.events
            if request_id is None or event.request_id == request_id
        ]
