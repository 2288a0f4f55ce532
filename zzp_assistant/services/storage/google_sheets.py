"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a persistent backend because:
1. A freelancer can look at open drafts and the audit trail directly
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (fine for one tenant's chat history)
- No transactions (concurrent writes to one draft are last-writer-wins)
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interface, so the conversation
logic never knows which backend it talks to.
"""

import json
from datetime import datetime
from typing import Any, Callable, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from zzp_assistant.config import GoogleSheetsSettings, get_settings
from zzp_assistant.models.audit import AuditEvent, AuditEventType, AuditSeverity
from zzp_assistant.models.drafts import (
    ConversationDraft,
    DraftIntent,
    DraftStatus,
    utc_now,
)
from zzp_assistant.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DraftStoreInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)


# Column mappings for Drafts sheet
DRAFT_COLUMNS = [
    "conversation_id",
    "user_id",
    "intent",
    "status",
    "fields_json",
    "created_at",
    "last_updated",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "request_id",
    "entity_type",
    "entity_id",
    "description",
    "details_json",
    "payload_hash",
    "error_message",
]


def _safe_get(row: list, index: int, default: str = "") -> str:
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(self._settings.spreadsheet_id)
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(title=title, rows=rows, cols=len(columns))
            sheet.append_row(columns)
        return sheet

    def get_drafts_sheet(self) -> gspread.Worksheet:
        """Get or create the Drafts worksheet."""
        return self._get_or_create_sheet(
            self._settings.drafts_sheet_name, DRAFT_COLUMNS, rows=1000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsDraftStore(DraftStoreInterface):
    """
    Google Sheets implementation of draft storage.

    One draft per row; the partial field map is stored as JSON.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        ttl_minutes: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__(ttl_minutes=ttl_minutes, clock=clock)
        self._client = client or GoogleSheetsClient()

    def _draft_to_row(self, draft: ConversationDraft) -> list:
        """Convert a ConversationDraft to a spreadsheet row."""
        return [
            draft.conversation_id,
            draft.user_id,
            draft.intent.value,
            draft.status.value,
            draft.fields.model_dump_json(by_alias=True),
            draft.created_at.isoformat(),
            draft.last_updated.isoformat(),
        ]

    def _row_to_draft(self, row: list) -> ConversationDraft:
        """Convert a spreadsheet row to a ConversationDraft."""
        return ConversationDraft.model_validate({
            "conversation_id": _safe_get(row, 0),
            "user_id": _safe_get(row, 1),
            "intent": _safe_get(row, 2),
            "status": _safe_get(row, 3),
            "fields": json.loads(_safe_get(row, 4, "{}")),
            "created_at": datetime.fromisoformat(_safe_get(row, 5)),
            "last_updated": datetime.fromisoformat(_safe_get(row, 6)),
        })

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _read_rows(self) -> list[list]:
        try:
            return self._client.get_drafts_sheet().get_all_values()[1:]
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read drafts: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _append(self, draft: ConversationDraft) -> None:
        try:
            sheet = self._client.get_drafts_sheet()
            sheet.append_row(self._draft_to_row(draft), value_input_option="RAW")
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save draft: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _rewrite(self, row_number: int, draft: ConversationDraft) -> None:
        try:
            sheet = self._client.get_drafts_sheet()
            for col_idx, value in enumerate(self._draft_to_row(draft), start=1):
                sheet.update_cell(row_number, col_idx, value)
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update draft: {e}")

    def _find(self, conversation_id: str) -> tuple[Optional[int], Optional[ConversationDraft]]:
        """Locate a draft; row numbers start at 2 (row 1 is the header)."""
        for idx, row in enumerate(self._read_rows(), start=2):
            if row and row[0] == conversation_id:
                return idx, self._row_to_draft(row)
        return None, None

    async def list_active(self, user_id: str) -> list[ConversationDraft]:
        drafts = []
        for row in self._read_rows():
            if not row or len(row) < 4 or row[1] != user_id:
                continue
            if DraftStatus(row[3]).is_terminal:
                continue
            try:
                drafts.append(self._row_to_draft(row))
            except Exception as e:
                logger.warning("draft_row_unreadable", conversation_id=row[0], error=str(e))
        return drafts

    async def get_by_id(
        self,
        conversation_id: str,
        user_id: str,
    ) -> Optional[ConversationDraft]:
        _, draft = self._find(conversation_id)
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
                await self.cancel(existing.conversation_id, user_id)
        self._append(draft)
        return draft

    async def update(
        self,
        conversation_id: str,
        user_id: str,
        updates: dict[str, Any],
        status: Optional[DraftStatus] = None,
    ) -> ConversationDraft:
        row_number, draft = self._find(conversation_id)
        draft = self._check_access(draft, conversation_id, user_id)
        updated = self._apply(draft, updates, status)
        self._rewrite(row_number, updated)
        return updated

    async def complete(self, conversation_id: str, user_id: str) -> ConversationDraft:
        return await self.update(conversation_id, user_id, {}, DraftStatus.CONFIRMED)

    async def cancel(self, conversation_id: str, user_id: str) -> ConversationDraft:
        return await self.update(conversation_id, user_id, {}, DraftStatus.CANCELLED)


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            user_id=_safe_get(row, 4) or None,
            request_id=_safe_get(row, 5) or None,
            entity_type=_safe_get(row, 6) or None,
            entity_id=_safe_get(row, 7) or None,
            description=_safe_get(row, 8),
            details=json.loads(_safe_get(row, 9)) if _safe_get(row, 9) else {},
            payload_hash=_safe_get(row, 10) or None,
            error_message=_safe_get(row, 11) or None,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _append_row(self, row: list) -> None:
        self._client.get_audit_sheet().append_row(row, value_input_option="RAW")

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event; failures are logged, never raised."""
        try:
            self._append_row(event.to_sheets_row())
            return True
        except Exception as e:
            logger.warning("audit_append_failed", event_id=str(event.event_id), error=str(e))
            return False

    def _read_events(self) -> list[AuditEvent]:
        try:
            rows = self._client.get_audit_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except Exception:
                continue  # Skip malformed rows
        return events

    async def get_events_by_request_id(self, request_id: str) -> list[AuditEvent]:
        events = [event for event in self._read_events() if event.request_id == request_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = self._read_events()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
