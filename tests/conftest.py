"""
Shared fixtures for the ZZP Assistant tests.

Everything runs in memory with a fixed "today" and an injectable clock, so
no test depends on the wall clock or on Google Sheets.
"""

from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest

from zzp_assistant.audit import AuditLogger
from zzp_assistant.conversation import ActionExecutor, ConversationController
from zzp_assistant.knowledge import KnowledgeBase
from zzp_assistant.models.records import Client
from zzp_assistant.orchestrator import build_router
from zzp_assistant.services.storage import InMemoryAuditStorage, InMemoryDraftStore
from zzp_assistant.tools import InMemoryLedgerRepository, LedgerTools


TODAY = date(2026, 5, 14)
USER = "user-1"
OTHER_USER = "user-2"

DOCS_DIR = Path(__file__).resolve().parent.parent / "zzp_assistant" / "knowledge" / "docs"


class FakeClock:
    """A clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2026, 5, 14, 9, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: int) -> None:
        self.now += timedelta(minutes=minutes)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def draft_store(clock):
    return InMemoryDraftStore(ttl_minutes=30, clock=clock)


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def repository():
    return InMemoryLedgerRepository()


@pytest.fixture
def tools(repository):
    return LedgerTools(repository, today=lambda: TODAY)


@pytest.fixture
def add_client(repository):
    """Put a client straight into the ledger."""
    def _add(name: str, user_id: str = USER, email=None) -> Client:
        client = Client(user_id=user_id, name=name, email=email)
        repository.clients.append(client)
        return client
    return _add


@pytest.fixture
def executor(tools, audit_logger):
    return ActionExecutor(tools, audit_logger=audit_logger)


@pytest.fixture
def controller(draft_store, executor, audit_logger):
    return ConversationController(draft_store, executor, audit_logger=audit_logger)


@pytest.fixture
def knowledge():
    return KnowledgeBase(DOCS_DIR)


@pytest.fixture
def router(draft_store, tools, knowledge, audit_logger):
    return build_router(
        draft_store,
        tools,
        knowledge,
        audit_logger=audit_logger,
        today=lambda: TODAY,
    )
