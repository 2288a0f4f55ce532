"""
Data Models Package

This package contains all Pydantic models used by the ZZP Assistant.
Everything that crosses a component boundary conforms to one of these.
"""

from zzp_assistant.models.drafts import (
    ACTIVE_STATUSES,
    ClientDraft,
    ClientDraftFields,
    ConversationDraft,
    DraftFields,
    DraftFieldsBase,
    DraftIntent,
    DraftStatus,
    ExpenseDraft,
    Intent,
    InvoiceDraft,
    InvoiceDraftFields,
    LineItem,
    LineItemDraft,
    OfferteDraft,
    OfferteDraftFields,
    PaymentMethod,
    Unit,
    ValidationOutcome,
    VatRate,
    fields_for_intent,
    utc_now,
)
from zzp_assistant.models.records import (
    BtwPeriod,
    BtwSummary,
    Client,
    ClientToolResult,
    DocumentLine,
    DocumentToolResult,
    DocumentTotals,
    Expense,
    ExpenseListFilters,
    ExpenseListResult,
    ExpenseSummary,
    ExpenseToolResult,
    Invoice,
    InvoiceListFilters,
    InvoiceListResult,
    InvoiceStatus,
    InvoiceSummary,
    ParsedClient,
    ParsedExpense,
    Quotation,
    to_cents,
)
from zzp_assistant.models.results import (
    ClassificationResult,
    ConversationResponse,
    ExecutionResult,
    FieldCorrection,
    RouterResult,
)
from zzp_assistant.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    hash_payload,
)

__all__ = [
    # Draft models
    "ACTIVE_STATUSES",
    "ClientDraft",
    "ClientDraftFields",
    "ConversationDraft",
    "DraftFields",
    "DraftFieldsBase",
    "DraftIntent",
    "DraftStatus",
    "ExpenseDraft",
    "Intent",
    "InvoiceDraft",
    "InvoiceDraftFields",
    "LineItem",
    "LineItemDraft",
    "OfferteDraft",
    "OfferteDraftFields",
    "PaymentMethod",
    "Unit",
    "ValidationOutcome",
    "VatRate",
    "fields_for_intent",
    "utc_now",
    # Ledger records
    "BtwPeriod",
    "BtwSummary",
    "Client",
    "ClientToolResult",
    "DocumentLine",
    "DocumentToolResult",
    "DocumentTotals",
    "Expense",
    "ExpenseListFilters",
    "ExpenseListResult",
    "ExpenseSummary",
    "ExpenseToolResult",
    "Invoice",
    "InvoiceListFilters",
    "InvoiceListResult",
    "InvoiceStatus",
    "InvoiceSummary",
    "ParsedClient",
    "ParsedExpense",
    "Quotation",
    "to_cents",
    # Results
    "ClassificationResult",
    "ConversationResponse",
    "ExecutionResult",
    "FieldCorrection",
    "RouterResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    "hash_payload",
]
