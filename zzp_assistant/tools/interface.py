"""
Creation Tools and Ledger Repository Interfaces

DESIGN DECISION: The conversation engine never writes bookkeeping records
itself. It calls a ``CreationTools`` implementation, which in turn stores
records through a ``LedgerRepositoryInterface``. Both are swappable: the
engine only depends on the tool contract.
"""

from abc import ABC, abstractmethod
from typing import Optional

from zzp_assistant.models.drafts import ClientDraft, ExpenseDraft, InvoiceDraft, OfferteDraft
from zzp_assistant.models.records import (
    BtwPeriod,
    BtwSummary,
    Client,
    ClientToolResult,
    DocumentToolResult,
    Expense,
    ExpenseListFilters,
    ExpenseListResult,
    ExpenseToolResult,
    Invoice,
    InvoiceListFilters,
    InvoiceListResult,
    Quotation,
)


class ClientNotFoundError(Exception):
    """A document referenced a client the tenant doesn't have."""

    def __init__(self, client_name: str):
        super().__init__(f"Client not found: {client_name}")
        self.client_name = client_name


class CreationTools(ABC):
    """
    The tool contract used by the action executor and the query handlers.

    Every call is scoped to one tenant (user_id).
    """

    @abstractmethod
    async def create_client_if_missing(self, fields: ClientDraft, user_id: str) -> ClientToolResult:
        """Create the client unless one with the same name or e-mail exists."""
        pass

    @abstractmethod
    async def create_invoice_draft(self, fields: InvoiceDraft, user_id: str) -> DocumentToolResult:
        """
        Create a concept invoice.

        Returns needs_client_creation=True when the client is unknown.
        """
        pass

    @abstractmethod
    async def create_offerte_draft(self, fields: OfferteDraft, user_id: str) -> DocumentToolResult:
        """
        Create a quotation.

        Returns needs_client_creation=True when the client is unknown.
        """
        pass

    @abstractmethod
    async def create_expense(self, fields: ExpenseDraft, user_id: str) -> ExpenseToolResult:
        """Register an expense; the amount includes VAT."""
        pass

    @abstractmethod
    async def find_clients(self, name: str, user_id: str) -> list[Client]:
        """Clients whose name contains ``name`` (case-insensitive)."""
        pass

    @abstractmethod
    async def list_invoices(self, filters: InvoiceListFilters, user_id: str) -> InvoiceListResult:
        pass

    @abstractmethod
    async def list_expenses(self, filters: ExpenseListFilters, user_id: str) -> ExpenseListResult:
        pass

    @abstractmethod
    async def compute_btw(self, period: BtwPeriod, user_id: str) -> BtwSummary:
        """VAT summary for the current month, quarter or year."""
        pass


class LedgerRepositoryInterface(ABC):
    """
    Abstract interface for bookkeeping record storage.

    Any storage implementation must implement these methods. Listing
    methods return records in creation order.

    Raises:
        StorageError: On any backend failure
    """

    @abstractmethod
    async def add_client(self, client: Client) -> Client:
        pass

    @abstractmethod
    async def list_clients(self, user_id: str) -> list[Client]:
        pass

    @abstractmethod
    async def add_invoice(self, invoice: Invoice) -> Invoice:
        pass

    @abstractmethod
    async def list_invoices(self, user_id: str) -> list[Invoice]:
        pass

    @abstractmethod
    async def add_quotation(self, quotation: Quotation) -> Quotation:
        pass

    @abstractmethod
    async def list_quotations(self, user_id: str) -> list[Quotation]:
        pass

    @abstractmethod
    async def add_expense(self, expense: Expense) -> Expense:
        pass

    @abstractmethod
    async def list_expenses(self, user_id: str) -> list[Expense]:
        pass

    async def latest_invoice(self, user_id: str) -> Optional[Invoice]:
        invoices = await self.list_invoices(user_id)
        return invoices[-1] if invoices else None

    async def latest_quotation(self, user_id: str) -> Optional[Quotation]:
        quotations = await self.list_quotations(user_id)
        return quotations[-1] if quotations else None
