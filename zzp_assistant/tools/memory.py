"""In-memory ledger repository (tests and single-process use)."""

from zzp_assistant.models.records import Client, Expense, Invoice, Quotation
from zzp_assistant.tools.interface import LedgerRepositoryInterface


class InMemoryLedgerRepository(LedgerRepositoryInterface):
    """Lists of records; tenant filtering happens on read."""

    def __init__(self):
        self.clients: list[Client] = []
        self.invoices: list[Invoice] = []
        self.quotations: list[Quotation] = []
        self.expenses: list[Expense] = []

    async def add_client(self, client: Client) -> Client:
        self.clients.append(client)
        return client

    async def list_clients(self, user_id: str) -> list[Client]:
        return [client for client in self.clients if client.user_id == user_id]

    async def add_invoice(self, invoice: Invoice) -> Invoice:
        self.invoices.append(invoice)
        return invoice

    async def list_invoices(self, user_id: str) -> list[Invoice]:
        return [invoice for invoice in self.invoices if invoice.user_id == user_id]

    async def add_quotation(self, quotation: Quotation) -> Quotation:
        self.quotations.append(quotation)
        return quotation

    async def list_quotations(self, user_id: str) -> list[Quotation]:
        return [quotation for quotation in self.quotations if quotation.user_id == user_id]

    async def add_expense(self, expense: Expense) -> Expense:
        self.expenses.append(expense)
        return expense

    async def list_expenses(self, user_id: str) -> list[Expense]:
        return [expense for expense in self.expenses if expense.user_id == user_id]
