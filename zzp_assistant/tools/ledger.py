"""
Ledger-backed Creation Tools

DESIGN DECISION: Numbering and creation happen under ONE per-tenant lock.
Reading the last document number and storing the new document are two
separate awaits; without the lock two concurrent messages of the same user
could draw the same number, or both create the same client.

Different tenants never wait on each other.
"""

import asyncio
import re
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, Optional, Union

import structlog

from zzp_assistant.models.drafts import (
    ClientDraft,
    ExpenseDraft,
    InvoiceDraft,
    LineItem,
    OfferteDraft,
    Unit,
    VatRate,
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
    InvoiceSummary,
    Quotation,
    to_cents,
)
from zzp_assistant.parsing.extractors import DEFAULT_DESCRIPTION
from zzp_assistant.tools.interface import (
    ClientNotFoundError,
    CreationTools,
    LedgerRepositoryInterface,
)


logger = structlog.get_logger(__name__)

QUOTATION_PREFIX = "OFF"

_TRAILING_NUMBER = re.compile(r"(\d+)\s*$")


def next_sequence(last_number: Optional[str]) -> int:
    """Numeric suffix of the last document number plus one (1 when there is none)."""
    if not last_number:
        return 1
    match = _TRAILING_NUMBER.search(last_number)
    return int(match.group(1)) + 1 if match else 1


def format_invoice_number(year: int, sequence: int) -> str:
    return f"{year}-{sequence:03d}"


def format_quotation_number(year: int, sequence: int) -> str:
    return f"{QUOTATION_PREFIX}-{year}-{sequence:03d}"


def format_euro(amount: Decimal) -> str:
    return f"€{to_cents(amount):.2f}"


def format_dutch_date(value: date) -> str:
    """Dates as Dutch users write them: 1-10-2026."""
    return f"{value.day}-{value.month}-{value.year}"


def period_range(period: BtwPeriod, today: date) -> tuple[date, date]:
    """First and last day of the current month, quarter or year."""
    period = BtwPeriod(period)
    if period == BtwPeriod.MONTH:
        start = today.replace(day=1)
        months = 1
    elif period == BtwPeriod.QUARTER:
        start = date(today.year, (today.month - 1) // 3 * 3 + 1, 1)
        months = 3
    else:
        return date(today.year, 1, 1), date(today.year, 12, 31)

    month_index = start.month - 1 + months
    next_start = date(start.year + month_index // 12, month_index % 12 + 1, 1)
    return start, next_start - timedelta(days=1)


def _discount_factor(discount: Optional[Decimal]) -> Decimal:
    if not discount:
        return Decimal("1")
    return Decimal("1") - Decimal(discount) / Decimal("100")


class LedgerTools(CreationTools):
    """
    The bookkeeping tools over a ledger repository.

    Usage:
        tools = LedgerTools(InMemoryLedgerRepository())
        result = await tools.create_invoice_draft(draft, user_id="u1")
    """

    def __init__(
        self,
        repository: LedgerRepositoryInterface,
        today: Callable[[], date] = date.today,
    ):
        self._repository = repository
        self._today = today
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def tenant_lock(self, user_id: str) -> asyncio.Lock:
        """The lock that serializes creation for one tenant."""
        return self._locks[user_id]

    # =========================================================================
    # CLIENTS
    # =========================================================================

    async def create_client_if_missing(self, fields: ClientDraft, user_id: str) -> ClientToolResult:
        async with self.tenant_lock(user_id):
            existing = self._match_client(await self._repository.list_clients(user_id), fields)
            if existing:
                return ClientToolResult(
                    success=True,
                    already_exists=True,
                    client=existing,
                    message=f'Klant "{existing.name}" bestaat al.',
                )

            client = await self._repository.add_client(
                Client(
                    user_id=user_id,
                    name=fields.name,
                    email=fields.email,
                    address=fields.address or "",
                    postal_code=fields.postal_code or "",
                    city=fields.city or "",
                    kvk_number=fields.kvk_number,
                    btw_id=fields.btw_id,
                )
            )

        logger.info("client_created", user_id=user_id, client_id=client.id)
        return ClientToolResult(
            success=True,
            client=client,
            message=f'Klant "{client.name}" is aangemaakt.',
        )

    @staticmethod
    def _match_client(clients: list[Client], fields: ClientDraft) -> Optional[Client]:
        """Same name (case-insensitive) or same e-mail address."""
        name = fields.name.strip().lower()
        email = (fields.email or "").strip().lower()
        for client in clients:
            if client.name.strip().lower() == name:
                return client
            if email and (client.email or "").strip().lower() == email:
                return client
        return None

    async def find_clients(self, name: str, user_id: str) -> list[Client]:
        needle = (name or "").strip().lower()
        if not needle:
            return []
        clients = await self._repository.list_clients(user_id)
        return [client for client in clients if needle in client.name.lower()][:5]

    async def _resolve_client(self, client_name: str, user_id: str) -> Client:
        matches = await self.find_clients(client_name, user_id)
        if not matches:
            raise ClientNotFoundError(client_name)
        return matches[0]

    # =========================================================================
    # INVOICES AND QUOTATIONS
    # =========================================================================

    @staticmethod
    def _build_lines(fields: Union[InvoiceDraft, OfferteDraft]) -> list[DocumentLine]:
        """Lines from the items, or one line for the bare amount."""
        if fields.items:
            return [DocumentLine.from_item(item) for item in fields.items]
        if fields.amount:
            item = LineItem(
                description=fields.description or DEFAULT_DESCRIPTION,
                quantity=Decimal("1"),
                price=fields.amount,
                unit=Unit.STUK,
                vat_rate=fields.vat_rate,
            )
            return [DocumentLine.from_item(item)]
        return []

    async def create_invoice_draft(self, fields: InvoiceDraft, user_id: str) -> DocumentToolResult:
        lines = self._build_lines(fields)
        if not lines:
            return DocumentToolResult(
                success=False,
                needs_more_info=True,
                message="Geef regels of een bedrag op voor de factuur.",
            )

        async with self.tenant_lock(user_id):
            try:
                client = await self._resolve_client(fields.client_name, user_id)
            except ClientNotFoundError as e:
                return self._client_missing(e)

            issue_date = self._today()
            last = await self._repository.latest_invoice(user_id)
            invoice = await self._repository.add_invoice(
                Invoice(
                    user_id=user_id,
                    client_id=client.id,
                    client_name=client.name,
                    invoice_num=format_invoice_number(
                        issue_date.year, next_sequence(last.invoice_num if last else None)
                    ),
                    issue_date=issue_date,
                    due_date=issue_date + timedelta(days=fields.due_in_days),
                    lines=lines,
                    totals=DocumentTotals.from_lines(lines, fields.discount),
                    discount=fields.discount,
                    notes=fields.notes,
                )
            )

        logger.info("invoice_created", user_id=user_id, invoice_num=invoice.invoice_num)
        return DocumentToolResult(
            success=True,
            invoice=invoice,
            message=f"Factuur {invoice.invoice_num} aangemaakt.",
        )

    async def create_offerte_draft(self, fields: OfferteDraft, user_id: str) -> DocumentToolResult:
        lines = self._build_lines(fields)
        if not lines:
            return DocumentToolResult(
                success=False,
                needs_more_info=True,
                message="Geef regels of een bedrag op voor de offerte.",
            )

        async with self.tenant_lock(user_id):
            try:
                client = await self._resolve_client(fields.client_name, user_id)
            except ClientNotFoundError as e:
                return self._client_missing(e)

            issue_date = self._today()
            last = await self._repository.latest_quotation(user_id)
            quotation = await self._repository.add_quotation(
                Quotation(
                    user_id=user_id,
                    client_id=client.id,
                    client_name=client.name,
                    quote_num=format_quotation_number(
                        issue_date.year, next_sequence(last.quote_num if last else None)
                    ),
                    issue_date=issue_date,
                    valid_until=issue_date + timedelta(days=fields.valid_for_days),
                    lines=lines,
                    totals=DocumentTotals.from_lines(lines, fields.discount),
                    discount=fields.discount,
                    notes=fields.notes,
                )
            )

        logger.info("quotation_created", user_id=user_id, quote_num=quotation.quote_num)
        return DocumentToolResult(
            success=True,
            quotation=quotation,
            message=f"Offerte {quotation.quote_num} aangemaakt.",
        )

    @staticmethod
    def _client_missing(error: ClientNotFoundError) -> DocumentToolResult:
        return DocumentToolResult(
            success=False,
            needs_client_creation=True,
            message=f'Klant "{error.client_name}" is niet gevonden.',
        )

    # =========================================================================
    # EXPENSES
    # =========================================================================

    async def create_expense(self, fields: ExpenseDraft, user_id: str) -> ExpenseToolResult:
        rate = fields.vat_rate or VatRate.HIGH
        amount_excl = fields.amount_excl or fields.amount / (Decimal("1") + rate.percentage)
        expense = await self._repository.add_expense(
            Expense(
                user_id=user_id,
                category=fields.category,
                description=fields.description or fields.vendor or fields.category,
                vendor=fields.vendor,
                amount_excl=to_cents(amount_excl),
                vat_rate=rate,
                expense_date=fields.expense_date or self._today(),
                payment_method=fields.payment_method,
                receipt_url=fields.receipt_url,
            )
        )
        logger.info("expense_created", user_id=user_id, expense_id=expense.id)
        return ExpenseToolResult(
            success=True,
            expense=expense,
            message=f"Uitgave van {format_euro(expense.total_amount)} aangemaakt voor {expense.category}.",
        )

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def list_invoices(self, filters: InvoiceListFilters, user_id: str) -> InvoiceListResult:
        invoices = await self._repository.list_invoices(user_id)
        client_name = (filters.client_name or "").lower()
        selected = [
            invoice for invoice in invoices
            if (filters.status is None or invoice.status == filters.status)
            and (filters.from_date is None or invoice.issue_date >= filters.from_date)
            and (filters.to_date is None or invoice.issue_date <= filters.to_date)
            and (not client_name or client_name in invoice.client_name.lower())
        ]
        selected.sort(key=lambda invoice: (invoice.issue_date, invoice.created_at), reverse=True)

        summaries = [
            InvoiceSummary(
                id=invoice.id,
                invoice_num=invoice.invoice_num,
                client_name=invoice.client_name,
                issue_date=invoice.issue_date,
                due_date=invoice.due_date,
                status=invoice.status,
                subtotal=invoice.totals.subtotal,
                vat_amount=invoice.totals.vat_amount,
                total=invoice.totals.total_with_vat,
            )
            for invoice in selected[:filters.limit]
        ]
        return InvoiceListResult(invoices=summaries, count=len(summaries))

    async def list_expenses(self, filters: ExpenseListFilters, user_id: str) -> ExpenseListResult:
        expenses = await self._repository.list_expenses(user_id)
        category = (filters.category or "").lower()
        selected = [
            expense for expense in expenses
            if (not category or category in expense.category.lower())
            and (filters.from_date is None or expense.expense_date >= filters.from_date)
            and (filters.to_date is None or expense.expense_date <= filters.to_date)
        ]
        selected.sort(key=lambda expense: (expense.expense_date, expense.created_at), reverse=True)
        selected = selected[:filters.limit]

        total = to_cents(sum((expense.total_amount for expense in selected), Decimal("0")))
        return ExpenseListResult(
            expenses=[
                ExpenseSummary(
                    id=expense.id,
                    category=expense.category,
                    description=expense.description,
                    amount_excl=expense.amount_excl,
                    vat_amount=to_cents(expense.vat_amount),
                    total_amount=to_cents(expense.total_amount),
                    expense_date=expense.expense_date,
                )
                for expense in selected
            ],
            count=len(selected),
            total=total,
            summary=f"{len(selected)} uitgaven gevonden, totaal {format_euro(total)}",
        )

    async def compute_btw(self, period: BtwPeriod, user_id: str) -> BtwSummary:
        period_from, period_to = period_range(period, self._today())

        revenue = {rate: Decimal("0") for rate in VatRate}
        for invoice in await self._repository.list_invoices(user_id):
            if not period_from <= invoice.issue_date <= period_to:
                continue
            factor = _discount_factor(invoice.discount)
            for line in invoice.lines:
                revenue[line.vat_rate] += line.amount * factor

        vat_deductible = Decimal("0")
        expenses_total = Decimal("0")
        for expense in await self._repository.list_expenses(user_id):
            if period_from <= expense.expense_date <= period_to:
                expenses_total += expense.amount_excl
                vat_deductible += expense.vat_amount

        vat_21 = to_cents(revenue[VatRate.HIGH] * VatRate.HIGH.percentage)
        vat_9 = to_cents(revenue[VatRate.LOW] * VatRate.LOW.percentage)
        revenue_total = to_cents(sum(revenue.values(), Decimal("0")))
        vat_charged = vat_21 + vat_9
        vat_deductible = to_cents(vat_deductible)
        net_vat = vat_charged - vat_deductible

        summary = (
            f"Voor de periode {format_dutch_date(period_from)} tot {format_dutch_date(period_to)}: "
            f"Omzet {format_euro(revenue_total)}, "
            f"BTW verschuldigd {format_euro(vat_charged)}, "
            f"Voorbelasting {format_euro(vat_deductible)}, "
            f"Netto te betalen {format_euro(net_vat)}"
        )
        return BtwSummary(
            period_from=period_from,
            period_to=period_to,
            revenue_total=revenue_total,
            revenue_21=to_cents(revenue[VatRate.HIGH]),
            revenue_9=to_cents(revenue[VatRate.LOW]),
            revenue_0=to_cents(revenue[VatRate.ZERO]),
            vat_charged=vat_charged,
            vat_charged_21=vat_21,
            vat_charged_9=vat_9,
            vat_deductible=vat_deductible,
            net_vat=net_vat,
            expenses_total=to_cents(expenses_total),
            summary=summary,
        )
