"""
Bookkeeping Records and Tool Results

These are the records the creation tools produce (clients, invoices,
quotations, expenses) and the structured results they hand back to the
drafting engine.

DESIGN DECISION: Money is always Decimal and rounded to cents only at the
edges (totals), never per intermediate multiplication.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Iterable, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from zzp_assistant.models.drafts import (
    LineItem,
    PaymentMethod,
    Unit,
    VatRate,
    utc_now,
)


CENT = Decimal("0.01")


def to_cents(value: Decimal) -> Decimal:
    """Round a money amount to whole cents (half up)."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _new_id() -> str:
    return uuid4().hex


class InvoiceStatus(str, Enum):
    """Invoice e-mail/payment status as kept by the ledger."""
    CONCEPT = "CONCEPT"
    VERZONDEN = "VERZONDEN"
    BETAALD = "BETAALD"
    HERINNERING = "HERINNERING"


class BtwPeriod(str, Enum):
    """Periods a VAT summary can cover."""
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


# =============================================================================
# LEDGER RECORDS
# =============================================================================

class Client(BaseModel):
    """A client (relatie) of one tenant."""

    id: str = Field(default_factory=_new_id)
    user_id: str
    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[str] = None
    address: str = ""
    postal_code: str = ""
    city: str = ""
    kvk_number: Optional[str] = None
    btw_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)


class DocumentLine(BaseModel):
    """A stored line on an invoice or quotation."""

    description: str
    quantity: Decimal
    price: Decimal
    amount: Decimal
    unit: Unit = Unit.STUK
    vat_rate: VatRate = VatRate.HIGH

    @classmethod
    def from_item(cls, item: LineItem) -> "DocumentLine":
        return cls(
            description=item.description,
            quantity=item.quantity,
            price=item.price,
            amount=item.line_total,
            unit=item.unit,
            vat_rate=item.vat_rate,
        )

    @property
    def vat_amount(self) -> Decimal:
        return self.amount * self.vat_rate.percentage


class DocumentTotals(BaseModel):
    """Subtotal, VAT and grand total of a document, in cents."""

    subtotal: Decimal
    vat_amount: Decimal
    total_with_vat: Decimal

    @classmethod
    def from_lines(
        cls,
        lines: Iterable[DocumentLine],
        discount: Optional[Decimal] = None,
    ) -> "DocumentTotals":
        """Totals over the lines; a discount percentage applies to every line."""
        lines = list(lines)
        factor = Decimal("1") - (Decimal(discount) / Decimal("100") if discount else Decimal("0"))
        subtotal = sum((line.amount for line in lines), Decimal("0")) * factor
        vat_amount = sum((line.vat_amount for line in lines), Decimal("0")) * factor
        return cls(
            subtotal=to_cents(subtotal),
            vat_amount=to_cents(vat_amount),
            total_with_vat=to_cents(subtotal + vat_amount),
        )


class Invoice(BaseModel):
    """A stored invoice (factuur)."""

    id: str = Field(default_factory=_new_id)
    user_id: str
    client_id: str
    client_name: str
    invoice_num: str
    issue_date: date
    due_date: date
    status: InvoiceStatus = InvoiceStatus.CONCEPT
    lines: list[DocumentLine] = Field(default_factory=list)
    totals: DocumentTotals
    discount: Optional[Decimal] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)


class Quotation(BaseModel):
    """A stored quotation (offerte)."""

    id: str = Field(default_factory=_new_id)
    user_id: str
    client_id: str
    client_name: str
    quote_num: str
    issue_date: date
    valid_until: date
    lines: list[DocumentLine] = Field(default_factory=list)
    totals: DocumentTotals
    discount: Optional[Decimal] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)


class Expense(BaseModel):
    """A stored expense (uitgave)."""

    id: str = Field(default_factory=_new_id)
    user_id: str
    category: str
    description: str
    vendor: Optional[str] = None
    amount_excl: Decimal
    vat_rate: VatRate = VatRate.HIGH
    expense_date: date
    payment_method: Optional[PaymentMethod] = None
    receipt_url: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def vat_amount(self) -> Decimal:
        return self.amount_excl * self.vat_rate.percentage

    @property
    def total_amount(self) -> Decimal:
        return self.amount_excl + self.vat_amount


# =============================================================================
# TOOL RESULTS
# =============================================================================

class ClientToolResult(BaseModel):
    """Result of create_client_if_missing."""

    success: bool
    already_exists: bool = False
    client: Optional[Client] = None
    message: str = ""


class DocumentToolResult(BaseModel):
    """
    Result of creating an invoice or quotation.

    needs_client_creation is the distinguished "referenced client not
    found" failure; the caller turns it into a clarifying prompt.
    """

    success: bool
    invoice: Optional[Invoice] = None
    quotation: Optional[Quotation] = None
    needs_client_creation: bool = False
    needs_more_info: bool = False
    message: str = ""


class ExpenseToolResult(BaseModel):
    """Result of create_expense."""

    success: bool
    expense: Optional[Expense] = None
    message: str = ""


# =============================================================================
# QUERY FILTERS AND RESULTS
# =============================================================================

class InvoiceListFilters(BaseModel):
    status: Optional[InvoiceStatus] = None
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    client_name: Optional[str] = None
    limit: int = Field(default=10, ge=1, le=100)


class ExpenseListFilters(BaseModel):
    category: Optional[str] = None
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    limit: int = Field(default=10, ge=1, le=100)


class InvoiceSummary(BaseModel):
    """An invoice as shown in a list answer."""

    id: str
    invoice_num: str
    client_name: str
    issue_date: date
    due_date: date
    status: InvoiceStatus
    subtotal: Decimal
    vat_amount: Decimal
    total: Decimal


class InvoiceListResult(BaseModel):
    success: bool = True
    invoices: list[InvoiceSummary] = Field(default_factory=list)
    count: int = 0


class ExpenseSummary(BaseModel):
    id: str
    category: str
    description: str
    amount_excl: Decimal
    vat_amount: Decimal
    total_amount: Decimal
    expense_date: date


class ExpenseListResult(BaseModel):
    success: bool = True
    expenses: list[ExpenseSummary] = Field(default_factory=list)
    count: int = 0
    total: Decimal = Decimal("0.00")
    summary: str = ""


class BtwSummary(BaseModel):
    """
    VAT summary for a period.

    vat_deductible is the VAT paid on expenses (voorbelasting);
    net_vat is what is owed to the tax office.
    """

    success: bool = True
    period_from: date
    period_to: date
    revenue_total: Decimal
    revenue_21: Decimal
    revenue_9: Decimal
    revenue_0: Decimal
    vat_charged: Decimal
    vat_charged_21: Decimal
    vat_charged_9: Decimal
    vat_deductible: Decimal
    net_vat: Decimal
    expenses_total: Decimal
    summary: str


# =============================================================================
# PARSER OUTPUT
# =============================================================================

class ParsedClient(BaseModel):
    """Client details recognised in a free-text message."""

    name: Optional[str] = None
    email: Optional[str] = None
    kvk_number: Optional[str] = None
    btw_id: Optional[str] = None
    address: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None


class ParsedExpense(BaseModel):
    """Expense details recognised in a free-text message."""

    vendor: Optional[str] = None
    category: Optional[str] = None
    amount: Optional[Decimal] = None
    vat_rate: Optional[VatRate] = None
    expense_date: Optional[date] = None
    description: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
