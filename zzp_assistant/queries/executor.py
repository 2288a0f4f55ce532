"""
Query Execution Engine

DESIGN DECISION: Query answers are DETERMINISTIC.
The router turns a message into filters with simple keyword rules; this
engine runs those filters against the real ledger through the bookkeeping
tools. Nothing is estimated or invented: an empty ledger gives an empty
answer.

Queries never touch drafts.
"""

from datetime import date
from typing import Callable, Optional

from zzp_assistant.audit import AuditLogger
from zzp_assistant.models.records import (
    BtwPeriod,
    BtwSummary,
    ExpenseListFilters,
    ExpenseListResult,
    InvoiceListFilters,
    InvoiceListResult,
    InvoiceStatus,
)
from zzp_assistant.tools import CreationTools, period_range


def invoice_filters_from_message(
    message: str,
    today: date,
    limit: int = 10,
) -> InvoiceListFilters:
    """
    Status and period filters recognised in a listing request.

    "onbetaald" is checked before "betaald" because it contains it.
    """
    text = (message or "").lower()
    status: Optional[InvoiceStatus] = None
    if "onbetaald" in text or "unpaid" in text:
        status = InvoiceStatus.VERZONDEN
    elif "betaald" in text or "paid" in text:
        status = InvoiceStatus.BETAALD
    elif "concept" in text or "draft" in text:
        status = InvoiceStatus.CONCEPT

    from_date = to_date = None
    if "deze maand" in text or "this month" in text:
        from_date, to_date = period_range(BtwPeriod.MONTH, today)

    return InvoiceListFilters(status=status, from_date=from_date, to_date=to_date, limit=limit)


def expense_filters_from_message(
    message: str,
    today: date,
    limit: int = 10,
) -> ExpenseListFilters:
    text = (message or "").lower()
    from_date = to_date = None
    if "deze maand" in text or "this month" in text:
        from_date, to_date = period_range(BtwPeriod.MONTH, today)
    return ExpenseListFilters(from_date=from_date, to_date=to_date, limit=limit)


def btw_period_from_message(message: str) -> BtwPeriod:
    """Month, quarter or year; the quarter is the default."""
    text = (message or "").lower()
    if "deze maand" in text or "this month" in text:
        return BtwPeriod.MONTH
    if "kwartaal" in text or "quarter" in text:
        return BtwPeriod.QUARTER
    if "jaar" in text or "year" in text:
        return BtwPeriod.YEAR
    return BtwPeriod.QUARTER


class QueryExecutor:
    """
    Executes listing and VAT queries for one tenant at a time.

    GUARANTEES:
    - Only returns real data from the ledger
    - Never reads or changes a draft
    - Every query is audited with its result count
    """

    def __init__(
        self,
        tools: CreationTools,
        audit_logger: Optional[AuditLogger] = None,
        today: Callable[[], date] = date.today,
        default_limit: int = 10,
    ):
        self._tools = tools
        self._audit = audit_logger or AuditLogger()
        self._today = today
        self._default_limit = default_limit

    async def list_invoices(
        self,
        message: str,
        user_id: str,
        request_id: str,
    ) -> InvoiceListResult:
        filters = invoice_filters_from_message(message, self._today(), self._default_limit)
        result = await self._tools.list_invoices(filters, user_id)
        await self._audit.log_query_executed(request_id, user_id, "query_invoices", result.count)
        return result

    async def list_expenses(
        self,
        message: str,
        user_id: str,
        request_id: str,
    ) -> ExpenseListResult:
        filters = expense_filters_from_message(message, self._today(), self._default_limit)
        result = await self._tools.list_expenses(filters, user_id)
        await self._audit.log_query_executed(request_id, user_id, "query_expenses", result.count)
        return result

    async def compute_btw(
        self,
        message: str,
        user_id: str,
        request_id: str,
    ) -> BtwSummary:
        period = btw_period_from_message(message)
        summary = await self._tools.compute_btw(period, user_id)
        await self._audit.log_query_executed(request_id, user_id, f"compute_btw:{period.value}", 1)
        return summary
