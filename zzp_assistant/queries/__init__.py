"""Stateless query handlers (invoice and expense listings, VAT summaries)."""

from zzp_assistant.queries.executor import (
    QueryExecutor,
    btw_period_from_message,
    expense_filters_from_message,
    invoice_filters_from_message,
)

__all__ = [
    "QueryExecutor",
    "btw_period_from_message",
    "expense_filters_from_message",
    "invoice_filters_from_message",
]
