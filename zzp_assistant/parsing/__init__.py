"""Deterministic extraction of fields from free text."""

from zzp_assistant.parsing.extractors import (
    DEFAULT_DESCRIPTION,
    ParsedLineItem,
    extract_amount,
    extract_client_name,
    extract_fields,
    parse_client,
    parse_expense,
    parse_line_items,
)
from zzp_assistant.parsing.normalizers import (
    extract_vat_rate,
    infer_unit,
    normalize_decimal,
    normalize_vat_rate,
    parse_date,
)

__all__ = [
    "DEFAULT_DESCRIPTION",
    "ParsedLineItem",
    "extract_amount",
    "extract_client_name",
    "extract_fields",
    "extract_vat_rate",
    "infer_unit",
    "normalize_decimal",
    "normalize_vat_rate",
    "parse_client",
    "parse_date",
    "parse_expense",
    "parse_line_items",
]
