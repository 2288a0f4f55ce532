"""
Field Extractors

Deterministic pattern-based extraction of draft fields from one chat
message. No model inference is involved anywhere.

DESIGN DECISION: Extractors propose, they never decide. ``extract_fields``
returns candidate updates for fields that are still absent; the draft's
merge policy and the validator have the final word.
"""

import re
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Optional

from zzp_assistant.models.drafts import (
    DraftIntent,
    EMAIL_PATTERN,
    LineItemDraft,
    PaymentMethod,
    VatRate,
)
from zzp_assistant.models.records import ParsedClient, ParsedExpense
from zzp_assistant.parsing.normalizers import (
    NUMBER,
    extract_vat_rate,
    infer_unit,
    is_unit_word,
    normalize_decimal,
    parse_date,
    strip_vat_tokens,
)


# A line item as it comes out of the parser (same shape as in a draft)
ParsedLineItem = LineItemDraft

DEFAULT_DESCRIPTION = "Dienstverlening"
DEFAULT_MAX_NAME_LENGTH = 50

# Split on , ; and newlines, except a comma between two digits
_CLAUSE_SPLIT = re.compile(r"(?<!\d),|,(?!\d)|[;\n]")

# "320 stops @ 1.25", "40 uur x 75 euro", "10 @ €75"
_ITEM_WITH_OPERATOR = re.compile(
    rf"(?P<qty>{NUMBER})\s*"
    r"(?P<unit>x|stops?|uur|uren|hours?|stuks?|km|projecten?|licenties?|licenses?|services?)?\s*"
    r"[@xX×]\s*€?\s*"
    rf"(?P<price>{NUMBER})",
    re.IGNORECASE,
)

# "5 stuks beschrijving €2,50", "320 stops price 1.25"
_ITEM_WITH_TEXT = re.compile(
    rf"(?P<qty>{NUMBER})\s+(?P<word>[^\W\d_]+)(?:\s+(?P<text>.*?))?\s*€?\s*(?P<price>{NUMBER})\s*(?:euro|eur)?\s*$",
    re.IGNORECASE,
)

_FILLER_WORDS = frozenset({
    "price", "prijs", "per", "à", "a", "voor", "euro", "eur", "@",
})

# Leading words that introduce a request rather than carry data
_COMMAND_WORDS = frozenset({
    "maak", "maken", "create", "add", "new", "nieuw", "nieuwe", "voeg", "toe",
    "een", "a", "an", "graag", "wil", "ik", "i", "want", "to", "please",
    "klant", "client", "relatie", "toevoegen", "aanmaken", "aan",
    "factuur", "invoice", "offerte", "quotation", "quote", "aanbieding",
})

_VOOR_NAME = re.compile(
    r"\b(?:voor|for)\s+(?P<name>[^\W\d_][\w\s\-&']*?)"
    r"(?=\s*[,:.;]|\s+\d|\s*€|\s+bedrag\b|\s+amount\b|\s*$)",
    re.IGNORECASE,
)
_NAME_BEFORE_AMOUNT = re.compile(
    r"^(?P<name>[^\W\d_][^\W\d_\s&'\-]*(?:[\s&'\-]+[^\W\d_]+)*?)\s+(?:€|bedrag\b|\d)",
    re.IGNORECASE,
)

_AMOUNT = re.compile(
    rf"(?:\bbedrag\b|\bamount\b|€)\s*[:=]?\s*€?\s*(?P<amount>{NUMBER})",
    re.IGNORECASE,
)
_BARE_AMOUNT = re.compile(rf"^\s*€?\s*(?P<amount>{NUMBER})\s*(?:euro|eur)?\s*$", re.IGNORECASE)
_DAYS = re.compile(r"\b(?P<days>\d{1,3})\s*dagen\b", re.IGNORECASE)

_EMAIL = re.compile(EMAIL_PATTERN.strip("^$"))
_KVK = re.compile(r"\bkvk\s*(?:nummer|nr\.?)?\s*[:=]?\s*(?P<kvk>\d{8})\b", re.IGNORECASE)
_BTW_ID = re.compile(r"\bbtw[-\s]?(?:id|nummer)\s*[:=]?\s*(?P<btw>NL\d{9}B\d{2})\b", re.IGNORECASE)
_POSTAL_CITY = re.compile(
    r"\b(?P<postal>\d{4})\s?(?P<letters>[A-Z]{2})\b(?:\s*,?\s*(?P<city>[A-Z][^\W\d_]+(?:[\s\-][A-Z][^\W\d_]+)*))?"
)
_ADDRESS = re.compile(
    r"(?P<address>[A-Z][^\W\d_]+(?:[\s\-][^\W\d_]+)*\s\d{1,5}(?:\s?[a-zA-Z])?)\b(?!\s?[A-Z]{2}\b)"
)

_EXPENSE_CATEGORIES: tuple[tuple[re.Pattern, str], ...] = (
    (re.compile(r"tank|benzine|diesel|brandstof", re.IGNORECASE), "Brandstof"),
    (re.compile(r"\b(?:koffie|lunch|diner|restaurant|horeca)\b", re.IGNORECASE), "Horeca"),
    (re.compile(r"\b(?:trein|ov|ns|bus|parkeren|taxi)\b", re.IGNORECASE), "Reiskosten"),
    (re.compile(r"\b(?:software|abonnement|licentie|hosting)\b", re.IGNORECASE), "Software"),
    (re.compile(r"kantoor|printer|papier", re.IGNORECASE), "Kantoorartikelen"),
)

_PAYMENT_METHODS: tuple[tuple[re.Pattern, PaymentMethod], ...] = (
    (re.compile(r"\b(?:contant|cash)\b", re.IGNORECASE), PaymentMethod.CASH),
    (re.compile(r"\b(?:pin|pinnen|gepind|kaart|card|creditcard)\b", re.IGNORECASE), PaymentMethod.CARD),
    (re.compile(r"\b(?:overgemaakt|overboeking|bank|transfer)\b", re.IGNORECASE), PaymentMethod.BANK_TRANSFER),
)

_EXPENSE_NOISE = re.compile(
    r"\b(?:uitgave|uitgaven|kosten|expense|bonnetje|registreer|boek|nieuwe|toevoegen|"
    r"op|vandaag|gisteren|morgen|today|yesterday|tomorrow|euro|eur|betaald|met)\b",
    re.IGNORECASE,
)


# =============================================================================
# GENERIC HELPERS
# =============================================================================

def strip_command_words(text: str) -> str:
    """
    Drop the leading request words of a message.

    "Nieuwe klant: Jan de Vries" -> "Jan de Vries";
    "Maak een offerte" -> "".
    """
    words = text.strip().split()
    while words and words[0].lower().strip(":,.!") in _COMMAND_WORDS:
        words.pop(0)
    return " ".join(words).strip(" :,.-")


def _clean_words(text: str) -> str:
    words = [
        word for word in text.split()
        if word.lower().strip(".,:") not in _FILLER_WORDS
    ]
    return " ".join(words).strip(" :,.-€")


def _split_clauses(text: str) -> list[str]:
    return [clause.strip() for clause in _CLAUSE_SPLIT.split(text) if clause and clause.strip()]


# =============================================================================
# LINE ITEMS
# =============================================================================

def parse_line_items(text: str) -> list[ParsedLineItem]:
    """
    Parse invoice/quotation lines from natural language.

    Supports, per clause:
    - "320 stops @ 1.25 btw 21%"
    - "40 uur x 75 euro"
    - "5 stops price 2,50"
    """
    items = []
    for clause in _split_clauses(text):
        item = _parse_line_item(clause)
        if item is not None:
            items.append(item)
    return items


def _parse_line_item(clause: str) -> Optional[ParsedLineItem]:
    vat_rate = extract_vat_rate(clause)
    body = strip_vat_tokens(clause).strip()

    match = _ITEM_WITH_OPERATOR.search(body)
    if match:
        quantity = normalize_decimal(match.group("qty"))
        price = normalize_decimal(match.group("price"))
        if quantity is None or price is None:
            return None
        remainder = (body[:match.start()] + " " + body[match.end():]).strip()
        if ":" in remainder:
            remainder = remainder.rsplit(":", 1)[1]
        description = _clean_words(remainder) or DEFAULT_DESCRIPTION
        return ParsedLineItem(
            description=description,
            quantity=quantity,
            price=price,
            unit=infer_unit(clause),
            vat_rate=vat_rate if vat_rate is not None else VatRate.HIGH,
        )

    match = _ITEM_WITH_TEXT.search(body)
    if match:
        quantity = normalize_decimal(match.group("qty"))
        price = normalize_decimal(match.group("price"))
        if quantity is None or price is None:
            return None
        word = match.group("word")
        parts = [] if is_unit_word(word) else [word]
        parts.append(match.group("text") or "")
        description = _clean_words(" ".join(parts)) or DEFAULT_DESCRIPTION
        return ParsedLineItem(
            description=description,
            quantity=quantity,
            price=price,
            unit=infer_unit(clause),
            vat_rate=vat_rate if vat_rate is not None else VatRate.HIGH,
        )

    return None


# =============================================================================
# CLIENT NAME AND AMOUNT
# =============================================================================

def extract_client_name(text: str) -> Optional[str]:
    """
    Find the client a document is for.

    Tries "voor X" / "for X" first, then a name directly followed by an
    amount at the start of the message ("Acme 500").
    """
    match = _VOOR_NAME.search(text)
    if match:
        name = match.group("name").strip()
        if name:
            return name

    match = _NAME_BEFORE_AMOUNT.match(strip_command_words(text))
    if match:
        name = strip_command_words(match.group("name"))
        if name:
            return name

    return None


def extract_amount(text: str) -> Optional[Decimal]:
    """Find "bedrag 500", "€ 500" or a message that is just a number."""
    match = _AMOUNT.search(text) or _BARE_AMOUNT.match(text)
    if not match:
        return None
    return normalize_decimal(match.group("amount"))


# =============================================================================
# CLIENTS
# =============================================================================

def parse_client(text: str) -> ParsedClient:
    """
    Parse client details.

    Examples:
    - "Acme BV, info@acme.nl, KVK 12345678"
    - "Jan de Vries, Kerkstraat 12, 1234 AB Amsterdam"
    """
    client = ParsedClient()
    rest = text

    match = _EMAIL.search(text)
    if match:
        client.email = match.group(0)
        rest = rest.replace(match.group(0), " ")

    match = _KVK.search(text)
    if match:
        client.kvk_number = match.group("kvk")
        rest = rest.replace(match.group(0), " ")

    match = _BTW_ID.search(text)
    if match:
        client.btw_id = match.group("btw").upper()
        rest = rest.replace(match.group(0), " ")

    match = _POSTAL_CITY.search(text)
    if match:
        client.postal_code = f"{match.group('postal')}{match.group('letters')}"
        if match.group("city"):
            client.city = match.group("city")
        rest = rest.replace(match.group(0), " ")

    match = _ADDRESS.search(rest)
    if match:
        client.address = match.group("address").strip()
        rest = rest.replace(match.group(0), " ")

    leading = strip_command_words(rest).split(",", 1)[0]
    name = strip_command_words(leading).strip()
    if name and re.search(r"[^\W\d_]", name):
        client.name = name

    return client


# =============================================================================
# EXPENSES
# =============================================================================

def parse_expense(text: str, today: Optional[date] = None) -> ParsedExpense:
    """
    Parse an expense.

    Examples:
    - "Koffie 15 euro 9% btw"
    - "Tankstation 50,25 vandaag"
    """
    expense = ParsedExpense()

    expense.vat_rate = extract_vat_rate(text)
    expense.expense_date = parse_date(text, today=today)

    body = strip_vat_tokens(text)
    body = re.sub(r"\b\d{4}-\d{2}-\d{2}\b|\b\d{1,2}[-/]\d{1,2}[-/]\d{4}\b", " ", body)

    amount_match = re.search(rf"€?\s*(?P<amount>{NUMBER})\s*(?:euro|eur)?", body, re.IGNORECASE)
    if amount_match:
        expense.amount = normalize_decimal(amount_match.group("amount"))
        body = body[:amount_match.start()] + " " + body[amount_match.end():]

    for pattern, method in _PAYMENT_METHODS:
        match = pattern.search(body)
        if match:
            expense.payment_method = method
            body = body[:match.start()] + " " + body[match.end():]
            break

    remaining = " ".join(_EXPENSE_NOISE.sub(" ", body).split()).strip(" :,.-€")
    if remaining:
        expense.description = remaining

    for pattern, category in _EXPENSE_CATEGORIES:
        if pattern.search(text):
            expense.category = category
            if remaining:
                expense.vendor = remaining
            break

    return expense


# =============================================================================
# PER-INTENT CANDIDATE UPDATES
# =============================================================================

def extract_fields(
    intent: DraftIntent,
    message: str,
    existing: Optional[dict[str, Any]] = None,
    max_name_length: int = DEFAULT_MAX_NAME_LENGTH,
    replaceable: Iterable[str] = (),
) -> dict[str, Any]:
    """
    Candidate updates for a draft, keyed by camelCase field name.

    Fields already present in ``existing`` are never proposed, except the
    ``replaceable`` ones (present but invalid), which are read as if absent.
    """
    replaceable = set(replaceable)
    existing = {
        key: value
        for key, value in (existing or {}).items()
        if key not in replaceable
    }
    intent = DraftIntent(intent)

    if intent == DraftIntent.CREATE_CLIENT:
        updates = _client_updates(message, max_name_length)
    else:
        updates = _document_updates(intent, message, existing, max_name_length)

    return {
        key: value
        for key, value in updates.items()
        if value is not None and key not in existing
    }


def _client_updates(message: str, max_name_length: int) -> dict[str, Any]:
    parsed = parse_client(message)
    updates = {
        "name": parsed.name,
        "email": parsed.email,
        "address": parsed.address,
        "postalCode": parsed.postal_code,
        "city": parsed.city,
        "kvkNumber": parsed.kvk_number,
        "btwId": parsed.btw_id,
    }
    if not updates["name"]:
        cleaned = strip_command_words(message)
        if 0 < len(message.strip()) < max_name_length and cleaned and "@" not in cleaned:
            updates["name"] = cleaned
    return updates


def _document_updates(
    intent: DraftIntent,
    message: str,
    existing: dict[str, Any],
    max_name_length: int,
) -> dict[str, Any]:
    updates: dict[str, Any] = {"clientName": extract_client_name(message)}

    items = parse_line_items(message)
    if items:
        updates["items"] = [item.model_dump(by_alias=True) for item in items]
    elif "amount" not in existing:
        updates["amount"] = extract_amount(message)

    vat_rate = extract_vat_rate(message)
    if vat_rate is not None:
        updates["vatRate"] = vat_rate.value

    days = _DAYS.search(message)
    if days:
        key = "dueInDays" if intent == DraftIntent.CREATE_FACTUUR else "validForDays"
        updates[key] = int(days.group("days"))

    if "clientName" not in existing and not updates["clientName"]:
        cleaned = strip_command_words(message)
        if (
            0 < len(message.strip()) < max_name_length
            and cleaned
            and not re.search(r"\d", cleaned)
        ):
            updates["clientName"] = cleaned

    return updates
