"""
Intent Classifier

Keyword-group classification in strict priority order. Pure functions,
no side effects, no model inference.

Priority (first matching tier wins):
1. quotation            -> create_offerte
2. invoice              -> create_factuur
3. client creation      -> create_client
4. query, on a listing phrase ("toon", "welke facturen", "laat ... zien"):
   VAT vocabulary       -> compute_btw
   expense listing      -> query_expenses
   anything else        -> query_invoices
5. expense              -> create_uitgave
6. VAT                  -> compute_btw
7. settings             -> update_settings
8. anything else        -> help_question

"facturen" is not an invoice keyword, so "toon facturen" reaches the
query tier while "show invoices" stays in the invoice tier.
"""

import re
from typing import Optional

from zzp_assistant.models.drafts import Intent
from zzp_assistant.models.results import ClassificationResult, FieldCorrection


def _group(*patterns: str) -> re.Pattern:
    return re.compile("|".join(patterns), re.IGNORECASE)


# (pattern, intent, confidence), checked before the query tier
_CREATION_GROUPS: tuple[tuple[re.Pattern, Intent, float], ...] = (
    (
        _group(r"\bofferte", r"\bquotation", r"\bquote\b", r"\baanbieding"),
        Intent.CREATE_OFFERTE,
        0.9,
    ),
    (
        _group(r"\bfactuur", r"\binvoice", r"\bfacturen\s+maken"),
        Intent.CREATE_FACTUUR,
        0.9,
    ),
    (
        _group(
            r"\bnieuwe\s+klant",
            r"\bklant\s+toevoegen",
            r"\bklant\s+aanmaken",
            r"\brelatie",
            r"\badd\s+client",
            r"\bcreate\s+client",
            r"\bnew\s+client",
        ),
        Intent.CREATE_CLIENT,
        0.85,
    ),
)

_VAT = _group(r"\bbtw\b", r"\bvat\b", r"\bbelasting", r"\baangifte")

_EXPENSE_LISTING = _group(
    r"\btoon\s+(?:\w+\s+)?uitgaven",
    r"\bwelke\s+(?:\w+\s+)?uitgaven",
    r"\bmijn\s+(?:\w+\s+)?uitgaven",
    r"\bshow\s+(?:\w+\s+)?expenses",
    r"\blaat\b.*\buitgaven\b.*\bzien\b",
)

_LISTING = _group(
    _EXPENSE_LISTING.pattern,
    r"\bwelke\s+(?:\w+\s+)?facturen",
    r"\bmijn\s+(?:\w+\s+)?facturen",
    r"\blaat\b.*\bzien\b",
    r"\btoon\b",
    r"\bshow\b",
)

# (pattern, intent, confidence), checked after the query tier
_LATE_GROUPS: tuple[tuple[re.Pattern, Intent, float], ...] = (
    (
        _group(r"\buitgave", r"\bkosten\b", r"\bexpense", r"\bbonnetje"),
        Intent.CREATE_UITGAVE,
        0.85,
    ),
    (_VAT, Intent.COMPUTE_BTW, 0.75),
    (
        _group(r"\bwachtwoord", r"\bpassword", r"\binstellingen", r"\bsettings"),
        Intent.UPDATE_SETTINGS,
        0.8,
    ),
)

ACTION_TYPES: dict[Intent, str] = {
    Intent.CREATE_FACTUUR: "create_invoice",
    Intent.CREATE_OFFERTE: "create_offerte",
    Intent.CREATE_CLIENT: "create_client",
    Intent.CREATE_UITGAVE: "create_expense",
    Intent.QUERY_INVOICES: "query_invoices",
    Intent.QUERY_EXPENSES: "query_expenses",
    Intent.COMPUTE_BTW: "compute_btw",
    Intent.UPDATE_SETTINGS: "settings_guidance",
    Intent.HELP_QUESTION: "answer",
}

CANCEL_WORDS = frozenset({"annuleren", "cancel", "stop", "afbreken", "nee"})
AFFIRMATIVE_WORDS = frozenset({"ja", "yes", "ok", "oke", "oké", "graag", "ja graag", "doe maar", "prima"})

# Correction vocabulary: spoken field name -> generic draft field
CORRECTION_FIELDS: dict[str, str] = {
    "klant": "clientName",
    "klantnaam": "clientName",
    "client": "clientName",
    "naam": "clientName",
    "name": "clientName",
    "bedrag": "amount",
    "amount": "amount",
    "btw": "vatRate",
    "vat": "vatRate",
    "email": "email",
    "e-mail": "email",
    "stad": "city",
    "city": "city",
    "plaats": "city",
    "adres": "address",
    "address": "address",
    "postcode": "postalCode",
    "dagen": "dueInDays",
    "betaaltermijn": "dueInDays",
    "geldigheid": "dueInDays",
}

_CORRECTION = re.compile(
    r"^\s*(?:wijzig|verander|corrigeer|change|update)\s+"
    r"(?:de\s+|het\s+|the\s+)?(?P<field>[\w\-]+)\s*"
    r"(?:\s(?:naar|in|to)\s|=|:)\s*"
    r"(?P<value>.+?)\s*$",
    re.IGNORECASE,
)


def classify(message: str) -> ClassificationResult:
    """Map a message onto exactly one intent."""
    text = (message or "").lower()
    for pattern, intent, confidence in _CREATION_GROUPS:
        if pattern.search(text):
            return _result(intent, confidence)

    if _LISTING.search(text):
        if _VAT.search(text):
            return _result(Intent.COMPUTE_BTW, 0.75)
        if _EXPENSE_LISTING.search(text):
            return _result(Intent.QUERY_EXPENSES, 0.8)
        return _result(Intent.QUERY_INVOICES, 0.7)

    for pattern, intent, confidence in _LATE_GROUPS:
        if pattern.search(text):
            return _result(intent, confidence)
    return _result(Intent.HELP_QUESTION, 0.5)


def _result(intent: Intent, confidence: float) -> ClassificationResult:
    return ClassificationResult(
        intent=intent,
        action_type=ACTION_TYPES.get(intent),
        confidence=confidence,
    )


def is_cancel_message(message: str) -> bool:
    """True when the whole message is one of the cancel words."""
    return (message or "").strip().lower().strip("!.") in CANCEL_WORDS


def is_affirmative_message(message: str) -> bool:
    """True when the whole message is a short "yes"."""
    return (message or "").strip().lower().strip("!.") in AFFIRMATIVE_WORDS


def detect_correction(message: str) -> Optional[FieldCorrection]:
    """
    Recognise "wijzig <veld> naar <waarde>" and its English variants.

    Unknown field words give None so the message is classified normally.
    """
    match = _CORRECTION.match(message or "")
    if not match:
        return None
    raw_field = match.group("field").lower()
    target = CORRECTION_FIELDS.get(raw_field)
    if target is None:
        return None
    value = match.group("value").strip().strip("'\"")
    if not value:
        return None
    return FieldCorrection(target=target, value=value, raw_field=raw_field)
