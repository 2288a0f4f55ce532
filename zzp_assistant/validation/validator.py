"""
Two-Stage Draft Validation

DESIGN DECISION: A draft is checked against the COMPLETE model of its
intent in two stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence
- Type, shape and positivity constraints
- The pydantic errors are sorted into "missing" (drives a question) and
  "invalid" (drives a targeted re-ask)

STAGE 2 - SEMANTIC VALIDATION:
- Business checks a schema cannot express (an expense dated in the future)
- Only runs when stage 1 passed

IMPORTANT: Validation NEVER silently fixes issues. An invalid value stays
in the draft until the user corrects it.
"""

from datetime import date
from typing import Any, Callable, Optional, Union

from pydantic import BaseModel, ValidationError

from zzp_assistant.models.drafts import (
    ClientDraft,
    DraftFieldsBase,
    ExpenseDraft,
    InvoiceDraft,
    OfferteDraft,
    ValidationOutcome,
    is_present,
)


UNKNOWN_INTENT_ERROR = "Onbekende intent"

_SCHEMAS: dict[str, type[BaseModel]] = {
    "create_client": ClientDraft,
    "create_factuur": InvoiceDraft,
    "create_offerte": OfferteDraft,
    "create_uitgave": ExpenseDraft,
}

_DOCUMENT_INTENTS = frozenset({"create_factuur", "create_offerte"})

# Required string fields; an empty value counts as missing, not invalid
_REQUIRED_STRINGS = frozenset({"name", "clientName", "category"})

# Dutch reasons per pydantic error type, formatted with the error context
_REASONS: dict[str, str] = {
    "greater_than": "moet groter zijn dan {gt}",
    "greater_than_equal": "moet minstens {ge} zijn",
    "less_than": "moet kleiner zijn dan {lt}",
    "less_than_equal": "mag hoogstens {le} zijn",
    "string_too_long": "is te lang (maximaal {max_length} tekens)",
    "string_too_short": "mag niet leeg zijn",
    "too_short": "mag niet leeg zijn",
    "decimal_parsing": "is geen geldig getal",
    "decimal_type": "is geen geldig getal",
    "int_parsing": "is geen geheel getal",
    "int_from_float": "is geen geheel getal",
    "date_parsing": "is geen geldige datum",
    "date_from_datetime_parsing": "is geen geldige datum",
    "enum": "is geen geldige keuze",
}
DEFAULT_REASON = "is ongeldig"

FIELD_LABELS: dict[str, str] = {
    "name": "naam",
    "email": "e-mailadres",
    "clientName": "klantnaam",
    "items": "regels",
    "description": "omschrijving",
    "quantity": "aantal",
    "price": "prijs",
    "unit": "eenheid",
    "amount": "bedrag",
    "vatRate": "btw-tarief",
    "discount": "korting",
    "dueInDays": "betaaltermijn",
    "validForDays": "geldigheid",
    "category": "categorie",
    "date": "datum",
}


def dutch_reason(error: dict[str, Any]) -> str:
    """Short Dutch explanation of one pydantic error, e.g. "aantal moet groter zijn dan 0"."""
    template = _REASONS.get(error["type"], DEFAULT_REASON)
    try:
        text = template.format(**error.get("ctx", {}))
    except (KeyError, IndexError):
        text = DEFAULT_REASON
    names = [part for part in error["loc"] if isinstance(part, str)]
    if not names:
        return text
    return f"{FIELD_LABELS.get(names[-1], names[-1])} {text}"


def schema_for_intent(intent: str) -> Optional[type[BaseModel]]:
    """Get the complete model for an intent (None when unknown)."""
    return _SCHEMAS.get(getattr(intent, "value", intent))


def clean_payload(fields: Union[DraftFieldsBase, dict[str, Any], None]) -> dict[str, Any]:
    """Present fields only (camelCase keys), without the tag and without None item values."""
    if fields is None:
        return {}
    if isinstance(fields, DraftFieldsBase):
        payload = fields.to_payload()
    else:
        payload = {key: value for key, value in fields.items() if is_present(value)}
    payload.pop("kind", None)

    items = payload.get("items")
    if isinstance(items, list):
        payload["items"] = [
            {key: value for key, value in item.items() if value is not None}
            if isinstance(item, dict) else item
            for item in items
        ]
    return payload


class DraftValidator:
    """
    Validates partial drafts against their target schema.

    Stateless; one instance can be shared by every conversation.
    """

    def __init__(self, today: Union[date, Callable[[], date], None] = None):
        """
        Args:
            today: "Today" for the semantic stage, as a fixed date or a
                   callable. Defaults to the real date on every call.
        """
        self._today = today

    def validate(
        self,
        intent: str,
        fields: Union[DraftFieldsBase, dict[str, Any], None],
    ) -> ValidationOutcome:
        """
        Validate a draft payload.

        Returns a ValidationOutcome whose missing_fields and invalid_fields
        use the camelCase field names.
        """
        intent_value = getattr(intent, "value", intent)
        schema = schema_for_intent(intent_value)
        if schema is None:
            return ValidationOutcome(
                is_valid=False,
                validation_errors=[UNKNOWN_INTENT_ERROR],
            )

        payload = clean_payload(fields)

        missing, errors, invalid = self._validate_schema(intent_value, schema, payload)
        if not missing and not errors:
            errors, invalid = self._validate_semantic(intent_value, payload)

        return ValidationOutcome(
            is_valid=not missing and not errors,
            missing_fields=missing,
            validation_errors=errors,
            invalid_fields=invalid,
        )

    def _validate_schema(
        self,
        intent: str,
        schema: type[BaseModel],
        payload: dict[str, Any],
    ) -> tuple[list[str], list[str], dict[str, str]]:
        """
        Stage 1: schema validation.

        Returns: (missing_fields, validation_errors, invalid_fields)
        """
        missing: list[str] = []
        errors: list[str] = []
        invalid: dict[str, str] = {}

        if intent in _DOCUMENT_INTENTS:
            if not payload.get("items") and not is_present(payload.get("amount")):
                missing.append("items")

        try:
            schema.model_validate(payload)
        except ValidationError as exc:
            for error in exc.errors():
                loc = [str(part) for part in error["loc"]]
                field = loc[0] if loc else "__root__"
                if self._is_missing(error["type"], loc):
                    if field not in missing:
                        missing.append(field)
                    continue
                path = ".".join(loc) or field
                reason = dutch_reason(error)
                errors.append(f"{path}: {reason}")
                invalid.setdefault(field, reason)

        return missing, errors, invalid

    @staticmethod
    def _is_missing(error_type: str, loc: list[str]) -> bool:
        if len(loc) != 1:
            return False
        if error_type == "missing":
            return True
        return error_type == "string_too_short" and loc[0] in _REQUIRED_STRINGS

    def _validate_semantic(
        self,
        intent: str,
        payload: dict[str, Any],
    ) -> tuple[list[str], dict[str, str]]:
        """
        Stage 2: semantic validation.

        Returns: (validation_errors, invalid_fields)
        """
        errors: list[str] = []
        invalid: dict[str, str] = {}

        if intent == "create_uitgave":
            expense = ExpenseDraft.model_validate(payload)
            today = self._current_date()
            if expense.expense_date and expense.expense_date > today:
                reason = "Datum ligt in de toekomst"
                errors.append(f"date: {reason}")
                invalid["date"] = reason

        return errors, invalid

    def _current_date(self) -> date:
        if self._today is None:
            return date.today()
        if callable(self._today):
            return self._today()
        return self._today
