"""
Draft Models for the Conversational Drafting Engine

These models define the schemas for everything a conversation accumulates
before a record is created.

DESIGN DECISION: Every draft exists in two shapes:
1. A PARTIAL shape (``*DraftFields``) that is stored while collecting.
   All fields are optional and carry no value constraints, so an invalid
   value that was typed in survives until validation can report it.
2. A COMPLETE shape (``ClientDraft``, ``InvoiceDraft``, ...) with the real
   constraints. The validator checks a partial draft against it.

The partial shapes form a tagged union discriminated by ``kind``, which
always equals the draft's intent.

Field names exchanged with callers are camelCase (``clientName``); Python
attributes are snake_case with camelCase aliases.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Iterable, Literal, Optional, Union
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)
from pydantic.alias_generators import to_camel


EMAIL_PATTERN = r"^[\w\.\-+]+@[\w\.\-]+\.\w+$"
URL_PATTERN = r"^https?://\S+$"


def utc_now() -> datetime:
    """Timezone-aware current time (UTC)."""
    return datetime.now(timezone.utc)


def new_conversation_id() -> str:
    """Opaque identifier, generated once per conversation."""
    return f"conv_{uuid4().hex}"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Intent(str, Enum):
    """Everything the classifier can decide a message is about."""
    HELP_QUESTION = "help_question"
    CREATE_FACTUUR = "create_factuur"
    CREATE_OFFERTE = "create_offerte"
    CREATE_UITGAVE = "create_uitgave"
    CREATE_CLIENT = "create_client"
    QUERY_INVOICES = "query_invoices"
    QUERY_EXPENSES = "query_expenses"
    COMPUTE_BTW = "compute_btw"
    UPDATE_SETTINGS = "update_settings"
    UNKNOWN = "unknown"

    @property
    def is_multi_step(self) -> bool:
        """Does this intent collect its fields across several turns?"""
        return self.value in {item.value for item in DraftIntent}


class DraftIntent(str, Enum):
    """
    Intents that use a persisted draft.

    Query-type intents are stateless and never create drafts.
    """
    CREATE_CLIENT = "create_client"
    CREATE_FACTUUR = "create_factuur"
    CREATE_OFFERTE = "create_offerte"


class DraftStatus(str, Enum):
    """
    Draft lifecycle status.

    CRITICAL: CONFIRMED is only set after the creation tool reported
    success. CONFIRMED and CANCELLED are terminal.
    """
    COLLECTING = "collecting"
    VALIDATING = "validating"
    PREVIEWING = "previewing"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (DraftStatus.CONFIRMED, DraftStatus.CANCELLED)

    @property
    def is_active(self) -> bool:
        return not self.is_terminal


ACTIVE_STATUSES = frozenset(
    status for status in DraftStatus if status.is_active
)


class VatRate(str, Enum):
    """
    The three legal Dutch VAT rates.

    DESIGN DECISION: Free text is noisy, so every parsed percentage is
    bucketed into one of these (see parsing.normalizers).
    """
    HIGH = "21"
    LOW = "9"
    ZERO = "0"

    @property
    def percentage(self) -> Decimal:
        """Rate as a fraction (21 -> 0.21)."""
        return Decimal(self.value) / Decimal("100")


class Unit(str, Enum):
    """Billing units for line items."""
    UUR = "UUR"
    STUK = "STUK"
    PROJECT = "PROJECT"
    KM = "KM"
    LICENTIE = "LICENTIE"
    STOP = "STOP"
    SERVICE = "SERVICE"


class PaymentMethod(str, Enum):
    """How an expense was paid."""
    CASH = "CASH"
    CARD = "CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    OTHER = "OTHER"


# =============================================================================
# LINE ITEMS
# =============================================================================

class _CamelModel(BaseModel):
    """Shared config: camelCase aliases, populate by attribute name too."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class LineItemDraft(_CamelModel):
    """
    A line item as extracted from text.

    No constraints here - a negative quantity must reach the validator.
    """
    description: Optional[str] = None
    quantity: Optional[Decimal] = None
    price: Optional[Decimal] = None
    unit: Unit = Unit.STUK
    vat_rate: VatRate = VatRate.HIGH


class LineItem(_CamelModel):
    """One billable row on an invoice or quotation."""

    description: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="What is being billed"
    )
    quantity: Decimal = Field(
        ...,
        gt=0,
        description="Number of units"
    )
    price: Decimal = Field(
        ...,
        ge=0,
        description="Price per unit, excluding VAT"
    )
    unit: Unit = Unit.STUK
    vat_rate: VatRate = VatRate.HIGH

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.price

    @property
    def vat_amount(self) -> Decimal:
        return self.line_total * self.vat_rate.percentage


# =============================================================================
# PARTIAL DRAFTS (stored while collecting)
# =============================================================================

def is_present(value: Any) -> bool:
    """A field counts as present unless it is None, blank or an empty list."""
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    if isinstance(value, (list, tuple, dict)) and len(value) == 0:
        return False
    return True


class DraftFieldsBase(_CamelModel):
    """
    Base for the partial field maps.

    Updates are always keyed by the camelCase field name.
    """

    def to_payload(self) -> dict[str, Any]:
        """Present fields only, keyed by camelCase name, without the tag."""
        data = self.model_dump(by_alias=True, exclude={"kind"})
        return {key: value for key, value in data.items() if is_present(value)}

    def present_fields(self) -> set[str]:
        return set(self.to_payload())

    def has(self, field: str) -> bool:
        return field in self.present_fields()

    def merge_absent(
        self,
        updates: dict[str, Any],
        replaceable: Iterable[str] = (),
    ) -> tuple["DraftFieldsBase", dict[str, Any]]:
        """
        Apply only the updates whose field is currently absent.

        ``replaceable`` names present fields that hold an invalid value; an
        answer to their re-ask may replace them.

        Returns (new_fields, applied_updates). Any other present field is
        never changed, whatever the update says.
        """
        current = self.to_payload()
        replaceable = set(replaceable)
        applied = {
            key: value
            for key, value in updates.items()
            if (key not in current or key in replaceable) and is_present(value)
        }
        if not applied:
            return self, {}
        merged = type(self).model_validate({**current, **applied})
        return merged, applied

    def override(self, field: str, value: Any) -> "DraftFieldsBase":
        """Explicitly replace one field (used by the correction sub-intent)."""
        current = self.to_payload()
        current[field] = value
        return type(self).model_validate(current)


class ClientDraftFields(DraftFieldsBase):
    """Partial client (relatie) draft."""
    kind: Literal["create_client"] = "create_client"

    name: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    kvk_number: Optional[str] = None
    btw_id: Optional[str] = None


class DocumentDraftFieldsBase(DraftFieldsBase):
    """Fields shared by partial invoice and quotation drafts."""

    client_id: Optional[str] = None
    client_name: Optional[str] = None
    items: Optional[list[LineItemDraft]] = None
    amount: Optional[Decimal] = None
    vat_rate: Optional[VatRate] = None
    discount: Optional[Decimal] = None
    description: Optional[str] = None
    notes: Optional[str] = None


class InvoiceDraftFields(DocumentDraftFieldsBase):
    """Partial invoice (factuur) draft."""
    kind: Literal["create_factuur"] = "create_factuur"

    due_in_days: Optional[int] = None


class OfferteDraftFields(DocumentDraftFieldsBase):
    """Partial quotation (offerte) draft."""
    kind: Literal["create_offerte"] = "create_offerte"

    valid_for_days: Optional[int] = None


DraftFields = Annotated[
    Union[ClientDraftFields, InvoiceDraftFields, OfferteDraftFields],
    Field(discriminator="kind"),
]

_FIELDS_BY_INTENT: dict[DraftIntent, type[DraftFieldsBase]] = {
    DraftIntent.CREATE_CLIENT: ClientDraftFields,
    DraftIntent.CREATE_FACTUUR: InvoiceDraftFields,
    DraftIntent.CREATE_OFFERTE: OfferteDraftFields,
}


def fields_for_intent(
    intent: DraftIntent,
    payload: Optional[dict[str, Any]] = None,
) -> DraftFieldsBase:
    """Build the partial draft model that belongs to an intent."""
    model = _FIELDS_BY_INTENT[DraftIntent(intent)]
    return model.model_validate(payload or {})


# =============================================================================
# COMPLETE DRAFTS (validation targets)
# =============================================================================

class ClientDraft(_CamelModel):
    """A client record ready to be created."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Client or company name (required)"
    )
    email: Optional[str] = Field(
        default=None,
        pattern=EMAIL_PATTERN,
        description="Contact e-mail address"
    )
    address: Optional[str] = Field(default=None, max_length=300)
    postal_code: Optional[str] = Field(default=None, max_length=10)
    city: Optional[str] = Field(default=None, max_length=100)
    kvk_number: Optional[str] = Field(default=None, max_length=20)
    btw_id: Optional[str] = Field(default=None, max_length=20)


class DocumentDraftBase(_CamelModel):
    """
    Shared requirements for invoices and quotations.

    Either ``items`` or ``amount`` must be present; the validator checks
    that rule so it can be reported as a missing field rather than an
    opaque error.
    """

    client_id: Optional[str] = None
    client_name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Name of the client the document is for (required)"
    )
    items: Optional[list[LineItem]] = Field(
        default=None,
        min_length=1,
    )
    amount: Optional[Decimal] = Field(
        default=None,
        gt=0,
        description="Single amount excluding VAT, used when there are no items"
    )
    vat_rate: VatRate = VatRate.HIGH
    discount: Optional[Decimal] = Field(default=None, ge=0, le=100)
    description: Optional[str] = Field(default=None, max_length=500)
    notes: Optional[str] = Field(default=None, max_length=1000)


class InvoiceDraft(DocumentDraftBase):
    """An invoice ready to be created."""
    due_in_days: int = Field(default=14, gt=0, le=365)


class OfferteDraft(DocumentDraftBase):
    """A quotation ready to be created."""
    valid_for_days: int = Field(default=30, gt=0, le=365)


class ExpenseDraft(_CamelModel):
    """An expense (uitgave) ready to be registered."""

    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Expense category (required)"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount including VAT (required)"
    )
    amount_excl: Optional[Decimal] = Field(default=None, gt=0)
    vendor: Optional[str] = Field(default=None, max_length=200)
    expense_date: Optional[date] = Field(default=None, alias="date")
    vat_rate: VatRate = VatRate.HIGH
    payment_method: Optional[PaymentMethod] = None
    receipt_url: Optional[str] = Field(default=None, pattern=URL_PATTERN)
    description: Optional[str] = Field(default=None, max_length=500)


# =============================================================================
# CONVERSATION STATE
# =============================================================================

class ConversationDraft(BaseModel):
    """
    The unit of multi-turn state.

    One conversation owns one draft for one intent. Drafts are never shared
    across users.
    """

    conversation_id: str = Field(
        default_factory=new_conversation_id,
        description="Opaque conversation identifier"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        description="Owning tenant"
    )
    intent: DraftIntent
    fields: DraftFields
    status: DraftStatus = DraftStatus.COLLECTING
    created_at: datetime = Field(default_factory=utc_now)
    last_updated: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def fields_match_intent(self) -> "ConversationDraft":
        """The tag of the field map must be the draft's own intent."""
        if self.fields.kind != self.intent.value:
            raise ValueError(
                f"Draft fields of kind {self.fields.kind} do not belong to intent {self.intent.value}"
            )
        return self

    @property
    def is_active(self) -> bool:
        return self.status.is_active


class ValidationOutcome(BaseModel):
    """
    Result of validating a draft against its target schema.

    missing_fields drive clarifying questions; invalid_fields (field ->
    reason) drive targeted re-asks. validation_errors keeps the opaque
    "path: message" strings for display and audit.
    """

    is_valid: bool
    missing_fields: list[str] = Field(default_factory=list)
    validation_errors: list[str] = Field(default_factory=list)
    invalid_fields: dict[str, str] = Field(default_factory=dict)

    @property
    def needs_input(self) -> bool:
        return bool(self.missing_fields or self.invalid_fields)
