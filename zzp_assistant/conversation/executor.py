"""
Action Executor

Runs the creation tool that belongs to a complete draft and turns the tool
result into a user-facing Dutch message.

CRITICAL: This is the ONLY place in the engine with a catch-all exception
handler. Whatever goes wrong while creating a record, the caller gets an
ExecutionResult back, never an exception.
"""

from typing import Any, Optional, Union

import structlog

from zzp_assistant.audit import AuditLogger
from zzp_assistant.models.drafts import (
    ClientDraft,
    DraftFieldsBase,
    ExpenseDraft,
    InvoiceDraft,
    OfferteDraft,
)
from zzp_assistant.models.results import ExecutionResult
from zzp_assistant.services.storage import StorageError
from zzp_assistant.tools import CreationTools
from zzp_assistant.validation.validator import clean_payload


logger = structlog.get_logger(__name__)

UNEXPECTED_ERROR_MESSAGE = "Er is een onverwachte fout opgetreden. Probeer het opnieuw."
CLIENT_NOT_FOUND_MESSAGE = (
    'Klant "{client_name}" is niet gevonden. Antwoord "ja" om deze klant eerst aan te maken, '
    'of kies een andere klant met "wijzig klant naar <naam>".'
)

FAILURE_MESSAGES: dict[str, str] = {
    "create_client": "Er ging iets mis bij het aanmaken van de klant.",
    "create_factuur": "Er ging iets mis bij het aanmaken van de factuur.",
    "create_offerte": "Er ging iets mis bij het aanmaken van de offerte.",
    "create_uitgave": "Er ging iets mis bij het registreren van de uitgave. Probeer het opnieuw.",
}

RESULT_TYPES: dict[str, str] = {
    "create_client": "create_client",
    "create_factuur": "create_invoice",
    "create_offerte": "create_offerte",
    "create_uitgave": "create_expense",
}


class ActionExecutor:
    """
    Dispatches a validated draft to the matching creation tool.

    Every execution is recorded as one audit action with the hash of the
    payload that was sent to the tool.
    """

    def __init__(
        self,
        tools: CreationTools,
        audit_logger: Optional[AuditLogger] = None,
        default_due_days: int = 14,
        default_valid_days: int = 30,
    ):
        self._tools = tools
        self._audit = audit_logger or AuditLogger()
        self._default_due_days = default_due_days
        self._default_valid_days = default_valid_days

    async def execute(
        self,
        intent: str,
        fields: Union[DraftFieldsBase, dict[str, Any]],
        user_id: str,
        request_id: str,
    ) -> ExecutionResult:
        """Create the record for a complete draft."""
        intent_value = getattr(intent, "value", intent)
        payload = clean_payload(fields)

        try:
            if intent_value == "create_client":
                result = await self._create_client(payload, user_id)
            elif intent_value == "create_factuur":
                payload.setdefault("dueInDays", self._default_due_days)
                result = await self._create_invoice(payload, user_id)
            elif intent_value == "create_offerte":
                payload.setdefault("validForDays", self._default_valid_days)
                result = await self._create_offerte(payload, user_id)
            elif intent_value == "create_uitgave":
                result = await self._create_expense(payload, user_id)
            else:
                result = ExecutionResult(
                    success=False,
                    message=f"Onbekende actie: {intent_value}",
                )
        except StorageError as e:
            logger.warning("creation_storage_failed", intent=intent_value, error=str(e))
            result = ExecutionResult(
                success=False,
                message=FAILURE_MESSAGES.get(intent_value, UNEXPECTED_ERROR_MESSAGE),
                type=RESULT_TYPES.get(intent_value),
            )
        except Exception as e:
            logger.exception("creation_unexpected_error", intent=intent_value)
            await self._audit.log_error(
                error_type="execution_failed",
                error_message=str(e),
                details={"intent": intent_value},
                request_id=request_id,
                user_id=user_id,
            )
            result = ExecutionResult(
                success=False,
                message=UNEXPECTED_ERROR_MESSAGE,
                type=RESULT_TYPES.get(intent_value),
            )

        await self._audit.log_action(
            request_id=request_id,
            user_id=user_id,
            action=intent_value,
            payload=payload,
            result_type=result.type,
            result_id=(result.data or {}).get("id"),
            success=result.success,
        )
        return result

    # =========================================================================
    # PER-INTENT DISPATCH
    # =========================================================================

    async def _create_client(self, payload: dict[str, Any], user_id: str) -> ExecutionResult:
        draft = ClientDraft.model_validate(payload)
        result = await self._tools.create_client_if_missing(draft, user_id)
        if not result.success or result.client is None:
            return ExecutionResult(
                success=False,
                message=FAILURE_MESSAGES["create_client"],
                type="create_client",
            )

        name = result.client.name
        if result.already_exists:
            message = f'Klant "{name}" bestond al in je systeem.'
        else:
            message = f'Klant "{name}" is succesvol aangemaakt!'
        return ExecutionResult(
            success=True,
            message=message,
            data=result.client.model_dump(mode="json"),
            type="create_client",
        )

    async def _create_invoice(self, payload: dict[str, Any], user_id: str) -> ExecutionResult:
        draft = InvoiceDraft.model_validate(payload)
        result = await self._tools.create_invoice_draft(draft, user_id)
        if result.needs_client_creation:
            return self._client_prompt(draft.client_name, "create_invoice")
        if not result.success or result.invoice is None:
            return ExecutionResult(
                success=False,
                message=result.message or FAILURE_MESSAGES["create_factuur"],
                type="create_invoice",
            )

        invoice = result.invoice
        return ExecutionResult(
            success=True,
            message=(
                f"Factuur {invoice.invoice_num} voor {invoice.client_name} is aangemaakt! "
                f"Totaal: €{invoice.totals.total_with_vat:.2f}"
            ),
            data=invoice.model_dump(mode="json"),
            type="create_invoice",
        )

    async def _create_offerte(self, payload: dict[str, Any], user_id: str) -> ExecutionResult:
        draft = OfferteDraft.model_validate(payload)
        result = await self._tools.create_offerte_draft(draft, user_id)
        if result.needs_client_creation:
            return self._client_prompt(draft.client_name, "create_offerte")
        if not result.success or result.quotation is None:
            return ExecutionResult(
                success=False,
                message=result.message or FAILURE_MESSAGES["create_offerte"],
                type="create_offerte",
            )

        quotation = result.quotation
        return ExecutionResult(
            success=True,
            message=(
                f"Offerte {quotation.quote_num} voor {quotation.client_name} is aangemaakt! "
                f"Totaal: €{quotation.totals.total_with_vat:.2f}"
            ),
            data=quotation.model_dump(mode="json"),
            type="create_offerte",
        )

    async def _create_expense(self, payload: dict[str, Any], user_id: str) -> ExecutionResult:
        draft = ExpenseDraft.model_validate(payload)
        result = await self._tools.create_expense(draft, user_id)
        if not result.success or result.expense is None:
            return ExecutionResult(
                success=False,
                message=FAILURE_MESSAGES["create_uitgave"],
                type="create_expense",
            )
        return ExecutionResult(
            success=True,
            message=result.message,
            data=result.expense.model_dump(mode="json"),
            type="create_expense",
        )

    @staticmethod
    def _client_prompt(client_name: str, result_type: str) -> ExecutionResult:
        return ExecutionResult(
            success=False,
            message=CLIENT_NOT_FOUND_MESSAGE.format(client_name=client_name),
            type=result_type,
            needs_client_creation=True,
            data={"clientName": client_name},
        )
