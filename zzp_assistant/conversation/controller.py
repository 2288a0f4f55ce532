"""
Conversation Controller

Drives one multi-step draft (client, invoice, quotation) from its first
message to the created record.

Flow per message:
1. Find the active draft for (user, intent); create one if there is none
2. Extract candidate fields and merge only the ABSENT ones, plus the ones
   whose stored value is invalid
3. Validate against the complete schema
4. Incomplete or invalid -> ask ONE question, stay in ``collecting``
5. Complete -> ``previewing`` -> execute
6. Success -> ``confirmed`` (terminal); failure -> back to ``collecting``

CRITICAL: A draft is confirmed only after the executor reported success,
and a confirmed draft can never be executed again. A replayed message
after confirmation starts a fresh draft.
"""

import re
from typing import Any, Optional

from zzp_assistant.audit import AuditLogger, create_request_id
from zzp_assistant.conversation.executor import ActionExecutor
from zzp_assistant.intent.classifier import is_affirmative_message
from zzp_assistant.models.drafts import (
    ConversationDraft,
    DraftIntent,
    DraftStatus,
)
from zzp_assistant.models.results import ConversationResponse, FieldCorrection
from zzp_assistant.parsing.extractors import DEFAULT_MAX_NAME_LENGTH, extract_fields
from zzp_assistant.parsing.normalizers import normalize_decimal, normalize_vat_rate
from zzp_assistant.services.storage import DraftStoreInterface
from zzp_assistant.validation.questions import QuestionSelector
from zzp_assistant.validation.validator import DraftValidator


DRAFT_LABELS: dict[DraftIntent, str] = {
    DraftIntent.CREATE_CLIENT: "klant",
    DraftIntent.CREATE_FACTUUR: "factuur",
    DraftIntent.CREATE_OFFERTE: "offerte",
}

_DIGITS = re.compile(r"\d+")


class ConversationController:
    """
    Multi-turn drafting over a draft store.

    Usage:
        controller = ConversationController(store, executor)
        response = await controller.handle_multi_step_message(
            "Maak een offerte: 320 stops price 1.25", "create_offerte", "user-1", request_id
        )
    """

    def __init__(
        self,
        store: DraftStoreInterface,
        executor: ActionExecutor,
        validator: Optional[DraftValidator] = None,
        questions: Optional[QuestionSelector] = None,
        audit_logger: Optional[AuditLogger] = None,
        max_name_length: int = DEFAULT_MAX_NAME_LENGTH,
    ):
        self._store = store
        self._executor = executor
        self._validator = validator or DraftValidator()
        self._questions = questions or QuestionSelector()
        self._audit = audit_logger or AuditLogger()
        self._max_name_length = max_name_length

    # =========================================================================
    # DRAFT LOOKUP
    # =========================================================================

    async def active_draft(
        self,
        user_id: str,
        request_id: str,
        intent: Optional[DraftIntent] = None,
    ) -> Optional[ConversationDraft]:
        """The user's usable active draft; a stale one is expired and logged."""
        lookup = await self._store.lookup(user_id, intent)
        if lookup.expired is not None:
            await self._audit.log_step(
                request_id,
                "draft_expired",
                user_id,
                {
                    "conversation_id": lookup.expired.conversation_id,
                    "intent": lookup.expired.intent.value,
                },
            )
        return lookup.draft

    # =========================================================================
    # MAIN FLOW
    # =========================================================================

    async def handle_multi_step_message(
        self,
        message: str,
        intent: DraftIntent,
        user_id: str,
        request_id: Optional[str] = None,
    ) -> ConversationResponse:
        """Feed one message into the (new or resumed) draft for this intent."""
        request_id = request_id or create_request_id()
        intent = DraftIntent(intent)

        draft = await self.active_draft(user_id, request_id, intent)

        if draft is None:
            initial = extract_fields(intent, message, {}, self._max_name_length)
            draft = await self._store.create(user_id, intent, initial)
            await self._log_updated(request_id, draft, "created", initial)
        else:
            if is_affirmative_message(message):
                response = await self._create_client_then_document(draft, request_id)
                if response is not None:
                    return response

            # A field re-asked because its value is invalid takes the answer
            invalid = self._validator.validate(draft.intent, draft.fields).invalid_fields
            updates = extract_fields(
                intent,
                message,
                draft.fields.to_payload(),
                self._max_name_length,
                replaceable=invalid,
            )
            _, applied = draft.fields.merge_absent(updates, replaceable=invalid)
            if applied:
                draft = await self._store.update(draft.conversation_id, user_id, applied)
                await self._log_updated(request_id, draft, "updated", applied)

        return await self._advance(draft, request_id)

    async def cancel_active(
        self,
        user_id: str,
        intent: Optional[DraftIntent] = None,
        request_id: Optional[str] = None,
    ) -> Optional[ConversationDraft]:
        """Cancel the most recent active draft. Returns it, or None if there was none."""
        request_id = request_id or create_request_id()
        draft = await self.active_draft(user_id, request_id, intent)
        if draft is None:
            return None

        cancelled = await self._store.cancel(draft.conversation_id, user_id)
        await self._audit.log_step(
            request_id,
            "draft_cancelled",
            user_id,
            {"conversation_id": cancelled.conversation_id, "intent": cancelled.intent.value},
        )
        return cancelled

    async def apply_correction(
        self,
        user_id: str,
        correction: FieldCorrection,
        request_id: Optional[str] = None,
    ) -> Optional[ConversationResponse]:
        """
        Explicitly replace one field of the active draft, then continue.

        Returns None when the user has no active draft, so the caller can
        treat the message as an ordinary one.
        """
        request_id = request_id or create_request_id()
        draft = await self.active_draft(user_id, request_id)
        if draft is None:
            return None

        field = correction.field_for(draft.intent)
        label = DRAFT_LABELS[draft.intent]
        if field not in _field_names(draft):
            return self._reply(
                draft,
                request_id,
                f"Het veld '{correction.raw_field or field}' hoort niet bij een {label}.",
                needs_more_info=True,
            )

        value = normalize_correction(field, correction.value)
        if value is None:
            return self._reply(
                draft,
                request_id,
                f"Ik kon '{correction.value}' niet lezen als waarde voor {correction.raw_field or field}.",
                needs_more_info=True,
            )

        draft = await self._store.update(draft.conversation_id, user_id, {field: value})
        await self._log_updated(request_id, draft, "corrected", {field: value})
        return await self._advance(draft, request_id)

    async def _create_client_then_document(
        self,
        draft: ConversationDraft,
        request_id: str,
    ) -> Optional[ConversationResponse]:
        """
        "ja" after the unknown-client prompt: create that client, then the document.

        Only a complete invoice or quotation draft qualifies; for anything
        else None is returned and the message is handled as usual.
        """
        if draft.intent == DraftIntent.CREATE_CLIENT:
            return None
        if not self._validator.validate(draft.intent, draft.fields).is_valid:
            return None

        user_id = draft.user_id
        await self._audit.log_step(
            request_id,
            "create_started",
            user_id,
            {"conversation_id": draft.conversation_id, "intent": DraftIntent.CREATE_CLIENT.value},
        )
        client = await self._executor.execute(
            DraftIntent.CREATE_CLIENT, {"name": draft.fields.client_name}, user_id, request_id
        )
        if not client.success:
            await self._audit.log_step(
                request_id,
                "create_failed",
                user_id,
                {"conversation_id": draft.conversation_id, "reason": client.message},
            )
            return self._reply(draft, request_id, client.message, needs_more_info=True)

        await self._audit.log_step(
            request_id,
            "create_success",
            user_id,
            {
                "conversation_id": draft.conversation_id,
                "intent": DraftIntent.CREATE_CLIENT.value,
                "record_id": (client.data or {}).get("id"),
            },
        )
        response = await self._execute(draft, request_id)
        return response.model_copy(update={"message": f"{client.message} {response.message}"})

    # =========================================================================
    # VALIDATE -> ASK OR EXECUTE
    # =========================================================================

    async def _advance(self, draft: ConversationDraft, request_id: str) -> ConversationResponse:
        outcome = self._validator.validate(draft.intent, draft.fields)

        if not outcome.is_valid:
            await self._audit.log_step(
                request_id,
                "validation_failed",
                draft.user_id,
                {
                    "conversation_id": draft.conversation_id,
                    "missing_fields": outcome.missing_fields,
                    "invalid_fields": outcome.invalid_fields,
                },
            )
            question = self._questions.next_question(
                draft.intent, outcome.missing_fields, outcome.invalid_fields
            )
            return self._reply(
                draft,
                request_id,
                question,
                needs_more_info=True,
                missing_fields=outcome.missing_fields or list(outcome.invalid_fields),
            )

        return await self._execute(draft, request_id)

    async def _execute(self, draft: ConversationDraft, request_id: str) -> ConversationResponse:
        user_id = draft.user_id
        draft = await self._store.update(
            draft.conversation_id, user_id, {}, status=DraftStatus.PREVIEWING
        )
        await self._audit.log_step(
            request_id,
            "create_started",
            user_id,
            {"conversation_id": draft.conversation_id, "intent": draft.intent.value},
        )

        result = await self._executor.execute(draft.intent, draft.fields, user_id, request_id)

        details: dict[str, Any] = {
            "conversation_id": draft.conversation_id,
            "intent": draft.intent.value,
        }
        if result.success:
            await self._store.complete(draft.conversation_id, user_id)
            details["record_id"] = (result.data or {}).get("id")
            await self._audit.log_step(request_id, "create_success", user_id, details)
        else:
            await self._store.update(
                draft.conversation_id, user_id, {}, status=DraftStatus.COLLECTING
            )
            details["reason"] = "client_not_found" if result.needs_client_creation else result.message
            await self._audit.log_step(request_id, "create_failed", user_id, details)

        return ConversationResponse(
            request_id=request_id,
            intent=draft.intent.value,
            type=result.type,
            message=result.message,
            data=result.data,
            needs_more_info=not result.success,
            conversation_id=draft.conversation_id,
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _reply(
        draft: ConversationDraft,
        request_id: str,
        message: str,
        needs_more_info: bool = False,
        missing_fields: Optional[list[str]] = None,
    ) -> ConversationResponse:
        return ConversationResponse(
            request_id=request_id,
            intent=draft.intent.value,
            message=message,
            needs_more_info=needs_more_info,
            missing_fields=missing_fields or [],
            conversation_id=draft.conversation_id,
        )

    async def _log_updated(
        self,
        request_id: str,
        draft: ConversationDraft,
        action: str,
        updates: dict[str, Any],
    ) -> None:
        await self._audit.log_step(
            request_id,
            "draft_updated",
            draft.user_id,
            {
                "conversation_id": draft.conversation_id,
                "intent": draft.intent.value,
                "action": action,
                "fields": sorted(updates),
            },
        )


def _field_names(draft: ConversationDraft) -> set[str]:
    """camelCase names of the fields a draft can hold."""
    model = type(draft.fields)
    return {
        info.alias or name
        for name, info in model.model_fields.items()
        if name != "kind"
    }


def normalize_correction(field: str, value: str) -> Optional[Any]:
    """Turn the raw text of a correction into the value stored for the field."""
    if field == "amount":
        return normalize_decimal(value.replace("€", "").strip())
    if field == "vatRate":
        return normalize_vat_rate(value).value
    if field in ("dueInDays", "validForDays"):
        match = _DIGITS.search(value)
        return int(match.group()) if match else None
    return value.strip() or None
