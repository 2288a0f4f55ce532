"""
Main Orchestrator for the ZZP Assistant

This module ties together all the components and defines the single
entry point of the chat: ``AssistantRouter.classify_and_route``.

Routing order for one message:
1. Cancel word while a draft is active -> cancel that draft
2. "wijzig <veld> naar <waarde>" while a draft is active -> correction
3. Classify; a multi-step intent goes to the conversation controller
4. Any other message while a draft is active continues that draft
5. Otherwise the stateless handlers: help, expense, queries, settings

DESIGN DECISION: The orchestrator enforces the boundaries:
- No record is created before its draft validates
- No query answer without a ledger lookup
- Every step is audited
- No raw exception reaches the caller
"""

from datetime import date
from typing import Callable, Optional

import structlog

from zzp_assistant.audit import AuditLogger, create_request_id
from zzp_assistant.config import get_settings, optional_google_sheets
from zzp_assistant.conversation import ActionExecutor, ConversationController
from zzp_assistant.intent.classifier import classify, detect_correction, is_cancel_message
from zzp_assistant.knowledge import KnowledgeBase
from zzp_assistant.models.drafts import DraftIntent, Intent
from zzp_assistant.models.results import ConversationResponse, RouterResult
from zzp_assistant.parsing.extractors import parse_expense
from zzp_assistant.queries import QueryExecutor
from zzp_assistant.services.storage import (
    AuditStorageInterface,
    DraftStoreInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsDraftStore,
    InMemoryAuditStorage,
    InMemoryDraftStore,
    StorageError,
)
from zzp_assistant.tools import CreationTools, InMemoryLedgerRepository, LedgerTools
from zzp_assistant.validation.questions import QuestionSelector
from zzp_assistant.validation.validator import DraftValidator


logger = structlog.get_logger(__name__)

CANCEL_MESSAGE = "Begrepen, ik heb de actie geannuleerd. Waarmee kan ik je helpen?"
UNKNOWN_MESSAGE = "Sorry, ik begrijp je vraag niet. Kun je het anders formuleren?"
NO_KNOWLEDGE_MESSAGE = (
    "Sorry, ik kon geen relevante informatie vinden over je vraag. "
    "Probeer het anders te formuleren of neem contact op met support."
)
SETTINGS_MESSAGE = (
    "Voor het wijzigen van instellingen zoals je wachtwoord, ga naar het Instellingen "
    "menu in de sidebar. Ik kan je hier niet mee helpen via chat om beveiligingsredenen."
)
EXPENSE_QUESTION = "Wat is de categorie en het bedrag van de uitgave?"
EXPENSE_RETRY_HINT = (
    "Stuur de volledige uitgave opnieuw in één bericht, bijvoorbeeld: 'Uitgave koffie 15 euro gisteren'."
)
EXPENSE_FAILED_MESSAGE = "Er ging iets mis bij het registreren van de uitgave. Probeer het opnieuw."
STORAGE_FAILURE_MESSAGE = (
    "Sorry, ik kan je gegevens op dit moment niet bereiken. Probeer het later opnieuw."
)


class AssistantRouter:
    """
    Routes one chat message to the right handler.

    Stateless itself: all conversation state lives in the draft store.
    """

    def __init__(
        self,
        controller: ConversationController,
        executor: ActionExecutor,
        queries: QueryExecutor,
        knowledge: KnowledgeBase,
        validator: Optional[DraftValidator] = None,
        questions: Optional[QuestionSelector] = None,
        audit_logger: Optional[AuditLogger] = None,
        today: Callable[[], date] = date.today,
    ):
        self._controller = controller
        self._executor = executor
        self._queries = queries
        self._knowledge = knowledge
        self._validator = validator or DraftValidator(today=today)
        self._questions = questions or QuestionSelector()
        self._audit = audit_logger or AuditLogger()
        self._today = today

    async def classify_and_route(
        self,
        message: str,
        user_id: str,
        request_id: Optional[str] = None,
    ) -> RouterResult:
        """Handle one user message and return the reply."""
        request_id = request_id or create_request_id()
        try:
            return await self._route(message or "", user_id, request_id)
        except StorageError as e:
            logger.error("routing_storage_failed", request_id=request_id, error=str(e))
            await self._audit.log_error(
                error_type="storage_failed",
                error_message=str(e),
                request_id=request_id,
                user_id=user_id,
            )
            return RouterResult(
                intent=Intent.UNKNOWN.value,
                request_id=request_id,
                message=STORAGE_FAILURE_MESSAGE,
            )

    async def _route(self, message: str, user_id: str, request_id: str) -> RouterResult:
        # Step 1: Cancel
        if is_cancel_message(message):
            cancelled = await self._controller.cancel_active(user_id, request_id=request_id)
            if cancelled is not None:
                return RouterResult(
                    intent=cancelled.intent.value,
                    request_id=request_id,
                    type="cancelled",
                    message=CANCEL_MESSAGE,
                    conversation_id=cancelled.conversation_id,
                )

        # Step 2: Explicit correction of the active draft
        correction = detect_correction(message)
        if correction is not None:
            response = await self._controller.apply_correction(user_id, correction, request_id)
            if response is not None:
                return RouterResult.from_conversation(response)

        # Step 3: Classify
        classification = classify(message)
        intent = classification.intent
        await self._audit.log_step(
            request_id,
            "intent_detected",
            user_id,
            {"intent": intent.value, "confidence": classification.confidence},
        )

        if intent.is_multi_step:
            return await self._multi_step(message, DraftIntent(intent.value), user_id, request_id)

        # Step 4: Messages during a draft feed that draft
        active = await self._controller.active_draft(user_id, request_id)
        if active is not None:
            return await self._multi_step(message, active.intent, user_id, request_id)

        # Step 5: Stateless handlers
        if intent == Intent.HELP_QUESTION:
            return self._help(message, request_id)
        if intent == Intent.CREATE_UITGAVE:
            return await self._create_expense(message, user_id, request_id)
        if intent == Intent.QUERY_INVOICES:
            return await self._query_invoices(message, user_id, request_id)
        if intent == Intent.QUERY_EXPENSES:
            return await self._query_expenses(message, user_id, request_id)
        if intent == Intent.COMPUTE_BTW:
            return await self._compute_btw(message, user_id, request_id)
        if intent == Intent.UPDATE_SETTINGS:
            return RouterResult(
                intent=intent.value,
                request_id=request_id,
                type="settings_guidance",
                message=SETTINGS_MESSAGE,
            )
        return RouterResult(
            intent=Intent.UNKNOWN.value,
            request_id=request_id,
            message=UNKNOWN_MESSAGE,
        )

    async def _multi_step(
        self,
        message: str,
        intent: DraftIntent,
        user_id: str,
        request_id: str,
    ) -> RouterResult:
        response: ConversationResponse = await self._controller.handle_multi_step_message(
            message, intent, user_id, request_id
        )
        return RouterResult.from_conversation(response)

    # =========================================================================
    # STATELESS HANDLERS
    # =========================================================================

    def _help(self, message: str, request_id: str) -> RouterResult:
        sections = self._knowledge.find_relevant_sections(message, max_sections=3)
        if not sections:
            return RouterResult(
                intent=Intent.HELP_QUESTION.value,
                request_id=request_id,
                type="answer",
                message=NO_KNOWLEDGE_MESSAGE,
            )

        citations = [section.citation for section in sections]
        context = self._knowledge.build_context(sections)
        return RouterResult(
            intent=Intent.HELP_QUESTION.value,
            request_id=request_id,
            type="answer",
            message=f"{context}\n\n*Bron: {', '.join(citations)}*",
            citations=citations,
        )

    async def _create_expense(self, message: str, user_id: str, request_id: str) -> RouterResult:
        """Expenses are single-shot: everything must be in this one message."""
        intent = Intent.CREATE_UITGAVE.value
        parsed = parse_expense(message, today=self._today())
        payload = {
            "category": parsed.category,
            "amount": parsed.amount,
            "vendor": parsed.vendor,
            "date": parsed.expense_date,
            "vatRate": parsed.vat_rate.value if parsed.vat_rate else None,
            "paymentMethod": parsed.payment_method.value if parsed.payment_method else None,
            "description": parsed.description,
        }

        outcome = self._validator.validate(intent, payload)
        if not outcome.is_valid:
            await self._audit.log_step(
                request_id,
                "validation_failed",
                user_id,
                {"missing_fields": outcome.missing_fields, "invalid_fields": outcome.invalid_fields},
            )
            if outcome.missing_fields:
                question = EXPENSE_QUESTION
            else:
                question = self._questions.next_question(intent, [], outcome.invalid_fields)
                question = f"{question} {EXPENSE_RETRY_HINT}"
            return RouterResult(
                intent=intent,
                request_id=request_id,
                type="create_expense",
                message=question,
                needs_more_info=True,
                missing_fields=outcome.missing_fields or list(outcome.invalid_fields),
            )

        await self._audit.log_step(request_id, "create_started", user_id, {"intent": intent})
        result = await self._executor.execute(intent, payload, user_id, request_id)
        if not result.success:
            await self._audit.log_step(
                request_id, "create_failed", user_id, {"intent": intent, "reason": result.message}
            )
            return RouterResult(
                intent=intent,
                request_id=request_id,
                type="create_expense",
                data={"success": False},
                message=EXPENSE_FAILED_MESSAGE,
            )

        await self._audit.log_step(
            request_id,
            "create_success",
            user_id,
            {"intent": intent, "record_id": (result.data or {}).get("id")},
        )
        return RouterResult(
            intent=intent,
            request_id=request_id,
            type="create_expense",
            data=result.data,
            message=result.message,
            needs_confirmation=True,
        )

    async def _query_invoices(self, message: str, user_id: str, request_id: str) -> RouterResult:
        result = await self._queries.list_invoices(message, user_id, request_id)
        return RouterResult(
            intent=Intent.QUERY_INVOICES.value,
            request_id=request_id,
            type="query_invoices",
            data=result.model_dump(mode="json"),
            message=f"{result.count} facturen gevonden.",
        )

    async def _query_expenses(self, message: str, user_id: str, request_id: str) -> RouterResult:
        result = await self._queries.list_expenses(message, user_id, request_id)
        return RouterResult(
            intent=Intent.QUERY_EXPENSES.value,
            request_id=request_id,
            type="query_expenses",
            data=result.model_dump(mode="json"),
            message=result.summary,
        )

    async def _compute_btw(self, message: str, user_id: str, request_id: str) -> RouterResult:
        summary = await self._queries.compute_btw(message, user_id, request_id)
        return RouterResult(
            intent=Intent.COMPUTE_BTW.value,
            request_id=request_id,
            type="compute_btw",
            data=summary.model_dump(mode="json"),
            message=summary.summary,
        )


def build_router(
    draft_store: DraftStoreInterface,
    tools: CreationTools,
    knowledge: KnowledgeBase,
    audit_logger: Optional[AuditLogger] = None,
    today: Callable[[], date] = date.today,
    default_due_days: int = 14,
    default_valid_days: int = 30,
    max_name_length: int = 50,
    list_limit: int = 10,
) -> AssistantRouter:
    """Wire the engine around an existing store, tool set and knowledge base."""
    audit_logger = audit_logger or AuditLogger()
    validator = DraftValidator(today=today)
    questions = QuestionSelector()
    executor = ActionExecutor(
        tools,
        audit_logger=audit_logger,
        default_due_days=default_due_days,
        default_valid_days=default_valid_days,
    )
    controller = ConversationController(
        draft_store,
        executor,
        validator=validator,
        questions=questions,
        audit_logger=audit_logger,
        max_name_length=max_name_length,
    )
    queries = QueryExecutor(tools, audit_logger=audit_logger, today=today, default_limit=list_limit)
    return AssistantRouter(
        controller,
        executor,
        queries,
        knowledge,
        validator=validator,
        questions=questions,
        audit_logger=audit_logger,
        today=today,
    )


def create_app_components(
    use_storage: bool = True,
) -> tuple[AssistantRouter, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to use Google Sheets for drafts and the audit
                    log when it is configured. Without it (or when it is not
                    configured) everything stays in memory.

    Returns:
        (router, sheets_client)
    """
    settings = get_settings()
    app = settings.app

    sheets_client: Optional[GoogleSheetsClient] = None
    draft_store: Optional[DraftStoreInterface] = None
    audit_storage: Optional[AuditStorageInterface] = None

    if use_storage and optional_google_sheets() is not None:
        try:
            sheets_client = GoogleSheetsClient()
            draft_store = GoogleSheetsDraftStore(sheets_client, ttl_minutes=app.draft_ttl_minutes)
            audit_storage = GoogleSheetsAuditStorage(sheets_client)
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            draft_store = None
            audit_storage = None

    if draft_store is None:
        draft_store = InMemoryDraftStore(ttl_minutes=app.draft_ttl_minutes)
        audit_storage = InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage, store_payloads=app.store_payloads)
    knowledge = KnowledgeBase(settings.knowledge.docs_dir, settings.knowledge.files_list)

    router = build_router(
        draft_store,
        LedgerTools(InMemoryLedgerRepository()),
        knowledge,
        audit_logger=audit_logger,
        default_due_days=app.default_due_days,
        default_valid_days=app.default_valid_days,
        max_name_length=app.max_name_message_length,
        list_limit=app.invoice_list_limit,
    )
    return router, sheets_client
