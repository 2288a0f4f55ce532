"""
Tests for AssistantRouter.classify_and_route

Every test goes through the single chat entry point, the way the Streamlit
page uses it.
"""

import pytest
from datetime import date

from zzp_assistant.models.drafts import DraftStatus
from zzp_assistant.orchestrator import (
    CANCEL_MESSAGE,
    EXPENSE_QUESTION,
    EXPENSE_RETRY_HINT,
    NO_KNOWLEDGE_MESSAGE,
    SETTINGS_MESSAGE,
    STORAGE_FAILURE_MESSAGE,
    build_router,
)
from zzp_assistant.services.storage import InMemoryDraftStore, StorageError
from zzp_assistant.validation.questions import FIELD_QUESTIONS


USER = "user-1"


class BrokenDraftStore(InMemoryDraftStore):
    async def list_active(self, user_id):
        raise StorageError("sheet unavailable")


class TestMultiStepRouting:
    """Tests for messages that feed drafts."""

    @pytest.mark.asyncio
    async def test_offerte_conversation(self, router, add_client, audit_storage):
        """Test a two-message quotation through the router."""
        add_client("Riza")

        first = await router.classify_and_route("Maak een offerte: 320 stops price 1.25", USER, "req_1")
        second = await router.classify_and_route("Riza", USER, "req_2")

        assert first.intent == "create_offerte"
        assert first.needs_more_info
        assert first.missing_fields == ["clientName"]
        assert second.intent == "create_offerte"
        assert second.type == "create_offerte"
        assert second.data["totals"]["total_with_vat"] == "484.00"
        assert audit_storage.steps("req_1")[0] == "intent_detected"

    @pytest.mark.asyncio
    async def test_yes_creates_unknown_client(self, router, repository):
        """Test that "ja" after the unknown-client prompt finishes the quotation."""
        await router.classify_and_route("Maak een offerte: 320 stops price 1.25", USER, "req_1")
        await router.classify_and_route("Riza", USER, "req_2")

        result = await router.classify_and_route("ja", USER, "req_3")

        assert result.intent == "create_offerte"
        assert result.message.startswith('Klant "Riza" is succesvol aangemaakt!')
        assert [client.name for client in repository.clients] == ["Riza"]
        assert len(repository.quotations) == 1

    @pytest.mark.asyncio
    async def test_unclassified_message_continues_draft(self, router, draft_store):
        """Test that a reply without keywords goes to the active draft."""
        await router.classify_and_route("Nieuwe klant", USER, "req_1")

        result = await router.classify_and_route("Bakkerij Smit", USER, "req_2")

        assert result.intent == "create_client"
        assert result.message == 'Klant "Bakkerij Smit" is succesvol aangemaakt!'

    @pytest.mark.asyncio
    async def test_cancel_active_draft(self, router, draft_store):
        """Test that a cancel word closes the draft."""
        first = await router.classify_and_route("Maak een factuur voor Acme", USER, "req_1")

        result = await router.classify_and_route("annuleren", USER, "req_2")

        assert result.type == "cancelled"
        assert result.message == CANCEL_MESSAGE
        assert result.conversation_id == first.conversation_id
        draft = await draft_store.get_by_id(first.conversation_id, USER)
        assert draft.status == DraftStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_without_draft_is_classified(self, router):
        """Test that a lone cancel word without a draft is an ordinary message."""
        result = await router.classify_and_route("annuleren", USER, "req_1")

        assert result.type != "cancelled"

    @pytest.mark.asyncio
    async def test_correction_through_router(self, router, draft_store):
        """Test "wijzig klant naar X" on the active draft."""
        await router.classify_and_route("Maak een factuur voor Acme", USER, "req_1")

        result = await router.classify_and_route("wijzig klant naar Jansen", USER, "req_2")

        draft = await draft_store.get(USER)
        assert draft.fields.client_name == "Jansen"
        assert result.needs_more_info
        assert result.missing_fields == ["items"]

    @pytest.mark.asyncio
    async def test_tenants_do_not_share_drafts(self, router):
        """Test that another user's reply doesn't touch the first user's draft."""
        await router.classify_and_route("Maak een offerte: 320 stops price 1.25", USER, "req_1")

        result = await router.classify_and_route("Riza", "user-2", "req_2")

        assert result.intent == "help_question"


class TestStatelessRouting:
    """Tests for help, expenses, queries and settings."""

    @pytest.mark.asyncio
    async def test_help_with_citations(self, router):
        """Test that help answers cite the doc sections they use."""
        result = await router.classify_and_route("Hoe werkt corrigeren?", USER, "req_1")

        assert result.intent == "help_question"
        assert result.type == "answer"
        assert "product.md: Annuleren en corrigeren" in result.citations
        assert "*Bron:" in result.message

    @pytest.mark.asyncio
    async def test_help_without_match(self, router):
        """Test the answer when no section matches."""
        result = await router.classify_and_route("xyzzy plugh", USER, "req_1")

        assert result.message == NO_KNOWLEDGE_MESSAGE
        assert result.citations == []

    @pytest.mark.asyncio
    async def test_settings_guidance(self, router):
        """Test that settings questions get guidance, never an action."""
        result = await router.classify_and_route("Hoe wijzig ik mijn wachtwoord?", USER, "req_1")

        assert result.type == "settings_guidance"
        assert result.message == SETTINGS_MESSAGE

    @pytest.mark.asyncio
    async def test_expense_single_shot(self, router, repository, audit_storage):
        """Test that a complete expense message creates it right away."""
        result = await router.classify_and_route("Uitgave koffie 15 euro 9% btw gisteren", USER, "req_1")

        assert result.intent == "create_uitgave"
        assert result.type == "create_expense"
        assert result.needs_confirmation
        assert result.data["expense_date"] == "2026-05-13"
        assert repository.expenses[0].vat_rate.value == "9"
        assert audit_storage.steps("req_1") == [
            "intent_detected",
            "create_started",
            "action_recorded",
            "create_success",
        ]

    @pytest.mark.asyncio
    async def test_expense_missing_fields(self, router, repository):
        """Test that an incomplete expense asks once and creates nothing."""
        result = await router.classify_and_route("Nieuwe uitgave", USER, "req_1")

        assert result.needs_more_info
        assert result.message == EXPENSE_QUESTION
        assert repository.expenses == []

    @pytest.mark.asyncio
    async def test_future_expense_is_reasked_then_created(self, router, repository):
        """Test that a future date is re-asked and a corrected expense goes through."""
        first = await router.classify_and_route("Uitgave koffie 15 euro morgen", USER, "req_1")

        assert first.needs_more_info
        assert first.missing_fields == ["date"]
        assert first.message.startswith(FIELD_QUESTIONS["create_uitgave"]["date"])
        assert "Datum ligt in de toekomst" in first.message
        assert first.message.endswith(EXPENSE_RETRY_HINT)
        assert repository.expenses == []

        second = await router.classify_and_route("Uitgave koffie 15 euro gisteren", USER, "req_2")

        assert not second.needs_more_info
        assert second.data["expense_date"] == "2026-05-13"
        assert len(repository.expenses) == 1

    @pytest.mark.asyncio
    async def test_query_invoices(self, router, add_client):
        """Test the invoice listing answer."""
        add_client("Riza")
        await router.classify_and_route("Maak een factuur voor Riza, bedrag 100", USER, "req_1")

        result = await router.classify_and_route("Toon mijn facturen", USER, "req_2")

        assert result.type == "query_invoices"
        assert result.message == "1 facturen gevonden."
        assert result.data["invoices"][0]["invoice_num"] == "2026-001"

    @pytest.mark.asyncio
    async def test_query_expenses(self, router):
        """Test the expense listing answer."""
        await router.classify_and_route("Uitgave software 121 euro", USER, "req_1")

        result = await router.classify_and_route("Toon mijn uitgaven", USER, "req_2")

        assert result.type == "query_expenses"
        assert result.message == "1 uitgaven gevonden, totaal €121.00"

    @pytest.mark.asyncio
    async def test_compute_btw(self, router, audit_storage):
        """Test the VAT summary for the current quarter."""
        result = await router.classify_and_route("Hoeveel btw moet ik dit kwartaal betalen?", USER, "req_1")

        assert result.type == "compute_btw"
        assert result.message.startswith("Voor de periode 1-4-2026 tot 30-6-2026")
        assert "query_executed" in audit_storage.steps("req_1")


class TestFailureHandling:
    """Tests for storage failures at the entry point."""

    @pytest.mark.asyncio
    async def test_storage_failure_gives_apology(self, tools, knowledge, audit_logger, audit_storage):
        """Test that an unreachable draft store never raises to the caller."""
        router = build_router(
            BrokenDraftStore(),
            tools,
            knowledge,
            audit_logger=audit_logger,
            today=lambda: date(2026, 5, 14),
        )

        result = await router.classify_and_route("Maak een factuur voor Acme", USER, "req_1")

        assert result.intent == "unknown"
        assert result.message == STORAGE_FAILURE_MESSAGE
        assert audit_storage.steps("req_1")[-1] == "system_error"
