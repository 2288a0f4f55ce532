"""
Tests for the conversation controller and the action executor

Test strategy:
1. Walk real multi-turn conversations over the in-memory store
2. Check the audit trail step by step
3. Failing tools must never raise out of the executor
"""

import pytest
from decimal import Decimal

from zzp_assistant.conversation import (
    UNEXPECTED_ERROR_MESSAGE,
    ActionExecutor,
    normalize_correction,
)
from zzp_assistant.conversation.executor import CLIENT_NOT_FOUND_MESSAGE
from zzp_assistant.models.drafts import DraftIntent, DraftStatus, InvoiceDraftFields
from zzp_assistant.models.results import FieldCorrection
from zzp_assistant.services.storage import StorageError
from zzp_assistant.tools import LedgerTools
from zzp_assistant.validation.questions import FIELD_QUESTIONS


USER = "user-1"


class ExplodingTools(LedgerTools):
    """Ledger tools whose invoice creation always fails."""

    def __init__(self, repository, error):
        super().__init__(repository)
        self._error = error

    async def create_invoice_draft(self, fields, user_id):
        raise self._error


class TestActionExecutor:
    """Tests for ActionExecutor."""

    @pytest.mark.asyncio
    async def test_create_client(self, executor, audit_storage):
        """Test the success message and the audit record with a payload hash."""
        result = await executor.execute("create_client", {"name": "Jan de Vries"}, USER, "req_1")

        assert result.success
        assert result.message == 'Klant "Jan de Vries" is succesvol aangemaakt!'
        assert result.type == "create_client"
        assert result.data["name"] == "Jan de Vries"

        action = audit_storage.events[-1]
        assert action.event_type.value == "action_recorded"
        assert action.entity_id == result.data["id"]
        assert len(action.payload_hash) == 64
        assert "payload" not in action.details

    @pytest.mark.asyncio
    async def test_existing_client(self, executor, add_client):
        """Test the message for a client that already exists."""
        add_client("Jan de Vries")

        result = await executor.execute("create_client", {"name": "jan de vries"}, USER, "req_1")

        assert result.success
        assert result.message == 'Klant "Jan de Vries" bestond al in je systeem.'

    @pytest.mark.asyncio
    async def test_invoice_defaults_due_days(self, executor, add_client):
        """Test that a missing payment term gets the default."""
        add_client("Acme")

        result = await executor.execute(
            "create_factuur", {"clientName": "Acme", "amount": Decimal("100")}, USER, "req_1"
        )

        assert result.success
        assert result.type == "create_invoice"
        assert result.message == "Factuur 2026-001 voor Acme is aangemaakt! Totaal: €121.00"
        assert result.data["due_date"] == "2026-05-28"

    @pytest.mark.asyncio
    async def test_unknown_client_prompts_creation(self, executor):
        """Test the distinguished client-not-found result."""
        result = await executor.execute(
            "create_offerte", {"clientName": "Riza", "amount": Decimal("100")}, USER, "req_1"
        )

        assert not result.success
        assert result.needs_client_creation
        assert result.data == {"clientName": "Riza"}
        assert result.message == CLIENT_NOT_FOUND_MESSAGE.format(client_name="Riza")
        assert '"ja"' in result.message

    @pytest.mark.asyncio
    async def test_unexpected_error_is_caught(self, repository, audit_logger, audit_storage):
        """Test that any exception becomes a generic failure result."""
        executor = ActionExecutor(ExplodingTools(repository, RuntimeError("boom")), audit_logger)

        result = await executor.execute(
            "create_factuur", {"clientName": "Acme", "amount": Decimal("1")}, USER, "req_1"
        )

        assert not result.success
        assert result.message == UNEXPECTED_ERROR_MESSAGE
        assert audit_storage.steps("req_1") == ["system_error", "action_recorded"]
        assert audit_storage.events[-1].details["success"] is False

    @pytest.mark.asyncio
    async def test_storage_error_has_specific_message(self, repository, audit_logger):
        """Test that a storage failure gets the per-intent message."""
        executor = ActionExecutor(ExplodingTools(repository, StorageError("down")), audit_logger)

        result = await executor.execute(
            "create_factuur", {"clientName": "Acme", "amount": Decimal("1")}, USER, "req_1"
        )

        assert not result.success
        assert result.message == "Er ging iets mis bij het aanmaken van de factuur."

    @pytest.mark.asyncio
    async def test_unknown_action(self, executor):
        """Test an intent without a creation tool."""
        result = await executor.execute("query_invoices", {}, USER, "req_1")

        assert not result.success
        assert "query_invoices" in result.message


class TestConversationScenarios:
    """End-to-end drafting conversations through the controller."""

    @pytest.mark.asyncio
    async def test_offerte_asks_for_client(self, controller, draft_store, audit_storage):
        """Test that items without a client lead to the client question."""
        response = await controller.handle_multi_step_message(
            "320 stops price 1.25", DraftIntent.CREATE_OFFERTE, USER, "req_1"
        )

        assert response.needs_more_info
        assert response.missing_fields == ["clientName"]
        assert response.message == "Voor welke klant is deze offerte?"

        draft = await draft_store.get(USER)
        item = draft.fields.items[0]
        assert item.description == "stops"
        assert item.quantity == Decimal("320")
        assert item.price == Decimal("1.25")
        assert item.unit.value == "STUK"
        assert item.vat_rate.value == "21"
        assert audit_storage.steps("req_1") == ["draft_updated", "validation_failed"]

    @pytest.mark.asyncio
    async def test_offerte_completes_with_client_name(
        self, controller, draft_store, repository, add_client, audit_storage
    ):
        """Test that the client name completes and executes the quotation."""
        add_client("Riza")
        first = await controller.handle_multi_step_message(
            "320 stops price 1.25", DraftIntent.CREATE_OFFERTE, USER, "req_1"
        )

        response = await controller.handle_multi_step_message(
            "Riza", DraftIntent.CREATE_OFFERTE, USER, "req_2"
        )

        assert not response.needs_more_info
        assert response.conversation_id == first.conversation_id
        assert response.type == "create_offerte"
        assert response.data["totals"]["subtotal"] == "400.00"
        assert response.data["totals"]["vat_amount"] == "84.00"
        assert response.data["totals"]["total_with_vat"] == "484.00"
        assert "Totaal: €484.00" in response.message

        draft = await draft_store.get_by_id(first.conversation_id, USER)
        assert draft.status == DraftStatus.CONFIRMED
        assert len(repository.quotations) == 1
        assert audit_storage.steps("req_2") == [
            "draft_updated",
            "create_started",
            "action_recorded",
            "create_success",
        ]

    @pytest.mark.asyncio
    async def test_bare_name_creates_client(self, controller, repository):
        """Test that a short plain message is the new client's name."""
        response = await controller.handle_multi_step_message(
            "Jan de Vries", DraftIntent.CREATE_CLIENT, USER, "req_1"
        )

        assert not response.needs_more_info
        assert response.message == 'Klant "Jan de Vries" is succesvol aangemaakt!'
        assert repository.clients[0].name == "Jan de Vries"

    @pytest.mark.asyncio
    async def test_unknown_client_keeps_collecting(self, controller, draft_store, audit_storage):
        """Test that a missing client returns the draft to collecting."""
        await controller.handle_multi_step_message(
            "320 stops price 1.25", DraftIntent.CREATE_OFFERTE, USER, "req_1"
        )

        response = await controller.handle_multi_step_message(
            "Riza", DraftIntent.CREATE_OFFERTE, USER, "req_2"
        )

        assert response.needs_more_info
        assert response.data == {"clientName": "Riza"}
        assert "niet gevonden" in response.message
        draft = await draft_store.get(USER)
        assert draft.status == DraftStatus.COLLECTING
        failed = [e for e in audit_storage.events if e.event_type.value == "create_failed"]
        assert failed[0].details["reason"] == "client_not_found"

    @pytest.mark.asyncio
    async def test_merge_never_overwrites(self, controller, draft_store):
        """Test that later messages only fill absent fields."""
        await controller.handle_multi_step_message(
            "factuur voor Acme", DraftIntent.CREATE_FACTUUR, USER, "req_1"
        )
        await controller.handle_multi_step_message(
            "factuur voor Jansen", DraftIntent.CREATE_FACTUUR, USER, "req_2"
        )

        draft = await draft_store.get(USER)
        assert draft.fields.client_name == "Acme"

    @pytest.mark.asyncio
    async def test_confirmed_draft_is_never_executed_again(self, controller, draft_store, repository):
        """Test that replaying a message after success starts a fresh draft."""
        await controller.handle_multi_step_message(
            "Jan de Vries", DraftIntent.CREATE_CLIENT, USER, "req_1"
        )
        first_count = draft_store.count()

        replay = await controller.handle_multi_step_message(
            "Jan de Vries", DraftIntent.CREATE_CLIENT, USER, "req_2"
        )

        assert draft_store.count() == first_count + 1
        assert len(repository.clients) == 1
        assert replay.message == 'Klant "Jan de Vries" bestond al in je systeem.'

    @pytest.mark.asyncio
    async def test_confirmed_invoice_is_never_executed_again(
        self, controller, draft_store, add_client, repository, audit_storage
    ):
        """Test that a replayed invoice message opens a new draft instead of re-running the old one."""
        add_client("Acme")
        message = "factuur voor Acme, bedrag 500"

        first = await controller.handle_multi_step_message(
            message, DraftIntent.CREATE_FACTUUR, USER, "req_1"
        )
        assert len(repository.invoices) == 1

        replay = await controller.handle_multi_step_message(
            message, DraftIntent.CREATE_FACTUUR, USER, "req_2"
        )

        assert replay.conversation_id != first.conversation_id
        assert draft_store.count() == 2
        confirmed = await draft_store.get_by_id(first.conversation_id, USER)
        assert confirmed.status == DraftStatus.CONFIRMED
        assert [invoice.invoice_num for invoice in repository.invoices] == ["2026-001", "2026-002"]
        executed = [
            event.details["conversation_id"]
            for event in audit_storage.events
            if event.event_type.value == "create_success"
        ]
        assert executed == [first.conversation_id, replay.conversation_id]

    @pytest.mark.asyncio
    async def test_expired_draft_is_replaced(self, controller, draft_store, clock, audit_storage):
        """Test that a stale draft is expired and a new one is started."""
        first = await controller.handle_multi_step_message(
            "320 stops price 1.25", DraftIntent.CREATE_OFFERTE, USER, "req_1"
        )
        clock.advance(31)

        second = await controller.handle_multi_step_message(
            "Riza", DraftIntent.CREATE_OFFERTE, USER, "req_2"
        )

        assert second.conversation_id != first.conversation_id
        assert "draft_expired" in audit_storage.steps("req_2")
        draft = await draft_store.get(USER)
        assert draft.fields.items is None

    @pytest.mark.asyncio
    async def test_cancel_active(self, controller, draft_store, audit_storage):
        """Test cancelling the current draft."""
        await controller.handle_multi_step_message(
            "factuur voor Acme", DraftIntent.CREATE_FACTUUR, USER, "req_1"
        )

        cancelled = await controller.cancel_active(USER, request_id="req_2")

        assert cancelled.status == DraftStatus.CANCELLED
        assert await draft_store.get(USER) is None
        assert audit_storage.steps("req_2") == ["draft_cancelled"]
        assert await controller.cancel_active(USER) is None


class TestInvalidFieldAnswers:
    """Tests for answering the re-ask of a field whose value is invalid."""

    @pytest.mark.asyncio
    async def test_reanswered_items_complete_the_invoice(self, controller, add_client, repository):
        """Test that new line items replace a line with quantity 0."""
        add_client("Acme")

        first = await controller.handle_multi_step_message(
            "factuur voor Acme: 0 uur x 75", DraftIntent.CREATE_FACTUUR, USER, "req_1"
        )

        assert first.needs_more_info
        assert first.missing_fields == ["items"]
        assert first.message.startswith(FIELD_QUESTIONS["create_factuur"]["items"])
        assert "aantal moet groter zijn dan 0" in first.message
        assert repository.invoices == []

        second = await controller.handle_multi_step_message(
            "10 uur x 75", DraftIntent.CREATE_FACTUUR, USER, "req_2"
        )

        assert not second.needs_more_info
        assert second.message == "Factuur 2026-001 voor Acme is aangemaakt! Totaal: €907.50"
        assert repository.invoices[0].lines[0].quantity == Decimal("10")

    @pytest.mark.asyncio
    async def test_reanswered_amount_completes_the_invoice(self, controller, add_client, repository):
        """Test that a bare amount replaces an amount of 0."""
        add_client("Acme")

        first = await controller.handle_multi_step_message(
            "factuur voor Acme bedrag 0", DraftIntent.CREATE_FACTUUR, USER, "req_1"
        )

        assert first.missing_fields == ["amount"]
        assert first.message.startswith(FIELD_QUESTIONS["create_factuur"]["amount"])
        assert "bedrag moet groter zijn dan 0" in first.message

        second = await controller.handle_multi_step_message(
            "500", DraftIntent.CREATE_FACTUUR, USER, "req_2"
        )

        assert not second.needs_more_info
        assert len(repository.invoices) == 1
        assert repository.invoices[0].totals.total_with_vat == Decimal("605.00")

    @pytest.mark.asyncio
    async def test_valid_fields_stay_while_invalid_one_is_replaced(
        self, controller, add_client, repository
    ):
        """Test that only the invalid field takes the new value."""
        add_client("Acme")
        await controller.handle_multi_step_message(
            "factuur voor Acme bedrag 0", DraftIntent.CREATE_FACTUUR, USER, "req_1"
        )

        await controller.handle_multi_step_message(
            "factuur voor Jansen bedrag 500", DraftIntent.CREATE_FACTUUR, USER, "req_2"
        )

        assert repository.invoices[0].client_name == "Acme"
        assert repository.invoices[0].totals.subtotal == Decimal("500.00")


class TestClientCreationReply:
    """Tests for answering "ja" to the unknown-client prompt."""

    @pytest.mark.asyncio
    async def test_yes_creates_client_then_quotation(
        self, controller, draft_store, repository, audit_storage
    ):
        """Test that "ja" creates the missing client and then the quotation."""
        await controller.handle_multi_step_message(
            "320 stops price 1.25", DraftIntent.CREATE_OFFERTE, USER, "req_1"
        )
        prompt = await controller.handle_multi_step_message(
            "Riza", DraftIntent.CREATE_OFFERTE, USER, "req_2"
        )
        assert prompt.message == CLIENT_NOT_FOUND_MESSAGE.format(client_name="Riza")

        response = await controller.handle_multi_step_message(
            "ja", DraftIntent.CREATE_OFFERTE, USER, "req_3"
        )

        assert not response.needs_more_info
        assert response.message == (
            'Klant "Riza" is succesvol aangemaakt! '
            "Offerte OFF-2026-001 voor Riza is aangemaakt! Totaal: €484.00"
        )
        assert [client.name for client in repository.clients] == ["Riza"]
        assert len(repository.quotations) == 1
        draft = await draft_store.get_by_id(response.conversation_id, USER)
        assert draft.status == DraftStatus.CONFIRMED
        assert audit_storage.steps("req_3") == [
            "create_started",
            "action_recorded",
            "create_success",
            "create_started",
            "action_recorded",
            "create_success",
        ]

    @pytest.mark.asyncio
    async def test_yes_on_incomplete_draft_is_an_ordinary_reply(self, controller, repository):
        """Test that "ja" creates nothing while the draft still lacks fields."""
        await controller.handle_multi_step_message(
            "factuur voor Acme", DraftIntent.CREATE_FACTUUR, USER, "req_1"
        )

        response = await controller.handle_multi_step_message(
            "ja", DraftIntent.CREATE_FACTUUR, USER, "req_2"
        )

        assert response.needs_more_info
        assert response.missing_fields == ["items"]
        assert repository.clients == []


class TestCorrections:
    """Tests for explicit field corrections."""

    @pytest.mark.asyncio
    async def test_correction_overrides_field(self, controller, draft_store):
        """Test that a correction replaces a present field."""
        await controller.handle_multi_step_message(
            "factuur voor Acme", DraftIntent.CREATE_FACTUUR, USER, "req_1"
        )

        response = await controller.apply_correction(
            USER, FieldCorrection(target="clientName", value="Jansen", raw_field="klant"), "req_2"
        )

        draft = await draft_store.get(USER)
        assert draft.fields.client_name == "Jansen"
        assert response.needs_more_info
        assert response.missing_fields == ["items"]

    @pytest.mark.asyncio
    async def test_correction_completes_draft(self, controller, add_client, repository):
        """Test that correcting the client can make the draft executable."""
        add_client("Jansen")
        await controller.handle_multi_step_message(
            "factuur voor Acme, bedrag 500", DraftIntent.CREATE_FACTUUR, USER, "req_1"
        )

        response = await controller.apply_correction(
            USER, FieldCorrection(target="clientName", value="Jansen"), "req_2"
        )

        assert not response.needs_more_info
        assert repository.invoices[0].client_name == "Jansen"

    @pytest.mark.asyncio
    async def test_field_not_on_draft(self, controller):
        """Test correcting a field the draft kind doesn't have."""
        await controller.handle_multi_step_message(
            "factuur voor Acme", DraftIntent.CREATE_FACTUUR, USER, "req_1"
        )

        response = await controller.apply_correction(
            USER, FieldCorrection(target="email", value="a@b.nl", raw_field="email"), "req_2"
        )

        assert response.message == "Het veld 'email' hoort niet bij een factuur."

    @pytest.mark.asyncio
    async def test_unreadable_value(self, controller):
        """Test a correction whose value cannot be parsed."""
        await controller.handle_multi_step_message(
            "factuur voor Acme", DraftIntent.CREATE_FACTUUR, USER, "req_1"
        )

        response = await controller.apply_correction(
            USER, FieldCorrection(target="amount", value="veel", raw_field="bedrag"), "req_2"
        )

        assert response.message == "Ik kon 'veel' niet lezen als waarde voor bedrag."

    @pytest.mark.asyncio
    async def test_no_active_draft(self, controller):
        """Test that a correction without a draft is not handled."""
        correction = FieldCorrection(target="amount", value="5")

        assert await controller.apply_correction(USER, correction) is None

    def test_normalize_correction(self):
        """Test value normalization per field."""
        assert normalize_correction("amount", "€ 1.250,50") == Decimal("1250.50")
        assert normalize_correction("vatRate", "9%") == "9"
        assert normalize_correction("dueInDays", "30 dagen") == 30
        assert normalize_correction("dueInDays", "snel") is None
        assert normalize_correction("clientName", "  Acme ") == "Acme"


class TestDraftFieldMerging:
    """Tests for the absent-only merge on the partial models."""

    def test_merge_absent(self):
        """Test that present fields are kept and absent ones filled."""
        fields = InvoiceDraftFields(client_name="Acme")

        merged, applied = fields.merge_absent({"clientName": "Jansen", "amount": Decimal("5")})

        assert merged.client_name == "Acme"
        assert merged.amount == Decimal("5")
        assert applied == {"amount": Decimal("5")}

    def test_merge_nothing_new(self):
        """Test that a merge without absent fields changes nothing."""
        fields = InvoiceDraftFields(client_name="Acme")

        merged, applied = fields.merge_absent({"clientName": "Jansen"})

        assert merged is fields
        assert applied == {}

    def test_merge_replaces_listed_fields(self):
        """Test that a field listed as replaceable takes the new value."""
        fields = InvoiceDraftFields(client_name="Acme", amount=Decimal("0"))

        merged, applied = fields.merge_absent(
            {"clientName": "Jansen", "amount": Decimal("500")}, replaceable=["amount"]
        )

        assert merged.client_name == "Acme"
        assert merged.amount == Decimal("500")
        assert applied == {"amount": Decimal("500")}
