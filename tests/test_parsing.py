"""
Tests for the deterministic parsers

Test strategy:
1. Normalizers are total: garbage in gives None or the documented default
2. Extractors only propose fields, checked message by message
"""

import pytest
from datetime import date
from decimal import Decimal

from zzp_assistant.models.drafts import DraftIntent, PaymentMethod, Unit, VatRate
from zzp_assistant.parsing import (
    DEFAULT_DESCRIPTION,
    extract_amount,
    extract_client_name,
    extract_fields,
    extract_vat_rate,
    infer_unit,
    normalize_decimal,
    normalize_vat_rate,
    parse_client,
    parse_date,
    parse_expense,
    parse_line_items,
)


TODAY = date(2026, 5, 14)


class TestNormalizeDecimal:
    """Tests for comma/dot number parsing."""

    @pytest.mark.parametrize("text,expected", [
        ("1,25", Decimal("1.25")),
        ("1.25", Decimal("1.25")),
        ("320", Decimal("320")),
        ("€ 15", Decimal("15")),
        ("1.250,50", Decimal("1250.50")),
        ("1,250.50", Decimal("1250.50")),
    ])
    def test_parses_both_separators(self, text, expected):
        """Test that comma and dot both work as decimal separator."""
        assert normalize_decimal(text) == expected

    @pytest.mark.parametrize("text", ["", "abc", "1.2.3", None])
    def test_garbage_gives_none(self, text):
        """Test that unparseable input gives None instead of raising."""
        assert normalize_decimal(text) is None

    def test_numbers_pass_through(self):
        """Test that int and Decimal input are accepted as-is."""
        assert normalize_decimal(5) == Decimal("5")
        assert normalize_decimal(Decimal("2.50")) == Decimal("2.50")


class TestNormalizeVatRate:
    """Tests for bucketing VAT percentages."""

    @pytest.mark.parametrize("value,expected", [
        ("21", VatRate.HIGH),
        ("21%", VatRate.HIGH),
        ("0.21", VatRate.HIGH),
        ("20", VatRate.HIGH),
        ("22", VatRate.HIGH),
        ("9", VatRate.LOW),
        ("9 %", VatRate.LOW),
        ("0.09", VatRate.LOW),
        ("8", VatRate.LOW),
        ("0", VatRate.ZERO),
    ])
    def test_buckets(self, value, expected):
        """Test that percentages map onto the three legal rates."""
        assert normalize_vat_rate(value) == expected

    @pytest.mark.parametrize("value", ["15", "abc", "", None, "100"])
    def test_everything_else_is_high(self, value):
        """Test that unknown rates fall back to 21%."""
        assert normalize_vat_rate(value) == VatRate.HIGH

    def test_extract_embedded_rate(self):
        """Test finding a rate inside a sentence."""
        assert extract_vat_rate("10 uur @ 75 btw 9%") == VatRate.LOW
        assert extract_vat_rate("lunch 20 euro 9% btw") == VatRate.LOW
        assert extract_vat_rate("vat 21") == VatRate.HIGH
        assert extract_vat_rate("10 uur @ 75") is None


class TestParseDate:
    """Tests for relative words and Dutch date formats."""

    def test_relative_words(self):
        """Test vandaag/gisteren/morgen and their English variants."""
        assert parse_date("vandaag", today=TODAY) == TODAY
        assert parse_date("gisteren getankt", today=TODAY) == date(2026, 5, 13)
        assert parse_date("tomorrow", today=TODAY) == date(2026, 5, 15)

    def test_formats(self):
        """Test DD-MM-YYYY, DD/MM/YYYY and ISO dates."""
        assert parse_date("op 3-2-2026", today=TODAY) == date(2026, 2, 3)
        assert parse_date("03/02/2026", today=TODAY) == date(2026, 2, 3)
        assert parse_date("2026-02-03", today=TODAY) == date(2026, 2, 3)

    def test_impossible_date_gives_none(self):
        """Test that 31-02 is rejected rather than raising."""
        assert parse_date("31-02-2026", today=TODAY) is None
        assert parse_date("geen datum", today=TODAY) is None


class TestInferUnit:
    """Tests for unit detection on whole words."""

    def test_whole_words_only(self):
        """Test that "stops" is not the STOP unit but "stop" is."""
        assert infer_unit("320 stops") == Unit.STUK
        assert infer_unit("1 stop") == Unit.STOP

    def test_known_units(self):
        """Test the other unit words."""
        assert infer_unit("40 uur werk") == Unit.UUR
        assert infer_unit("120 km") == Unit.KM
        assert infer_unit("2 licenties") == Unit.LICENTIE
        assert infer_unit("iets anders") == Unit.STUK


class TestParseLineItems:
    """Tests for line item extraction."""

    def test_price_word_form(self):
        """Test "320 stops price 1.25"."""
        items = parse_line_items("320 stops price 1.25")

        assert len(items) == 1
        item = items[0]
        assert item.description == "stops"
        assert item.quantity == Decimal("320")
        assert item.price == Decimal("1.25")
        assert item.unit == Unit.STUK
        assert item.vat_rate == VatRate.HIGH

    def test_operator_form_with_vat(self):
        """Test "10 uur @ 75 btw 9%" keeps the per-line rate."""
        items = parse_line_items("Webdesign 10 uur @ 75 btw 9%")

        assert len(items) == 1
        assert items[0].quantity == Decimal("10")
        assert items[0].price == Decimal("75")
        assert items[0].unit == Unit.UUR
        assert items[0].vat_rate == VatRate.LOW
        assert items[0].description == "Webdesign"

    def test_several_clauses(self):
        """Test that clauses split on commas and semicolons."""
        items = parse_line_items("10 uur @ 75; 5 stuks kabel 2,50")

        assert len(items) == 2
        assert items[1].quantity == Decimal("5")
        assert items[1].price == Decimal("2.50")
        assert items[1].description == "kabel"

    def test_no_items(self):
        """Test that plain text yields nothing."""
        assert parse_line_items("Riza") == []


class TestClientNameAndAmount:
    """Tests for client name and bare amount extraction."""

    def test_voor_name(self):
        """Test "voor X" up to a separator."""
        assert extract_client_name("Maak een factuur voor Acme BV, 10 uur @ 75") == "Acme BV"

    def test_name_before_amount(self):
        """Test "Acme 500" style messages."""
        assert extract_client_name("Jansen 500") == "Jansen"

    def test_no_name(self):
        """Test a message without a client."""
        assert extract_client_name("320 stops price 1.25") is None

    def test_amounts(self):
        """Test "bedrag", euro sign and bare numbers."""
        assert extract_amount("bedrag 500") == Decimal("500")
        assert extract_amount("€ 1.250,00") == Decimal("1250.00")
        assert extract_amount("750") == Decimal("750")
        assert extract_amount("geen bedrag hier") is None


class TestParseClient:
    """Tests for client detail parsing."""

    def test_company_with_email_and_kvk(self):
        """Test name, e-mail and KVK number."""
        client = parse_client("Acme BV, info@acme.nl, KVK 12345678")

        assert client.name == "Acme BV"
        assert client.email == "info@acme.nl"
        assert client.kvk_number == "12345678"

    def test_postal_code_and_city(self):
        """Test the Dutch postal code with the city after it."""
        client = parse_client("Jan de Vries, 1234 AB Amsterdam")

        assert client.name == "Jan de Vries"
        assert client.postal_code == "1234AB"
        assert client.city == "Amsterdam"

    def test_command_words_are_not_the_name(self):
        """Test that "Nieuwe klant:" is stripped from the name."""
        client = parse_client("Nieuwe klant: Bakkerij Smit")

        assert client.name == "Bakkerij Smit"


class TestParseExpense:
    """Tests for single-message expense parsing."""

    def test_full_expense(self):
        """Test category, amount, VAT and date in one message."""
        expense = parse_expense("Koffie 15 euro 9% btw gisteren", today=TODAY)

        assert expense.category == "Horeca"
        assert expense.amount == Decimal("15")
        assert expense.vat_rate == VatRate.LOW
        assert expense.expense_date == date(2026, 5, 13)
        assert expense.vendor == "Koffie"

    def test_payment_method(self):
        """Test that the payment method is recognised and removed."""
        expense = parse_expense("Tankstation 50,25 gepind", today=TODAY)

        assert expense.category == "Brandstof"
        assert expense.amount == Decimal("50.25")
        assert expense.payment_method == PaymentMethod.CARD

    def test_unknown_category(self):
        """Test that an unrecognised expense has no category."""
        expense = parse_expense("iets 12 euro", today=TODAY)

        assert expense.category is None
        assert expense.amount == Decimal("12")


class TestExtractFields:
    """Tests for per-intent candidate updates."""

    def test_offerte_items_without_client(self):
        """Test the first message of a quotation conversation."""
        updates = extract_fields(DraftIntent.CREATE_OFFERTE, "320 stops price 1.25")

        assert "clientName" not in updates
        assert len(updates["items"]) == 1
        assert updates["items"][0]["description"] == "stops"

    def test_short_message_is_client_name(self):
        """Test that a short digit-free reply becomes the client name."""
        updates = extract_fields(DraftIntent.CREATE_OFFERTE, "Riza", {"items": [{}]})

        assert updates == {"clientName": "Riza"}

    def test_existing_fields_are_not_proposed(self):
        """Test that a present field is never proposed again."""
        updates = extract_fields(
            DraftIntent.CREATE_FACTUUR,
            "Jansen",
            {"clientName": "Acme"},
        )

        assert "clientName" not in updates

    def test_replaceable_field_is_proposed_again(self):
        """Test that a present but invalid amount is read from the answer."""
        updates = extract_fields(
            DraftIntent.CREATE_FACTUUR,
            "500",
            {"clientName": "Acme", "amount": Decimal("0")},
            replaceable={"amount": "bedrag moet groter zijn dan 0"},
        )

        assert updates == {"amount": Decimal("500")}

    def test_replaceable_items_from_answer(self):
        """Test that new line items are proposed for invalid ones."""
        updates = extract_fields(
            DraftIntent.CREATE_FACTUUR,
            "10 uur x 75",
            {"clientName": "Acme", "items": [{"quantity": Decimal("0")}]},
            replaceable=["items"],
        )

        assert updates["items"][0]["quantity"] == Decimal("10")
        assert "clientName" not in updates

    def test_client_bare_name(self):
        """Test that a plain short message is the client name."""
        updates = extract_fields(DraftIntent.CREATE_CLIENT, "Jan de Vries")

        assert updates["name"] == "Jan de Vries"

    def test_long_message_is_not_a_name(self):
        """Test the length limit on the bare-name heuristic."""
        message = "dit is een hele lange zin zonder enige bruikbare gegevens erin"
        updates = extract_fields(DraftIntent.CREATE_FACTUUR, message, max_name_length=20)

        assert "clientName" not in updates

    def test_days_and_vat(self):
        """Test payment term and document VAT rate."""
        updates = extract_fields(
            DraftIntent.CREATE_FACTUUR,
            "factuur voor Acme, bedrag 500, btw 9%, 30 dagen",
        )

        assert updates["clientName"] == "Acme"
        assert updates["amount"] == Decimal("500")
        assert updates["vatRate"] == "9"
        assert updates["dueInDays"] == 30

    def test_default_description_constant(self):
        """Test the fallback description for amount-only lines."""
        assert DEFAULT_DESCRIPTION == "Dienstverlening"
