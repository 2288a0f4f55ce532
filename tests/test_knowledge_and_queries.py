"""Tests for the product knowledge base, query filters and settings."""

import pytest
from datetime import date

from zzp_assistant.config import AppSettings, KnowledgeSettings
from zzp_assistant.knowledge import KnowledgeBase, build_context, split_sections
from zzp_assistant.models.records import BtwPeriod, InvoiceStatus
from zzp_assistant.queries import (
    btw_period_from_message,
    expense_filters_from_message,
    invoice_filters_from_message,
)


TODAY = date(2026, 5, 14)

DOC = """# Facturen

Alles over facturen.

## Factuur maken
Zeg "maak een factuur voor Acme".

## Leeg

## Herinneringen
Stuur een herinnering na de vervaldatum.
"""


class TestSplitSections:
    """Tests for markdown chunking."""

    def test_sections(self):
        """Test the title section, heading sections and dropping empty ones."""
        sections = split_sections("facturen.md", DOC)

        assert [section.heading for section in sections] == ["Facturen", "Factuur maken", "Herinneringen"]
        assert sections[0].content == "Alles over facturen."
        assert sections[1].citation == "facturen.md: Factuur maken"

    def test_preamble_without_title_is_dropped(self):
        """Test that text before the first heading needs a # title."""
        sections = split_sections("x.md", "losse tekst\n\n## Kop\ninhoud")

        assert [section.heading for section in sections] == ["Kop"]

    def test_build_context(self):
        """Test the markdown rendering of sections."""
        sections = split_sections("facturen.md", DOC)[1:2]

        assert build_context(sections) == '## Factuur maken\nZeg "maak een factuur voor Acme".'


class TestKnowledgeBase:
    """Tests for KnowledgeBase over a temporary docs directory."""

    def test_heading_match_ranks_first(self, tmp_path):
        """Test that a heading hit outranks a text-only hit."""
        (tmp_path / "facturen.md").write_text(DOC, encoding="utf-8")
        kb = KnowledgeBase(tmp_path, ["facturen.md"])

        sections = kb.find_relevant_sections("Hoe stuur ik herinneringen?")

        assert sections[0].heading == "Herinneringen"

    def test_short_words_are_ignored(self, tmp_path):
        """Test that words of three letters or less never match."""
        (tmp_path / "facturen.md").write_text(DOC, encoding="utf-8")
        kb = KnowledgeBase(tmp_path, ["facturen.md"])

        assert kb.find_relevant_sections("een de na") == []

    def test_max_sections(self, tmp_path):
        """Test the limit on returned sections."""
        (tmp_path / "facturen.md").write_text(DOC, encoding="utf-8")
        kb = KnowledgeBase(tmp_path, ["facturen.md"])

        assert len(kb.find_relevant_sections("facturen factuur herinnering", max_sections=2)) == 2

    def test_missing_file_is_skipped(self, tmp_path):
        """Test that an unreadable doc doesn't break loading."""
        (tmp_path / "facturen.md").write_text(DOC, encoding="utf-8")
        kb = KnowledgeBase(tmp_path, ["bestaat-niet.md", "facturen.md"])

        assert len(kb.load()) == 3

    def test_invalidate_reloads(self, tmp_path):
        """Test that docs are cached until invalidated."""
        path = tmp_path / "facturen.md"
        path.write_text(DOC, encoding="utf-8")
        kb = KnowledgeBase(tmp_path, ["facturen.md"])
        kb.load()

        path.write_text("# Nieuw\n\nAndere inhoud.", encoding="utf-8")
        assert len(kb.load()) == 3

        kb.invalidate()
        assert [section.heading for section in kb.load()] == ["Nieuw"]

    def test_shipped_docs_load(self, knowledge):
        """Test that the packaged docs all load."""
        files = {section.file for section in knowledge.load()}

        assert files == {"product.md", "features.md", "faq.md", "vat.md"}


class TestQueryFilters:
    """Tests for the keyword rules that build query filters."""

    @pytest.mark.parametrize("message,status", [
        ("toon onbetaalde facturen", InvoiceStatus.VERZONDEN),
        ("show unpaid invoices", InvoiceStatus.VERZONDEN),
        ("toon betaalde facturen", InvoiceStatus.BETAALD),
        ("toon concept facturen", InvoiceStatus.CONCEPT),
        ("toon mijn facturen", None),
    ])
    def test_invoice_status(self, message, status):
        """Test that "onbetaald" is not mistaken for "betaald"."""
        assert invoice_filters_from_message(message, TODAY).status == status

    def test_this_month(self):
        """Test the month range on listings."""
        filters = invoice_filters_from_message("facturen van deze maand", TODAY, limit=5)
        expenses = expense_filters_from_message("uitgaven deze maand", TODAY)

        assert (filters.from_date, filters.to_date) == (date(2026, 5, 1), date(2026, 5, 31))
        assert filters.limit == 5
        assert expenses.from_date == date(2026, 5, 1)

    @pytest.mark.parametrize("message,period", [
        ("btw deze maand", BtwPeriod.MONTH),
        ("btw dit kwartaal", BtwPeriod.QUARTER),
        ("btw dit jaar", BtwPeriod.YEAR),
        ("hoeveel btw", BtwPeriod.QUARTER),
    ])
    def test_btw_period(self, message, period):
        """Test period detection with the quarter as default."""
        assert btw_period_from_message(message) == period


class TestSettings:
    """Tests for configuration defaults."""

    def test_app_defaults(self, monkeypatch):
        """Test that the engine runs with defaults only."""
        monkeypatch.delenv("DRAFT_TTL_MINUTES", raising=False)
        settings = AppSettings(_env_file=None)

        assert settings.default_due_days == 14
        assert settings.default_valid_days == 30
        assert settings.max_name_message_length == 50
        assert settings.store_payloads is False

    def test_env_override(self, monkeypatch):
        """Test overriding a setting from the environment."""
        monkeypatch.setenv("DRAFT_TTL_MINUTES", "15")

        assert AppSettings(_env_file=None).draft_ttl_minutes == 15

    def test_knowledge_files_list(self, monkeypatch):
        """Test the comma-separated doc file list."""
        monkeypatch.setenv("KNOWLEDGE_FILES", "a.md, b.md,")

        assert KnowledgeSettings().files_list == ["a.md", "b.md"]
