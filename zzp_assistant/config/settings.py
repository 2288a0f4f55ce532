"""
Configuration Management for the ZZP Assistant

Settings are read from the environment and an optional .env file.

The drafting engine itself needs no credentials; only the optional
Google Sheets backend does. Everything else has a sensible default so the
engine runs in-memory out of the box.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_DOCS_DIR = Path(__file__).resolve().parent.parent / "knowledge" / "docs"


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration (drafts and audit log)."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    drafts_sheet_name: str = Field(
        default="Drafts",
        description="Name of the sheet for conversation drafts"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class KnowledgeSettings(BaseSettings):
    """Product documentation used to answer help questions."""

    model_config = SettingsConfigDict(
        env_prefix="KNOWLEDGE_",
        extra="ignore"
    )

    docs_dir: str = Field(
        default=str(DEFAULT_DOCS_DIR),
        description="Directory containing the product markdown docs"
    )
    files: str = Field(
        default="product.md,features.md,faq.md,vat.md",
        description="Comma-separated list of doc files to load"
    )

    @property
    def files_list(self) -> list[str]:
        """Get doc files as a list."""
        return [name.strip() for name in self.files.split(",") if name.strip()]


class AppSettings(BaseSettings):
    """
    Drafting engine settings: draft lifetime, document defaults, audit.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Draft lifecycle
    draft_ttl_minutes: int = Field(
        default=1440,
        ge=1,
        description="Minutes of inactivity after which an active draft is cancelled"
    )

    # Document defaults
    default_due_days: int = Field(
        default=14,
        ge=1,
        le=365,
        description="Payment term for invoices when none was given"
    )
    default_valid_days: int = Field(
        default=30,
        ge=1,
        le=365,
        description="Validity for quotations when none was given"
    )

    # Extraction heuristics
    max_name_message_length: int = Field(
        default=50,
        ge=1,
        description="Messages shorter than this may be taken as a bare name"
    )

    # Audit
    store_payloads: bool = Field(
        default=False,
        description="Store raw action payloads in the audit log (hash only otherwise)"
    )

    # Queries
    invoice_list_limit: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Default number of records returned by list queries"
    )


class Settings(BaseSettings):
    """
    Settings bundle for the app and the component factory.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def knowledge(self) -> KnowledgeSettings:
        return KnowledgeSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Return the shared Settings instance.

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Check which settings groups load without errors.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.google_sheets
        results["google_sheets"] = True
    except Exception as e:
        results["google_sheets"] = False
        results["google_sheets_error"] = str(e)

    try:
        knowledge = settings.knowledge
        results["knowledge"] = Path(knowledge.docs_dir).is_dir()
        if not results["knowledge"]:
            results["knowledge_error"] = f"Docs directory not found: {knowledge.docs_dir}"
    except Exception as e:
        results["knowledge"] = False
        results["knowledge_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results


def optional_google_sheets() -> Optional[GoogleSheetsSettings]:
    """Return Google Sheets settings, or None when they are not configured."""
    try:
        return get_settings().google_sheets
    except Exception:
        return None
