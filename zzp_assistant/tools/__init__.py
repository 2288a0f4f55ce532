"""
Creation Tools Package

The bookkeeping side the drafting engine hands complete drafts to.
"""

from zzp_assistant.tools.interface import (
    ClientNotFoundError,
    CreationTools,
    LedgerRepositoryInterface,
)
from zzp_assistant.tools.ledger import LedgerTools, period_range
from zzp_assistant.tools.memory import InMemoryLedgerRepository

__all__ = [
    "ClientNotFoundError",
    "CreationTools",
    "InMemoryLedgerRepository",
    "LedgerRepositoryInterface",
    "LedgerTools",
    "period_range",
]
