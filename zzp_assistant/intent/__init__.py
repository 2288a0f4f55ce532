"""Keyword-based intent classification."""

from zzp_assistant.intent.classifier import (
    classify,
    detect_correction,
    is_affirmative_message,
    is_cancel_message,
)

__all__ = ["classify", "detect_correction", "is_affirmative_message", "is_cancel_message"]
