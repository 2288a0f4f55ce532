"""Draft validation and clarifying questions."""

from zzp_assistant.validation.questions import QuestionSelector
from zzp_assistant.validation.validator import DraftValidator, clean_payload, schema_for_intent

__all__ = ["DraftValidator", "QuestionSelector", "clean_payload", "schema_for_intent"]
