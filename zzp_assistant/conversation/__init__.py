"""Multi-step drafting: the conversation controller and the action executor."""

from zzp_assistant.conversation.controller import ConversationController, normalize_correction
from zzp_assistant.conversation.executor import ActionExecutor, UNEXPECTED_ERROR_MESSAGE

__all__ = [
    "ActionExecutor",
    "ConversationController",
    "UNEXPECTED_ERROR_MESSAGE",
    "normalize_correction",
]
