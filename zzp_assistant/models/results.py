"""
Result Models

What the classifier, executor, controller and router hand back to their
callers. These are plain data; none of them carry behaviour beyond small
conveniences.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from zzp_assistant.models.drafts import DraftIntent, Intent


class ClassificationResult(BaseModel):
    """Output of the intent classifier."""

    intent: Intent
    action_type: Optional[str] = Field(
        default=None,
        description="Router result type the intent leads to"
    )
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)


class FieldCorrection(BaseModel):
    """
    An explicit "change X to Y" request.

    ``target`` is the generic field name (clientName, dueInDays, ...);
    use ``field_for`` to get the name it has on a specific draft.
    """

    target: str
    value: str
    raw_field: str = ""

    def field_for(self, intent: DraftIntent) -> str:
        intent = DraftIntent(intent)
        if intent == DraftIntent.CREATE_CLIENT and self.target == "clientName":
            return "name"
        if intent == DraftIntent.CREATE_OFFERTE and self.target == "dueInDays":
            return "validForDays"
        return self.target


class ExecutionResult(BaseModel):
    """Outcome of running a creation tool for a complete draft."""

    success: bool
    message: str
    data: Optional[dict[str, Any]] = None
    type: Optional[str] = None
    needs_client_creation: bool = False


class ConversationResponse(BaseModel):
    """Reply of the conversation controller for one message."""

    request_id: str
    intent: str
    type: Optional[str] = None
    message: str
    data: Optional[dict[str, Any]] = None
    needs_more_info: bool = False
    missing_fields: list[str] = Field(default_factory=list)
    conversation_id: Optional[str] = None


class RouterResult(BaseModel):
    """
    Reply of ``classify_and_route``.

    needs_confirmation marks a record that was created and that the user
    should check (single-shot expenses); citations name the doc sections a
    help answer was built from.
    """

    intent: str
    request_id: str
    type: Optional[str] = None
    data: Optional[dict[str, Any]] = None
    message: Optional[str] = None
    needs_confirmation: bool = False
    needs_more_info: bool = False
    missing_fields: list[str] = Field(default_factory=list)
    citations: list[str] = Field(default_factory=list)
    conversation_id: Optional[str] = None

    @classmethod
    def from_conversation(cls, response: ConversationResponse) -> "RouterResult":
        return cls(
            intent=response.intent,
            request_id=response.request_id,
            type=response.type,
            data=response.data,
            message=response.message,
            needs_more_info=response.needs_more_info,
            missing_fields=list(response.missing_fields),
            conversation_id=response.conversation_id,
        )
