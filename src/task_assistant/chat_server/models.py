"""Pydantic models for chat server requests and responses."""

from pydantic import BaseModel, Field

from task_assistant.core.records import Role
from task_assistant.interfaces.langchain.agent import ChatMessage


class TurnRequest(BaseModel):
    """One assistant turn: the caller's identity and the full conversation so far."""

    role: Role
    user_id: str = Field(min_length=1)
    messages: list[ChatMessage] = Field(min_length=1)


class TurnResponse(BaseModel):
    """Response containing the assistant's reply."""

    role: Role
    user_id: str
    response: str


class ResetRequest(BaseModel):
    """Reset one session, or every session when no identity is given."""

    role: Role | None = None
    user_id: str | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str
    version: str
    active_sessions: int = 0
