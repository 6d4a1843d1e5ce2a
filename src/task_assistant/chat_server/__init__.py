"""Stateful chat server package for the task assistant."""

from task_assistant.chat_server.models import (
    HealthResponse,
    ResetRequest,
    TurnRequest,
    TurnResponse,
)
from task_assistant.chat_server.server import ChatServer, main
from task_assistant.chat_server.session_manager import (
    AgentSession,
    AgentSessionManager,
    create_session_manager,
)

__all__ = [
    # Server
    "ChatServer",
    "main",
    # Session Management
    "AgentSessionManager",
    "AgentSession",
    "create_session_manager",
    # Models
    "TurnRequest",
    "TurnResponse",
    "ResetRequest",
    "HealthResponse",
]
