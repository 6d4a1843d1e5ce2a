"""Session management for the task assistant.

Sessions are keyed by (role, identity) and own the orchestrator and the
pending confirmation for that key. The registry is a bounded LRU cache;
turns for one key are serialized by the session's lock.
"""

import asyncio
import logging
from collections import OrderedDict
from collections.abc import Callable
from datetime import datetime

from langchain_core.language_models import BaseChatModel

from task_assistant.config import (
    AGENT_MAX_STEPS,
    PAYMENT_ATTEMPT_TIMEOUT,
    PAYMENT_MAX_ATTEMPTS,
    SESSION_CACHE_SIZE,
)
from task_assistant.core.datastore import Datastore
from task_assistant.core.payments import PaymentEstimator, PaymentSuggestionService
from task_assistant.core.records import IdentityContext, Role, utc_now
from task_assistant.interfaces.langchain.agent import (
    ChatMessage,
    TaskAssistantAgent,
    validate_max_steps,
)
from task_assistant.interfaces.langchain.confirmation import ConfirmationWorkflow
from task_assistant.interfaces.langchain.estimator import LLMPaymentEstimator
from task_assistant.interfaces.langchain.registry import ToolRegistry

SessionKey = tuple[Role, str]
AgentFactory = Callable[[Role, int], TaskAssistantAgent]


class AgentSession:
    """Orchestrator, pending confirmation and turn lock for one (role, identity)."""

    def __init__(self, role: Role, identity: str, agent: TaskAssistantAgent):
        self.context = IdentityContext(user_id=identity, role=role)
        self.agent = agent
        self.workflow = ConfirmationWorkflow()
        self.lock = asyncio.Lock()
        self.created_at: datetime = utc_now()
        self.last_accessed: datetime = self.created_at
        self.turn_count = 0
        self.holders = 0

    @property
    def key(self) -> SessionKey:
        return (self.context.role, self.context.user_id)

    @property
    def in_use(self) -> bool:
        """Whether a caller holds this session or a turn is running on it."""
        return self.holders > 0 or self.lock.locked()

    def release(self) -> None:
        self.holders = max(0, self.holders - 1)

    def update_access(self) -> None:
        """Update the last accessed timestamp."""
        self.last_accessed = utc_now()

    async def run_turn(self, history: list[ChatMessage]) -> str:
        """Process one turn while holding the session lock."""
        async with self.lock:
            self.update_access()
            self.turn_count += 1
            return await self.agent.run_turn(self.context, history, self.workflow)


class AgentSessionManager:
    """Lookup-or-create registry of agent sessions with LRU eviction."""

    def __init__(
        self,
        agent_factory: AgentFactory,
        capacity: int = SESSION_CACHE_SIZE,
        max_steps: int = AGENT_MAX_STEPS,
    ):
        """Initialize the manager.

        Args:
            agent_factory: Builds the orchestrator for a role and step budget.
            capacity: Maximum number of cached sessions.
            max_steps: Tool invocations allowed per turn, 1 to 20.
        """
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.agent_factory = agent_factory
        self.capacity = capacity
        self.max_steps = validate_max_steps(max_steps)
        self.sessions: OrderedDict[SessionKey, AgentSession] = OrderedDict()
        self.logger = logging.getLogger(__name__)
        self._registry_lock = asyncio.Lock()

    async def session_for(
        self, role: Role | str, identity: str, hold: bool = False
    ) -> AgentSession:
        """Return the session for ``(role, identity)``, creating it on first use.

        With ``hold`` the session is protected from eviction until the caller
        calls :meth:`AgentSession.release`.
        """
        key = (Role(role), identity)
        async with self._registry_lock:
            session = self.sessions.get(key)
            if session is not None:
                self.sessions.move_to_end(key)
                session.update_access()
                if hold:
                    session.holders += 1
                return session

            agent = self.agent_factory(key[0], self.max_steps)
            session = AgentSession(key[0], identity, agent)
            if hold:
                session.holders += 1
            self.sessions[key] = session
            self.logger.info(f"Created session for {key[0].value}:{identity}")
            self._evict()
            return session

    async def submit_turn(
        self, role: Role | str, identity: str, history: list[ChatMessage]
    ) -> str:
        """Run one turn for ``(role, identity)`` and return the reply."""
        session = await self.session_for(role, identity, hold=True)
        try:
            return await session.run_turn(history)
        finally:
            session.release()

    def get_session(self, role: Role | str, identity: str) -> AgentSession | None:
        """Get an existing session without creating or reordering it."""
        return self.sessions.get((Role(role), identity))

    def delete_session(self, role: Role | str, identity: str) -> bool:
        """Drop one session, discarding its pending confirmation."""
        return self.sessions.pop((Role(role), identity), None) is not None

    def get_session_count(self) -> int:
        """Get the number of cached sessions."""
        return len(self.sessions)

    def clear(self) -> None:
        """Drop every session, for example after a configuration reload."""
        count = len(self.sessions)
        self.sessions.clear()
        self.logger.info(f"Cleared {count} sessions")

    async def shutdown(self) -> None:
        """Wait for in-flight turns to finish, then drop every session."""
        async with self._registry_lock:
            sessions = list(self.sessions.values())
        for session in sessions:
            async with session.lock:
                pass
        self.clear()

    def _evict(self) -> None:
        # Least recently used first. Sessions in use and the newest one stay.
        overflow = len(self.sessions) - self.capacity
        for key in list(self.sessions)[:-1]:
            if overflow <= 0:
                break
            if self.sessions[key].in_use:
                continue
            del self.sessions[key]
            overflow -= 1
            self.logger.info(f"Evicted session {key[0].value}:{key[1]}")


def create_session_manager(
    datastore: Datastore,
    llm: BaseChatModel,
    capacity: int = SESSION_CACHE_SIZE,
    max_steps: int = AGENT_MAX_STEPS,
) -> AgentSessionManager:
    """Wire the datastore and chat model into a ready session manager.

    One tool registry and one payment suggestion service are shared by all
    sessions; each session gets its own orchestrator bound to its role.
    """
    estimator = PaymentEstimator(
        LLMPaymentEstimator(llm),
        max_attempts=PAYMENT_MAX_ATTEMPTS,
        attempt_timeout=PAYMENT_ATTEMPT_TIMEOUT,
    )
    registry = ToolRegistry(datastore, PaymentSuggestionService(datastore, estimator))

    def agent_factory(role: Role, steps: int) -> TaskAssistantAgent:
        return TaskAssistantAgent(llm, registry, role, max_steps=steps)

    return AgentSessionManager(agent_factory, capacity=capacity, max_steps=max_steps)


__all__ = [
    "AgentFactory",
    "AgentSession",
    "AgentSessionManager",
    "SessionKey",
    "create_session_manager",
]
