"""Tool-calling orchestrator for one assistant turn."""

import json
import logging
from typing import Any, Literal

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from pydantic import BaseModel

from task_assistant.config import AGENT_MAX_STEPS, MAX_STEPS, MIN_STEPS
from task_assistant.core.errors import StepBudgetExceeded, ValidationFailure
from task_assistant.core.records import IdentityContext, Role
from task_assistant.interfaces.langchain.confirmation import (
    ConfirmationRequest,
    ConfirmationState,
    ConfirmationWorkflow,
)
from task_assistant.interfaces.langchain.prompts import system_prompt
from task_assistant.interfaces.langchain.registry import ToolRegistry


class ChatMessage(BaseModel):
    """One message of the conversation history supplied with a turn."""

    role: Literal["user", "assistant"]
    content: str


def validate_max_steps(max_steps: int) -> int:
    if not MIN_STEPS <= max_steps <= MAX_STEPS:
        raise ValueError(
            f"max_steps must be between {MIN_STEPS} and {MAX_STEPS}, got {max_steps}"
        )
    return max_steps


def count_user_turns(history: list[ChatMessage]) -> int:
    return sum(1 for message in history if message.role == "user")


def to_langchain_messages(history: list[ChatMessage]) -> list[BaseMessage]:
    return [
        HumanMessage(content=message.content)
        if message.role == "user"
        else AIMessage(content=message.content)
        for message in history
    ]


def message_text(message: BaseMessage) -> str:
    """Plain text of a model response, joining text blocks when content is a list."""
    if isinstance(message.content, str):
        return message.content
    parts = []
    for block in message.content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(str(block.get("text", "")))
    return "".join(parts)


def render_result(result: dict[str, Any]) -> str:
    """User-facing reply for a tool executed after confirmation."""
    message = str(result.get("message", ""))
    if result.get("success"):
        return message or "Done."
    return f"I couldn't complete that: {message}"


class TaskAssistantAgent:
    """Runs the bounded tool-calling loop for one role.

    The chat model is bound to the role's tools. Each tool call counts
    against ``max_steps``; exceeding it aborts the turn. Calls to
    confirmable tools are never executed here: they are bound by the
    registry and handed to the :class:`ConfirmationWorkflow`, and the turn
    ends by asking the user to approve.
    """

    def __init__(
        self,
        llm: BaseChatModel,
        registry: ToolRegistry,
        role: Role,
        max_steps: int = AGENT_MAX_STEPS,
    ) -> None:
        self.registry = registry
        self.role = Role(role)
        self.max_steps = validate_max_steps(max_steps)
        self.tools = registry.tools_for(self.role)
        self.model = llm.bind_tools(list(self.tools.values()))
        self.logger = logging.getLogger(__name__)

    async def run_turn(
        self,
        context: IdentityContext,
        history: list[ChatMessage],
        workflow: ConfirmationWorkflow,
    ) -> str:
        """Answer the last user message of ``history``.

        Raises:
            ValueError: The history does not end with a user message.
            StepBudgetExceeded: The model requested more tool calls than
                ``max_steps`` allows.
        """
        if not history or history[-1].role != "user":
            raise ValueError("Conversation history must end with a user message")
        turn_index = count_user_turns(history)

        pending = workflow.pending
        prompt_in_history = pending is not None and any(
            message.role == "assistant" and message.content == pending.prompt
            for message in history[:-1]
        )
        outcome = workflow.on_user_turn(history[-1].content, turn_index, prompt_in_history)
        if outcome.state == ConfirmationState.APPROVED and outcome.request is not None:
            result = await self.registry.execute_confirmed(outcome.request, context)
            return render_result(result)
        if outcome.reply is not None:
            return outcome.reply

        return await self._orchestrate(context, history, workflow, turn_index)

    async def _orchestrate(
        self,
        context: IdentityContext,
        history: list[ChatMessage],
        workflow: ConfirmationWorkflow,
        turn_index: int,
    ) -> str:
        messages: list[BaseMessage] = [
            SystemMessage(content=system_prompt(context)),
            *to_langchain_messages(history),
        ]
        steps = 0

        while True:
            response = await self.model.ainvoke(list(messages))
            messages.append(response)
            tool_calls = getattr(response, "tool_calls", None) or []
            if not tool_calls:
                return message_text(response)

            for call in tool_calls:
                steps += 1
                if steps > self.max_steps:
                    self.logger.warning(
                        f"Turn for {context.user_id} exceeded {self.max_steps} tool calls"
                    )
                    raise StepBudgetExceeded(
                        f"Stopped after {self.max_steps} tool calls without finishing",
                        max_steps=self.max_steps,
                    )

                name = call["name"]
                args = call.get("args") or {}
                tool = self.tools.get(name)
                self.logger.debug(f"Step {steps}: {name}({args})")

                if tool is None:
                    payload = ValidationFailure(
                        f"Unknown tool {name} for role {self.role.value}"
                    ).to_payload()
                elif tool.requires_confirmation:
                    proposal = await self.registry.propose(tool, args, context)
                    if isinstance(proposal, ConfirmationRequest):
                        return workflow.propose(proposal, turn_index)
                    payload = proposal
                else:
                    payload = await self.registry.invoke(tool, args, context)

                messages.append(
                    ToolMessage(
                        content=json.dumps(payload, default=str),
                        tool_call_id=call.get("id") or name,
                    )
                )


__all__ = [
    "ChatMessage",
    "TaskAssistantAgent",
    "count_user_turns",
    "message_text",
    "render_result",
    "validate_max_steps",
]
