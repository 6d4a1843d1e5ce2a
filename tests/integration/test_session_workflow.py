"""Integration tests for multi-turn sessions over the sample organization."""

import json

import pytest
from langchain_core.messages import AIMessage, ToolMessage

from task_assistant.chat_server.session_manager import AgentSessionManager
from task_assistant.core.records import PaymentStatus, Role, TaskStatus
from task_assistant.interfaces.langchain.agent import ChatMessage, TaskAssistantAgent
from task_assistant.interfaces.langchain.confirmation import CONFIRMATION_PROMPT
from tests.fixtures.sample_data import (
    ADMIN_ID,
    ALICE_ID,
    CLEANUP_TASK_ID,
    DASHBOARD_CHARTS_ID,
)


def tool_call(name: str, args: dict) -> AIMessage:
    return AIMessage(content="", tool_calls=[{"name": name, "args": args, "id": "call_1"}])


class TestSessionWorkflow:
    """End-to-end turns through the session manager, agent and tools."""

    @pytest.fixture
    def manager(self, mock_llm, registry) -> AgentSessionManager:
        def agent_factory(role: Role, steps: int) -> TaskAssistantAgent:
            return TaskAssistantAgent(mock_llm, registry, role, max_steps=steps)

        return AgentSessionManager(agent_factory, capacity=4)

    @pytest.mark.integration
    async def test_payment_approval_across_two_turns(self, manager, mock_llm, datastore):
        """Approval is proposed on one turn and executed on the next."""
        mock_llm.bound.ainvoke.side_effect = [
            tool_call("approve_payment", {"task": CLEANUP_TASK_ID}),
        ]
        history = [ChatMessage(role="user", content="Approve the cleanup payment")]

        prompt = await manager.submit_turn(Role.ADMIN, ADMIN_ID, history)

        assert prompt.endswith(CONFIRMATION_PROMPT)
        payment = await datastore.get_payment_for_task(CLEANUP_TASK_ID)
        assert payment.status == PaymentStatus.PENDING

        history += [
            ChatMessage(role="assistant", content=prompt),
            ChatMessage(role="user", content="Yes, please!"),
        ]
        reply = await manager.submit_turn(Role.ADMIN, ADMIN_ID, history)

        assert reply.startswith("Approved $150.00")
        payment = await datastore.get_payment_for_task(CLEANUP_TASK_ID)
        assert payment.status == PaymentStatus.APPROVED
        assert mock_llm.bound.ainvoke.await_count == 1

    @pytest.mark.integration
    async def test_employee_accepts_invitation(self, manager, mock_llm, datastore):
        mock_llm.bound.ainvoke.side_effect = [
            tool_call("update_my_task", {"task": DASHBOARD_CHARTS_ID, "status": "accepted"}),
            AIMessage(content="You've accepted the dashboard charts task."),
        ]
        history = [ChatMessage(role="user", content="Accept the dashboard charts task")]

        reply = await manager.submit_turn(Role.EMPLOYEE, ALICE_ID, history)

        assert reply == "You've accepted the dashboard charts task."
        task = await datastore.get_task(DASHBOARD_CHARTS_ID)
        assert task.status == TaskStatus.ACCEPTED

    @pytest.mark.integration
    async def test_employee_cannot_reach_admin_tools(self, manager, mock_llm, datastore):
        mock_llm.bound.ainvoke.side_effect = [
            tool_call("delete_task", {"task": DASHBOARD_CHARTS_ID}),
            AIMessage(content="Only administrators can delete tasks."),
        ]
        history = [ChatMessage(role="user", content="Delete the dashboard charts task")]

        reply = await manager.submit_turn(Role.EMPLOYEE, ALICE_ID, history)

        assert reply == "Only administrators can delete tasks."
        feedback = mock_llm.bound.ainvoke.await_args_list[-1].args[0][-1]
        assert isinstance(feedback, ToolMessage)
        assert json.loads(feedback.content)["error"] == "validation_error"
        assert await datastore.get_task(DASHBOARD_CHARTS_ID) is not None

    @pytest.mark.integration
    async def test_sessions_keep_separate_confirmations(self, manager, mock_llm, datastore):
        """A pending proposal belongs to the session that made it."""
        mock_llm.bound.ainvoke.side_effect = [
            tool_call("approve_payment", {"task": CLEANUP_TASK_ID}),
            AIMessage(content="Nothing to confirm."),
        ]
        await manager.submit_turn(
            Role.ADMIN, ADMIN_ID, [ChatMessage(role="user", content="Approve cleanup")]
        )

        reply = await manager.submit_turn(
            Role.EMPLOYEE, ALICE_ID, [ChatMessage(role="user", content="yes")]
        )

        assert reply == "Nothing to confirm."
        payment = await datastore.get_payment_for_task(CLEANUP_TASK_ID)
        assert payment.status == PaymentStatus.PENDING
        assert manager.get_session(Role.ADMIN, ADMIN_ID).workflow.pending is not None
