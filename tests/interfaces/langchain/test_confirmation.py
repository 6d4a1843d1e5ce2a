import pytest

from task_assistant.interfaces.langchain.confirmation import (
    CANCELLED_REPLY,
    CONFIRMATION_PROMPT,
    ConfirmationRequest,
    ConfirmationState,
    ConfirmationWorkflow,
    is_affirmative,
    is_negative,
    normalize_reply,
)


def request(tool_name: str = "delete_task") -> ConfirmationRequest:
    return ConfirmationRequest(
        tool_name=tool_name,
        arguments={"task": "t1"},
        description='You are about to permanently delete the task "Old task".',
    )


class TestReplyClassification:
    """Test affirmative and negative reply detection."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "message",
        ["yes", "Yes!", "  YES  ", "confirm", "ok", "Go ahead.", "yes please", "Confirm delete"],
    )
    def test_affirmative(self, message):
        assert is_affirmative(message)
        assert not is_negative(message)

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "message", ["no", "No.", "cancel", "Don't", "never mind", "no, cancel"]
    )
    def test_negative(self, message):
        assert is_negative(message)
        assert not is_affirmative(message)

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "message",
        [
            "yes but delete the other one",
            "what would that delete?",
            "show me all tasks",
            "",
        ],
    )
    def test_other_replies_are_neither(self, message):
        assert not is_affirmative(message)
        assert not is_negative(message)

    @pytest.mark.unit
    def test_normalize_reply_drops_fillers_and_punctuation(self):
        assert normalize_reply("Yes, please! Thank you.") == "yes"


class TestConfirmationWorkflow:
    """Test suite for the confirmation state machine."""

    @pytest.fixture
    def workflow(self):
        return ConfirmationWorkflow()

    @pytest.mark.unit
    def test_starts_idle(self, workflow):
        outcome = workflow.on_user_turn("yes", 1)

        assert workflow.state == ConfirmationState.IDLE
        assert outcome.state == ConfirmationState.IDLE
        assert not outcome.consumed

    @pytest.mark.unit
    def test_propose_returns_prompt(self, workflow):
        prompt = workflow.propose(request(), turn_index=1)

        assert prompt == (
            'You are about to permanently delete the task "Old task".\n\n'
            + CONFIRMATION_PROMPT
        )
        assert workflow.state == ConfirmationState.PROPOSED
        assert workflow.pending.proposed_turn == 1

    @pytest.mark.unit
    def test_affirmative_next_turn_approves(self, workflow):
        workflow.propose(request(), turn_index=1)

        outcome = workflow.on_user_turn("yes", 2)

        assert outcome.state == ConfirmationState.APPROVED
        assert outcome.request.arguments == {"task": "t1"}
        assert outcome.consumed
        assert workflow.state == ConfirmationState.IDLE

    @pytest.mark.unit
    def test_negative_next_turn_cancels(self, workflow):
        workflow.propose(request(), turn_index=1)

        outcome = workflow.on_user_turn("no", 2)

        assert outcome.state == ConfirmationState.DECLINED
        assert outcome.reply == CANCELLED_REPLY
        assert outcome.consumed
        assert workflow.pending is None

    @pytest.mark.unit
    def test_unrelated_reply_discards_silently(self, workflow):
        """The request is dropped and the message is handled as a new request."""
        workflow.propose(request(), turn_index=1)

        outcome = workflow.on_user_turn("list my tasks", 2)

        assert outcome.state == ConfirmationState.DECLINED
        assert outcome.reply is None
        assert not outcome.consumed
        assert workflow.state == ConfirmationState.IDLE

    @pytest.mark.unit
    def test_approval_is_single_use(self, workflow):
        workflow.propose(request(), turn_index=1)
        workflow.on_user_turn("yes", 2)

        assert workflow.on_user_turn("yes", 3).state == ConfirmationState.IDLE

    @pytest.mark.unit
    @pytest.mark.parametrize("turn_index", [1, 3, 5])
    def test_reply_on_other_turn_expires(self, workflow, turn_index):
        workflow.propose(request(), turn_index=1)

        outcome = workflow.on_user_turn("yes", turn_index)

        assert outcome.state == ConfirmationState.EXPIRED
        assert not outcome.consumed

    @pytest.mark.unit
    def test_rewritten_history_expires(self, workflow):
        workflow.propose(request(), turn_index=1)

        outcome = workflow.on_user_turn("yes", 2, prompt_in_history=False)

        assert outcome.state == ConfirmationState.EXPIRED

    @pytest.mark.unit
    def test_newer_proposal_replaces_pending(self, workflow):
        workflow.propose(request("delete_task"), turn_index=1)
        workflow.propose(request("approve_payment"), turn_index=2)

        outcome = workflow.on_user_turn("confirm", 3)

        assert outcome.state == ConfirmationState.APPROVED
        assert outcome.request.tool_name == "approve_payment"

    @pytest.mark.unit
    def test_reset(self, workflow):
        workflow.propose(request(), turn_index=1)

        workflow.reset()

        assert workflow.state == ConfirmationState.IDLE
