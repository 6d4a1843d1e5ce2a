"""Confirmation workflow gating destructive and financial tool calls.

A confirmable call is never executed in the turn that selects it. The call
is bound with its already-resolved arguments and the user is asked to
approve it. Only an affirmative reply on the very next user turn executes
it; anything else discards it.
"""

import logging
import re
from enum import Enum
from typing import Any

from pydantic import BaseModel

CONFIRMATION_PROMPT = 'Reply "yes" or "confirm" to proceed, or "no" or "cancel" to abort.'
CANCELLED_REPLY = "Okay, I've cancelled that. Nothing was changed."

AFFIRMATIVE_PHRASES = frozenset(
    {
        "yes",
        "y",
        "yeah",
        "yep",
        "confirm",
        "confirmed",
        "proceed",
        "approve",
        "approved",
        "ok",
        "okay",
        "sure",
        "go ahead",
        "do it",
        "yes do it",
        "yes go ahead",
        "yes confirm",
        "yes proceed",
        "confirm delete",
        "confirm approve",
        "confirm paid",
    }
)
NEGATIVE_PHRASES = frozenset(
    {
        "no",
        "n",
        "nope",
        "cancel",
        "abort",
        "stop",
        "decline",
        "dont",
        "don't",
        "do not",
        "no cancel",
        "no dont",
        "no don't",
        "never mind",
        "nevermind",
    }
)
FILLER_WORDS = frozenset({"please", "thanks", "thank", "you"})

_PUNCTUATION = re.compile(r"[^\w\s']")


class ConfirmationState(str, Enum):
    IDLE = "idle"
    PROPOSED = "proposed"
    APPROVED = "approved"
    DECLINED = "declined"
    EXPIRED = "expired"


class ConfirmationRequest(BaseModel):
    """A bound tool call waiting for the user's approval."""

    tool_name: str
    arguments: dict[str, Any]
    description: str
    proposed_turn: int = 0

    @property
    def prompt(self) -> str:
        """Text shown to the user when the call is proposed."""
        return f"{self.description}\n\n{CONFIRMATION_PROMPT}"


class ConfirmationOutcome(BaseModel):
    """What happened to a pending request when a user turn arrived.

    ``state`` is IDLE when nothing was pending. ``consumed`` tells the caller
    that the turn was a reply to the proposal and must not be processed as a
    new request.
    """

    state: ConfirmationState
    request: ConfirmationRequest | None = None
    reply: str | None = None

    @property
    def consumed(self) -> bool:
        return self.state == ConfirmationState.APPROVED or self.reply is not None


def normalize_reply(message: str) -> str:
    words = _PUNCTUATION.sub(" ", message.lower()).split()
    return " ".join(word for word in words if word not in FILLER_WORDS)


def is_affirmative(message: str) -> bool:
    return normalize_reply(message) in AFFIRMATIVE_PHRASES


def is_negative(message: str) -> bool:
    return normalize_reply(message) in NEGATIVE_PHRASES


class ConfirmationWorkflow:
    """Per-session state machine: Idle, Proposed, then back to Idle.

    Approved, Declined and Expired are transient: they are reported in the
    :class:`ConfirmationOutcome` of the turn that resolves the proposal, and
    the workflow is Idle again afterwards.
    """

    def __init__(self) -> None:
        self.logger = logging.getLogger(__name__)
        self._pending: ConfirmationRequest | None = None

    @property
    def state(self) -> ConfirmationState:
        return ConfirmationState.PROPOSED if self._pending else ConfirmationState.IDLE

    @property
    def pending(self) -> ConfirmationRequest | None:
        return self._pending

    def propose(self, request: ConfirmationRequest, turn_index: int) -> str:
        """Record ``request`` as pending and return the text asking for approval.

        A newer proposal replaces an older one.
        """
        if self._pending is not None:
            self.logger.info(
                f"Replacing pending {self._pending.tool_name} with {request.tool_name}"
            )
        self._pending = request.model_copy(update={"proposed_turn": turn_index})
        self.logger.info(f"Proposed {request.tool_name} at turn {turn_index}")
        return self._pending.prompt

    def on_user_turn(
        self, message: str, turn_index: int, prompt_in_history: bool = True
    ) -> ConfirmationOutcome:
        """Resolve the pending request, if any, against a new user turn.

        Args:
            message: The user's latest message.
            turn_index: Number of user messages in the conversation so far,
                including ``message``.
            prompt_in_history: Whether the conversation still contains the
                proposal. A rewritten history expires the request.
        """
        request = self._pending
        if request is None:
            return ConfirmationOutcome(state=ConfirmationState.IDLE)
        self._pending = None

        if turn_index - request.proposed_turn != 1 or not prompt_in_history:
            self.logger.info(
                f"Expired {request.tool_name} proposed at turn {request.proposed_turn}"
            )
            return ConfirmationOutcome(state=ConfirmationState.EXPIRED, request=request)
        if is_affirmative(message):
            self.logger.info(f"Approved {request.tool_name}")
            return ConfirmationOutcome(state=ConfirmationState.APPROVED, request=request)
        if is_negative(message):
            self.logger.info(f"Declined {request.tool_name}")
            return ConfirmationOutcome(
                state=ConfirmationState.DECLINED, request=request, reply=CANCELLED_REPLY
            )
        self.logger.info(f"Discarded {request.tool_name} for an unrelated request")
        return ConfirmationOutcome(state=ConfirmationState.DECLINED, request=request)

    def reset(self) -> None:
        self._pending = None


__all__ = [
    "AFFIRMATIVE_PHRASES",
    "CANCELLED_REPLY",
    "CONFIRMATION_PROMPT",
    "ConfirmationOutcome",
    "ConfirmationRequest",
    "ConfirmationState",
    "ConfirmationWorkflow",
    "NEGATIVE_PHRASES",
    "is_affirmative",
    "is_negative",
    "normalize_reply",
]
