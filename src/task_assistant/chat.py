"""Interactive command-line chat with the task assistant."""

import argparse
import asyncio
import getpass
import logging

from task_assistant.chat_server.server import load_datastore
from task_assistant.chat_server.session_manager import (
    AgentSessionManager,
    create_session_manager,
)
from task_assistant.core.errors import StepBudgetExceeded
from task_assistant.core.records import Role
from task_assistant.interfaces.langchain.agent import ChatMessage
from task_assistant.interfaces.langchain.llm import create_chat_model
from task_assistant.utils.env import get_openai_api_key

HELP_TEXT = """
📋 Task Assistant - Help

EXAMPLES (admin):
  • "Show me all overdue high priority tasks"
  • "Who knows React and is available?"
  • "Assign the landing page task to Alice"
  • "Estimate the payment for the API migration task"

EXAMPLES (employee):
  • "What tasks do I have?"
  • "Accept the dashboard task"
  • "Log 3 hours on the dashboard task: finished the charts"

COMMANDS:
  /clear    - Start a new conversation
  /help     - Show this help
  /quit     - Exit chat
"""


async def chat_loop(manager: AgentSessionManager, role: Role, user_id: str) -> None:
    """Run the interactive loop for one role and identity."""
    history: list[ChatMessage] = []
    print(f"📋 Task Assistant ({role.value}: {user_id})")
    print("💡 Type '/help' for examples and commands, or '/quit' to exit\n")

    while True:
        try:
            user_input = input("You: ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\n👋 Goodbye!")
            break

        if user_input.lower() in ["/quit", "quit", "exit"]:
            print("\n👋 Goodbye!")
            break
        if not user_input:
            continue
        if user_input == "/help":
            print(HELP_TEXT)
            continue
        if user_input == "/clear":
            history.clear()
            manager.delete_session(role, user_id)
            print("🗑️  Conversation cleared")
            continue

        history.append(ChatMessage(role="user", content=user_input))
        try:
            reply = await manager.submit_turn(role, user_id, history)
        except StepBudgetExceeded as e:
            history.pop()
            print(f"⚠️  {e}. Try a narrower request.\n")
            continue
        except Exception as e:
            history.pop()
            print(f"⚠️  Error processing query: {e}\n")
            continue

        history.append(ChatMessage(role="assistant", content=reply))
        print(f"\nAssistant: {reply}\n")


async def async_main(role: Role, user_id: str, seed: str | None) -> None:
    """Async entry point for the interactive chat."""
    api_key = get_openai_api_key()
    if not api_key:
        print("\n🔑 No API key found in OPENAI_API_KEY.")
        try:
            api_key = getpass.getpass("Enter your OpenAI API key: ").strip()
        except KeyboardInterrupt:
            print("\n❌ Operation cancelled by user.")
            return
        if not api_key:
            print("❌ No API key provided. Exiting.")
            return

    try:
        llm = create_chat_model(api_key=api_key)
    except ValueError as e:
        print(f"❌ Error: {e}")
        return

    manager = create_session_manager(load_datastore(seed), llm)
    try:
        await chat_loop(manager, role, user_id)
    finally:
        await manager.shutdown()


def main() -> None:
    """Synchronous entry point that runs the async main function."""
    parser = argparse.ArgumentParser(
        description="Task Assistant - Interactive chat for task and employee management"
    )
    parser.add_argument(
        "--role",
        choices=[role.value for role in Role],
        default=Role.ADMIN.value,
        help="Role to chat as",
    )
    parser.add_argument("--user-id", required=True, help="Identity of the caller")
    parser.add_argument("--seed", help="JSON file seeding the in-memory datastore")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose output showing tool selection and execution details",
    )

    args = parser.parse_args()
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    asyncio.run(async_main(Role(args.role), args.user_id, args.seed))


if __name__ == "__main__":
    main()
