"""HTTP chat server exposing the task assistant's turn API."""

import argparse
import asyncio
import json
import logging
import signal
from pathlib import Path
from typing import Any

import uvicorn
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from task_assistant.chat_server.models import (
    HealthResponse,
    ResetRequest,
    TurnRequest,
    TurnResponse,
)
from task_assistant.chat_server.session_manager import (
    AgentSessionManager,
    create_session_manager,
)
from task_assistant.config import DEFAULT_HOST, DEFAULT_PORT
from task_assistant.core.datastore import InMemoryDatastore
from task_assistant.core.errors import TaskAssistantError
from task_assistant.interfaces.langchain.llm import create_chat_model

logger = logging.getLogger(__name__)


class ChatServer:
    """Stateless-per-request HTTP front over :class:`AgentSessionManager`.

    Role and identity are taken from the request body as given; the server
    performs no authentication.
    """

    def __init__(self, session_manager: AgentSessionManager):
        self.session_manager = session_manager
        self.logger = logging.getLogger(__name__)

    async def chat_endpoint(self, request: Request) -> JSONResponse:
        """Run one assistant turn over the supplied conversation."""
        try:
            body = await request.json()
        except Exception as e:
            return JSONResponse({"error": f"Invalid JSON: {str(e)}"}, status_code=400)

        try:
            turn = TurnRequest(**body)
        except (ValidationError, TypeError) as e:
            return JSONResponse(
                {"error": f"Invalid request format: {str(e)}"}, status_code=400
            )

        try:
            reply = await self.session_manager.submit_turn(
                turn.role, turn.user_id, turn.messages
            )
        except ValueError as e:
            return JSONResponse({"error": str(e)}, status_code=400)
        except TaskAssistantError as e:
            self.logger.error(f"Turn failed for {turn.role.value}:{turn.user_id}: {e}")
            return JSONResponse({"error": e.kind, "message": str(e)}, status_code=500)
        except Exception as e:
            self.logger.error(
                f"Unexpected error for {turn.role.value}:{turn.user_id}: {e!r}"
            )
            return JSONResponse({"error": str(e)}, status_code=500)

        response = TurnResponse(role=turn.role, user_id=turn.user_id, response=reply)
        return JSONResponse(response.model_dump(mode="json"))

    async def reset_endpoint(self, request: Request) -> JSONResponse:
        """Drop one session, or all of them when no identity is given."""
        try:
            body = await request.json()
            reset = ResetRequest(**body)
        except Exception as e:
            return JSONResponse({"error": str(e)}, status_code=400)

        if reset.role is None and reset.user_id is None:
            count = self.session_manager.get_session_count()
            self.session_manager.clear()
            return JSONResponse({"message": f"Cleared {count} sessions"})
        if reset.role is None or reset.user_id is None:
            return JSONResponse(
                {"error": "Provide both role and user_id, or neither"}, status_code=400
            )

        if not self.session_manager.delete_session(reset.role, reset.user_id):
            return JSONResponse({"error": "Session not found"}, status_code=404)
        return JSONResponse(
            {"message": f"Session {reset.role.value}:{reset.user_id} reset"}
        )

    async def health_check(self, request: Request) -> JSONResponse:
        """Health check endpoint with session metrics."""
        response = HealthResponse(
            status="healthy",
            service="task-assistant-chat-server",
            version="1.0.0",
            active_sessions=self.session_manager.get_session_count(),
        )
        return JSONResponse(response.model_dump())

    def create_app(self) -> Starlette:
        """Create the Starlette application with routes and middleware."""
        routes = [
            Route("/chat", self.chat_endpoint, methods=["POST"]),
            Route("/sessions/reset", self.reset_endpoint, methods=["POST"]),
            Route("/health", self.health_check, methods=["GET"]),
        ]

        app = Starlette(routes=routes)

        app.add_middleware(
            CORSMiddleware,
            allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

        return app

    async def shutdown(self) -> None:
        """Clean shutdown of the chat server."""
        await self.session_manager.shutdown()


def load_datastore(seed_path: str | None) -> InMemoryDatastore:
    """Build the in-memory datastore, seeded from a JSON file when given."""
    if not seed_path:
        return InMemoryDatastore()
    seed = json.loads(Path(seed_path).read_text(encoding="utf-8"))
    return InMemoryDatastore.from_seed(seed)


def main() -> None:
    """Main entry point for the chat server."""
    parser = argparse.ArgumentParser(
        description="Task Assistant Chat Server - HTTP API for role-scoped assistant turns"
    )
    parser.add_argument("--host", default=DEFAULT_HOST, help="Host to bind to")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="Port to listen on")
    parser.add_argument("--seed", help="JSON file seeding the in-memory datastore")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging of tool selection and execution",
    )

    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        llm = create_chat_model()
    except ValueError as e:
        print(f"❌ Error: {e}")
        return

    chat_server = ChatServer(create_session_manager(load_datastore(args.seed), llm))
    app = chat_server.create_app()

    print(f"Task Assistant Chat Server starting on http://{args.host}:{args.port}")
    print("Endpoints:")
    print("   POST /chat - Run one turn (role, user_id, messages)")
    print("   POST /sessions/reset - Reset one session or all sessions")
    print("   GET /health - Health check with session metrics")

    def signal_handler(sig: int, frame: Any) -> None:
        print("\n🛑 Shutting down server...")
        asyncio.create_task(chat_server.shutdown())

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
