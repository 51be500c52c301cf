"""Wiring of the collaboration components around one connection provider."""

from typing import Any, Callable

from fastapi import WebSocket
from sqlalchemy.orm import Session

from services.collaboration.broadcast import BroadcastRouter
from services.collaboration.connections import ConnectionProvider
from services.collaboration.coordinator import EditCoordinator
from services.collaboration.gateway import CollaborationGateway
from services.collaboration.presence import PresenceTracker
from services.collaboration.registry import SessionRegistry
from shared.enums import ServerEvent
from shared.models import event_message
from shared.utils import setup_logging

logger = setup_logging("collab-hub")


class CollaborationHub:
    """
    One independent collaboration instance.

    Everything that emits receives the connection provider explicitly, so
    tests and multiple apps can each build their own hub.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        connections: ConnectionProvider | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.connections = connections or ConnectionProvider()
        self.registry = SessionRegistry()
        self.router = BroadcastRouter(self.registry, self.connections)
        self.presence = PresenceTracker(self.registry, self.router)
        self.coordinator = EditCoordinator(session_factory)
        self.gateway = CollaborationGateway(
            self.registry, self.presence, self.router, self.coordinator
        )

    async def connect(
        self, websocket: WebSocket, session_id: str | None = None, user_id: str | None = None
    ) -> str:
        """Accept a socket, open its session and greet it with the assigned id."""
        assigned = await self.connections.connect(websocket, session_id)
        self.registry.open_session(assigned, user_id)
        logger.info(f"Session {assigned} connected (user={user_id or 'anonymous'})")
        await self.connections.send(
            assigned,
            event_message(ServerEvent.CONNECTED, {"sessionId": assigned, "userId": user_id}),
        )
        return assigned

    async def disconnect(self, session_id: str) -> None:
        await self.presence.disconnect(session_id)
        await self.connections.disconnect(session_id, close=False)
        logger.info(f"Session {session_id} disconnected")

    async def handle(self, session_id: str, message: Any) -> None:
        await self.gateway.handle_message(session_id, message)

    async def reset(self) -> None:
        """Drop all presence and connections (primarily for tests)."""
        self.registry.reset()
        await self.connections.reset()
