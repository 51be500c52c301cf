"""Connection provider: the only component that touches live WebSocket transports."""

from __future__ import annotations

import asyncio
from typing import Any, Dict
from uuid import uuid4

from fastapi import WebSocket

from shared.utils import setup_logging

logger = setup_logging("collab-connections")


class ConnectionProvider:
    """Track accepted WebSocket connections by session id and send to them."""

    def __init__(self) -> None:
        self._connections: Dict[str, WebSocket] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, session_id: str | None = None) -> str:
        """Accept WebSocket connection and register it under a session id."""
        await websocket.accept()
        async with self._lock:
            session_key = session_id or str(uuid4())
            if session_key in self._connections:
                session_key = str(uuid4())
            self._connections[session_key] = websocket
        return session_key

    async def disconnect(self, session_id: str, close: bool = True) -> None:
        """Forget a connection, closing the socket when it is still open."""
        async with self._lock:
            websocket = self._connections.pop(session_id, None)
        if websocket is not None and close:
            try:
                await websocket.close()
            except Exception as e:
                logger.debug(f"Close failed for session {session_id}: {e}")

    def is_connected(self, session_id: str) -> bool:
        return session_id in self._connections

    async def send(self, session_id: str, message: dict[str, Any]) -> bool:
        """
        Send one message to a session.

        Returns:
            True if the transport accepted the message, False if it was dropped
        """
        websocket = self._connections.get(session_id)
        if websocket is None:
            logger.debug(f"Dropping {message.get('event')} for unknown session {session_id}")
            return False
        try:
            await websocket.send_json(message)
        except Exception as e:
            logger.warning(f"Dropping {message.get('event')} for session {session_id}: {e}")
            if self._connections.get(session_id) is websocket:
                del self._connections[session_id]
            return False
        return True

    async def reset(self) -> None:
        """Clear all connections (primarily for tests)."""
        async with self._lock:
            connections = list(self._connections.items())
            self._connections.clear()

        for session_id, websocket in connections:
            try:
                await websocket.close()
            except Exception as e:
                logger.debug(f"Close failed for session {session_id}: {e}")
