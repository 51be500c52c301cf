"""Fan-out of collaboration events to the sessions of one document."""

from typing import Any

from services.collaboration.connections import ConnectionProvider
from services.collaboration.registry import SessionRegistry
from shared.utils import setup_logging

logger = setup_logging("collab-broadcast")


class BroadcastRouter:
    """Deliver events with exclude-self or include-all audiences. Fire and forget."""

    def __init__(self, registry: SessionRegistry, connections: ConnectionProvider) -> None:
        self.registry = registry
        self.connections = connections

    async def send_to(self, session_id: str, message: dict[str, Any]) -> bool:
        """Send to one session (acknowledgements and errors for the originator)."""
        return await self.connections.send(session_id, message)

    async def exclude_self(
        self, document_id: str, origin_session_id: str | None, message: dict[str, Any]
    ) -> int:
        """Send to every session in the document except the originator."""
        return await self._fan_out(document_id, message, exclude=origin_session_id)

    async def include_all(self, document_id: str, message: dict[str, Any]) -> int:
        """Send to every session in the document, the originator included."""
        return await self._fan_out(document_id, message)

    async def _fan_out(
        self, document_id: str, message: dict[str, Any], exclude: str | None = None
    ) -> int:
        recipients = [sid for sid in self.registry.sessions_in(document_id) if sid != exclude]
        delivered = 0
        for session_id in recipients:
            if await self.connections.send(session_id, message):
                delivered += 1
        if delivered < len(recipients):
            logger.debug(
                f"{message.get('event')} to {document_id}: "
                f"{delivered}/{len(recipients)} delivered"
            )
        return delivered
