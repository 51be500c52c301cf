"""Presence tracking: join, leave and disconnect with roster notifications."""

from typing import Any

from services.collaboration.broadcast import BroadcastRouter
from services.collaboration.registry import SessionRegistry
from shared.enums import ServerEvent
from shared.models import event_message
from shared.utils import setup_logging

logger = setup_logging("collab-presence")


class PresenceTracker:
    """Membership operations are best-effort and never raise to the caller."""

    def __init__(self, registry: SessionRegistry, router: BroadcastRouter) -> None:
        self.registry = registry
        self.router = router

    def presence_payload(self, document_id: str, session_id: str) -> dict[str, Any]:
        return {
            "documentId": document_id,
            "sessionId": session_id,
            "userId": self.registry.user_of(session_id),
            "sessions": self.registry.roster(document_id),
        }

    async def join(self, session_id: str, document_id: str) -> None:
        async with self.registry.lock_for(session_id):
            user_id = self.registry.user_of(session_id)
            change = self.registry.join(session_id, document_id)
            if change.left:
                await self._announce_left(change.left, session_id, user_id)
            if change.joined:
                logger.info(f"Session {session_id} joined {document_id}")
                await self.router.include_all(
                    document_id,
                    event_message(
                        ServerEvent.USER_JOINED, self.presence_payload(document_id, session_id)
                    ),
                )
            elif self.registry.document_of(session_id) == document_id:
                # Already present: refresh the joiner's roster without a new broadcast
                await self.router.send_to(
                    session_id,
                    event_message(
                        ServerEvent.USER_JOINED, self.presence_payload(document_id, session_id)
                    ),
                )

    async def leave(self, session_id: str, document_id: str) -> None:
        async with self.registry.lock_for(session_id):
            user_id = self.registry.user_of(session_id)
            if self.registry.leave(session_id, document_id):
                await self._announce_left(document_id, session_id, user_id)

    async def disconnect(self, session_id: str) -> None:
        """Clear the session everywhere, even when a join is still in flight."""
        user_id = self.registry.user_of(session_id)
        previous = self.registry.close_session(session_id)
        if previous:
            await self._announce_left(previous, session_id, user_id)

    async def _announce_left(self, document_id: str, session_id: str, user_id: str | None) -> None:
        logger.info(f"Session {session_id} left {document_id}")
        await self.router.include_all(
            document_id,
            event_message(
                ServerEvent.USER_LEFT,
                {
                    "documentId": document_id,
                    "sessionId": session_id,
                    "userId": user_id,
                    "sessions": self.registry.roster(document_id),
                },
            ),
        )
