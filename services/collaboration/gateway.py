"""Dispatch of inbound collaboration socket messages."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict

from pydantic import ValidationError

from services.collaboration.broadcast import BroadcastRouter
from services.collaboration.coordinator import EditCoordinator
from services.collaboration.errors import CollaborationError
from services.collaboration.presence import PresenceTracker
from services.collaboration.registry import SessionRegistry
from shared.enums import ClientEvent, ServerEvent
from shared.models import (
    ClientMessage,
    DeleteSlidePayload,
    DocumentPayload,
    EditSlidePayload,
    event_message,
)
from shared.utils import setup_logging

logger = setup_logging("collab-gateway")

Handler = Callable[[str, Dict[str, Any]], Awaitable[None]]


class CollaborationGateway:
    """
    Translate client events into presence and edit operations.

    Failures of an edit or delete are reported to the originating session
    only; other sessions never see them.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        presence: PresenceTracker,
        router: BroadcastRouter,
        coordinator: EditCoordinator,
    ) -> None:
        self.registry = registry
        self.presence = presence
        self.router = router
        self.coordinator = coordinator
        self._handlers: Dict[str, Handler] = {
            ClientEvent.JOIN_DOCUMENT.value: self.handle_join,
            ClientEvent.LEAVE_DOCUMENT.value: self.handle_leave,
            ClientEvent.EDIT_SLIDE.value: self.handle_edit,
            ClientEvent.DELETE_SLIDE.value: self.handle_delete,
            ClientEvent.PING.value: self.handle_ping,
        }

    async def handle_message(self, session_id: str, raw: Any) -> None:
        try:
            message = ClientMessage.model_validate(raw)
        except ValidationError:
            await self._send_error(session_id, "Malformed message")
            return

        handler = self._handlers.get(message.event)
        if handler is None:
            await self._send_error(session_id, f"Unknown event: {message.event}")
            return
        await handler(session_id, message.data)

    async def handle_join(self, session_id: str, data: Dict[str, Any]) -> None:
        try:
            payload = DocumentPayload.model_validate(data)
        except ValidationError:
            await self._send_error(session_id, "Missing documentId for joinDocument")
            return
        await self.presence.join(session_id, payload.document_id)

    async def handle_leave(self, session_id: str, data: Dict[str, Any]) -> None:
        try:
            payload = DocumentPayload.model_validate(data)
        except ValidationError:
            await self._send_error(session_id, "Missing documentId for leaveDocument")
            return
        await self.presence.leave(session_id, payload.document_id)

    async def handle_edit(self, session_id: str, data: Dict[str, Any]) -> None:
        try:
            payload = EditSlidePayload.model_validate(data)
        except ValidationError:
            await self.router.send_to(
                session_id,
                event_message(
                    ServerEvent.SLIDE_UPDATE_ERROR,
                    {"slideId": data.get("slideId"), "error": "Malformed editSlide payload"},
                ),
            )
            return

        try:
            record = await self.coordinator.apply_edit(
                payload.slide_id,
                payload.changes,
                acting_user_id=self.registry.user_of(session_id),
                document_id=payload.document_id,
            )
        except CollaborationError as e:
            logger.warning(f"Edit of slide {payload.slide_id} by {session_id} rejected: {e.message}")
            await self.router.send_to(
                session_id,
                event_message(
                    ServerEvent.SLIDE_UPDATE_ERROR, {"slideId": payload.slide_id, **e.to_payload()}
                ),
            )
            return

        slide = record.to_wire()
        await self.router.exclude_self(
            record.project_id,
            session_id,
            event_message(ServerEvent.SLIDE_UPDATED, {**slide, "updatedBy": session_id}),
        )
        await self.router.send_to(
            session_id,
            event_message(
                ServerEvent.SLIDE_UPDATE_CONFIRMED, {"slideId": record.id, "updatedSlide": slide}
            ),
        )

    async def handle_delete(self, session_id: str, data: Dict[str, Any]) -> None:
        try:
            payload = DeleteSlidePayload.model_validate(data)
        except ValidationError:
            await self.router.send_to(
                session_id,
                event_message(
                    ServerEvent.SLIDE_DELETE_ERROR,
                    {"slideId": data.get("slideId"), "error": "Malformed deleteSlide payload"},
                ),
            )
            return

        try:
            deletion = await self.coordinator.delete_slide(
                payload.slide_id,
                acting_user_id=self.registry.user_of(session_id),
                document_id=payload.document_id,
            )
        except CollaborationError as e:
            logger.warning(f"Delete of slide {payload.slide_id} by {session_id} rejected: {e.message}")
            await self.router.send_to(
                session_id,
                event_message(
                    ServerEvent.SLIDE_DELETE_ERROR, {"slideId": payload.slide_id, **e.to_payload()}
                ),
            )
            return

        await self.router.exclude_self(
            deletion.project_id,
            session_id,
            event_message(
                ServerEvent.SLIDE_DELETED,
                {"slideId": deletion.slide_id, "deletedBy": deletion.deleted_by or session_id},
            ),
        )
        await self.router.send_to(
            session_id,
            event_message(ServerEvent.SLIDE_DELETE_CONFIRMED, {"slideId": deletion.slide_id}),
        )

    async def handle_ping(self, session_id: str, data: Dict[str, Any]) -> None:
        await self.router.send_to(session_id, event_message(ServerEvent.PONG))

    async def _send_error(self, session_id: str, message: str) -> None:
        await self.router.send_to(session_id, event_message(ServerEvent.ERROR, {"message": message}))
