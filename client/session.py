"""Live client session: socket events, periodic refresh and save/delete round trips."""

from __future__ import annotations

import asyncio
from collections import defaultdict, deque
from typing import Any, Awaitable, Callable, Deque, Dict, Protocol
from urllib.parse import urlencode

import aiohttp

from client.state import ReconciliationState
from shared.enums import ClientEvent, ServerEvent
from shared.http_client import AsyncHTTPClient
from shared.models import MemberRecord, SlideRecord
from shared.utils import config, setup_logging

logger = setup_logging("collab-client")

DocumentFetcher = Callable[[str], Awaitable[dict[str, Any]]]


class RemoteOperationError(Exception):
    """Raised when the server rejects a save or delete of this client."""

    def __init__(self, slide_id: str, message: str) -> None:
        super().__init__(message)
        self.slide_id = slide_id
        self.message = message


class Transport(Protocol):
    async def send_json(self, message: dict[str, Any]) -> None: ...

    async def receive(self) -> dict[str, Any] | None: ...

    async def close(self) -> None: ...


class WebSocketTransport:
    """aiohttp WebSocket carrying JSON collaboration messages."""

    def __init__(self, session: aiohttp.ClientSession, url: str) -> None:
        self.session = session
        self.url = url
        self._ws: aiohttp.ClientWebSocketResponse | None = None

    async def connect(self) -> None:
        self._ws = await self.session.ws_connect(self.url, heartbeat=30)

    async def send_json(self, message: dict[str, Any]) -> None:
        if self._ws is None:
            raise RuntimeError("Transport not connected")
        await self._ws.send_json(message)

    async def receive(self) -> dict[str, Any] | None:
        """Next JSON message, or None once the socket is closed."""
        if self._ws is None:
            return None
        while True:
            msg = await self._ws.receive()
            if msg.type == aiohttp.WSMsgType.TEXT:
                try:
                    return msg.json()
                except ValueError as e:
                    logger.warning(f"Skipping non-JSON frame: {e}")
                    continue
            if msg.type in (
                aiohttp.WSMsgType.CLOSE,
                aiohttp.WSMsgType.CLOSING,
                aiohttp.WSMsgType.CLOSED,
                aiohttp.WSMsgType.ERROR,
            ):
                return None

    async def close(self) -> None:
        if self._ws is not None:
            await self._ws.close()
            self._ws = None


def socket_url(base_url: str, token: str | None) -> str:
    """Collaboration socket URL for an http(s) backend URL."""
    ws_base = base_url.rstrip("/").replace("https://", "wss://", 1).replace("http://", "ws://", 1)
    query = urlencode({"token": token}) if token else ""
    return f"{ws_base}/ws/collab" + (f"?{query}" if query else "")


class CollabClient:
    """
    Keep one document view in sync with the server.

    A refresh tick fetches the full document unless the user is editing or
    has unsaved changes. Inbound broadcasts are applied immediately.
    """

    def __init__(
        self,
        document_id: str,
        base_url: str = "http://localhost:8000",
        token: str | None = None,
        state: ReconciliationState | None = None,
        transport: Transport | None = None,
        fetcher: DocumentFetcher | None = None,
        refresh_interval: float | None = None,
        confirm_timeout: float | None = None,
    ) -> None:
        self.document_id = document_id
        self.base_url = base_url
        self.token = token
        self.state = state or ReconciliationState()
        self.transport = transport
        self.fetcher = fetcher
        self.refresh_interval = refresh_interval or config.get_collab_value(
            "refresh.interval_seconds", config.get("refresh_interval_seconds", 5.0)
        )
        self.confirm_timeout = confirm_timeout or config.get_collab_value(
            "client.confirm_timeout_seconds", 10
        )
        self.session_id: str | None = None
        self._http: AsyncHTTPClient | None = None
        self._listener: asyncio.Task | None = None
        self._refresher: asyncio.Task | None = None
        self._pending_saves: Dict[str, Deque[asyncio.Future]] = defaultdict(deque)
        self._pending_deletes: Dict[str, Deque[asyncio.Future]] = defaultdict(deque)

    async def __aenter__(self) -> "CollabClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.stop()

    async def start(self) -> None:
        """Load the document, join its room and start the background tasks."""
        if self.fetcher is None or self.transport is None:
            self._http = AsyncHTTPClient(self.base_url, token=self.token)
            await self._http.__aenter__()
        if self.fetcher is None:
            self.fetcher = self._fetch_document
        if self.transport is None:
            transport = WebSocketTransport(self._http.session, socket_url(self.base_url, self.token))
            await transport.connect()
            self.transport = transport

        self.state.load(await self.fetcher(self.document_id))
        self._listener = asyncio.create_task(self._listen())
        await self._send(ClientEvent.JOIN_DOCUMENT, {"documentId": self.document_id})
        self._refresher = asyncio.create_task(self._refresh_loop())

    async def stop(self) -> None:
        for task in (self._refresher, self._listener):
            if task is not None:
                task.cancel()
        for task in (self._refresher, self._listener):
            if task is not None:
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                except Exception as e:
                    logger.warning(f"Background task ended with error: {e!r}")
        self._refresher = self._listener = None
        if self.transport is not None:
            try:
                await self._send(ClientEvent.LEAVE_DOCUMENT, {"documentId": self.document_id})
            except (aiohttp.ClientError, RuntimeError, ConnectionError) as e:
                logger.debug(f"Leave not delivered: {e}")
            await self.transport.close()
        self._fail_pending(ConnectionError("Client stopped"))
        if self._http is not None:
            await self._http.__aexit__(None, None, None)
            self._http = None

    async def refresh_once(self) -> bool:
        """
        One periodic refresh tick.

        Returns:
            True if the server snapshot was applied
        """
        if self.state.refresh_suppressed:
            return False
        self.state.begin_refresh()
        document = await self.fetcher(self.document_id)
        # Editing may have started while the fetch was in flight
        return self.state.apply_refresh(document)

    async def save(self) -> SlideRecord:
        """
        Flush the open slide's draft and accept the server's canonical record.

        Raises:
            RemoteOperationError: If the server rejects the edit; the draft is kept
        """
        slide_id = self.state.open_slide_id
        if slide_id is None or self.state.draft is None:
            raise LookupError("No slide is being edited")
        changes = self.state.pending_patch()
        if not changes:
            current = self.state.find(slide_id)
            self.state.cancel_edit()
            return current
        revision = self.state.revision

        future = asyncio.get_running_loop().create_future()
        self._pending_saves[slide_id].append(future)
        await self._send(
            ClientEvent.EDIT_SLIDE,
            {"documentId": self.document_id, "slideId": slide_id, "changes": changes},
        )
        record = await self._await_reply(future, self._pending_saves[slide_id])
        self.state.accept_saved(record, revision)
        return record

    async def delete_current(self) -> str:
        """Delete the open slide. The last remaining slide is never sent."""
        slide_id = self.state.open_slide_id
        if slide_id is None:
            raise LookupError("No slide is open")
        self.state.ensure_deletable()

        future = asyncio.get_running_loop().create_future()
        self._pending_deletes[slide_id].append(future)
        await self._send(
            ClientEvent.DELETE_SLIDE, {"documentId": self.document_id, "slideId": slide_id}
        )
        await self._await_reply(future, self._pending_deletes[slide_id])
        self.state.apply_remote_delete(slide_id)
        return slide_id

    async def dispatch(self, message: dict[str, Any]) -> None:
        """Apply one inbound server event."""
        event = message.get("event")
        data = message.get("data") or {}

        if event == ServerEvent.SLIDE_UPDATED.value:
            self.state.apply_remote_update(SlideRecord.model_validate(data))
        elif event == ServerEvent.SLIDE_CREATED.value:
            self.state.apply_remote_create(SlideRecord.model_validate(data))
        elif event == ServerEvent.SLIDE_DELETED.value:
            self.state.apply_remote_delete(data.get("slideId"))
        elif event in (ServerEvent.USER_JOINED.value, ServerEvent.USER_LEFT.value):
            self.state.apply_presence(data)
        elif event == ServerEvent.MEMBER_ADDED.value:
            self.state.apply_member_added(MemberRecord.model_validate(data))
        elif event == ServerEvent.SLIDE_UPDATE_CONFIRMED.value:
            self._resolve(
                self._pending_saves, data.get("slideId"),
                result=SlideRecord.model_validate(data.get("updatedSlide")),
            )
        elif event == ServerEvent.SLIDE_UPDATE_ERROR.value:
            self._resolve(self._pending_saves, data.get("slideId"), error=data.get("error"))
        elif event == ServerEvent.SLIDE_DELETE_CONFIRMED.value:
            self._resolve(self._pending_deletes, data.get("slideId"), result=data.get("slideId"))
        elif event == ServerEvent.SLIDE_DELETE_ERROR.value:
            self._resolve(self._pending_deletes, data.get("slideId"), error=data.get("error"))
        elif event == ServerEvent.CONNECTED.value:
            self.session_id = data.get("sessionId")
        elif event == ServerEvent.ERROR.value:
            logger.warning(f"Server error: {data.get('message')}")

    async def _fetch_document(self, document_id: str) -> dict[str, Any]:
        return await self._http.get(f"/projects/{document_id}")

    async def _send(self, event: ClientEvent, data: dict[str, Any]) -> None:
        await self.transport.send_json({"event": event.value, "data": data})

    async def _await_reply(self, future: asyncio.Future, queue: Deque[asyncio.Future]) -> Any:
        try:
            return await asyncio.wait_for(future, self.confirm_timeout)
        finally:
            if future in queue:
                queue.remove(future)

    @staticmethod
    def _resolve(
        pending: Dict[str, Deque[asyncio.Future]],
        slide_id: str | None,
        result: Any = None,
        error: str | None = None,
    ) -> None:
        queue = pending.get(slide_id)
        while queue:
            future = queue.popleft()
            if future.done():
                continue
            if error is not None:
                future.set_exception(RemoteOperationError(slide_id, error))
            else:
                future.set_result(result)
            return

    def _fail_pending(self, error: Exception) -> None:
        for pending in (self._pending_saves, self._pending_deletes):
            for queue in pending.values():
                while queue:
                    future = queue.popleft()
                    if not future.done():
                        future.set_exception(error)
            pending.clear()

    async def _listen(self) -> None:
        while True:
            message = await self.transport.receive()
            if message is None:
                logger.info("Collaboration socket closed")
                self._fail_pending(ConnectionError("Collaboration socket closed"))
                return
            try:
                await self.dispatch(message)
            except Exception as e:
                logger.warning(f"Ignoring malformed server event: {e!r}")

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval)
            try:
                await self.refresh_once()
            except Exception as e:
                logger.warning(f"Periodic refresh failed: {e!r}")
