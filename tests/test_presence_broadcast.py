import asyncio

import pytest

from services.collaboration.broadcast import BroadcastRouter
from services.collaboration.connections import ConnectionProvider
from services.collaboration.presence import PresenceTracker
from services.collaboration.registry import SessionRegistry


class StubWebSocket:
    def __init__(self, fail: bool = False) -> None:
        self.accepted = False
        self.closed = False
        self.fail = fail
        self.sent_messages = []

    async def accept(self) -> None:
        self.accepted = True

    async def close(self, code: int = 1000) -> None:
        self.closed = True

    async def send_json(self, message: dict) -> None:
        if self.fail:
            raise RuntimeError("socket is closing")
        self.sent_messages.append(message)

    def events(self) -> list[str]:
        return [message["event"] for message in self.sent_messages]


class Room:
    """Registry, router and presence wired around stub sockets."""

    def __init__(self) -> None:
        self.connections = ConnectionProvider()
        self.registry = SessionRegistry()
        self.router = BroadcastRouter(self.registry, self.connections)
        self.presence = PresenceTracker(self.registry, self.router)

    async def connect(self, session_id: str, user_id: str | None = None, fail: bool = False):
        websocket = StubWebSocket(fail=fail)
        assigned = await self.connections.connect(websocket, session_id)
        self.registry.open_session(assigned, user_id)
        return websocket


@pytest.mark.asyncio
async def test_connection_provider_assigns_fresh_id_on_collision() -> None:
    connections = ConnectionProvider()
    first = await connections.connect(StubWebSocket(), "same")
    second = await connections.connect(StubWebSocket(), "same")
    assert first == "same"
    assert second != "same"
    assert connections.is_connected(second)


@pytest.mark.asyncio
async def test_join_broadcasts_roster_to_everyone_including_joiner() -> None:
    room = Room()
    ws_a = await room.connect("a", "user-a")
    ws_b = await room.connect("b", "user-b")

    await room.presence.join("a", "doc-1")
    await room.presence.join("b", "doc-1")

    assert ws_a.events() == ["userJoined", "userJoined"]
    assert ws_b.events() == ["userJoined"]
    latest = ws_b.sent_messages[-1]["data"]
    assert latest["sessionId"] == "b"
    assert latest["userId"] == "user-b"
    assert latest["sessions"] == [
        {"sessionId": "a", "userId": "user-a"},
        {"sessionId": "b", "userId": "user-b"},
    ]
    assert ws_a.sent_messages[-1] == ws_b.sent_messages[-1]


@pytest.mark.asyncio
async def test_rejoin_refreshes_only_the_joiner() -> None:
    room = Room()
    ws_a = await room.connect("a")
    ws_b = await room.connect("b")
    await room.presence.join("a", "doc-1")
    await room.presence.join("b", "doc-1")
    before = len(ws_a.sent_messages)

    await room.presence.join("b", "doc-1")

    assert len(ws_a.sent_messages) == before
    assert ws_b.events() == ["userJoined", "userJoined"]


@pytest.mark.asyncio
async def test_leave_twice_broadcasts_once() -> None:
    room = Room()
    ws_a = await room.connect("a")
    ws_b = await room.connect("b")
    await room.presence.join("a", "doc-1")
    await room.presence.join("b", "doc-1")

    await room.presence.leave("b", "doc-1")
    await room.presence.leave("b", "doc-1")

    assert ws_a.events().count("userLeft") == 1
    assert ws_a.sent_messages[-1]["data"]["sessions"] == [{"sessionId": "a", "userId": None}]
    # The leaver is no longer in the room and gets nothing
    assert "userLeft" not in ws_b.events()


@pytest.mark.asyncio
async def test_switching_documents_notifies_old_room() -> None:
    room = Room()
    ws_a = await room.connect("a")
    ws_b = await room.connect("b")
    await room.presence.join("a", "doc-1")
    await room.presence.join("b", "doc-1")

    await room.presence.join("b", "doc-2")

    assert ws_a.events()[-1] == "userLeft"
    assert ws_b.events()[-1] == "userJoined"
    assert room.registry.sessions_in("doc-1") == ["a"]
    assert room.registry.sessions_in("doc-2") == ["b"]


@pytest.mark.asyncio
async def test_disconnect_clears_membership_and_notifies() -> None:
    room = Room()
    ws_a = await room.connect("a")
    await room.connect("b")
    await room.presence.join("a", "doc-1")
    await room.presence.join("b", "doc-1")

    await room.presence.disconnect("b")
    await room.presence.disconnect("b")

    assert room.registry.sessions_in("doc-1") == ["a"]
    assert ws_a.events().count("userLeft") == 1


@pytest.mark.asyncio
async def test_disconnect_during_join_leaves_no_membership() -> None:
    room = Room()
    await room.connect("a")
    lock = room.registry.lock_for("a")

    # Hold the session lock so the join is parked before it mutates anything
    await lock.acquire()
    join_task = asyncio.create_task(room.presence.join("a", "doc-1"))
    await asyncio.sleep(0)
    await room.presence.disconnect("a")
    lock.release()
    await join_task

    assert room.registry.documents_containing("a") == []
    assert room.registry.sessions_in("doc-1") == []


@pytest.mark.asyncio
async def test_exclude_self_skips_originator() -> None:
    room = Room()
    ws_a = await room.connect("a")
    ws_b = await room.connect("b")
    ws_c = await room.connect("c")
    await room.presence.join("a", "doc-1")
    await room.presence.join("b", "doc-1")
    await room.presence.join("c", "doc-2")

    delivered = await room.router.exclude_self("doc-1", "a", {"event": "slideUpdated", "data": {}})

    assert delivered == 1
    assert "slideUpdated" not in ws_a.events()
    assert ws_b.events()[-1] == "slideUpdated"
    assert "slideUpdated" not in ws_c.events()


@pytest.mark.asyncio
async def test_include_all_reaches_originator() -> None:
    room = Room()
    ws_a = await room.connect("a")
    ws_b = await room.connect("b")
    await room.presence.join("a", "doc-1")
    await room.presence.join("b", "doc-1")

    delivered = await room.router.include_all("doc-1", {"event": "memberAdded", "data": {}})

    assert delivered == 2
    assert ws_a.events()[-1] == "memberAdded"
    assert ws_b.events()[-1] == "memberAdded"


@pytest.mark.asyncio
async def test_failed_send_is_dropped_without_raising() -> None:
    room = Room()
    ws_ok = await room.connect("ok")
    await room.connect("broken", fail=True)
    await room.presence.join("ok", "doc-1")
    await room.presence.join("broken", "doc-1")

    delivered = await room.router.include_all("doc-1", {"event": "slideDeleted", "data": {}})

    assert delivered == 1
    assert ws_ok.events()[-1] == "slideDeleted"
    # Membership is untouched; the disconnect path cleans it up
    assert room.registry.sessions_in("doc-1") == ["broken", "ok"]
    assert not room.connections.is_connected("broken")

    delivered = await room.router.exclude_self("doc-1", "ok", {"event": "slideUpdated", "data": {}})
    assert delivered == 0


@pytest.mark.asyncio
async def test_send_to_unknown_session_returns_false() -> None:
    room = Room()
    assert await room.router.send_to("ghost", {"event": "pong", "data": {}}) is False
