"""Shared fixtures: an in-memory transport and a controllable clock."""

from collections import defaultdict

import pytest

from sync_relay.services.registry import RoomRegistry, SessionRegistry
from sync_relay.services.sync_manager import SyncManager


class FakeClock:
    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float):
        self.now += int(seconds * 1000)


class FakeTransport:
    """Records every delivery per sid and mimics Socket.IO room fan-out."""

    def __init__(self):
        self.connected = set()
        self.rooms = defaultdict(set)
        self.sent = defaultdict(list)
        self.closed = []

    def open(self, sid: str):
        self.connected.add(sid)

    def drop(self, sid: str):
        """Connection lost without a disconnect event reaching the server."""
        self.connected.discard(sid)
        for members in self.rooms.values():
            members.discard(sid)

    async def emit(self, sid, event, payload):
        if sid in self.connected:
            self.sent[sid].append((event, payload))

    async def broadcast_to_room(self, room_id, event, payload, skip_sid=None):
        for sid in sorted(self.rooms[room_id]):
            if sid != skip_sid:
                await self.emit(sid, event, payload)

    async def join_room(self, sid, room_id):
        if sid in self.connected:
            self.rooms[room_id].add(sid)

    async def leave_room(self, sid, room_id):
        self.rooms[room_id].discard(sid)

    async def close(self, sid):
        self.closed.append(sid)
        self.drop(sid)

    def is_connected(self, sid):
        return sid in self.connected

    def events(self, sid, name=None):
        return [(event, payload) for event, payload in self.sent[sid] if name in (None, event)]

    def payloads(self, sid, name):
        return [payload for event, payload in self.sent[sid] if event == name]

    def total_deliveries(self, name):
        return sum(len(self.payloads(sid, name)) for sid in list(self.sent))

    def clear(self):
        self.sent.clear()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def manager(transport, clock):
    return SyncManager(SessionRegistry(), RoomRegistry(), transport, clock=clock)


@pytest.fixture
def connect(manager, transport):
    """Open a connection the way the Socket.IO connect event does."""

    async def _connect(sid):
        transport.open(sid)
        await manager.connect(sid)
        return sid

    return _connect


def assert_consistent(manager):
    """Room members and session room ids describe the same relation."""
    for room in manager.rooms.for_each():
        assert not room.is_empty()
        assert set(room.members) == {
            s.identity for s in manager.sessions.for_each() if s.room_id == room.room_id
        }
    for session in manager.sessions.for_each():
        room = manager.rooms.get(session.room_id)
        assert room is not None and session.identity in room
