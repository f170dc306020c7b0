"""
Connection transport – thin adapter over the Socket.IO server plus an ordered
queue of transport actions produced by one SyncManager operation
"""

from typing import Any, List, Optional, Tuple

from socketio import AsyncServer

from sync_relay.logging_config import get_logger

logger = get_logger(__name__)

ROOM_CHANNEL = "room:{room_id}"  # Socket.IO room name for a player room


def room_channel(room_id: str) -> str:
    return ROOM_CHANNEL.format(room_id=room_id)


class SocketIOTransport:
    """Expose the handful of Socket.IO capabilities the relay relies on."""

    def __init__(self, sio: AsyncServer, namespace: str = "/"):
        self.sio = sio
        self.namespace = namespace

    async def emit(self, sid: str, event: str, payload: dict):
        await self.sio.emit(event, payload, to=sid, namespace=self.namespace)

    async def broadcast_to_room(
        self, room_id: str, event: str, payload: dict, skip_sid: Optional[str] = None
    ):
        await self.sio.emit(
            event,
            payload,
            room=room_channel(room_id),
            skip_sid=skip_sid,
            namespace=self.namespace,
        )

    async def join_room(self, sid: str, room_id: str):
        await self.sio.enter_room(sid, room_channel(room_id), namespace=self.namespace)

    async def leave_room(self, sid: str, room_id: str):
        await self.sio.leave_room(sid, room_channel(room_id), namespace=self.namespace)

    async def close(self, sid: str):
        await self.sio.disconnect(sid, namespace=self.namespace)

    def is_connected(self, sid: Optional[str]) -> bool:
        if not sid:
            return False
        return self.sio.manager.is_connected(sid, self.namespace)


class Outbox:
    """Transport actions queued while registries are mutated, sent afterwards.

    Registry state is never touched between two awaits of the same
    operation, so every handler sees the registries either before or after
    another handler's mutation, never half-way through it.
    """

    def __init__(self):
        self._actions: List[Tuple[str, Tuple[Any, ...]]] = []

    def emit(self, sid: str, event: str, payload: dict):
        self._actions.append(("emit", (sid, event, payload)))

    def broadcast(self, room_id: str, event: str, payload: dict, skip_sid: Optional[str] = None):
        self._actions.append(("broadcast_to_room", (room_id, event, payload, skip_sid)))

    def join_room(self, sid: str, room_id: str):
        self._actions.append(("join_room", (sid, room_id)))

    def leave_room(self, sid: str, room_id: str):
        self._actions.append(("leave_room", (sid, room_id)))

    def close(self, sid: str):
        self._actions.append(("close", (sid,)))

    def __len__(self) -> int:
        return len(self._actions)

    async def flush(self, transport):
        """Send queued actions in order. A failed send does not stop the rest."""
        actions, self._actions = self._actions, []
        for name, args in actions:
            try:
                await getattr(transport, name)(*args)
            except Exception as exc:
                logger.error(f"Transport action {name}{args[:2]} failed: {exc}", exc_info=True)
