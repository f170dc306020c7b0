"""
Sync manager – validates inbound events, keeps the session and room registries
consistent and decides what gets sent to whom
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from sync_relay.errors import (
    InvalidRequest,
    PlayerNotFound,
    RoomNotFound,
    SyncError,
    Unauthorized,
)
from sync_relay.logging_config import get_logger
from sync_relay.models import (
    GetRoomPlayersPayload,
    HeartbeatPayload,
    JoinRoomPayload,
    UpdateKind,
    parse_payload,
)
from sync_relay.services.registry import Room, RoomRegistry, Session, SessionRegistry
from sync_relay.services.transport import Outbox

logger = get_logger(__name__)

FEATURES = ["skin_sync", "hat_sync", "appearance_sync", "heartbeat", "room_management"]


def now_ms() -> int:
    """Wall-clock time in milliseconds, the unit used on the wire."""
    return int(time.time() * 1000)


def _display_name(profile: Any) -> str:
    if isinstance(profile, dict):
        return profile.get("name") or "Unknown"
    return "Unknown"


@dataclass
class SyncCounters:
    start_time: int
    total_connections: int = 0
    active_connections: int = 0
    total_messages: int = 0
    skin_updates: int = 0
    hat_updates: int = 0
    appearance_updates: int = 0
    rooms_created: int = 0

    def record_update(self, kind: UpdateKind):
        self.total_messages += 1
        if kind is UpdateKind.SKIN:
            self.skin_updates += 1
        elif kind is UpdateKind.HAT:
            self.hat_updates += 1
        elif kind is UpdateKind.APPEARANCE:
            self.appearance_updates += 1


class SyncManager:
    """Single owner of session/room state for one server process."""

    def __init__(
        self,
        sessions: SessionRegistry,
        rooms: RoomRegistry,
        transport,
        clock: Callable[[], int] = now_ms,
        server_id: str = "sync-relay",
        version: str = "2.0.0",
    ):
        self.sessions = sessions
        self.rooms = rooms
        self.transport = transport
        self.clock = clock
        self.server_id = server_id
        self.version = version
        self.counters = SyncCounters(start_time=clock())
        self._bindings: Dict[str, str] = {}  # sid -> identity

    # ---------- connection lifecycle ----------

    async def connect(self, sid: str):
        """Count a new transport connection and greet it."""
        self.counters.total_connections += 1
        logger.info(f"New connection: {sid} (total: {self.counters.total_connections})")
        await self.transport.emit(
            sid,
            "welcome",
            {
                "message": "Connected to Wormup Sync Server",
                "serverId": self.server_id,
                "version": self.version,
                "features": list(FEATURES),
                "timestamp": self.clock(),
            },
        )

    async def disconnect(self, sid: str, reason: Optional[str] = None):
        """Remove the session owned by ``sid``, if any. Safe to call twice."""
        identity = self._bindings.get(sid)
        session = self.sessions.get(identity)
        if session is None or session.connection != sid:
            self._bindings.pop(sid, None)
            logger.debug(f"Disconnect of unbound connection {sid} ({reason})")
            return

        outbox = Outbox()
        self._remove_session(session, outbox, reason or "disconnect")
        await outbox.flush(self.transport)

    async def evict(self, session: Session, reason: str) -> bool:
        """Remove a session exactly as an explicit disconnect would.

        Does nothing if ``session`` was already replaced or removed.
        """
        if self.sessions.get(session.identity) is not session:
            return False
        outbox = Outbox()
        self._remove_session(session, outbox, reason)
        await outbox.flush(self.transport)
        return True

    # ---------- inbound events ----------

    async def join(self, sid: str, data: Any):
        try:
            payload = parse_payload(JoinRoomPayload, data)
            if not payload.wuid or not payload.roomId:
                raise InvalidRequest()
        except SyncError as exc:
            await self._report(sid, exc)
            return

        identity = payload.wuid
        room_id = payload.roomId
        profile = payload.playerInfo if payload.playerInfo is not None else {}
        now = self.clock()
        outbox = Outbox()

        existing = self.sessions.get(identity)
        if existing is not None:
            stolen = existing.connection != sid and self.transport.is_connected(
                existing.connection
            )
            self._remove_session(existing, outbox, "replaced by new join")
            if stolen:
                outbox.close(existing.connection)
                logger.info(f"Replaced existing connection for {identity}")

        # The same connection joining again under another identity
        previous = self.sessions.get(self._bindings.get(sid))
        if previous is not None:
            self._remove_session(previous, outbox, "connection rejoined")

        room, created = self.rooms.get_or_create(room_id, now)
        if created:
            self.counters.rooms_created += 1
            logger.info(f"Created room: {room_id}")
        room.add(identity)
        room.last_activity_at = now

        self.sessions.upsert(
            identity,
            Session(
                identity=identity,
                connection=sid,
                room_id=room_id,
                profile=profile,
                joined_at=now,
                last_activity_at=now,
            ),
        )
        self._bindings[sid] = identity
        self.counters.active_connections += 1

        logger.info(
            f"Player {identity} ({_display_name(profile)}) joined room {room_id}"
        )

        outbox.join_room(sid, room_id)
        outbox.broadcast(
            room_id,
            "player_join",
            {"wuid": identity, "playerInfo": profile, "timestamp": now},
            skip_sid=sid,
        )
        outbox.emit(
            sid,
            "join_success",
            {
                "roomId": room_id,
                "playersInRoom": room.size,
                "players": self.roster(room),
                "serverTime": now,
            },
        )
        await outbox.flush(self.transport)

    async def update_field(self, kind: UpdateKind, sid: str, data: Any):
        """Relay a skin/hat/appearance change to the sender's room peers."""
        kind = UpdateKind(kind)
        try:
            payload = parse_payload(kind.payload_model, data)
            session = self.validate(payload.wuid, payload.roomId)
        except SyncError as exc:
            await self._report(sid, exc)
            return

        now = self.clock()
        room = self.rooms.get(payload.roomId)
        session.touch(now)
        room.last_activity_at = now
        room.message_count += 1
        self.counters.record_update(kind)

        fields = {name: getattr(payload, name) for name in kind.fields}
        logger.info(f"{kind.value} update: {session.identity} -> {fields} in room {room.room_id}")

        outbox = Outbox()
        outbox.broadcast(
            room.room_id,
            kind.event,
            {"wuid": session.identity, **fields, "timestamp": now},
            skip_sid=sid,
        )
        outbox.emit(sid, "update_confirmed", {"type": kind.value, **fields, "timestamp": now})
        await outbox.flush(self.transport)

    async def heartbeat(self, sid: str, data: Any):
        """Refresh liveness. Unknown identities are ignored without a reply."""
        try:
            payload = parse_payload(HeartbeatPayload, data)
        except SyncError:
            return
        session = self.sessions.get(payload.wuid)
        if session is None:
            return

        now = self.clock()
        session.touch(now)
        room = self.rooms.get(session.room_id)
        await self.transport.emit(
            sid,
            "pong",
            {
                "timestamp": now,
                "playersInRoom": room.size if room else 0,
                "serverUptime": now - self.counters.start_time,
            },
        )

    async def list_room_members(self, sid: str, data: Any):
        try:
            if self.sessions.get(self._bindings.get(sid)) is None:
                raise Unauthorized()
            payload = parse_payload(GetRoomPlayersPayload, data)
        except SyncError as exc:
            await self._report(sid, exc)
            return

        room = self.rooms.get(payload.roomId)
        if room is None:
            await self.transport.emit(
                sid, "room_players", {"roomId": payload.roomId, "players": []}
            )
            return

        await self.transport.emit(
            sid,
            "room_players",
            {
                "roomId": room.room_id,
                "players": self.roster(room, with_activity=True),
                "timestamp": self.clock(),
            },
        )

    # ---------- helpers ----------

    def validate(self, identity: Optional[str], room_id: Optional[str]) -> Session:
        """Shared precondition gate for per-room operations."""
        if not identity or not room_id:
            raise InvalidRequest()
        session = self.sessions.get(identity)
        if session is None:
            raise PlayerNotFound()
        if self.rooms.get(room_id) is None:
            raise RoomNotFound()
        session.messages_sent += 1
        return session

    def identity_for(self, sid: str) -> Optional[str]:
        return self._bindings.get(sid)

    def is_online(self, session: Optional[Session]) -> bool:
        return session is not None and self.transport.is_connected(session.connection)

    def roster(self, room: Room, with_activity: bool = False) -> List[dict]:
        players = []
        for identity in room.members:
            session = self.sessions.get(identity)
            entry = {
                "wuid": identity,
                "playerInfo": session.profile if session else {},
                "online": self.is_online(session),
            }
            if with_activity:
                entry["lastActivity"] = session.last_activity_at if session else 0
            players.append(entry)
        return players

    def _remove_session(self, session: Session, outbox: Outbox, reason: str):
        """The one removal path, used by disconnects, rejoins and the sweeper."""
        identity = session.identity
        if self.sessions.get(identity) is session:
            self.sessions.remove(identity)
        if self._bindings.get(session.connection) == identity:
            del self._bindings[session.connection]

        room_id = session.room_id
        room = self.rooms.get(room_id)
        if room is not None:
            room.discard(identity)
            if self.transport.is_connected(session.connection):
                outbox.leave_room(session.connection, room_id)
            if self.rooms.remove_if_empty(room_id):
                logger.info(f"Removed empty room: {room_id}")
            else:
                outbox.broadcast(
                    room_id,
                    "player_leave",
                    {"wuid": identity, "timestamp": self.clock()},
                    skip_sid=session.connection,
                )

        self.counters.active_connections -= 1
        logger.info(f"Player {identity} left ({reason})")

    async def _report(self, sid: str, exc: SyncError):
        logger.warning(f"Rejected event from {sid}: {exc.code} {exc.message}")
        await self.transport.emit(sid, "error", exc.to_payload(self.clock()))
