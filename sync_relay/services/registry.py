"""
Session and room registries – plain in-memory data holders owned by the SyncManager
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple


@dataclass
class Session:
    """One logically-identified player and the connection that owns it."""

    identity: str
    connection: str  # Socket.IO sid
    room_id: Optional[str] = None
    profile: Any = field(default_factory=dict)  # opaque, supplied by the client
    joined_at: int = 0
    last_activity_at: int = 0
    messages_sent: int = 0

    def touch(self, now: int):
        self.last_activity_at = now


@dataclass
class Room:
    """A named broadcast group."""

    room_id: str
    created_at: int = 0
    last_activity_at: int = 0
    message_count: int = 0
    # dict keys keep insertion order, values unused
    _members: Dict[str, None] = field(default_factory=dict, repr=False)

    @property
    def members(self) -> List[str]:
        return list(self._members)

    @property
    def size(self) -> int:
        return len(self._members)

    def add(self, identity: str):
        self._members[identity] = None

    def discard(self, identity: str):
        self._members.pop(identity, None)

    def __contains__(self, identity: str) -> bool:
        return identity in self._members

    def is_empty(self) -> bool:
        return not self._members


class SessionRegistry:
    """identity -> Session. No policy lives here."""

    def __init__(self):
        self._sessions: Dict[str, Session] = {}

    def upsert(self, identity: str, session: Session):
        self._sessions[identity] = session

    def get(self, identity: Optional[str]) -> Optional[Session]:
        if identity is None:
            return None
        return self._sessions.get(identity)

    def remove(self, identity: str) -> Optional[Session]:
        return self._sessions.pop(identity, None)

    def for_each(self) -> Iterator[Session]:
        """Iterate over a snapshot, so callers may remove while iterating."""
        return iter(list(self._sessions.values()))

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, identity: str) -> bool:
        return identity in self._sessions


class RoomRegistry:
    """room_id -> Room. Rooms are created lazily and dropped once empty."""

    def __init__(self):
        self._rooms: Dict[str, Room] = {}

    def get_or_create(self, room_id: str, now: int = 0) -> Tuple[Room, bool]:
        """Return the room for ``room_id`` and whether it was just created."""
        room = self._rooms.get(room_id)
        if room is not None:
            return room, False
        room = Room(room_id=room_id, created_at=now, last_activity_at=now)
        self._rooms[room_id] = room
        return room, True

    def get(self, room_id: Optional[str]) -> Optional[Room]:
        if room_id is None:
            return None
        return self._rooms.get(room_id)

    def remove_if_empty(self, room_id: str) -> bool:
        """Drop the room if it has no members. Returns True if it was removed."""
        room = self._rooms.get(room_id)
        if room is not None and room.is_empty():
            del self._rooms[room_id]
            return True
        return False

    def for_each(self) -> Iterator[Room]:
        return iter(list(self._rooms.values()))

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, room_id: str) -> bool:
        return room_id in self._rooms
