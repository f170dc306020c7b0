from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, BeforeValidator, ValidationError

from sync_relay.errors import InvalidRequest


def _scalar_to_str(value: Any) -> Any:
    """Numeric ids from older clients are accepted as their string form."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


# wuid / roomId: opaque keys, compared as strings
OpaqueKey = Annotated[Optional[str], BeforeValidator(_scalar_to_str)]


# ============ Inbound Socket.IO payloads ============


class JoinRoomPayload(BaseModel):
    wuid: OpaqueKey = None
    roomId: OpaqueKey = None
    playerInfo: Any = None  # opaque display attributes, never inspected


class SkinUpdatePayload(BaseModel):
    wuid: OpaqueKey = None
    roomId: OpaqueKey = None
    skinId: Any = None


class HatUpdatePayload(BaseModel):
    wuid: OpaqueKey = None
    roomId: OpaqueKey = None
    hatId: Any = None


class AppearanceUpdatePayload(BaseModel):
    wuid: OpaqueKey = None
    roomId: OpaqueKey = None
    skinId: Any = None
    hatId: Any = None
    eyesId: Any = None


class HeartbeatPayload(BaseModel):
    wuid: OpaqueKey = None


class GetRoomPlayersPayload(BaseModel):
    roomId: OpaqueKey = None


class UpdateKind(str, Enum):
    """Known kinds of state fragment a player can publish."""

    SKIN = "skin"
    HAT = "hat"
    APPEARANCE = "appearance"

    @property
    def event(self) -> str:
        return f"{self.value}_update"

    @property
    def payload_model(self) -> Type[BaseModel]:
        return UPDATE_PAYLOADS[self]

    @property
    def fields(self) -> Tuple[str, ...]:
        return UPDATE_FIELDS[self]


UPDATE_PAYLOADS = {
    UpdateKind.SKIN: SkinUpdatePayload,
    UpdateKind.HAT: HatUpdatePayload,
    UpdateKind.APPEARANCE: AppearanceUpdatePayload,
}

UPDATE_FIELDS = {
    UpdateKind.SKIN: ("skinId",),
    UpdateKind.HAT: ("hatId",),
    UpdateKind.APPEARANCE: ("skinId", "hatId", "eyesId"),
}


def parse_payload(model: Type[BaseModel], data: Any) -> BaseModel:
    """Validate a raw event payload, mapping any shape problem to InvalidRequest."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise InvalidRequest("Payload must be an object")
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise InvalidRequest(f"Malformed payload: {exc.error_count()} invalid field(s)")


# ============ Introspection responses ============


class RosterEntry(BaseModel):
    wuid: str
    playerInfo: Any
    online: bool
    lastActivity: int
    messagesSent: int


class RoomInfo(BaseModel):
    playerCount: int
    players: List[RosterEntry]
    createdAt: int
    lastActivity: int
    messageCount: int


class PlayerInfo(BaseModel):
    wuid: str
    roomId: Optional[str]
    playerInfo: Any
    online: bool
    joinTime: int
    lastActivity: int
    messagesSent: int


class PlayersResponse(BaseModel):
    totalPlayers: int
    players: List[PlayerInfo]
    timestamp: str


class StatsResponse(BaseModel):
    totalConnections: int
    activeConnections: int
    totalMessages: int
    skinUpdates: int
    hatUpdates: int
    appearanceUpdates: int
    roomsCreated: int
    startTime: int
    activeRooms: int
    uptime: int
    averagePlayersPerRoom: float
    timestamp: int


class HealthResponse(BaseModel):
    status: str
    uptime: float
    memory: Optional[Dict[str, int]] = None
    connections: int
    rooms: int
    timestamp: str
