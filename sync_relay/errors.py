"""Errors reported back to the client that sent the offending event."""


class SyncError(Exception):
    """Base class for recoverable, caller-local failures."""

    code = "SYNC_ERROR"
    default_message = "Request failed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_payload(self, timestamp: int) -> dict:
        """Shape of the ``error`` event sent to the caller."""
        return {
            "code": self.code,
            "message": self.message,
            "timestamp": timestamp,
        }


class InvalidRequest(SyncError):
    code = "INVALID_DATA"
    default_message = "Missing wuid or roomId"


class PlayerNotFound(SyncError):
    code = "PLAYER_NOT_FOUND"
    default_message = "Player not registered"


class RoomNotFound(SyncError):
    code = "ROOM_NOT_FOUND"
    default_message = "Room not found"


class Unauthorized(SyncError):
    code = "UNAUTHORIZED"
    default_message = "Player not registered"
