"""Socket.IO event handlers – bind inbound events to the SyncManager."""

import functools

from socketio import AsyncServer

from sync_relay.logging_config import get_logger
from sync_relay.models import UpdateKind
from sync_relay.services.sync_manager import SyncManager

logger = get_logger(__name__)


def _log_errors(handler):
    """Log unexpected handler failures with the sid before Socket.IO sees them."""

    @functools.wraps(handler)
    async def wrapper(sid, *args):
        try:
            return await handler(sid, *args)
        except Exception as exc:
            logger.error(f"Error in '{handler.__name__}' handler for {sid}: {exc}", exc_info=True)
            raise

    return wrapper


def register_events(sio: AsyncServer, manager: SyncManager):
    """Attach all relay events to ``sio``."""

    @sio.event
    @_log_errors
    async def connect(sid, environ, auth=None):
        origin = environ.get("HTTP_ORIGIN") or environ.get("HTTP_REFERER") or "<no-origin>"
        ua = environ.get("HTTP_USER_AGENT") or "<no-ua>"
        logger.debug(f"Client {sid} connected - origin={origin} ua={ua}")
        await manager.connect(sid)

    @sio.event
    @_log_errors
    async def disconnect(sid, reason=None):
        logger.info(f"Disconnected: {sid} - {reason}")
        await manager.disconnect(sid, reason)

    @sio.on("join_room")
    @_log_errors
    async def join_room(sid, data=None):
        await manager.join(sid, data)

    @sio.on("skin_update")
    @_log_errors
    async def skin_update(sid, data=None):
        await manager.update_field(UpdateKind.SKIN, sid, data)

    @sio.on("hat_update")
    @_log_errors
    async def hat_update(sid, data=None):
        await manager.update_field(UpdateKind.HAT, sid, data)

    @sio.on("appearance_update")
    @_log_errors
    async def appearance_update(sid, data=None):
        await manager.update_field(UpdateKind.APPEARANCE, sid, data)

    @sio.on("heartbeat")
    @_log_errors
    async def heartbeat(sid, data=None):
        await manager.heartbeat(sid, data)

    @sio.on("get_room_players")
    @_log_errors
    async def get_room_players(sid, data=None):
        await manager.list_room_members(sid, data)
