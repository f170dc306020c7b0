"""Tests for the Socket.IO adapter, the outbox and the event bindings."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from sync_relay.api.events import register_events
from sync_relay.models import UpdateKind
from sync_relay.services.transport import Outbox, SocketIOTransport, room_channel


@pytest.fixture
def sio():
    server = MagicMock()
    server.emit = AsyncMock()
    server.enter_room = AsyncMock()
    server.leave_room = AsyncMock()
    server.disconnect = AsyncMock()
    server.manager.is_connected.return_value = True
    return server


async def test_broadcast_targets_room_channel_and_skips_sender(sio):
    transport = SocketIOTransport(sio)

    await transport.broadcast_to_room("r1", "skin_update", {"skinId": 1}, skip_sid="sid-a")

    sio.emit.assert_awaited_once_with(
        "skin_update", {"skinId": 1}, room="room:r1", skip_sid="sid-a", namespace="/"
    )


async def test_direct_emit_and_room_membership(sio):
    transport = SocketIOTransport(sio)

    await transport.emit("sid-a", "pong", {"timestamp": 1})
    await transport.join_room("sid-a", "r1")
    await transport.leave_room("sid-a", "r1")
    await transport.close("sid-a")

    sio.emit.assert_awaited_once_with("pong", {"timestamp": 1}, to="sid-a", namespace="/")
    sio.enter_room.assert_awaited_once_with("sid-a", room_channel("r1"), namespace="/")
    sio.leave_room.assert_awaited_once_with("sid-a", room_channel("r1"), namespace="/")
    sio.disconnect.assert_awaited_once_with("sid-a", namespace="/")


def test_is_connected(sio):
    transport = SocketIOTransport(sio)

    assert transport.is_connected("sid-a") is True
    sio.manager.is_connected.assert_called_once_with("sid-a", "/")
    assert transport.is_connected(None) is False


async def test_outbox_flushes_in_order_and_survives_failures():
    transport = MagicMock()
    calls = []
    transport.join_room = AsyncMock(side_effect=lambda *a: calls.append("join_room"))
    transport.broadcast_to_room = AsyncMock(side_effect=RuntimeError("socket gone"))
    transport.emit = AsyncMock(side_effect=lambda *a: calls.append("emit"))

    outbox = Outbox()
    outbox.join_room("sid-a", "r1")
    outbox.broadcast("r1", "player_join", {}, skip_sid="sid-a")
    outbox.emit("sid-a", "join_success", {})
    assert len(outbox) == 3

    await outbox.flush(transport)

    assert calls == ["join_room", "emit"]
    transport.broadcast_to_room.assert_awaited_once()
    assert len(outbox) == 0


async def test_registered_handlers_delegate_to_manager():
    handlers = {}

    class RecordingServer:
        def event(self, handler):
            handlers[handler.__name__] = handler
            return handler

        def on(self, name):
            def decorator(handler):
                handlers[name] = handler
                return handler

            return decorator

    manager = MagicMock()
    for name in ["connect", "disconnect", "join", "update_field", "heartbeat", "list_room_members"]:
        setattr(manager, name, AsyncMock())

    register_events(RecordingServer(), manager)

    await handlers["connect"]("sid-a", {"HTTP_ORIGIN": "http://localhost"})
    await handlers["join_room"]("sid-a", {"wuid": "u1", "roomId": "r1"})
    await handlers["hat_update"]("sid-a", {"hatId": 3})
    await handlers["heartbeat"]("sid-a", {"wuid": "u1"})
    await handlers["get_room_players"]("sid-a", {"roomId": "r1"})
    await handlers["disconnect"]("sid-a", "transport close")

    manager.connect.assert_awaited_once_with("sid-a")
    manager.join.assert_awaited_once_with("sid-a", {"wuid": "u1", "roomId": "r1"})
    manager.update_field.assert_awaited_once_with(UpdateKind.HAT, "sid-a", {"hatId": 3})
    manager.heartbeat.assert_awaited_once_with("sid-a", {"wuid": "u1"})
    manager.list_room_members.assert_awaited_once_with("sid-a", {"roomId": "r1"})
    manager.disconnect.assert_awaited_once_with("sid-a", "transport close")


async def test_handler_errors_are_logged_and_raised(caplog):
    handlers = {}

    class RecordingServer:
        def event(self, handler):
            handlers[handler.__name__] = handler
            return handler

        def on(self, name):
            return lambda handler: handlers.setdefault(name, handler)

    manager = MagicMock()
    manager.join = AsyncMock(side_effect=RuntimeError("boom"))
    register_events(RecordingServer(), manager)

    with pytest.raises(RuntimeError):
        await handlers["join_room"]("sid-a", {})

    assert "Error in 'join_room' handler for sid-a" in caplog.text
