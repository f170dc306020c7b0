"""Tests for the read-only stats projection."""

import asyncio
import logging
from dataclasses import asdict

import pytest

from sync_relay.models import UpdateKind
from sync_relay.services.stats import StatsReporter


async def test_empty_server_stats(manager):
    stats = StatsReporter(manager).get_stats()

    assert stats["activeConnections"] == 0
    assert stats["activeRooms"] == 0
    assert stats["averagePlayersPerRoom"] == 0
    assert stats["uptime"] == 0


async def test_stats_aggregate_counters(manager, connect, clock):
    reporter = StatsReporter(manager)
    for sid, wuid, room in [("a", "u1", "r1"), ("b", "u2", "r1"), ("c", "u3", "r2")]:
        await connect(sid)
        await manager.join(sid, {"wuid": wuid, "roomId": room})
    await manager.update_field(UpdateKind.SKIN, "a", {"wuid": "u1", "roomId": "r1", "skinId": 1})
    await manager.update_field(UpdateKind.HAT, "b", {"wuid": "u2", "roomId": "r1", "hatId": 2})
    await manager.update_field(UpdateKind.APPEARANCE, "c", {"wuid": "u3", "roomId": "r2"})
    clock.advance(90)

    stats = reporter.get_stats()

    assert stats["totalConnections"] == 3
    assert stats["activeConnections"] == 3
    assert stats["activeRooms"] == 2
    assert stats["roomsCreated"] == 2
    assert stats["averagePlayersPerRoom"] == 1.5
    assert stats["totalMessages"] == 3
    assert (stats["skinUpdates"], stats["hatUpdates"], stats["appearanceUpdates"]) == (1, 1, 1)
    assert stats["uptime"] == 90_000


async def test_rooms_and_players_dump(manager, transport, connect, clock):
    reporter = StatsReporter(manager)
    await connect("a")
    await manager.join("a", {"wuid": "u1", "roomId": "r1", "playerInfo": {"name": "Alice"}})
    await manager.update_field(UpdateKind.SKIN, "a", {"wuid": "u1", "roomId": "r1", "skinId": 1})
    transport.drop("a")

    rooms = reporter.get_rooms_info()
    assert list(rooms) == ["r1"]
    assert rooms["r1"]["playerCount"] == 1
    assert rooms["r1"]["messageCount"] == 1
    assert rooms["r1"]["players"][0] == {
        "wuid": "u1",
        "playerInfo": {"name": "Alice"},
        "online": False,
        "lastActivity": clock.now,
        "messagesSent": 1,
    }

    players = reporter.get_players_info()
    assert players["totalPlayers"] == 1
    assert players["players"][0]["roomId"] == "r1"
    assert players["players"][0]["online"] is False


async def test_reporting_does_not_mutate(manager, connect):
    reporter = StatsReporter(manager)
    await connect("a")
    await manager.join("a", {"wuid": "u1", "roomId": "r1"})
    before = (len(manager.sessions), len(manager.rooms), asdict(manager.counters))

    reporter.get_stats()
    reporter.get_rooms_info()
    reporter.get_players_info()
    assert reporter.is_healthy()

    assert (len(manager.sessions), len(manager.rooms), asdict(manager.counters)) == before


def test_log_stats(manager, caplog):
    with caplog.at_level(logging.INFO, logger="sync_relay.services.stats"):
        StatsReporter(manager).log_stats()

    assert "activeConnections=0" in caplog.text


async def test_periodic_log_runs_on_interval(manager, caplog):
    reporter = StatsReporter(manager)

    with caplog.at_level(logging.INFO, logger="sync_relay.services.stats"):
        task = asyncio.create_task(reporter.run_periodic_log(interval_seconds=0.01))
        try:
            for _ in range(100):
                await asyncio.sleep(0.01)
                if "Server stats:" in caplog.text:
                    break
        finally:
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

    assert "Server stats:" in caplog.text
    assert "activeRooms=0" in caplog.text
