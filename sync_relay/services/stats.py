"""
Stats reporter – read-only views over the sync manager state
"""

import asyncio
from datetime import datetime, timezone

from sync_relay.logging_config import get_logger
from sync_relay.services.sync_manager import SyncManager

logger = get_logger(__name__)

STATS_LOG_INTERVAL_SECONDS = 10 * 60


class StatsReporter:
    """Project registry state for the HTTP status routes and periodic logs."""

    def __init__(self, manager: SyncManager):
        self.manager = manager

    def uptime_ms(self) -> int:
        return self.manager.clock() - self.manager.counters.start_time

    def get_stats(self) -> dict:
        counters = self.manager.counters
        rooms = list(self.manager.rooms.for_each())
        average = sum(room.size for room in rooms) / len(rooms) if rooms else 0
        return {
            "totalConnections": counters.total_connections,
            "activeConnections": counters.active_connections,
            "totalMessages": counters.total_messages,
            "skinUpdates": counters.skin_updates,
            "hatUpdates": counters.hat_updates,
            "appearanceUpdates": counters.appearance_updates,
            "roomsCreated": counters.rooms_created,
            "startTime": counters.start_time,
            "activeRooms": len(rooms),
            "uptime": self.uptime_ms(),
            "averagePlayersPerRoom": average,
            "timestamp": self.manager.clock(),
        }

    def get_rooms_info(self) -> dict:
        """Per-room dump keyed by room id."""
        sessions = self.manager.sessions
        rooms_info = {}
        for room in self.manager.rooms.for_each():
            players = []
            for identity in room.members:
                session = sessions.get(identity)
                players.append(
                    {
                        "wuid": identity,
                        "playerInfo": session.profile if session else {},
                        "online": self.manager.is_online(session),
                        "lastActivity": session.last_activity_at if session else 0,
                        "messagesSent": session.messages_sent if session else 0,
                    }
                )
            rooms_info[room.room_id] = {
                "playerCount": room.size,
                "players": players,
                "createdAt": room.created_at,
                "lastActivity": room.last_activity_at,
                "messageCount": room.message_count,
            }
        return rooms_info

    def get_players_info(self) -> dict:
        players = [
            {
                "wuid": session.identity,
                "roomId": session.room_id,
                "playerInfo": session.profile,
                "online": self.manager.is_online(session),
                "joinTime": session.joined_at,
                "lastActivity": session.last_activity_at,
                "messagesSent": session.messages_sent,
            }
            for session in self.manager.sessions.for_each()
        ]
        return {
            "totalPlayers": len(players),
            "players": players,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    def is_healthy(self) -> bool:
        return self.manager.counters.active_connections >= 0 and self.uptime_ms() >= 0

    def log_stats(self):
        stats = self.get_stats()
        logger.info(
            "Server stats: "
            f"activeConnections={stats['activeConnections']} "
            f"activeRooms={stats['activeRooms']} "
            f"totalMessages={stats['totalMessages']} "
            f"skinUpdates={stats['skinUpdates']} "
            f"hatUpdates={stats['hatUpdates']} "
            f"appearanceUpdates={stats['appearanceUpdates']} "
            f"uptime={round(stats['uptime'] / 1000 / 60)} minutes"
        )

    async def run_periodic_log(self, interval_seconds: float = STATS_LOG_INTERVAL_SECONDS):
        while True:
            await asyncio.sleep(interval_seconds)
            self.log_stats()
