import sys
from datetime import datetime, timezone
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from sync_relay.models import HealthResponse, PlayersResponse, RoomInfo, StatsResponse
from sync_relay.services.stats import StatsReporter

try:
    import resource
except ImportError:  # not available on Windows
    resource = None

router = APIRouter()


def get_reporter(request: Request) -> StatsReporter:
    """Stats reporter attached to the application by create_app()."""
    return request.app.state.stats


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def peak_memory() -> Optional[Dict[str, int]]:
    """Peak resident set size of this process, or None where it cannot be read."""
    if resource is None:
        return None
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # macOS reports bytes, Linux kilobytes
    if sys.platform != "darwin":
        peak *= 1024
    return {"peakRssBytes": peak}


@router.get("/")
async def root(request: Request, reporter: StatsReporter = Depends(get_reporter)):
    """Service banner with live stats and the endpoint map."""
    settings = request.app.state.settings
    return {
        "service": "Wormup Sync Server",
        "version": settings.server_version,
        "serverId": settings.server_id,
        "status": "running",
        "stats": reporter.get_stats(),
        "features": [
            "Real-time skin synchronization",
            "Real-time hat synchronization",
            "Full appearance synchronization",
            "Room management",
            "Player heartbeat monitoring",
            "Automatic cleanup",
        ],
        "endpoints": {
            "websocket": "/socket.io/",
            "stats": "/stats",
            "rooms": "/rooms",
            "health": "/health",
            "players": "/players",
        },
        "timestamp": _utc_now(),
    }


@router.get("/stats", response_model=StatsResponse)
async def stats(reporter: StatsReporter = Depends(get_reporter)):
    return reporter.get_stats()


@router.get("/rooms", response_model=Dict[str, RoomInfo])
async def rooms(reporter: StatsReporter = Depends(get_reporter)):
    """Members and counters of every active room."""
    return reporter.get_rooms_info()


@router.get("/players", response_model=PlayersResponse)
async def players(reporter: StatsReporter = Depends(get_reporter)):
    return reporter.get_players_info()


@router.get("/health", response_model=HealthResponse)
async def health(reporter: StatsReporter = Depends(get_reporter)):
    """Health check endpoint."""
    stats = reporter.get_stats()
    healthy = reporter.is_healthy()
    body = HealthResponse(
        status="healthy" if healthy else "unhealthy",
        uptime=stats["uptime"] / 1000,
        memory=peak_memory(),
        connections=stats["activeConnections"],
        rooms=stats["activeRooms"],
        timestamp=_utc_now(),
    )
    return JSONResponse(status_code=200 if healthy else 503, content=body.model_dump())
