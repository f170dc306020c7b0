"""Application configuration from environment variables."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

# Load .env if present
env_file = Path(__file__).parent.parent / ".env"
if env_file.exists():
    with open(env_file) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                key, value = line.split("=", 1)
                os.environ.setdefault(key.strip(), value.strip())

# Server
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3000))
SERVER_ID = os.getenv("SERVER_ID", "sync-relay")
SERVER_VERSION = os.getenv("SERVER_VERSION", "2.0.0")

# CORS Configuration
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")

# Socket.IO keepalive (seconds)
PING_TIMEOUT = int(os.getenv("PING_TIMEOUT", 60))
PING_INTERVAL = int(os.getenv("PING_INTERVAL", 25))

# Session liveness
CLEANUP_INTERVAL_SECONDS = int(os.getenv("CLEANUP_INTERVAL_SECONDS", 5 * 60))
STALE_SESSION_SECONDS = int(os.getenv("STALE_SESSION_SECONDS", 10 * 60))
STATS_LOG_INTERVAL_SECONDS = int(os.getenv("STATS_LOG_INTERVAL_SECONDS", 10 * 60))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

# Debug mode
DEBUG = os.getenv("DEBUG", "false").lower() in ("true", "1", "yes")


@dataclass
class Settings:
    """Snapshot of the configuration used to build one application."""

    server_id: str = SERVER_ID
    server_version: str = SERVER_VERSION
    allowed_origins: List[str] = field(default_factory=lambda: list(ALLOWED_ORIGINS))
    ping_timeout: int = PING_TIMEOUT
    ping_interval: int = PING_INTERVAL
    cleanup_interval_seconds: int = CLEANUP_INTERVAL_SECONDS
    stale_session_seconds: int = STALE_SESSION_SECONDS
    stats_log_interval_seconds: int = STATS_LOG_INTERVAL_SECONDS
    log_level: str = LOG_LEVEL
    log_file: Optional[str] = LOG_FILE
    debug: bool = DEBUG
