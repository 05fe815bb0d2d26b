"""Environment-level configuration for the game server.

Ports, origins and logging depend on where the process is deployed; the
game rules themselves do not read anything from here.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


def _origins_env(name: str) -> List[str]:
    value = os.getenv(name)
    if not value or not value.strip():
        return ["*"]
    return [origin.strip() for origin in value.split(";") if origin.strip()]


@dataclass
class Settings:
    host: str = "0.0.0.0"
    port: int = 5000
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    log_file: Optional[str] = None
    room_code_length: int = 4
    # socket.io keep-alive, seconds
    ping_interval: int = 15
    ping_timeout: int = 120

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=_int_env("PORT", 5000),
            allowed_origins=_origins_env("ALLOWED_ORIGINS"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE") or None,
            room_code_length=_int_env("ROOM_CODE_LENGTH", 4),
            ping_interval=_int_env("PING_INTERVAL", 15),
            ping_timeout=_int_env("PING_TIMEOUT", 120),
        )

    @property
    def cors_origins(self):
        """Value for python-socketio's cors_allowed_origins."""
        if self.allowed_origins == ["*"]:
            return "*"
        return self.allowed_origins


def get_settings() -> Settings:
    return Settings.from_env()
