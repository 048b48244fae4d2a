"""Configuration settings for the PDF File Server."""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

# Directory paths
STORAGE_DIR = "./storage"
LOG_DIR = os.getenv("LOG_DIR", "./logs")

# Network
HOST = "0.0.0.0"
PORT = 8000

# CORS policy
CORS_ALLOW_ORIGINS = ("*",)
CORS_ALLOW_METHODS = ("GET", "POST", "OPTIONS")
CORS_ALLOW_HEADERS = ("Content-Type",)

# Path segment constraints
MAX_SEGMENT_LENGTH = 255

# Failure monitor
MONITOR_FAILURE_THRESHOLD = 5
MONITOR_WINDOW_SECONDS = 60

PDF_MEDIA_TYPE = "application/pdf"


def _int_from_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got {value!r}")


@dataclass(frozen=True)
class Settings:
    storage_dir: Path
    host: str = HOST
    port: int = PORT
    cors_allow_origins: Tuple[str, ...] = CORS_ALLOW_ORIGINS
    cors_allow_methods: Tuple[str, ...] = CORS_ALLOW_METHODS
    cors_allow_headers: Tuple[str, ...] = CORS_ALLOW_HEADERS
    monitor_failure_threshold: int = MONITOR_FAILURE_THRESHOLD
    monitor_window_seconds: int = MONITOR_WINDOW_SECONDS

    @classmethod
    def from_env(cls, storage_dir: Optional[str] = None) -> 'Settings':
        """Create Settings from environment variables.

        An explicit ``storage_dir`` argument takes precedence over
        ``STORAGE_DIR``. The path is resolved to an absolute path.
        """
        storage = storage_dir or os.getenv("STORAGE_DIR") or STORAGE_DIR

        origins = os.getenv("CORS_ALLOW_ORIGINS")
        if origins:
            cors_allow_origins = tuple(o.strip() for o in origins.split(",") if o.strip())
        else:
            cors_allow_origins = CORS_ALLOW_ORIGINS

        return cls(
            storage_dir=Path(storage).resolve(),
            host=os.getenv("HOST") or HOST,
            port=_int_from_env("PORT", PORT),
            cors_allow_origins=cors_allow_origins,
            monitor_failure_threshold=_int_from_env("MONITOR_FAILURE_THRESHOLD", MONITOR_FAILURE_THRESHOLD),
            monitor_window_seconds=_int_from_env("MONITOR_WINDOW_SECONDS", MONITOR_WINDOW_SECONDS),
        )
