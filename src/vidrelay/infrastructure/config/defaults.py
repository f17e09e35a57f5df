"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "vidrelay",
    "environment": "dev",
    "http": {
        "timeout_seconds": 30.0,
    },
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
    "cache": {
        "backend": "memory",
        "dir": "./.cache/vidrelay",
        "ttl_seconds": 3600,
    },
    "resolver": {
        "cache_ttl_seconds": 3600,
        "single_flight": True,
        "request_timeout_seconds": 15.0,
    },
    "proxy": {
        "subtitle_ttl_seconds": 86400,
        "video_full_ttl_seconds": 3600,
        "video_range_ttl_seconds": 300,
        "upstream_ttl_by_status": {"200-299": 3600, "404": 60, "500-599": 0},
    },
}
