from __future__ import annotations

from .setup import configure_logging, redact_secrets

__all__ = ["configure_logging", "redact_secrets"]
