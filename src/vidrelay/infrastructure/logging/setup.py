from __future__ import annotations

import copy
import logging.config
import re
from typing import Any

import structlog

from vidrelay.infrastructure.config.schema import AppConfig

log = structlog.get_logger(__name__)

BASE_LOGGING_CONFIG: dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "()": "uvicorn.logging.DefaultFormatter",
            "fmt": "%(levelprefix)s %(message)s",
            "use_colors": None,
        },
        "access": {
            "()": "uvicorn.logging.AccessFormatter",
            "fmt": '%(levelprefix)s %(client_addr)s - "%(request_line)s" %(status_code)s',
        },
    },
    "handlers": {
        "default": {
            "formatter": "default",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stderr",
        },
        "access": {
            "formatter": "access",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",
        },
    },
    "loggers": {
        "uvicorn": {"handlers": ["default"], "level": "INFO", "propagate": False},
        "uvicorn.error": {"level": "INFO"},
        "uvicorn.access": {"handlers": ["access"], "level": "INFO", "propagate": False},
    },
}

# Proxy links carry the shared secret and upstream URLs carry the API key.
_SECRET_PARAM_RE = re.compile(r"([?&](?:token|key)=)[^&\s\"']+", re.IGNORECASE)


def redact_secrets(text: str) -> str:
    """Mask ``token=`` / ``key=`` query values in a URL or log line.

    >>> redact_secrets("/abc?token=s3cret&exp=1")
    '/abc?token=***&exp=1'
    """
    return _SECRET_PARAM_RE.sub(r"\1***", text)


def _redact_event_values(_: Any, __: Any, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key, value in event_dict.items():
        if isinstance(value, str) and ("token=" in value or "key=" in value):
            event_dict[key] = redact_secrets(value)
    return event_dict


def _drop_color_message(_: Any, __: Any, event_dict: dict[str, Any]) -> dict[str, Any]:
    # Uvicorn attaches "color_message"; it duplicates the message.
    event_dict.pop("color_message", None)
    return event_dict


def build_logging_config(config: AppConfig) -> dict[str, Any]:
    """
    Build a uvicorn-compatible logging config dict (dictConfig),
    based on Uvicorn's default LOGGING_CONFIG, but rendered through structlog.
    """
    cfg = copy.deepcopy(BASE_LOGGING_CONFIG)

    if config.log_format == "json":
        renderer: structlog.typing.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    # foreign_pre_chain runs for plain logging records (uvicorn/fastapi/httpx)
    cfg["formatters"]["structlog"] = {
        "()": structlog.stdlib.ProcessorFormatter,
        "foreign_pre_chain": [
            _drop_color_message,
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            _redact_event_values,
        ],
        "processors": [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    }

    cfg["handlers"]["default"]["formatter"] = "structlog"
    cfg["handlers"]["access"]["formatter"] = "structlog"

    level = config.log_level
    for logger_cfg in cfg["loggers"].values():
        logger_cfg["level"] = level

    cfg["loggers"]["fastapi"] = {"handlers": ["default"], "level": level, "propagate": False}
    # httpx logs every request URL at INFO, including upstream API keys.
    cfg["loggers"]["httpx"] = {"handlers": ["default"], "level": "WARNING", "propagate": False}

    # Root controls everything else (libraries not configured explicitly)
    cfg["root"] = {"handlers": ["default"], "level": level}

    return cfg


def configure_logging(config: AppConfig) -> dict[str, Any]:
    """
    Configure structlog + stdlib logging and return the dict for uvicorn.run(log_config=...).
    """
    structlog.configure(
        processors=[
            _drop_color_message,
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            _redact_event_values,
            structlog.processors.format_exc_info,
            # structlog -> stdlib logging -> ProcessorFormatter
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    cfg = build_logging_config(config)
    logging.config.dictConfig(cfg)
    log.info("logging_configured", log_format=config.log_format, log_level=config.log_level)
    return cfg
