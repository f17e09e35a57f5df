"""Embed URL resolution endpoint."""

from __future__ import annotations

from json import JSONDecodeError
from typing import cast

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from vidrelay.domain.entities.resolution import ResolutionRequest
from vidrelay.domain.exceptions import (
    ExtractionFailed,
    FetchFailed,
    InvalidInput,
    NotFound,
)
from vidrelay.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/resolve-video", tags=["resolver"])


def _failure(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


@router.post("")
async def resolve_video(request: Request) -> JSONResponse:
    """Resolve ``{"embedUrl": ...}`` to a direct media URL."""
    state = cast(AppState, request.app.state)

    try:
        payload = await request.json()
    except (JSONDecodeError, UnicodeDecodeError):
        payload = None
    embed_url = payload.get("embedUrl") if isinstance(payload, dict) else None
    if not embed_url or not isinstance(embed_url, str):
        return JSONResponse(status_code=400, content={"error": "embedUrl is required"})

    req = ResolutionRequest(embed_url=embed_url.strip())
    if not req.is_valid:
        return JSONResponse(status_code=400, content={"error": "Invalid URL format"})

    try:
        result, cached = await state.embed_resolver.resolve_with_cache_info(req.embed_url)
    except InvalidInput:
        return JSONResponse(status_code=400, content={"error": "Invalid URL format"})
    except (NotFound, ExtractionFailed):
        return _failure(404, "Could not extract video URL")
    except FetchFailed as exc:
        log.warning("resolve_video_fetch_failed", url=req.embed_url, status=exc.status_code)
        return _failure(502, "Embed page unavailable")
    except Exception:
        log.exception("resolve_video_error", url=req.embed_url)
        return _failure(500, "Internal server error")

    return JSONResponse(content={"success": True, "cached": cached, **result.to_dict()})


@router.get("")
async def resolver_health(request: Request) -> dict[str, object]:
    state = cast(AppState, request.app.state)
    return {
        "status": "ok",
        "message": "Video Resolver API is running",
        "supportedProviders": state.embed_resolver.supported_providers,
    }
