"""Catch-all route handing every non-API request to the edge proxy."""

from __future__ import annotations

from typing import cast

from fastapi import APIRouter, Request
from starlette.responses import Response

from vidrelay.domain.entities.streaming import StreamingRequest
from vidrelay.interfaces.app_state import AppState

router = APIRouter(tags=["edge"])

_METHODS = ["GET", "HEAD", "OPTIONS", "POST", "PUT", "PATCH", "DELETE"]


def to_streaming_request(request: Request) -> StreamingRequest:
    url = request.url
    return StreamingRequest(
        method=request.method.upper(),
        origin=f"{url.scheme}://{url.netloc}",
        pathname=url.path,
        url=str(url),
        token=request.query_params.get("token"),
        exp=request.query_params.get("exp"),
        range=request.headers.get("range"),
    )


@router.api_route("/{path:path}", methods=_METHODS, include_in_schema=False)
async def edge(request: Request, path: str) -> Response:
    state = cast(AppState, request.app.state)
    return await state.edge_proxy.handle(to_streaming_request(request))
