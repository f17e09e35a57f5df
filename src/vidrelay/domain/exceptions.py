"""Resolver error taxonomy."""

from __future__ import annotations


class ResolutionError(Exception):
    """Base class for all embed resolution failures."""

    retryable: bool = False

    def __init__(self, message: str, *, embed_url: str = "") -> None:
        super().__init__(message)
        self.embed_url = embed_url


class InvalidInput(ResolutionError):
    """The embed URL is not a well-formed absolute URL (caller error)."""


class NotFound(ResolutionError):
    """No registered provider strategy matches the embed URL host."""


class FetchFailed(ResolutionError):
    """Network failure, timeout or non-2xx answer from the embed host."""

    retryable = True

    def __init__(
        self,
        message: str,
        *,
        embed_url: str = "",
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, embed_url=embed_url)
        self.status_code = status_code


class ExtractionFailed(ResolutionError):
    """Page fetched fine but no direct media URL could be extracted.

    Usually means the provider changed its markup.
    """
