"""Port for the upstream file store behind the streaming edge proxy."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol


class UpstreamResponse(Protocol):
    """An open upstream response whose body has not been read yet."""

    status_code: int

    @property
    def is_success(self) -> bool: ...

    def header_items(self) -> list[tuple[str, str]]:
        """All response headers as (name, value) pairs, repeats preserved."""
        ...

    def aiter_body(self) -> AsyncIterator[bytes]: ...

    async def aread_text(self) -> str: ...

    async def aclose(self) -> None: ...


class UpstreamStorePort(Protocol):
    """Fetch bytes for a file id, honoring an optional ``Range`` header.

    Any object/blob store with range-read support satisfies this contract.
    Callers MUST ``aclose()`` the returned response.
    """

    @property
    def is_configured(self) -> bool: ...

    async def open(
        self, file_id: str, *, range_header: str | None = None
    ) -> UpstreamResponse: ...
