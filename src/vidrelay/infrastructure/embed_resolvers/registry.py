"""Registry that dispatches embed URL resolution to provider strategies."""

from __future__ import annotations

import time
from collections.abc import Sequence

import httpx
import structlog

from vidrelay.domain.entities.resolution import ResolutionResult, is_absolute_http_url
from vidrelay.domain.exceptions import (
    ExtractionFailed,
    FetchFailed,
    InvalidInput,
    NotFound,
)
from vidrelay.domain.ports.embed_resolver import EmbedStrategyPort

log = structlog.get_logger(__name__)


class EmbedResolver:
    """Picks the first strategy whose host pattern matches and runs it.

    Strategies are tried in registration order. A matching strategy that
    fails is terminal: other strategies are never consulted, so a generic
    pattern cannot hand back an unrelated URL.
    """

    def __init__(self, strategies: Sequence[EmbedStrategyPort]) -> None:
        self._strategies = list(strategies)

    @property
    def supported_providers(self) -> list[str]:
        return [s.name for s in self._strategies]

    def strategy_for(self, embed_url: str) -> EmbedStrategyPort | None:
        for strategy in self._strategies:
            if strategy.matches(embed_url):
                return strategy
        return None

    async def resolve(self, embed_url: str) -> ResolutionResult:
        if not is_absolute_http_url(embed_url):
            raise InvalidInput("Invalid URL format", embed_url=embed_url)

        strategy = self.strategy_for(embed_url)
        if strategy is None:
            log.info("embed_provider_not_found", url=embed_url)
            raise NotFound("No provider matches this embed URL", embed_url=embed_url)

        start = time.perf_counter()
        try:
            result = await strategy.resolve(embed_url)
        except httpx.HTTPError as exc:
            # Strategy follow-up calls that did not map their own errors
            raise FetchFailed(
                f"{strategy.name}: {exc}", embed_url=embed_url
            ) from exc
        except (FetchFailed, ExtractionFailed) as exc:
            log.warning(
                "embed_resolve_failed",
                provider=strategy.name,
                url=embed_url,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise

        log.info(
            "embed_resolve_success",
            provider=strategy.name,
            url=embed_url,
            media_type=result.type,
            duration_ms=round((time.perf_counter() - start) * 1000, 1),
        )
        return result
