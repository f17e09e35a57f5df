"""Embed page resolvers: provider strategies, registry, caching wrapper."""

from __future__ import annotations

import httpx

from ._base import EmbedStrategy
from .caching import CachingEmbedResolver
from .doodstream import DoodStreamStrategy
from .filemoon import FilemoonStrategy
from .registry import EmbedResolver
from .streamwish import StreamwishStrategy
from .vidfast import VidfastStrategy


def default_strategies(
    http_client: httpx.AsyncClient, *, timeout: float = 15.0
) -> list[EmbedStrategy]:
    """All built-in strategies in priority order (most specific host first)."""
    return [
        DoodStreamStrategy(http_client, timeout=timeout),
        FilemoonStrategy(http_client, timeout=timeout),
        StreamwishStrategy(http_client, timeout=timeout),
        VidfastStrategy(http_client, timeout=timeout),
    ]


__all__ = [
    "CachingEmbedResolver",
    "DoodStreamStrategy",
    "EmbedResolver",
    "EmbedStrategy",
    "FilemoonStrategy",
    "StreamwishStrategy",
    "VidfastStrategy",
    "default_strategies",
]
