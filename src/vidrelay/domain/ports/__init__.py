from .cache import CachePort
from .embed_resolver import EmbedResolverPort, EmbedStrategyPort
from .upstream_store import UpstreamResponse, UpstreamStorePort

__all__ = [
    "CachePort",
    "EmbedResolverPort",
    "EmbedStrategyPort",
    "UpstreamResponse",
    "UpstreamStorePort",
]
