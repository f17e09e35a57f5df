from .resolution import (
    MediaType,
    ResolutionRequest,
    ResolutionResult,
    infer_media_type,
    is_absolute_http_url,
)
from .streaming import (
    CachedResponse,
    CacheEntry,
    ResourceKind,
    ResourceRoute,
    StreamingRequest,
)

__all__ = [
    "CacheEntry",
    "CachedResponse",
    "MediaType",
    "ResolutionRequest",
    "ResolutionResult",
    "ResourceKind",
    "ResourceRoute",
    "StreamingRequest",
    "infer_media_type",
    "is_absolute_http_url",
]
