"""Core functionality for moreapps.

This package contains the catalog data pipeline: data models, the two-tier
cache, the HTTP client, the partitioner, the load orchestrator and the
``MoreApps`` facade, plus settings and logging setup.
"""

from .data_models import (  # noqa: F401
    CatalogConfig,
    CatalogRecord,
    DisplayOptions,
    Platform,
    PlatformFilter,
    TapHandler,
)
from .errors import (  # noqa: F401
    CatalogError,
    DecodeError,
    MoreAppsError,
    NetworkError,
    NoData,
    NotConfigured,
)
from .http_client import AsyncHTTPClient  # noqa: F401
from .logging_setup import configure_logging  # noqa: F401
from .config import Settings, get_settings, ValidationResult  # noqa: F401
from .cache import CacheEntry, CatalogCache, get_cache, set_cache  # noqa: F401
from .partition import Partition, partition  # noqa: F401
from .error_recovery import RetryPolicy  # noqa: F401
from .orchestrator import CancellationToken, LoadOrchestrator, LoadState  # noqa: F401
from .kit import MoreApps  # noqa: F401

__all__ = [
    # Models
    "CatalogConfig",
    "CatalogRecord",
    "DisplayOptions",
    "Platform",
    "PlatformFilter",
    "TapHandler",
    # Errors
    "CatalogError",
    "DecodeError",
    "MoreAppsError",
    "NetworkError",
    "NoData",
    "NotConfigured",
    # Infrastructure
    "AsyncHTTPClient",
    "configure_logging",
    "Settings",
    "get_settings",
    "ValidationResult",
    # Caching
    "CacheEntry",
    "CatalogCache",
    "get_cache",
    "set_cache",
    # Loading
    "Partition",
    "partition",
    "RetryPolicy",
    "CancellationToken",
    "LoadOrchestrator",
    "LoadState",
    "MoreApps",
]
