"""moreapps - show a developer's other apps.

Fetches a developer's published apps from the iTunes lookup service, caches
them locally and partitions them into the running app and the developer's
other apps for presentation.
"""

__version__ = "0.1.0"
__author__ = "moreapps Contributors"

from moreapps.core.data_models import CatalogConfig, CatalogRecord
from moreapps.core.kit import MoreApps
from moreapps.core.orchestrator import LoadOrchestrator, LoadState

__all__ = [
    "CatalogConfig",
    "CatalogRecord",
    "LoadOrchestrator",
    "LoadState",
    "MoreApps",
    "__version__",
]
