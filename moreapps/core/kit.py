"""Entry point for moreapps configuration and data access.

:class:`MoreApps` is what presentation code talks to.  It holds the active
:class:`CatalogConfig`, replaced wholesale by :meth:`MoreApps.configure`, and
offers a data-only API (:meth:`fetch_apps`, :meth:`current_app`) next to
:meth:`make_orchestrator`, which builds the retrying loader used by views.

Example::

    kit = MoreApps(current_bundle_id="com.example.notes")
    kit.configure(CatalogConfig(developer_id="1499619759", show_current_app=True))
    apps = await kit.fetch_apps()
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from moreapps.catalog.client import DEFAULT_LOOKUP_ENDPOINT, CatalogClient, resolve_country_code
from moreapps.core.cache import CatalogCache, get_cache
from moreapps.core.config import Settings
from moreapps.core.data_models import CatalogConfig, CatalogRecord
from moreapps.core.errors import MoreAppsError, NoData, NotConfigured
from moreapps.core.http_client import DEFAULT_USER_AGENT
from moreapps.core.orchestrator import LoadOrchestrator
from moreapps.storage.cache_store import CacheStore


class MoreApps:
    """Holds the active catalog configuration and the shared collaborators."""

    def __init__(
        self,
        config: Optional[CatalogConfig] = None,
        *,
        cache: Optional[CatalogCache] = None,
        client: Optional[CatalogClient] = None,
        country: Optional[str] = None,
        current_bundle_id: Optional[str] = None,
    ) -> None:
        """Initialize the facade.

        Args:
            config: Initial catalog configuration (configure later if omitted)
            cache: Catalog cache (process-wide instance if not provided)
            client: Lookup client (default endpoint if not provided)
            country: Store country code (resolved from the locale if not provided)
            current_bundle_id: Bundle id of the running app, if known
        """
        self._config = config
        self.cache = cache if cache is not None else get_cache()
        self.client = client if client is not None else CatalogClient()
        self._country = country.lower() if country else None
        self.current_bundle_id = current_bundle_id
        self.logger = logging.getLogger(self.__class__.__name__)

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "MoreApps":
        """Build a facade whose collaborators follow ``settings``.

        The catalog configuration is taken from the ``catalog`` section when
        a developer id is configured; ``overrides`` replace its fields.
        """
        client = CatalogClient(
            settings.get("lookup.endpoint", DEFAULT_LOOKUP_ENDPOINT),
            timeout=settings.get_float("lookup.timeout_seconds", 10.0),
            max_retries=settings.get_int("lookup.max_retries", 1),
            user_agent=str(settings.get("lookup.user_agent", DEFAULT_USER_AGENT)),
        )
        cache_path = settings.cache_path()
        cache = CatalogCache(CacheStore(cache_path)) if cache_path else get_cache()

        config = None
        if settings.get("catalog.developer_id") or overrides.get("developer_id"):
            config = settings.to_catalog_config(**overrides)

        return cls(
            config,
            cache=cache,
            client=client,
            country=settings.get("lookup.default_country", "") or None,
            current_bundle_id=settings.bundle_id(),
        )

    @property
    def config(self) -> Optional[CatalogConfig]:
        """The active configuration, or None before ``configure``."""
        return self._config

    @property
    def country(self) -> str:
        return self._country or resolve_country_code()

    def configure(self, config: CatalogConfig) -> None:
        """Replace the active configuration."""
        self._config = config
        self.logger.info("Configured for developer %s", config.developer_id)

    def configure_developer(self, developer_id: str) -> None:
        """Replace the active configuration with defaults for ``developer_id``."""
        self.configure(CatalogConfig.for_developer(developer_id))

    def require_config(self) -> CatalogConfig:
        """Return the active configuration.

        Raises:
            NotConfigured: If ``configure`` has not been called
        """
        if self._config is None:
            raise NotConfigured()
        return self._config

    async def fetch_apps(self, *, require_data: bool = False) -> List[CatalogRecord]:
        """Fetch every app by the configured developer, without partitioning.

        Serves a fresh cache hit when there is one; otherwise performs a
        single lookup (no retries) and caches the result.

        Args:
            require_data: Raise NoData instead of returning an empty list

        Raises:
            NotConfigured: If ``configure`` has not been called
            NetworkError: If the lookup failed
            DecodeError: If the lookup response was malformed
            NoData: If ``require_data`` is set and no apps were found
        """
        config = self.require_config()
        country = self.country

        cached = self.cache.load(config.developer_id, country, config.cache_ttl)
        if cached is not None:
            records = cached
        else:
            records = await self.client.fetch(
                config.developer_id, country, config.region_fallback
            )
            self.cache.save(records, config.developer_id, country)

        if require_data and not records:
            raise NoData()
        return records

    async def current_app(self) -> Optional[CatalogRecord]:
        """Find the running app in the developer's catalog.

        Returns None when the bundle id is unknown, the app is not listed
        (e.g. not yet published) or the catalog cannot be fetched.
        """
        if not self.current_bundle_id:
            return None
        try:
            records = await self.fetch_apps()
        except MoreAppsError as e:
            self.logger.debug("Current app lookup failed: %s", e)
            return None
        return next((r for r in records if r.is_current(self.current_bundle_id)), None)

    def clear_cache(self) -> None:
        """Clear the cached catalog."""
        self.cache.clear()

    def make_orchestrator(self, **kwargs: Any) -> LoadOrchestrator:
        """Create a loader for one view, bound to the active configuration.

        Args:
            **kwargs: Extra LoadOrchestrator arguments (``retry_policy``,
                ``sleep``, ``on_change``)

        Raises:
            NotConfigured: If ``configure`` has not been called
        """
        return LoadOrchestrator(
            self.require_config(),
            cache=self.cache,
            client=self.client,
            country=self.country,
            current_bundle_id=self.current_bundle_id,
            **kwargs,
        )
