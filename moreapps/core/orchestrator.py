"""Load orchestrator for moreapps.

This module defines :class:`LoadOrchestrator`, which coordinates the catalog
cache, the lookup client and the partitioner for one catalog view.  It owns
an explicit state machine::

    IDLE -> LOADING -> LOADED
                    -> FAILED

A fresh cache hit goes straight to ``LOADED`` without touching the network.
A failed lookup first falls back to stale cached data, then retries on a
bounded backoff schedule, and only then reports ``FAILED``.  ``retry()``
starts a new cycle from any state.

Each cycle runs as an asyncio task with its own :class:`CancellationToken`.
Cancellation is cooperative and observed right after the two suspension
points (the lookup and the backoff delay); a cancelled cycle makes no further
state transitions.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Sequence

from moreapps.catalog.client import CatalogClient, resolve_country_code
from moreapps.core.cache import CatalogCache, get_cache
from moreapps.core.data_models import CatalogConfig, CatalogRecord
from moreapps.core.error_recovery import RetryPolicy, describe_error, is_recoverable_error
from moreapps.core.partition import Partition, partition

Sleep = Callable[[float], Awaitable[None]]
StateListener = Callable[["LoadState"], None]


class LoadState(Enum):
    """Externally observed load state of an orchestrator."""

    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


class CancellationToken:
    """Cooperative cancellation flag for one load cycle."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def sleep(self, delay: float) -> None:
        """Sleep for ``delay`` seconds, returning early once cancelled."""
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass


class LoadOrchestrator:
    """Loads and partitions one developer catalog for a single consumer.

    Not safe to drive from several threads; each view owns its own
    orchestrator while all of them share one cache.
    """

    def __init__(
        self,
        config: CatalogConfig,
        *,
        cache: Optional[CatalogCache] = None,
        client: Optional[CatalogClient] = None,
        country: Optional[str] = None,
        current_bundle_id: Optional[str] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Optional[Sleep] = None,
        on_change: Optional[StateListener] = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            config: Catalog configuration for this view
            cache: Shared catalog cache (process-wide instance if not provided)
            client: Lookup client (default endpoint if not provided)
            country: Store country code (resolved from the locale if not provided)
            current_bundle_id: Bundle id of the running app, if known
            retry_policy: Backoff schedule (2s, 4s, 8s if not provided)
            sleep: Replacement for the backoff wait; the default wait ends
                early when the cycle is cancelled
            on_change: Called with the new state after every transition
        """
        self.config = config
        self._cache = cache if cache is not None else get_cache()
        self._client = client if client is not None else CatalogClient()
        self.country = (country or resolve_country_code()).lower()
        self.current_bundle_id = current_bundle_id
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._on_change = on_change
        self.logger = logging.getLogger(self.__class__.__name__)

        self._state = LoadState.IDLE
        self._partition = Partition()
        self._did_load = False
        self._retry_count = 0
        self._last_error: Optional[BaseException] = None
        self._token: Optional[CancellationToken] = None
        self._task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Observed state
    # ------------------------------------------------------------------

    @property
    def state(self) -> LoadState:
        return self._state

    @property
    def is_loading(self) -> bool:
        return self._state is LoadState.LOADING

    @property
    def has_error(self) -> bool:
        return self._state is LoadState.FAILED

    @property
    def retry_count(self) -> int:
        return self._retry_count

    @property
    def last_error(self) -> Optional[BaseException]:
        """The failure that ended the last cycle in ``FAILED``."""
        return self._last_error

    @property
    def current(self) -> Optional[CatalogRecord]:
        return self._partition.current

    @property
    def others(self) -> List[CatalogRecord]:
        return list(self._partition.others)

    @property
    def all_records(self) -> List[CatalogRecord]:
        """Current app (if shown) followed by the other apps."""
        return self._partition.all_records

    @property
    def visible_others(self) -> List[CatalogRecord]:
        """Other apps trimmed to ``display_options.max_count``."""
        max_count = self.config.display_options.max_count
        if max_count is None:
            return self.others
        return self.others[:max_count]

    @property
    def has_more(self) -> bool:
        """True if ``visible_others`` hides some apps."""
        max_count = self.config.display_options.max_count
        return max_count is not None and len(self._partition.others) > max_count

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def load(self) -> Optional["asyncio.Task[None]"]:
        """Load the catalog once.

        Does nothing while a cycle is running or after a cycle finished.
        A fresh cache hit is applied synchronously; otherwise a fetch cycle
        is scheduled on the running event loop and its task returned.
        """
        if self._state is LoadState.LOADING:
            return None
        if self._did_load or self._state is LoadState.FAILED:
            return None

        cached = self._cache.load(self.config.developer_id, self.country, self.config.cache_ttl)
        if cached is not None:
            self.logger.debug("Using cached catalog for developer %s", self.config.developer_id)
            self._apply(cached)
            return None

        return self._start_cycle()

    def retry(self) -> "asyncio.Task[None]":
        """Cancel any running cycle and start a new one through the fetch path."""
        self._cancel_cycle()
        self._retry_count = 0
        self._did_load = False
        self._last_error = None
        self.logger.info("Retrying catalog load for developer %s", self.config.developer_id)
        return self._start_cycle()

    def close(self) -> None:
        """Cancel the running cycle, e.g. when the owning view goes away."""
        self._cancel_cycle()

    async def wait(self) -> None:
        """Wait until the current cycle's task has finished."""
        task = self._task
        if task is not None:
            await asyncio.shield(task)

    def select(self, record: CatalogRecord) -> bool:
        """Forward a user's selection to the configured tap handler.

        Returns:
            True if a tap handler was notified
        """
        handler = self.config.tap_handler
        if handler is None:
            return False
        handler.notify(record)
        return True

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _set_state(self, state: LoadState) -> None:
        if state is self._state:
            return
        self.logger.debug("Load state %s -> %s", self._state.value, state.value)
        self._state = state
        if self._on_change is not None:
            self._on_change(state)

    def _apply(self, records: Sequence[CatalogRecord]) -> None:
        self._partition = partition(records, self.config, self.current_bundle_id)
        self._did_load = True
        self._set_state(LoadState.LOADED)

    def _cancel_cycle(self) -> None:
        if self._token is not None:
            self._token.cancel()

    def _start_cycle(self) -> "asyncio.Task[None]":
        loop = asyncio.get_running_loop()
        previous = self._task
        token = CancellationToken()
        self._token = token
        self._set_state(LoadState.LOADING)
        self._task = loop.create_task(self._run_cycle(token, previous))
        return self._task

    async def _wait(self, delay: float, token: CancellationToken) -> None:
        if self._sleep is not None:
            await self._sleep(delay)
        else:
            await token.sleep(delay)

    async def _run_cycle(
        self, token: CancellationToken, previous: Optional["asyncio.Task[None]"]
    ) -> None:
        # A lookup is never interrupted, so let a cancelled predecessor
        # finish before issuing ours: one fetch in flight at a time.
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
            if token.cancelled:
                return

        config = self.config
        while True:
            try:
                records = await self._client.fetch(
                    config.developer_id, self.country, config.region_fallback
                )
            except Exception as exc:
                if token.cancelled:
                    return
                if is_recoverable_error(exc):
                    self.logger.warning(
                        "Catalog load failed for developer %s: %s",
                        config.developer_id,
                        describe_error(exc),
                    )
                else:
                    self.logger.exception(
                        "Catalog load failed for developer %s", config.developer_id
                    )

                stale = self._cache.load_stale(config.developer_id)
                if stale is not None:
                    self._apply(stale)
                    return

                if not self.retry_policy.can_retry(self._retry_count):
                    self.logger.error(
                        "Giving up on developer %s after %d retries",
                        config.developer_id,
                        self._retry_count,
                    )
                    self._last_error = exc
                    self._set_state(LoadState.FAILED)
                    return

                delay = self.retry_policy.delay_for(self._retry_count)
                self._retry_count += 1
                self.logger.info(
                    "Retrying developer %s in %.0fs (%d/%d)",
                    config.developer_id,
                    delay,
                    self._retry_count,
                    self.retry_policy.max_retries,
                )
                await self._wait(delay, token)
                if token.cancelled:
                    return
                continue

            if token.cancelled:
                return
            self._cache.save(records, config.developer_id, self.country)
            self._apply(records)
            self.logger.info(
                "Loaded %d apps for developer %s (%d shown)",
                len(records),
                config.developer_id,
                len(self._partition.others),
            )
            return
