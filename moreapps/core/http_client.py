"""Asynchronous HTTP client helper.

This module provides a wrapper around the ``httpx`` asynchronous client used
by the catalog lookup.  It centralises settings such as timeouts, headers and
transport-level retries, and keeps simple request statistics.  Lookup calls
default to a single attempt because the load orchestrator owns the
user-visible retry schedule.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Optional, Set

import httpx

DEFAULT_USER_AGENT = "moreapps/0.1 (+https://github.com/moreapps)"

# HTTP status codes that should not trigger retries
NON_RETRYABLE_STATUS_CODES: Set[int] = {
    400,  # Bad Request
    401,  # Unauthorized
    403,  # Forbidden
    404,  # Not Found
    405,  # Method Not Allowed
    410,  # Gone
    422,  # Unprocessable Entity
}


class AsyncHTTPClient:
    """A small async HTTP client with optional retry on transient failures."""

    def __init__(
        self,
        timeout: float = 10.0,
        max_retries: int = 1,
        retry_on_status: Optional[Set[int]] = None,
        user_agent: str = DEFAULT_USER_AGENT,
        backoff_base: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the HTTP client.

        Parameters
        ----------
        timeout : float
            Request timeout in seconds.
        max_retries : int
            Maximum number of attempts per request (1 disables retries).
        retry_on_status : set, optional
            HTTP status codes that should trigger retries.
            Defaults to 429, 500, 502, 503, 504.
        user_agent : str
            Value of the ``User-Agent`` header.
        backoff_base : float
            Base of the exponential delay between attempts, in seconds.
        transport : httpx.AsyncBaseTransport, optional
            Custom transport, e.g. ``httpx.MockTransport`` in tests.
        """
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._retry_on_status = retry_on_status or {429, 500, 502, 503, 504}
        self._user_agent = user_agent
        self._backoff_base = backoff_base
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.logger = logging.getLogger(self.__class__.__name__)
        self._request_count = 0
        self._total_request_time = 0.0

    async def __aenter__(self) -> "AsyncHTTPClient":
        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            headers={"User-Agent": self._user_agent, "Accept": "application/json"},
            follow_redirects=True,
            transport=self._transport,
        )
        self.logger.debug(
            "HTTP client initialized (timeout=%.1fs, max_retries=%d)",
            self._timeout,
            self._max_retries,
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            if self._request_count > 0:
                avg_time = self._total_request_time / self._request_count
                self.logger.debug(
                    "HTTP client closed (requests=%d, avg_time=%.2fms)",
                    self._request_count,
                    avg_time * 1000,
                )

    def _should_retry(self, status_code: int) -> bool:
        """Determine if a request should be retried based on status code."""
        if status_code in NON_RETRYABLE_STATUS_CODES:
            return False
        return status_code in self._retry_on_status

    async def _backoff(self, attempt: int) -> None:
        await asyncio.sleep(self._backoff_base * (2 ** (attempt - 1)))

    async def get(
        self,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Make a GET request with retry on transient failures.

        Parameters
        ----------
        url : str
            The URL to request.
        headers : dict, optional
            HTTP headers.
        params : dict, optional
            Query parameters.

        Returns
        -------
        httpx.Response
            The last response received.  Error statuses are returned, not
            raised, so callers decide how to treat them.

        Raises
        ------
        RuntimeError
            If the client is not used as a context manager.
        httpx.RequestError
            If every attempt failed at the transport level.
        """
        if self._client is None:
            raise RuntimeError("AsyncHTTPClient must be used as an async context manager")

        attempt = 0
        while True:
            attempt += 1
            start_time = time.monotonic()
            try:
                self.logger.debug(
                    "GET %s (attempt %d/%d)", url[:100], attempt, self._max_retries
                )
                response = await self._client.get(url, headers=headers, params=params)
            except httpx.RequestError as exc:
                self.logger.warning(
                    "Request error on GET %s (attempt %d/%d): %s",
                    url[:100],
                    attempt,
                    self._max_retries,
                    exc,
                )
                if attempt >= self._max_retries:
                    raise
                await self._backoff(attempt)
                continue

            elapsed = time.monotonic() - start_time
            self._request_count += 1
            self._total_request_time += elapsed
            self.logger.debug(
                "GET %s -> %d (%.2fms)", url[:100], response.status_code, elapsed * 1000
            )

            if (
                response.status_code >= 400
                and self._should_retry(response.status_code)
                and attempt < self._max_retries
            ):
                self.logger.warning(
                    "Retryable status %d for %s, retrying...", response.status_code, url[:100]
                )
                await self._backoff(attempt)
                continue

            return response

    @property
    def stats(self) -> Dict[str, Any]:
        """Get request statistics.

        Returns
        -------
        dict
            Statistics including request count and average time.
        """
        return {
            "request_count": self._request_count,
            "total_time_ms": self._total_request_time * 1000,
            "avg_time_ms": (
                (self._total_request_time / self._request_count * 1000)
                if self._request_count > 0
                else 0
            ),
        }
