"""Catalog lookup client for moreapps.

Provides :class:`CatalogClient`, which asks the iTunes lookup service for all
software published by a developer and maps the raw response to
:class:`~moreapps.core.data_models.CatalogRecord` values.  When the caller's
region has no results the client can fall back once to the ``us`` store,
which carries the most complete listings.
"""

from __future__ import annotations

import locale
import logging
import os
from typing import Any, Dict, List, Mapping, Optional

import httpx

from moreapps.core.data_models import (
    DEFAULT_PRICE_LABEL,
    CatalogRecord,
    Platform,
    is_integer,
    is_number,
    is_string_list,
)
from moreapps.core.errors import DecodeError, NetworkError
from moreapps.core.http_client import DEFAULT_USER_AGENT, AsyncHTTPClient
from moreapps.core.logging_setup import log_performance

DEFAULT_LOOKUP_ENDPOINT = "https://itunes.apple.com/lookup"
FALLBACK_COUNTRY = "us"
COUNTRY_ENV = "MOREAPPS_COUNTRY"

logger = logging.getLogger(__name__)


def resolve_country_code(default: str = FALLBACK_COUNTRY) -> str:
    """Resolve the store country code for the running process.

    ``MOREAPPS_COUNTRY`` wins; otherwise the region part of the process
    locale is used (``en_GB`` -> ``gb``).
    """
    override = os.environ.get(COUNTRY_ENV, "").strip()
    if override:
        return override.lower()

    try:
        process_locale = locale.getlocale()[0]
    except ValueError:
        process_locale = None

    candidates = [process_locale, os.environ.get("LC_ALL"), os.environ.get("LANG")]
    for name in candidates:
        if not name:
            continue
        # "en_GB.UTF-8" / "en-GB" -> "GB"
        tag = name.split(".")[0].replace("-", "_")
        parts = tag.split("_")
        if len(parts) >= 2 and len(parts[1]) == 2 and parts[1].isalpha():
            return parts[1].lower()
    return default


def record_from_result(item: Mapping[str, Any]) -> Optional[CatalogRecord]:
    """Map one raw lookup entry to a record.

    Returns None for non-software entries (such as the developer's own
    artist entry), for entries missing an identifier, name, bundle id, icon
    or listing URL, and for entries with a field of the wrong type.
    """
    if item.get("wrapperType") != "software":
        return None

    track_id = item.get("trackId")
    name = item.get("trackName")
    bundle_id = item.get("bundleId")
    icon_url = item.get("artworkUrl512") or item.get("artworkUrl100")
    store_url = item.get("trackViewUrl")
    if track_id is None or not name or not bundle_id or not icon_url or not store_url:
        return None

    description = item.get("description")
    price = item.get("formattedPrice")
    genres = item.get("genres")
    average_rating = item.get("averageUserRating")
    rating_count = item.get("userRatingCount")

    mistyped = [
        key
        for key, valid in (
            ("trackId", is_integer(track_id)),
            ("trackName", isinstance(name, str)),
            ("bundleId", isinstance(bundle_id, str)),
            ("artworkUrl", isinstance(icon_url, str)),
            ("trackViewUrl", isinstance(store_url, str)),
            ("description", description is None or isinstance(description, str)),
            ("formattedPrice", price is None or isinstance(price, str)),
            ("genres", genres is None or is_string_list(genres)),
            ("averageUserRating", average_rating is None or is_number(average_rating)),
            ("userRatingCount", rating_count is None or is_integer(rating_count)),
        )
        if not valid
    ]
    if mistyped:
        logger.debug(
            "Dropping lookup entry %r with mistyped fields: %s", track_id, ", ".join(mistyped)
        )
        return None

    try:
        return CatalogRecord(
            track_id=track_id,
            name=name,
            icon_url=icon_url,
            store_url=store_url,
            bundle_id=bundle_id,
            description=description or "",
            price=price or DEFAULT_PRICE_LABEL,
            genres=tuple(genres or ()),
            average_rating=float(average_rating) if average_rating is not None else None,
            rating_count=rating_count,
            platform=Platform.from_kind(item.get("kind")),
        )
    except ValueError as exc:
        logger.debug("Dropping malformed lookup entry %r: %s", track_id, exc)
        return None


def parse_lookup_response(payload: Any) -> List[CatalogRecord]:
    """Validate the lookup envelope and map its entries.

    Raises
    ------
    DecodeError
        If ``payload`` is not a ``{resultCount, results: [...]}`` mapping.
    """
    if not isinstance(payload, dict):
        raise DecodeError("Lookup response is not a JSON object")
    results = payload.get("results")
    if not isinstance(results, list) or not isinstance(payload.get("resultCount"), int):
        raise DecodeError("Lookup response is missing 'resultCount' or 'results'")

    records: List[CatalogRecord] = []
    for item in results:
        if not isinstance(item, dict):
            continue
        record = record_from_result(item)
        if record is not None:
            records.append(record)

    dropped = len(results) - len(records)
    if dropped:
        logger.debug("Dropped %d non-app or incomplete lookup entries", dropped)
    return records


class CatalogClient:
    """Fetches a developer's published apps from the lookup service."""

    def __init__(
        self,
        endpoint: str = DEFAULT_LOOKUP_ENDPOINT,
        *,
        timeout: float = 10.0,
        max_retries: int = 1,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.endpoint = endpoint
        self.timeout = timeout
        self.max_retries = max_retries
        self.user_agent = user_agent
        self._transport = transport
        self.logger = logging.getLogger(self.__class__.__name__)

    async def fetch(
        self, developer_id: str, country: str, region_fallback: bool = True
    ) -> List[CatalogRecord]:
        """Fetch every app by ``developer_id`` in the ``country`` store.

        If that store returns nothing and ``region_fallback`` is set, the
        ``us`` store is queried once and its result returned instead.

        Raises
        ------
        NetworkError
            On transport failure or a non-success HTTP status.
        DecodeError
            If a response cannot be parsed.
        """
        country = country.lower()
        records = await self._lookup(developer_id, country)

        if not records and region_fallback and country != FALLBACK_COUNTRY:
            self.logger.info(
                "No apps for developer %s in '%s', falling back to '%s'",
                developer_id,
                country,
                FALLBACK_COUNTRY,
            )
            return await self._lookup(developer_id, FALLBACK_COUNTRY)

        return records

    async def _lookup(self, developer_id: str, country: str) -> List[CatalogRecord]:
        params: Dict[str, str] = {"id": developer_id, "entity": "software", "country": country}

        async with AsyncHTTPClient(
            timeout=self.timeout,
            max_retries=self.max_retries,
            user_agent=self.user_agent,
            transport=self._transport,
        ) as client:
            with log_performance(f"lookup {developer_id}/{country}", self.logger):
                try:
                    response = await client.get(self.endpoint, params=params)
                except httpx.HTTPError as exc:
                    raise NetworkError(f"Lookup request failed: {exc}") from exc

        if not response.is_success:
            raise NetworkError(
                f"Lookup returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise DecodeError(f"Lookup response is not valid JSON: {exc}") from exc

        records = parse_lookup_response(payload)
        self.logger.debug(
            "Lookup for developer %s in '%s' returned %d apps", developer_id, country, len(records)
        )
        return records
