"""Catalog lookup for moreapps."""

from moreapps.catalog.client import (
    CatalogClient,
    parse_lookup_response,
    record_from_result,
    resolve_country_code,
)

__all__ = [
    "CatalogClient",
    "parse_lookup_response",
    "record_from_result",
    "resolve_country_code",
]
