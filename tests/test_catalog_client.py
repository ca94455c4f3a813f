"""Tests for the catalog lookup client."""

from typing import Any, Dict, List

import httpx
import pytest

from moreapps.catalog.client import (
    COUNTRY_ENV,
    CatalogClient,
    parse_lookup_response,
    record_from_result,
    resolve_country_code,
)
from moreapps.core.data_models import Platform
from moreapps.core.errors import DecodeError, NetworkError

ENDPOINT = "https://lookup.test/lookup"


def app_entry(track_id: int, **overrides) -> Dict[str, Any]:
    entry = {
        "wrapperType": "software",
        "kind": "software",
        "trackId": track_id,
        "trackName": f"App {track_id}",
        "bundleId": f"com.example.app{track_id}",
        "artworkUrl512": f"https://example.com/{track_id}-512.png",
        "artworkUrl100": f"https://example.com/{track_id}-100.png",
        "trackViewUrl": f"https://apps.apple.com/app/id{track_id}?uo=4",
        "description": "An app",
        "formattedPrice": "$1.99",
        "genres": ["Productivity"],
        "averageUserRating": 4.5,
        "userRatingCount": 12,
    }
    entry.update(overrides)
    return entry


ARTIST_ENTRY = {"wrapperType": "artist", "artistType": "Software Artist", "artistId": 42}


def envelope(results: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"resultCount": len(results), "results": results}


class RecordingHandler:
    """MockTransport handler that answers per country and records requests."""

    def __init__(self, by_country: Dict[str, Any]) -> None:
        self.by_country = by_country
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        answer = self.by_country[request.url.params["country"]]
        if isinstance(answer, httpx.Response):
            return answer
        return httpx.Response(200, json=answer)

    @property
    def countries(self) -> List[str]:
        return [r.url.params["country"] for r in self.requests]


def make_client(handler) -> CatalogClient:
    return CatalogClient(ENDPOINT, transport=httpx.MockTransport(handler))


class TestRecordMapping:
    """Tests for mapping raw lookup entries."""

    def test_full_entry(self):
        """Test mapping a complete entry."""
        record = record_from_result(app_entry(1))
        assert record is not None
        assert record.track_id == 1
        assert record.icon_url.endswith("-512.png")
        assert record.price == "$1.99"
        assert record.genres == ("Productivity",)
        assert record.average_rating == 4.5
        assert record.rating_count == 12
        assert record.platform is Platform.PRIMARY

    def test_defaults(self):
        """Test defaults for optional fields."""
        entry = app_entry(1, kind="mac-software")
        for key in ("artworkUrl512", "formattedPrice", "description", "genres",
                    "averageUserRating", "userRatingCount"):
            del entry[key]

        record = record_from_result(entry)
        assert record.icon_url.endswith("-100.png")
        assert record.price == "Free"
        assert record.description == ""
        assert record.genres == ()
        assert record.average_rating is None
        assert record.rating_count is None
        assert record.platform is Platform.SECONDARY

    def test_artist_entry_skipped(self):
        """Test that the artist entry is dropped."""
        assert record_from_result(ARTIST_ENTRY) is None

    @pytest.mark.parametrize("missing", ["trackId", "trackName", "bundleId", "trackViewUrl"])
    def test_incomplete_entry_skipped(self, missing):
        """Test that an entry missing a required field is dropped."""
        entry = app_entry(1)
        del entry[missing]
        assert record_from_result(entry) is None

    def test_entry_without_icon_skipped(self):
        """Test that an entry without artwork is dropped."""
        entry = app_entry(1)
        del entry["artworkUrl512"]
        del entry["artworkUrl100"]
        assert record_from_result(entry) is None

    @pytest.mark.parametrize(
        "field,value",
        [
            ("trackId", "1"),
            ("trackName", 7),
            ("bundleId", ["com.example.app1"]),
            ("artworkUrl512", {"url": "x"}),
            ("trackViewUrl", 3),
            ("description", ["text"]),
            ("formattedPrice", 1.99),
            ("genres", "Games"),
            ("genres", ["Games", 6014]),
            ("averageUserRating", "4.5"),
            ("averageUserRating", False),
            ("userRatingCount", "12"),
        ],
    )
    def test_mistyped_entry_skipped(self, field, value):
        """Test that an entry with a wrongly typed field is dropped."""
        assert record_from_result(app_entry(1, **{field: value})) is None

    def test_mistyped_entry_dropped_from_response(self):
        """Test that one mistyped entry does not affect its neighbours."""
        payload = envelope([app_entry(1), app_entry(2, genres="Games"), app_entry(3)])
        assert [r.track_id for r in parse_lookup_response(payload)] == [1, 3]

    def test_integer_rating_becomes_float(self):
        """Test that an integral averageUserRating is stored as a float."""
        record = record_from_result(app_entry(1, averageUserRating=5))
        assert record.average_rating == 5.0
        assert isinstance(record.average_rating, float)

    def test_parse_keeps_order_and_skips_junk(self):
        """Test response order and skipping of non-app entries."""
        payload = envelope([ARTIST_ENTRY, app_entry(3), "junk", app_entry(1), app_entry(2)])
        records = parse_lookup_response(payload)
        assert [r.track_id for r in records] == [3, 1, 2]

    @pytest.mark.parametrize(
        "payload",
        [[], {"results": []}, {"resultCount": 1}, {"resultCount": 0, "results": {}}],
    )
    def test_parse_rejects_bad_envelope(self, payload):
        """Test envelope validation."""
        with pytest.raises(DecodeError):
            parse_lookup_response(payload)


class TestCatalogClient:
    """Tests for CatalogClient.fetch."""

    @pytest.mark.asyncio
    async def test_request_parameters(self):
        """Test the lookup query string."""
        handler = RecordingHandler({"us": envelope([app_entry(1)])})
        records = await make_client(handler).fetch("1499619759", "US")

        assert [r.track_id for r in records] == [1]
        request = handler.requests[0]
        assert request.url.host == "lookup.test"
        assert request.url.params["id"] == "1499619759"
        assert request.url.params["entity"] == "software"
        assert request.url.params["country"] == "us"

    @pytest.mark.asyncio
    async def test_region_fallback(self):
        """Test falling back to the US store."""
        handler = RecordingHandler(
            {"fr": envelope([ARTIST_ENTRY]), "us": envelope([app_entry(1), app_entry(2)])}
        )
        records = await make_client(handler).fetch("dev", "fr")

        assert [r.track_id for r in records] == [1, 2]
        assert handler.countries == ["fr", "us"]

    @pytest.mark.asyncio
    async def test_no_fallback_when_local_store_has_apps(self):
        """Test that a non-empty local result is kept."""
        handler = RecordingHandler({"fr": envelope([app_entry(1)])})
        await make_client(handler).fetch("dev", "fr")
        assert handler.countries == ["fr"]

    @pytest.mark.asyncio
    async def test_fallback_disabled(self):
        """Test fetch with region fallback off."""
        handler = RecordingHandler({"fr": envelope([])})
        records = await make_client(handler).fetch("dev", "fr", region_fallback=False)
        assert records == []
        assert handler.countries == ["fr"]

    @pytest.mark.asyncio
    async def test_no_fallback_from_us(self):
        """Test that the US store never falls back."""
        handler = RecordingHandler({"us": envelope([])})
        records = await make_client(handler).fetch("dev", "us")
        assert records == []
        assert handler.countries == ["us"]

    @pytest.mark.asyncio
    async def test_fallback_is_single_hop(self):
        """Test that an empty US result is returned as is."""
        handler = RecordingHandler({"fr": envelope([]), "us": envelope([])})
        records = await make_client(handler).fetch("dev", "fr")
        assert records == []
        assert handler.countries == ["fr", "us"]

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        """Test a server error status."""
        handler = RecordingHandler({"us": httpx.Response(503, text="down")})
        with pytest.raises(NetworkError) as exc_info:
            await make_client(handler).fetch("dev", "us")
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_transport_error(self):
        """Test a connection failure."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(NetworkError):
            await make_client(handler).fetch("dev", "us")

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        """Test a non-JSON body."""
        handler = RecordingHandler({"us": httpx.Response(200, text="<html>")})
        with pytest.raises(DecodeError):
            await make_client(handler).fetch("dev", "us")

    @pytest.mark.asyncio
    async def test_bad_envelope(self):
        """Test a JSON body without the lookup envelope."""
        handler = RecordingHandler({"us": {"unexpected": True}})
        with pytest.raises(DecodeError):
            await make_client(handler).fetch("dev", "us")


class TestResolveCountryCode:
    """Tests for resolve_country_code."""

    def test_env_override(self, monkeypatch):
        """Test MOREAPPS_COUNTRY."""
        monkeypatch.setenv(COUNTRY_ENV, "GB")
        assert resolve_country_code() == "gb"

    def test_from_locale(self, monkeypatch):
        """Test the region of the process locale."""
        monkeypatch.delenv(COUNTRY_ENV, raising=False)
        monkeypatch.setattr(
            "moreapps.catalog.client.locale.getlocale", lambda: ("de_DE", "UTF-8")
        )
        assert resolve_country_code() == "de"

    def test_from_lang_variable(self, monkeypatch):
        """Test the LANG environment variable."""
        monkeypatch.delenv(COUNTRY_ENV, raising=False)
        monkeypatch.delenv("LC_ALL", raising=False)
        monkeypatch.setenv("LANG", "fr_CA.UTF-8")
        monkeypatch.setattr("moreapps.catalog.client.locale.getlocale", lambda: (None, None))
        assert resolve_country_code() == "ca"

    def test_default(self, monkeypatch):
        """Test the fallback country."""
        monkeypatch.delenv(COUNTRY_ENV, raising=False)
        monkeypatch.delenv("LC_ALL", raising=False)
        monkeypatch.setenv("LANG", "C")
        monkeypatch.setattr("moreapps.catalog.client.locale.getlocale", lambda: (None, None))
        assert resolve_country_code() == "us"
