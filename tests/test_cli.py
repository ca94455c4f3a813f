"""Tests for the command-line interface."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from moreapps.catalog.client import CatalogClient
from moreapps.cli import main_async, parse_args
from moreapps.core.cache import CatalogCache
from moreapps.core import config as config_module
from moreapps.core.config import Settings, get_settings
from moreapps.core.data_models import CatalogRecord, Platform
from moreapps.core.errors import NetworkError
from moreapps.storage.cache_store import CacheStore

DEV = "1499619759"


def make_record(track_id: int, platform: Platform = Platform.PRIMARY) -> CatalogRecord:
    return CatalogRecord(
        track_id=track_id,
        name=f"App {track_id}",
        icon_url=f"https://example.com/{track_id}.png",
        store_url=f"https://apps.apple.com/app/id{track_id}",
        bundle_id=f"com.example.app{track_id}",
        platform=platform,
    )


RECORDS = [make_record(1), make_record(2, Platform.SECONDARY), make_record(3)]


@pytest.fixture
def cache_file(tmp_path: Path) -> Path:
    return tmp_path / "cache.json"


@pytest.fixture
def settings(monkeypatch, tmp_path: Path, cache_file: Path) -> Settings:
    monkeypatch.chdir(tmp_path)
    settings = Settings()
    settings.set("cache.path", str(cache_file))
    return settings


class TestParseArgs:
    """Tests for argument parsing."""

    def test_fetch(self):
        """Test fetch arguments."""
        args = parse_args(["fetch", "--developer", DEV, "--country", "gb", "--json"])
        assert args.command == "fetch"
        assert args.developer == DEV
        assert args.country == "gb"
        assert args.json is True
        assert args.no_region_fallback is False

    def test_show(self):
        """Test show arguments."""
        args = parse_args(
            ["show", "--platform", "primary", "--exclude", "com.a", "--exclude", "com.b"]
        )
        assert args.platform == "primary"
        assert args.exclude == ["com.a", "com.b"]
        assert args.max_retries == 3

    def test_command_required(self):
        """Test that a command is required."""
        with pytest.raises(SystemExit):
            parse_args([])


class TestCommands:
    """Tests for command handlers."""

    @pytest.mark.asyncio
    async def test_fetch_json(self, settings, capsys):
        """Test fetch with JSON output."""
        args = parse_args(["fetch", "--developer", DEV, "--country", "us", "--json"])
        with patch.object(CatalogClient, "fetch", AsyncMock(return_value=RECORDS)) as fetch:
            assert await main_async(args, settings) == 0

        fetch.assert_awaited_once_with(DEV, "us", True)
        output = json.loads(capsys.readouterr().out)
        assert [item["id"] for item in output] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_fetch_table(self, settings, capsys):
        """Test fetch with table output."""
        args = parse_args(["fetch", "--developer", DEV, "--country", "us"])
        with patch.object(CatalogClient, "fetch", AsyncMock(return_value=RECORDS)):
            assert await main_async(args, settings) == 0
        out = capsys.readouterr().out
        assert "com.example.app3" in out

    @pytest.mark.asyncio
    async def test_fetch_without_developer(self, settings, capsys):
        """Test fetch without a developer id."""
        args = parse_args(["fetch", "--country", "us"])
        assert await main_async(args, settings) == 1
        assert "configure" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_fetch_network_error(self, settings, capsys):
        """Test fetch when the lookup fails."""
        args = parse_args(["fetch", "--developer", DEV, "--country", "us"])
        with patch.object(CatalogClient, "fetch", AsyncMock(side_effect=NetworkError("offline"))):
            assert await main_async(args, settings) == 1
        assert "offline" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_show_partitions(self, settings, capsys):
        """Test show with the current app and a platform filter."""
        args = parse_args(
            [
                "show",
                "--developer", DEV,
                "--country", "us",
                "--platform", "primary",
                "--bundle-id", "com.example.app1",
                "--show-current",
            ]
        )
        with patch.object(CatalogClient, "fetch", AsyncMock(return_value=RECORDS)):
            assert await main_async(args, settings) == 0

        out = capsys.readouterr().out
        current, others = out.split("Other apps")
        assert "com.example.app1" in current
        assert "com.example.app3" in others
        assert "com.example.app2" not in out

    @pytest.mark.asyncio
    async def test_show_failure(self, settings, capsys):
        """Test show when every attempt fails."""
        args = parse_args(
            ["show", "--developer", DEV, "--country", "us", "--max-retries", "0"]
        )
        with patch.object(CatalogClient, "fetch", AsyncMock(side_effect=NetworkError("offline"))):
            assert await main_async(args, settings) == 1
        assert "Could not load apps" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_cache_stats_and_clear(self, settings, cache_file, capsys):
        """Test cache stats and clear."""
        CatalogCache(CacheStore(cache_file)).save(RECORDS, DEV, "us")

        assert await main_async(parse_args(["cache", "stats", "--json"]), settings) == 0
        stats = json.loads(capsys.readouterr().out)
        assert stats["developer_id"] == DEV
        assert stats["records"] == 3

        assert await main_async(parse_args(["cache", "clear"]), settings) == 0
        assert not cache_file.exists()

    @pytest.mark.asyncio
    async def test_validate(self, settings, capsys):
        """Test validate with and without --strict."""
        assert await main_async(parse_args(["validate"]), settings) == 0
        settings.set("lookup.endpoint", "not-a-url")
        assert await main_async(parse_args(["validate", "--strict"]), settings) == 1
        assert "lookup.endpoint" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_uses_global_settings(self, monkeypatch, tmp_path: Path, capsys):
        """Test that the CLI loads --config into the process-wide settings."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(config_module, "_global_settings", None)
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("catalog:\n  developer_id: '42'\n", encoding="utf-8")

        args = parse_args(["--config", str(config_file), "validate", "--strict"])
        assert await main_async(args) == 0

        assert get_settings().get("catalog.developer_id") == "42"
        assert "developer_id is not set" not in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_invalid_platform_in_settings(self, settings, capsys):
        """Test exit code 2 for an invalid setting."""
        settings.set("catalog.platform_filter", "tv")
        args = parse_args(["fetch", "--developer", DEV, "--country", "us"])
        assert await main_async(args, settings) == 2
