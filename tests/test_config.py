"""Unit tests for ControllerConfig."""

from datetime import timedelta

import pytest

from shell_cache.controller import ConfigError, ControllerConfig


class TestControllerConfig:
    """Tests for ControllerConfig validation and serialization."""

    def test_defaults(self) -> None:
        """Defaults describe the v2 app shell."""
        config = ControllerConfig(origin="https://shop.example.com")
        assert config.static_cache_name == "app-shell-v2"
        assert config.dynamic_cache_name == "app-shell-dynamic-v2"
        assert config.freshness_threshold == timedelta(hours=24)
        assert config.shell_urls == ("/", "/manifest.json", "/offline.html")
        assert config.excluded_path_patterns == ("/api/", ".php")
        assert config.asset_destinations == frozenset({"image", "style", "script"})
        assert config.cache_names == {"app-shell-v2", "app-shell-dynamic-v2"}

    @pytest.mark.parametrize("origin", ["", "shop.example.com", "ftp://shop.example"])
    def test_origin_must_be_absolute_http(self, origin: str) -> None:
        """Origins need an http(s) scheme and a host."""
        with pytest.raises(ConfigError, match="Origin"):
            ControllerConfig(origin=origin)

    def test_cache_names_must_differ(self) -> None:
        """Static and dynamic caches cannot share a name."""
        with pytest.raises(ConfigError, match="distinct"):
            ControllerConfig(
                origin="https://shop.example.com",
                static_cache_name="same",
                dynamic_cache_name="same",
            )

    def test_cache_names_not_empty(self) -> None:
        """Empty cache names are rejected."""
        with pytest.raises(ConfigError, match="empty"):
            ControllerConfig(origin="https://shop.example.com", static_cache_name="")

    def test_threshold_must_be_positive(self) -> None:
        """A zero freshness window is rejected."""
        with pytest.raises(ConfigError, match="positive"):
            ControllerConfig(
                origin="https://shop.example.com", freshness_threshold=timedelta(0)
            )

    def test_shell_required(self) -> None:
        """An empty app shell is rejected."""
        with pytest.raises(ConfigError, match="shell"):
            ControllerConfig(origin="https://shop.example.com", shell_urls=())

    def test_resolve(self) -> None:
        """Relative URLs resolve against the origin; absolute ones pass through."""
        origin = "https://shop.example.com"
        config = ControllerConfig(origin=origin)
        assert config.resolve("/") == "https://shop.example.com/"
        assert config.resolve("/offline.html") == f"{origin}/offline.html"
        cdn = "https://cdn.example.org/x"
        assert config.resolve(cdn) == cdn

    def test_dict_round_trip(self) -> None:
        """to_dict/from_dict preserve every field."""
        config = ControllerConfig(
            origin="https://shop.example.com",
            static_cache_name="app-shell-v3",
            dynamic_cache_name="app-shell-dynamic-v3",
            freshness_threshold=timedelta(hours=6),
            shell_urls=("/", "/offline.html"),
            excluded_path_patterns=("/api/",),
            asset_destinations=frozenset({"image", "font"}),
        )
        assert ControllerConfig.from_dict(config.to_dict()) == config

    def test_from_dict_fills_defaults(self) -> None:
        """Only the origin is required."""
        config = ControllerConfig.from_dict({"origin": "https://shop.example.com"})
        assert config == ControllerConfig(origin="https://shop.example.com")

    def test_from_dict_requires_origin(self) -> None:
        """A record without an origin is invalid."""
        with pytest.raises(ConfigError, match="origin"):
            ControllerConfig.from_dict({"static_cache_name": "x"})
