"""Unit tests for RelaySettings and endpoint catalogue loading."""

from pathlib import Path

import pytest
import yaml

from embedrelay.config.endpoints import (
    EndpointCatalog,
    EndpointSpec,
    default_catalog,
    load_endpoint_catalog,
)
from embedrelay.config.settings import DEFAULT_ENDPOINTS_PATH, RelaySettings


# ---------------------------------------------------------------------------
# RelaySettings
# ---------------------------------------------------------------------------


class TestRelaySettings:
    def test_defaults_are_correct(self):
        settings = RelaySettings()

        assert settings.port == 8002
        assert settings.log_level == "INFO"
        assert settings.log_json is True
        assert settings.endpoints_path == DEFAULT_ENDPOINTS_PATH
        assert settings.surface_url is None
        assert settings.surface_timeout_seconds == 5.0
        assert settings.load_timeout_seconds == 15.0
        assert settings.max_retries == 3
        assert settings.retry_backoff_min_ms == 2000
        assert settings.retry_backoff_max_ms == 5000
        assert settings.tick_interval_seconds == 1.0
        assert settings.view_interval_seconds == 30
        assert settings.block_threshold == 3
        assert settings.block_cooldown_seconds == 60.0
        assert settings.recovery_idle_seconds == 300.0
        assert settings.optimize_interval_seconds == 30.0
        assert settings.graceful_shutdown_seconds == 5.0

    def test_env_prefix_is_relay(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("RELAY_PORT", "9000")
        monkeypatch.setenv("RELAY_SURFACE_URL", "http://surface:3000")
        monkeypatch.setenv("RELAY_MAX_RETRIES", "5")

        settings = RelaySettings()
        assert settings.port == 9000
        assert settings.surface_url == "http://surface:3000"
        assert settings.max_retries == 5

    def test_negative_retries_rejected(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("RELAY_MAX_RETRIES", "-1")
        with pytest.raises(Exception):
            RelaySettings()

    def test_backoff_window_must_be_ordered(self):
        with pytest.raises(Exception):
            RelaySettings(retry_backoff_min_ms=6000, retry_backoff_max_ms=5000)

    def test_zero_block_threshold_rejected(self):
        with pytest.raises(Exception):
            RelaySettings(block_threshold=0)

    def test_bundled_catalogue_exists(self):
        assert Path(DEFAULT_ENDPOINTS_PATH).is_file()


# ---------------------------------------------------------------------------
# Endpoint catalogue
# ---------------------------------------------------------------------------


def _write_yaml(tmp_path: Path, data: object) -> str:
    path = tmp_path / "endpoints.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return str(path)


class TestLoadEndpointCatalog:
    def test_bundled_catalogue(self):
        catalog = load_endpoint_catalog(DEFAULT_ENDPOINTS_PATH)
        assert list(catalog.endpoints)[:3] == ["auto", "noproxy", "nocookie"]
        assert catalog.endpoints["auto"].embed is None
        assert catalog.endpoints["noproxy"].embed == "https://www.youtube.com/embed/"
        assert len(catalog.user_agents) >= 1

    def test_parses_entries(self, tmp_path: Path):
        path = _write_yaml(
            tmp_path,
            {
                "endpoints": {
                    "auto": {"name": "Auto", "embed": None, "health": 100},
                    "edge": {
                        "name": "Edge",
                        "embed": "https://edge.example/embed/",
                        "priority": 4,
                        "health": 65,
                        "icon": "fas fa-bolt",
                    },
                },
                "user_agents": ["ua-1", "ua-2"],
            },
        )
        catalog = load_endpoint_catalog(path)
        edge = catalog.endpoints["edge"]
        assert edge.name == "Edge"
        assert edge.priority == 4
        assert edge.health == 65
        assert edge.icon == "fas fa-bolt"
        assert catalog.user_agents == ["ua-1", "ua-2"]

    def test_missing_file_uses_defaults(self, tmp_path: Path):
        catalog = load_endpoint_catalog(str(tmp_path / "missing.yaml"))
        assert set(catalog.endpoints) == {"auto", "noproxy", "nocookie"}
        assert catalog.endpoints["noproxy"].health == 85
        assert catalog.endpoints["nocookie"].health == 75

    def test_malformed_yaml_uses_defaults(self, tmp_path: Path):
        path = tmp_path / "bad.yaml"
        path.write_text("endpoints: [unclosed", encoding="utf-8")
        assert set(load_endpoint_catalog(str(path)).endpoints) == {"auto", "noproxy", "nocookie"}

    def test_missing_endpoints_mapping_uses_defaults(self, tmp_path: Path):
        path = _write_yaml(tmp_path, {"user_agents": ["ua"]})
        assert "noproxy" in load_endpoint_catalog(path).endpoints

    def test_only_virtual_endpoints_uses_defaults(self, tmp_path: Path):
        path = _write_yaml(tmp_path, {"endpoints": {"auto": {"embed": None}}})
        assert "noproxy" in load_endpoint_catalog(path).endpoints

    def test_invalid_entry_skipped(self, tmp_path: Path, caplog):
        path = _write_yaml(
            tmp_path,
            {
                "endpoints": {
                    "good": {"embed": "https://good/embed/", "health": 80},
                    "bad": {"embed": "https://bad/embed/", "health": 250},
                }
            },
        )
        catalog = load_endpoint_catalog(path)
        assert set(catalog.endpoints) == {"good"}
        assert "Invalid endpoint 'bad'" in caplog.text

    def test_missing_user_agents_gets_default(self, tmp_path: Path):
        path = _write_yaml(tmp_path, {"endpoints": {"good": {"embed": "https://good/embed/"}}})
        assert len(load_endpoint_catalog(path).user_agents) == 1

    def test_default_catalog_is_a_copy(self):
        first = default_catalog()
        first.endpoints["noproxy"].health = 1
        assert default_catalog().endpoints["noproxy"].health == 85

    def test_spec_validation(self):
        with pytest.raises(Exception):
            EndpointSpec(health=-1)
        assert EndpointCatalog(endpoints={}).user_agents == []
