"""Tests for client configuration."""

from __future__ import annotations

import pytest

from foundas.config import Settings


class TestSettings:
    def test_default_settings(self) -> None:
        s = Settings(_env_file=None)
        assert s.server_url == "https://found.as"
        assert s.api_url == "https://found.as/api"
        assert s.debounce_seconds == 0.2
        assert s.max_upload_bytes == 1024 * 1024
        assert s.max_path_length == 32
        assert s.debug is False

    def test_env_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FOUNDAS_SERVER_URL", "http://localhost:8787/")
        monkeypatch.setenv("FOUNDAS_DEBOUNCE_SECONDS", "0.5")
        s = Settings(_env_file=None)
        assert s.api_url == "http://localhost:8787/api"
        assert s.debounce_seconds == 0.5

    def test_settings_from_fixture(self, test_settings: Settings) -> None:
        assert test_settings.server_url == "https://found.test"
        assert test_settings.debounce_seconds == 0.01

    def test_rejects_non_positive_timeout(self) -> None:
        with pytest.raises(ValueError, match="request_timeout"):
            Settings(_env_file=None, request_timeout=0)
