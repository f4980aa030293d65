"""
Tests for Configuration.

Requires Python 3.11+.
"""

from pathlib import Path

import pytest

from utils.config import LiveReloadSettings, Settings, WatchSettings


class TestSettings:
    """Test cases for settings defaults and environment parsing."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch):
        """Test the default watch behavior."""
        for name in ["WATCH_ENABLED", "WATCH_DEBOUNCE_MS", "LIVERELOAD_ENABLED", "LIVERELOAD_PORT"]:
            monkeypatch.delenv(name, raising=False)

        settings = Settings()

        assert settings.watch.enabled is True
        assert settings.watch.debounce_ms == 300
        assert settings.watch.ready_delay_ms == 700
        assert settings.watch.include_prefix == "_"
        assert settings.livereload.enabled is False
        assert settings.livereload.port == 35729
        assert settings.livereload.flush_delay_ms == 300
        assert settings.cli is False

    def test_comma_separated_file_types(self, monkeypatch: pytest.MonkeyPatch):
        """Test list settings accept comma-separated environment values."""
        monkeypatch.setenv("WATCH_INCLUDE_FILE_TYPES", "scss, .LESS ,pug")
        monkeypatch.setenv("LIVERELOAD_FILE_TYPES", "css,html")

        assert WatchSettings().include_file_types == ["scss", "less", "pug"]
        assert LiveReloadSettings().file_types == ["css", "html"]

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch):
        """Test nested settings read their prefixed variables."""
        monkeypatch.setenv("PATHS_SOURCE", "/site/src")
        monkeypatch.setenv("LIVERELOAD_ENABLED", "true")
        monkeypatch.setenv("LIVERELOAD_PORT", "4000")

        settings = Settings()

        assert settings.paths.source == Path("/site/src")
        assert settings.livereload.enabled is True
        assert settings.livereload.port == 4000

    def test_invalid_port_rejected(self):
        """Test port bounds are validated."""
        with pytest.raises(ValueError):
            LiveReloadSettings(port=70000)
