"""
Tests for environment-driven settings in config.py.
"""

import importlib

import pytest

import config
from prediction.models import Mode


@pytest.fixture
def reload_config(monkeypatch):
    """Reload config under a patched environment, restoring it afterwards."""
    def _reload(**env):
        for key, value in env.items():
            monkeypatch.setenv(key, value)
        return importlib.reload(config)

    yield _reload
    monkeypatch.undo()
    importlib.reload(config)


class TestFallbackMode:
    @pytest.mark.parametrize("value", ["", "   "])
    def test_blank_uses_default(self, reload_config, value):
        assert reload_config(FALLBACK_MODE=value).FALLBACK_MODE == "QCBus"

    def test_custom_label_kept(self, reload_config):
        settings = reload_config(FALLBACK_MODE="Jeep")
        assert settings.FALLBACK_MODE == "Jeep"

    def test_always_parses(self, reload_config):
        settings = reload_config(FALLBACK_MODE="")
        assert Mode.parse(settings.FALLBACK_MODE).label == "QCBus"
