"""Tests for engine configuration."""

import pytest

from hashflow import EngineConfig


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("HASHFLOW_LINE_PREFIX", "HASHFLOW_DEFAULT_DELIMITER", "HASHFLOW_INTERPOLATE"):
        monkeypatch.delenv(name, raising=False)


class TestEngineConfig:
    def test_defaults(self):
        config = EngineConfig.from_env()

        assert config == EngineConfig(line_prefix=None, default_delimiter=", ", interpolate=False)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("HASHFLOW_LINE_PREFIX", "--")
        monkeypatch.setenv("HASHFLOW_DEFAULT_DELIMITER", " and ")
        monkeypatch.setenv("HASHFLOW_INTERPOLATE", "yes")

        config = EngineConfig.from_env()

        assert config.line_prefix == "--"
        assert config.default_delimiter == " and "
        assert config.interpolate is True

    @pytest.mark.parametrize("value,expected", [("1", True), ("ON", True), ("true", True), ("0", False), ("no", False)])
    def test_interpolate_flag(self, monkeypatch, value, expected):
        monkeypatch.setenv("HASHFLOW_INTERPOLATE", value)

        assert EngineConfig.from_env().interpolate is expected

    def test_empty_prefix_ignored(self, monkeypatch):
        monkeypatch.setenv("HASHFLOW_LINE_PREFIX", "")

        assert EngineConfig.from_env().line_prefix is None
