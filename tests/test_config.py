"""Tests for configuration loading."""
import pytest

from config import load_config, _deep_merge


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ("ALERTMON_DB_PATH", "ALERTMON_RULES_PATH", "ALERTMON_LOG_LEVEL",
                "ALERTMON_LOG_FILE", "ALERTMON_HOST", "ALERTMON_PORT"):
        monkeypatch.delenv(key, raising=False)


def test_defaults():
    config = load_config()
    assert config["database"]["path"] == "data/alertmon.db"
    assert config["alerts"]["bus_queue_size"] == 100
    assert config["alerts"]["serialize_triggers"] is True
    assert config["web"]["port"] == 5000
    assert config["web"]["default_page_size"] == 20
    assert config["web"]["max_page_size"] == 100
    assert config["logging"]["level"] == "INFO"


def test_override_file_merges(tmp_path):
    path = tmp_path / "override.yaml"
    path.write_text("web:\n  port: 8080\nalerts:\n  bus_queue_size: 5\n")
    config = load_config(str(path))
    assert config["web"]["port"] == 8080
    assert config["web"]["host"] == "0.0.0.0"
    assert config["alerts"]["bus_queue_size"] == 5
    assert config["alerts"]["serialize_triggers"] is True


def test_missing_override_file_uses_defaults(tmp_path):
    config = load_config(str(tmp_path / "nope.yaml"))
    assert config["web"]["port"] == 5000


def test_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("ALERTMON_DB_PATH", str(tmp_path / "env.db"))
    monkeypatch.setenv("ALERTMON_PORT", "9000")
    monkeypatch.setenv("ALERTMON_LOG_LEVEL", "DEBUG")
    config = load_config()
    assert config["database"]["path"] == str(tmp_path / "env.db")
    assert config["web"]["port"] == 9000
    assert config["logging"]["level"] == "DEBUG"


@pytest.mark.parametrize("override,message", [
    ("web:\n  port: 70000\n", "web.port"),
    ("web:\n  port: http\n", "web.port"),
    ("alerts:\n  bus_queue_size: 0\n", "bus_queue_size"),
    ("web:\n  stream_keepalive: 0\n", "stream_keepalive"),
])
def test_validation(tmp_path, override, message):
    path = tmp_path / "bad.yaml"
    path.write_text(override)
    with pytest.raises(ValueError, match=message):
        load_config(str(path))


def test_deep_merge_does_not_mutate():
    base = {"a": {"b": 1, "c": 2}}
    merged = _deep_merge(base, {"a": {"b": 5}})
    assert merged == {"a": {"b": 5, "c": 2}}
    assert base == {"a": {"b": 1, "c": 2}}
