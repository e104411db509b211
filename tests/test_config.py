from __future__ import annotations

import os
from pathlib import Path

import pytest

from etagproxy import CacheConfig, ConfigurationError, ProxyConfig, RemoteConfig, ServerConfig, load_config, parse_config
from etagproxy._config import get_default_config_paths

DEFAULTS = """
remote:
  protocol: https
  host: api.example.com
  port: 443
cache:
  lifetime: 300
ignoreUrls:
  - ^/session
"""


def write(tmp_path: Path, name: str, content: str) -> Path:
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")
    return path


def test_defaults_are_applied(tmp_path: Path):
    config = load_config(write(tmp_path, "defaults.yml", DEFAULTS))

    assert config == ProxyConfig(
        remote=RemoteConfig(host="api.example.com", protocol="https", port=443, timeout=30.0),
        cache=CacheConfig(lifetime=300.0, sweep_interval=60.0),
        server=ServerConfig(host="127.0.0.1", port=3000),
        ignore_urls=("^/session",),
        log_level="INFO",
    )


def test_later_files_override_earlier_ones(tmp_path: Path):
    defaults = write(tmp_path, "defaults.yml", DEFAULTS)
    local = write(
        tmp_path,
        "local.yml",
        """
remote:
  timeout: 5
cache:
  lifetime: 10
server:
  port: 8000
logging:
  level: debug
""",
    )

    config = load_config(defaults, local)

    assert config.remote == RemoteConfig(host="api.example.com", protocol="https", port=443, timeout=5.0)
    assert config.cache.lifetime == 10.0
    assert config.server.port == 8000
    assert config.log_level == "DEBUG"


def test_missing_files_are_skipped(tmp_path: Path):
    config = load_config(write(tmp_path, "defaults.yml", DEFAULTS), tmp_path / "local.yml")

    assert config.remote.host == "api.example.com"


def test_empty_file(tmp_path: Path):
    with pytest.raises(ConfigurationError, match="`remote.host` is required"):
        load_config(write(tmp_path, "empty.yml", ""))


def test_lifetime_is_required():
    with pytest.raises(ConfigurationError, match="`cache.lifetime` is required"):
        parse_config({"remote": {"host": "example.com"}})


def test_numbers_may_be_strings():
    config = parse_config({"remote": {"host": "example.com", "port": "8080"}, "cache": {"lifetime": "1.5"}})

    assert config.remote.port == 8080
    assert config.cache.lifetime == 1.5


@pytest.mark.parametrize(
    "raw, message",
    [
        ({"remote": {"host": "x"}, "cache": {"lifetime": "soon"}}, "`cache.lifetime` must be a number"),
        ({"remote": "x"}, "`remote` must be a mapping"),
        ({"remote": {"host": "x"}, "cache": {"lifetime": 1, "sweep_interval": 0}}, "must be positive"),
        ({"remote": {"host": "x"}, "cache": {"lifetime": 1}, "ignoreUrls": [1]}, "list of strings"),
    ],
)
def test_invalid_values(raw, message: str):
    with pytest.raises(ConfigurationError, match=message):
        parse_config(raw)


def test_single_ignore_url_string():
    config = parse_config({"remote": {"host": "x"}, "cache": {"lifetime": 1}, "ignoreUrls": "^/api"})

    assert config.ignore_urls == ("^/api",)


def test_top_level_must_be_a_mapping(tmp_path: Path):
    with pytest.raises(ConfigurationError, match="Expected a mapping"):
        load_config(write(tmp_path, "list.yml", "- a\n- b\n"))


def test_malformed_yaml(tmp_path: Path):
    with pytest.raises(ConfigurationError, match="Could not parse"):
        load_config(write(tmp_path, "broken.yml", "remote: [unclosed\n"))


def test_default_paths_from_environment(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("ETAGPROXY_CONFIG", os.pathsep.join(["a.yml", "b.yml"]))

    assert get_default_config_paths() == [Path("a.yml"), Path("b.yml")]


def test_default_paths_without_environment(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("ETAGPROXY_CONFIG", raising=False)

    assert get_default_config_paths() == []


def test_shipped_defaults_are_valid():
    config = load_config(Path(__file__).parent.parent / "config" / "defaults.yml")

    assert config.server.port == 3000
    assert config.cache.sweep_interval == 60.0
