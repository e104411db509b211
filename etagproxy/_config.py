from __future__ import annotations

import logging
import os
import typing as tp
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from etagproxy._exceptions import ConfigurationError
from etagproxy._fetcher import DEFAULT_TIMEOUT
from etagproxy._sweeper import DEFAULT_SWEEP_INTERVAL

logger = logging.getLogger("etagproxy.config")

__all__ = (
    "ProxyConfig",
    "RemoteConfig",
    "CacheConfig",
    "ServerConfig",
    "load_config",
    "parse_config",
    "get_default_config_paths",
)

DEFAULT_SERVER_HOST = "127.0.0.1"
DEFAULT_SERVER_PORT = 3000
DEFAULT_PROTOCOL = "http"
DEFAULT_LOG_LEVEL = "INFO"

# os.pathsep separated list of YAML files, loaded in order
CONFIG_ENV_VAR = "ETAGPROXY_CONFIG"


@dataclass(frozen=True)
class RemoteConfig:
    host: str
    protocol: str = DEFAULT_PROTOCOL
    port: tp.Optional[int] = None
    timeout: float = DEFAULT_TIMEOUT
    """Upstream request timeout in seconds."""


@dataclass(frozen=True)
class CacheConfig:
    lifetime: float
    """How long a captured response stays valid, in seconds."""

    sweep_interval: float = DEFAULT_SWEEP_INTERVAL
    """How often expired entries are removed from memory, in seconds."""


@dataclass(frozen=True)
class ServerConfig:
    host: str = DEFAULT_SERVER_HOST
    port: int = DEFAULT_SERVER_PORT


@dataclass(frozen=True)
class ProxyConfig:
    remote: RemoteConfig
    cache: CacheConfig
    server: ServerConfig = field(default_factory=ServerConfig)
    ignore_urls: tp.Tuple[str, ...] = ()
    log_level: str = DEFAULT_LOG_LEVEL


def get_default_config_paths() -> tp.List[Path]:
    value = os.getenv(CONFIG_ENV_VAR, "")
    return [Path(part) for part in value.split(os.pathsep) if part]


def _merge(base: tp.Dict[str, tp.Any], override: tp.Mapping[str, tp.Any]) -> tp.Dict[str, tp.Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, tp.Mapping) and isinstance(merged.get(key), tp.Mapping):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _read_file(path: Path) -> tp.Dict[str, tp.Any]:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Could not parse {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Expected a mapping at the top of {path}, got {type(data).__name__}")
    return data


def load_config(*paths: tp.Union[str, Path]) -> ProxyConfig:
    """
    Load and merge YAML configuration files.

    Files are merged in order, later ones overriding earlier ones key by key.
    Missing files are skipped, so an optional local override can always be
    listed.

    :raises ConfigurationError: When a required option is missing or has the wrong type
    """
    raw: tp.Dict[str, tp.Any] = {}
    for path in map(Path, paths):
        if not path.is_file():
            logger.debug("Skipping missing config file %s", path)
            continue
        logger.debug("Loading config file %s", path)
        raw = _merge(raw, _read_file(path))
    return parse_config(raw)


def _section(raw: tp.Mapping[str, tp.Any], name: str) -> tp.Mapping[str, tp.Any]:
    value = raw.get(name) or {}
    if not isinstance(value, tp.Mapping):
        raise ConfigurationError(f"`{name}` must be a mapping")
    return value


def _number(section: tp.Mapping[str, tp.Any], key: str, path: str, default: tp.Any = None) -> tp.Any:
    value = section.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        try:
            value = float(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"`{path}` must be a number, got {value!r}") from None
    return value


def parse_config(raw: tp.Mapping[str, tp.Any]) -> ProxyConfig:
    remote = _section(raw, "remote")
    cache = _section(raw, "cache")
    server = _section(raw, "server")
    logging_section = _section(raw, "logging")

    host = remote.get("host")
    if not host:
        raise ConfigurationError("`remote.host` is required")

    lifetime = _number(cache, "lifetime", "cache.lifetime")
    if lifetime is None:
        raise ConfigurationError("`cache.lifetime` is required")

    port = _number(remote, "port", "remote.port")
    sweep_interval = _number(cache, "sweep_interval", "cache.sweep_interval", DEFAULT_SWEEP_INTERVAL)
    if sweep_interval <= 0:
        raise ConfigurationError("`cache.sweep_interval` must be positive")

    ignore_urls = raw.get("ignoreUrls") or []
    if isinstance(ignore_urls, str):
        ignore_urls = [ignore_urls]
    if not isinstance(ignore_urls, list) or not all(isinstance(url, str) for url in ignore_urls):
        raise ConfigurationError("`ignoreUrls` must be a list of strings")

    return ProxyConfig(
        remote=RemoteConfig(
            host=str(host),
            protocol=str(remote.get("protocol", DEFAULT_PROTOCOL)),
            port=int(port) if port is not None else None,
            timeout=float(_number(remote, "timeout", "remote.timeout", DEFAULT_TIMEOUT)),
        ),
        cache=CacheConfig(lifetime=float(lifetime), sweep_interval=float(sweep_interval)),
        server=ServerConfig(
            host=str(server.get("host", DEFAULT_SERVER_HOST)),
            port=int(_number(server, "port", "server.port", DEFAULT_SERVER_PORT)),
        ),
        ignore_urls=tuple(ignore_urls),
        log_level=str(logging_section.get("level", DEFAULT_LOG_LEVEL)).upper(),
    )
