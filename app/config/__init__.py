"""Patcher configuration loaded from JSON resources."""

from __future__ import annotations

import json
from dataclasses import dataclass
from importlib import resources
from math import isfinite
from pathlib import Path
from typing import Any, Mapping

_CONFIG_RESOURCE = "patcher.json"
_PATCHER_CONFIG_CACHE: PatcherConfig | None = None

_DEFAULT_OWNER = "tree-patcher"
_DEFAULT_REPO = "files"
_DEFAULT_PACKAGE_PREFIX = "tree-patcher"
_DEFAULT_API_BASE = "https://api.github.com"
_DEFAULT_TIMEOUT = 30.0
_DEFAULT_RETRIES = 2
_DEFAULT_BACKOFF = 1.0
_DEFAULT_MAX_UPDATE_PASSES = 3
_DEFAULT_HASH_WORKERS = 1


@dataclass(frozen=True)
class NetworkConfig:
    """Bounds applied to every remote request."""

    api_base_url: str
    request_timeout_seconds: float
    request_retries: int
    retry_backoff_seconds: float


@dataclass(frozen=True)
class PatcherConfig:
    """Structured configuration values for the patcher."""

    owner: str
    repo: str
    package_prefix: str
    destination_root: Path
    network: NetworkConfig
    max_update_passes: int
    hash_workers: int


def get_patcher_config() -> PatcherConfig:
    """Return the cached patcher configuration."""

    global _PATCHER_CONFIG_CACHE
    if _PATCHER_CONFIG_CACHE is None:
        _PATCHER_CONFIG_CACHE = load_patcher_config()
    return _PATCHER_CONFIG_CACHE


def reset_patcher_config_cache() -> None:
    """Reset the cached configuration for subsequent reloads."""

    global _PATCHER_CONFIG_CACHE
    _PATCHER_CONFIG_CACHE = None


def load_patcher_config(path: str | Path | None = None) -> PatcherConfig:
    """Load configuration from ``path`` or the bundled JSON resource."""

    data = _read_config_data(path)
    release_section = data.get("release") if isinstance(data, Mapping) else None
    network_section = data.get("network") if isinstance(data, Mapping) else None
    cycle_section = data.get("cycle") if isinstance(data, Mapping) else None
    if not isinstance(release_section, Mapping):
        release_section = {}
    if not isinstance(cycle_section, Mapping):
        cycle_section = {}

    return PatcherConfig(
        owner=_coerce_text(release_section.get("owner"), default=_DEFAULT_OWNER),
        repo=_coerce_text(release_section.get("repo"), default=_DEFAULT_REPO),
        package_prefix=_coerce_text(
            release_section.get("package_prefix"), default=_DEFAULT_PACKAGE_PREFIX
        ),
        destination_root=Path(
            _coerce_text(cycle_section.get("destination_root"), default=".")
        ).expanduser(),
        network=_parse_network_section(network_section),
        max_update_passes=_coerce_non_negative_int(
            cycle_section.get("max_update_passes"), default=_DEFAULT_MAX_UPDATE_PASSES
        ),
        hash_workers=_coerce_positive_int(
            cycle_section.get("hash_workers"), default=_DEFAULT_HASH_WORKERS
        ),
    )


def _read_config_data(path: str | Path | None) -> Mapping[str, Any]:
    if path is not None:
        return _load_json_from_path(Path(path).expanduser())
    return _load_default_config_data()


def _load_json_from_path(path: Path) -> Mapping[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError:
        return {}
    return _parse_json(raw)


def _load_default_config_data() -> Mapping[str, Any]:
    try:
        resource = resources.files(__package__).joinpath(_CONFIG_RESOURCE)
        raw = resource.read_text(encoding="utf-8")
    except (FileNotFoundError, OSError):
        return {}
    return _parse_json(raw)


def _parse_json(raw: str) -> Mapping[str, Any]:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    if isinstance(parsed, Mapping):
        return parsed
    return {}


def _parse_network_section(section: Mapping[str, Any] | None) -> NetworkConfig:
    if not isinstance(section, Mapping):
        section = {}
    return NetworkConfig(
        api_base_url=_coerce_text(section.get("api_base_url"), default=_DEFAULT_API_BASE),
        request_timeout_seconds=_coerce_positive_float(
            section.get("request_timeout_seconds"), default=_DEFAULT_TIMEOUT
        ),
        request_retries=_coerce_non_negative_int(
            section.get("request_retries"), default=_DEFAULT_RETRIES
        ),
        retry_backoff_seconds=_coerce_non_negative_float(
            section.get("retry_backoff_seconds"), default=_DEFAULT_BACKOFF
        ),
    )


def _coerce_text(value: Any, *, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _coerce_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not isfinite(value):
            return None
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value))
        except (ValueError, OverflowError):
            return None
    return None


def _coerce_positive_int(value: Any, *, default: int) -> int:
    candidate = _coerce_int(value)
    if candidate is None or candidate <= 0:
        return default
    return candidate


def _coerce_non_negative_int(value: Any, *, default: int) -> int:
    candidate = _coerce_int(value)
    if candidate is None or candidate < 0:
        return default
    return candidate


def _coerce_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        candidate = float(value)
    elif isinstance(value, str):
        try:
            candidate = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not isfinite(candidate):
        return None
    return candidate


def _coerce_positive_float(value: Any, *, default: float) -> float:
    candidate = _coerce_float(value)
    if candidate is None or candidate <= 0:
        return default
    return candidate


def _coerce_non_negative_float(value: Any, *, default: float) -> float:
    candidate = _coerce_float(value)
    if candidate is None or candidate < 0:
        return default
    return candidate


__all__ = [
    "NetworkConfig",
    "PatcherConfig",
    "get_patcher_config",
    "load_patcher_config",
    "reset_patcher_config_cache",
]
