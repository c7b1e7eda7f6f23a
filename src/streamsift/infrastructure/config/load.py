from __future__ import annotations

from collections.abc import Mapping
from copy import deepcopy
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from streamsift.domain.entities.errors import ConfigError

from .defaults import DEFAULT_CONFIG
from .schema import AppConfig, EnvOverrides

_SECTION_KEYS: set[str] = {
    "http",
    "logging",
    "fetch",
    "aggregation",
    "cache",
    "endpoints",
}

# Flat key (env var / override) -> (section, key).
_FLAT_MAP: dict[str, tuple[str, str]] = {
    "http_follow_redirects": ("http", "follow_redirects"),
    "http_user_agent": ("http", "user_agent"),
    "log_level": ("logging", "level"),
    "log_format": ("logging", "format"),
    "fetch_max_retries": ("fetch", "max_retries"),
    "fetch_initial_delay_seconds": ("fetch", "initial_delay_seconds"),
    "fetch_attempt_timeout_seconds": ("fetch", "attempt_timeout_seconds"),
    "fetch_max_backoff_seconds": ("fetch", "max_backoff_seconds"),
    "aggregation_tier_pacing_seconds": ("aggregation", "tier_pacing_seconds"),
    "aggregation_deadline_seconds": ("aggregation", "deadline_seconds"),
    "aggregation_min_distinct_qualities": ("aggregation", "min_distinct_qualities"),
    "aggregation_max_concurrent_fetches": ("aggregation", "max_concurrent_fetches"),
    "cache_ttl_seconds": ("cache", "ttl_seconds"),
    "cache_max_entries": ("cache", "max_entries"),
}

_TOP_LEVEL_KEYS: tuple[str, ...] = ("app_name", "environment", "trackers", "tmdb_api_key")


def _deep_merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """
    Recursively merge `override` into `base` and return `base`.

    Rules:
    - dict + dict => deep merge
    - otherwise => override wins
    """
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, Mapping):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _normalize_layer(data: Mapping[str, Any]) -> dict[str, Any]:
    """
    Normalize a layer (defaults/YAML/ENV/overrides) into the *sectioned* shape.

    Already-sectioned blocks pass through; flat keys such as
    ``fetch_max_retries`` are folded into their section.
    """
    out: dict[str, Any] = {}

    for section in _SECTION_KEYS:
        if section in data:
            if not isinstance(data[section], Mapping):
                raise ConfigError(
                    f"Config section {section!r} must be a mapping, "
                    f"got: {type(data[section]).__name__}"
                )
            out[section] = deepcopy(dict(data[section]))

    for key in _TOP_LEVEL_KEYS:
        if key in data:
            out[key] = data[key]

    for flat_key, (section, section_key) in _FLAT_MAP.items():
        if flat_key in data:
            out.setdefault(section, {})
            out[section][section_key] = data[flat_key]

    return out


def _read_yaml_config(config_path: Path) -> dict[str, Any]:
    raw = config_path.read_text(encoding="utf-8")
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ConfigError(f"Config YAML must be a mapping, got: {type(parsed)!r}")
    return parsed


def load_config(
    *,
    config_path: Path | None = None,
    dotenv_path: Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> AppConfig:
    """
    Load configuration with strict precedence:
    defaults < YAML file < env vars < explicit overrides

    This function MUST NOT create files or directories (no filesystem side-effects).
    """
    overrides = overrides or {}

    # Load .env first so it participates as "env vars" layer.
    if dotenv_path is not None:
        if not dotenv_path.exists():
            raise FileNotFoundError(dotenv_path)
        load_dotenv(dotenv_path, override=False)

    base = _normalize_layer(deepcopy(DEFAULT_CONFIG))

    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(config_path)
        _deep_merge(base, _normalize_layer(_read_yaml_config(config_path)))

    _deep_merge(base, _normalize_layer(EnvOverrides().to_update_dict()))
    _deep_merge(base, _normalize_layer(overrides))

    # Validate final merged config (single source of truth).
    return AppConfig.model_validate(base)
