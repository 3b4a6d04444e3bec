"""
Runtime settings (``gym_kernel.config``).

Responsibility
--------------
Builds the frozen ``KernelSettings`` used to wire the engine, logging and
the level-compatibility policy.  Values are layered: built-in defaults,
then an optional YAML file, then ``GYM_*`` environment variables.

Architecture position
---------------------
**Infrastructure** -- read once at process start.  Services never read the
environment themselves; they receive what they need by injection.

Failure modes
-------------
* Missing YAML file -> ``FileNotFoundError`` propagates.
* Malformed YAML -> ``yaml.YAMLError`` propagates.
* Unknown key or invalid value -> ``ValueError`` naming the key.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

ENV_PREFIX = "GYM_"
CONFIG_FILE_ENV = "GYM_CONFIG_FILE"

_LEVELS = ("principiante", "intermedio", "avanzado")

# A client may join plans of its own level or higher.
DEFAULT_LEVEL_POLICY: dict[str, tuple[str, ...]] = {
    "principiante": ("principiante", "intermedio", "avanzado"),
    "intermedio": ("intermedio", "avanzado"),
    "avanzado": ("avanzado",),
}


@dataclass(frozen=True)
class KernelSettings:
    """
    Immutable process configuration.

    Contract:
        Every field has a usable default so an empty environment yields a
        working SQLite-backed kernel.
    """

    database_url: str = "sqlite:///gym_kernel.db"
    echo_sql: bool = False
    log_level: str = "INFO"
    near_expiration_days: int = 30
    level_policy: dict[str, tuple[str, ...]] = field(
        default_factory=lambda: dict(DEFAULT_LEVEL_POLICY)
    )

    @property
    def log_level_value(self) -> int:
        return logging.getLevelName(self.log_level)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML mapping; an empty file yields an empty dict."""
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping at the top level")
    return data


def _parse_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"{key} must be a boolean, got {value!r}")


def _parse_positive_int(key: str, value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be an integer, got {value!r}") from None
    if number <= 0:
        raise ValueError(f"{key} must be positive, got {number}")
    return number


def _parse_log_level(key: str, value: Any) -> str:
    level = str(value).strip().upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ValueError(f"{key} is not a logging level: {value!r}")
    return level


def _parse_level_policy(key: str, value: Any) -> dict[str, tuple[str, ...]]:
    if not isinstance(value, Mapping):
        raise ValueError(f"{key} must be a mapping of level -> allowed plan levels")
    policy: dict[str, tuple[str, ...]] = {}
    for client_level, allowed in value.items():
        client_level = str(client_level).strip().lower()
        if client_level not in _LEVELS:
            raise ValueError(f"{key} has unknown client level {client_level!r}")
        if isinstance(allowed, str):
            allowed = [allowed]
        normalized = tuple(str(a).strip().lower() for a in allowed)
        unknown = [a for a in normalized if a not in _LEVELS]
        if unknown:
            raise ValueError(f"{key}.{client_level} has unknown plan levels {unknown}")
        policy[client_level] = normalized
    for level in _LEVELS:
        policy.setdefault(level, ())
    return policy


_PARSERS = {
    "database_url": lambda key, value: str(value),
    "echo_sql": _parse_bool,
    "log_level": _parse_log_level,
    "near_expiration_days": _parse_positive_int,
    "level_policy": _parse_level_policy,
}


def _apply(settings: KernelSettings, raw: Mapping[str, Any], source: str) -> KernelSettings:
    changes: dict[str, Any] = {}
    for key, value in raw.items():
        parser = _PARSERS.get(key)
        if parser is None:
            raise ValueError(f"Unknown setting '{key}' in {source}")
        changes[key] = parser(key, value)
    return replace(settings, **changes)


def load_settings(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> KernelSettings:
    """
    Build settings from defaults, an optional YAML file and the environment.

    Args:
        path: YAML file to read.  Falls back to ``$GYM_CONFIG_FILE``.
        environ: Environment mapping (defaults to ``os.environ``).

    Raises:
        ValueError: If a key is unknown or a value is invalid.
    """
    env = os.environ if environ is None else environ
    settings = KernelSettings()

    config_path = path or env.get(CONFIG_FILE_ENV)
    if config_path:
        settings = _apply(settings, load_yaml_file(Path(config_path)), str(config_path))

    # level_policy is structured and only configurable from the file.
    env_values = {
        name: env[f"{ENV_PREFIX}{name.upper()}"]
        for name in ("database_url", "echo_sql", "log_level", "near_expiration_days")
        if f"{ENV_PREFIX}{name.upper()}" in env
    }
    return _apply(settings, env_values, "environment")


def bootstrap(settings: KernelSettings | None = None) -> KernelSettings:
    """Configure logging, initialize the engine and create tables."""
    from gym_kernel.db.engine import create_tables, init_engine_from_url
    from gym_kernel.logging_config import configure_logging

    settings = settings or load_settings()
    configure_logging(level=settings.log_level_value)
    init_engine_from_url(settings.database_url, echo=settings.echo_sql)
    create_tables()
    return settings
