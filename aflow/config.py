"""Application configuration from defaults, an ``aflow`` YAML file and the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml

_DEFAULTS: dict[str, Any] = {
    "server.port": "8080",
    "server.host": "0.0.0.0",
    "database.driver": "postgres",
    "database.dsn": "postgres://localhost/aflow?sslmode=disable",
    "queue.workers": 4,
    "worker.metrics_port": 9091,
}

# Extra environment variable names bound to every field of a section, in
# lookup order. ``{section}`` and ``{field}`` are filled in upper case.
_SECTION_ENV: dict[str, tuple[str, ...]] = {
    "crypto": ("APP_{field}", "AFLOW_{section}_{field}"),
    "auth": ("AFLOW_{field}",),
}


@dataclass
class ServerConfig:
    port: str = ""
    host: str = ""


@dataclass
class DatabaseConfig:
    driver: str = ""
    dsn: str = ""


@dataclass
class QueueConfig:
    workers: int = 0


@dataclass
class CryptoConfig:
    encryption_key: str = ""


@dataclass
class AuthConfig:
    jwt_secret: str = ""


@dataclass
class WorkerConfig:
    metrics_port: int = 0


@dataclass
class Config:
    server: ServerConfig = field(default_factory=ServerConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    crypto: CryptoConfig = field(default_factory=CryptoConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    worker: WorkerConfig = field(default_factory=WorkerConfig)


def _lowercase_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(key).lower(): _lowercase_keys(item) for key, item in value.items()}
    return value


def _read_config_file(search_paths: Iterable[os.PathLike[str] | str]) -> dict[str, Any]:
    """Load the first config file found; an unreadable file yields no settings."""
    for directory in search_paths:
        for suffix in (".yaml", ".yml", ""):
            candidate = Path(directory) / f"aflow{suffix}"
            if candidate.is_file():
                try:
                    data = yaml.safe_load(candidate.read_text(encoding="utf-8"))
                except (OSError, UnicodeDecodeError, yaml.YAMLError):
                    return {}
                return _lowercase_keys(data) if isinstance(data, dict) else {}
    return {}


def _env_names(key: str) -> list[str]:
    section_name, name = key.split(".", 1)
    names = [f"AFLOW_{key.upper()}"]
    names.extend(
        pattern.format(section=section_name.upper(), field=name.upper())
        for pattern in _SECTION_ENV.get(section_name, ())
    )
    return names


def _lookup(key: str, file_values: Mapping[str, Any], environ: Mapping[str, str]) -> Any:
    for name in _env_names(key):
        if environ.get(name):
            return environ[name]
    section_name, name = key.split(".", 1)
    section = file_values.get(section_name)
    if isinstance(section, dict) and section.get(name) is not None:
        return section[name]
    return _DEFAULTS.get(key)


def _to_str(value: Any, key: str) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    raise ValueError(f"'{key}' expected a string, got {type(value).__name__}")


def _to_int(value: Any, key: str) -> int:
    if isinstance(value, (bool, int, float)):
        return int(value)
    if isinstance(value, str):
        if value == "":
            return 0
        try:
            if value != value.strip():
                raise ValueError(f"surrounding whitespace in {value!r}")
            return int(value, 0)
        except ValueError as exc:
            raise ValueError(f"cannot parse '{key}' as int: {exc}") from exc
    raise ValueError(f"'{key}' expected an int, got {type(value).__name__}")


def load(
    environ: Mapping[str, str] | None = None,
    search_paths: Iterable[os.PathLike[str] | str] | None = None,
) -> Config:
    """Build the configuration.

    Precedence per key: ``AFLOW_<SECTION>.<KEY>``, then the bound variables,
    then the config file, then the built-in defaults. Raises ValueError when a
    value cannot be converted to its field's type.
    """
    env = os.environ if environ is None else environ
    if search_paths is None:
        search_paths = [Path("."), Path(f"{env.get('HOME', '')}/.aflow")]
    file_values = _read_config_file(search_paths)

    sections = {}
    for section in fields(Config):
        cls = section.default_factory
        values = {}
        for spec in fields(cls):
            key = f"{section.name}.{spec.name}"
            raw = _lookup(key, file_values, env)
            if raw is None:
                values[spec.name] = spec.default
            elif isinstance(spec.default, int):
                values[spec.name] = _to_int(raw, key)
            else:
                values[spec.name] = _to_str(raw, key)
        sections[section.name] = cls(**values)
    return Config(**sections)