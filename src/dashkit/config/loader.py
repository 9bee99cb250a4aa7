"""Config loading entry points for dashkit."""

from __future__ import annotations

import json
import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Mapping, TypeVar

import yaml
from pydantic import BaseModel

from dashkit.io import file as iofile

from .models import ToolkitConfig

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "dashkit.default.yaml"

ENV_LOG_LEVEL = "DASHKIT_LOG_LEVEL"
ENV_LOG_FILTER = "DASHKIT_LOG_FILTER"

LOGGER = logging.getLogger(__name__)

TConfig = TypeVar("TConfig")


class ConfigError(RuntimeError):
    """Raised when configuration files cannot be loaded or validated."""


def read_config(
    config_path: str | Path,
    defaults: TConfig,
    *,
    logger: Any = None,
    strict: bool = False,
) -> TConfig:
    """Merge the file at `config_path` over `defaults`.

    `defaults` may be a plain mapping or a pydantic model; the result has the
    same type. A missing or unreadable file is logged and the defaults are
    returned as-is, unless `strict` is set, in which case ``ConfigError`` is
    raised.
    """

    if not isinstance(defaults, (BaseModel, Mapping)):
        raise TypeError(f"Unsupported defaults type {type(defaults)!r}; expected a mapping or pydantic model.")

    path = Path(config_path).expanduser().resolve()
    try:
        payload = _expect_mapping(_read_structured_file(path), path)
        if isinstance(defaults, BaseModel):
            merged = _deep_merge(defaults.model_dump(), payload)
            return type(defaults).model_validate(merged)  # type: ignore[return-value]
        return _deep_merge(defaults, payload)  # type: ignore[return-value]
    except (ConfigError, OSError, ValueError, yaml.YAMLError) as exc:
        # pydantic.ValidationError is a ValueError
        if strict:
            if isinstance(exc, ConfigError):
                raise
            raise ConfigError(f"Failed to read config file {path}: {exc}") from exc
        (logger or LOGGER).error("Error reading or parsing the configuration file %s: %s", path, exc)
        return defaults


def load_config(
    path: Path | None = None,
    *,
    overrides: Mapping[str, Any] | None = None,
) -> ToolkitConfig:
    """Load the dashkit configuration applying optional overrides.

    Precedence, lowest first: packaged defaults, `path`, `overrides`
    (dotted keys allowed), then ``DASHKIT_LOG_LEVEL`` / ``DASHKIT_LOG_FILTER``.
    """

    merged = _expect_mapping(_read_structured_file(DEFAULT_CONFIG_PATH), DEFAULT_CONFIG_PATH)

    if path:
        merged = _deep_merge(merged, _expect_mapping(_read_structured_file(path), path))

    if overrides:
        merged = _deep_merge(merged, _expand_override_keys(overrides))

    merged = _deep_merge(merged, _environment_overrides())

    return ToolkitConfig.model_validate(merged)


def dump_example_config(dest: Path) -> None:
    """Write the packaged default configuration to ``dest``."""

    dest.parent.mkdir(parents=True, exist_ok=True)

    merged = _read_structured_file(DEFAULT_CONFIG_PATH)
    if dest.suffix.lower() == ".toml":
        raise ConfigError("TOML export is not supported yet; use a YAML destination.")
    if dest.suffix.lower() in {".json"}:
        dest.write_text(json.dumps(merged, indent=2), encoding="utf-8")
        return
    dest.write_text(
        yaml.safe_dump(merged, sort_keys=False),
        encoding="utf-8",
    )


def _environment_overrides() -> dict[str, Any]:
    section: dict[str, Any] = {}
    level = os.getenv(ENV_LOG_LEVEL)
    if level:
        section["log_level"] = level.strip().lower()
    log_filter = os.getenv(ENV_LOG_FILTER)
    if log_filter:
        section["global_filter"] = log_filter
    return {"logging": section} if section else {}


def _expect_mapping(payload: Any, source: Path) -> dict[str, Any]:
    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise ConfigError(f"Expected mapping data in {source}, got {type(payload)!r}.")
    return dict(payload)


def _read_structured_file(path: Path) -> Any:
    """Return the parsed contents of a YAML/TOML/JSON file."""

    if not path.exists():
        raise ConfigError(f"Config file {path} does not exist.")

    suffix = path.suffix.lower()
    text = iofile.read_text(path)

    if suffix in {".yaml", ".yml"}:
        return yaml.safe_load(text) or {}
    if suffix == ".toml":
        return tomllib.loads(text)
    if suffix == ".json":
        return json.loads(text)

    raise ConfigError(f"Unsupported config format for {path}")


def _deep_merge(base: Mapping[str, Any], extra: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge two mappings returning a new dictionary."""

    result: dict[str, Any] = {key: value for key, value in base.items()}
    for key, value in extra.items():
        if (
            key in result
            and isinstance(result[key], Mapping)
            and isinstance(value, Mapping)
        ):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _expand_override_keys(overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Support dotted-notation overrides like ``poller.factor``."""

    result: dict[str, Any] = {}
    for key, value in overrides.items():
        result = _deep_merge(result, _expand_single_override(key, value))
    return result


def _expand_single_override(key: Any, value: Any) -> dict[str, Any]:
    if isinstance(key, str) and "." in key:
        *parents, leaf = key.split(".")
        root: dict[str, Any] = {leaf: value}
        for segment in reversed(parents):
            root = {segment: root}
        return root
    return {key: value}


__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "dump_example_config",
    "load_config",
    "read_config",
]
