from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import yaml

from streamkit import ConfigNamespace

ENV_VAR = "YCAT_CONFIG"
DEFAULT_CONFIG_DIR = os.path.join("~", ".config", "ycat")
LOCAL_OVERLAY_NAME = "config.local.yaml"

OUTPUT_FORMATS = ("yaml", "json")
LOG_LEVELS = ("debug", "info", "warning", "error")


def _read_mapping(path: str) -> dict[str, Any]:
    """Parse one config file; an empty file is an empty mapping."""

    with open(path, "r", encoding="utf-8") as handle:
        try:
            payload = yaml.safe_load(handle)
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {path}: {exc}") from exc

    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise ValueError(f"Config file {path} must hold a mapping, not {type(payload).__name__}")
    return dict(payload)


def _overlay(base: Mapping[str, Any], local: Mapping[str, Any], *, prefix: str = "") -> dict[str, Any]:
    """Lay `local` over `base`; sections merge key by key, null resets a key."""

    merged = dict(base)
    for key, value in local.items():
        dotted = f"{prefix}{key}"
        current = merged.get(key)
        if value is None or current is None:
            merged[key] = value
        elif isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = _overlay(current, value, prefix=f"{dotted}.")
        elif isinstance(current, Mapping) or isinstance(value, Mapping):
            raise ValueError(
                f"Cannot overlay {type(value).__name__} onto {type(current).__name__} at {dotted}"
            )
        else:
            merged[key] = value
    return merged


def load_config(
    config_path: str | None = None,
    *,
    env_var: str = ENV_VAR,
    config_dir: str = DEFAULT_CONFIG_DIR,
) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Load the YAML configuration, returning (cfg, meta).

    An explicit path (argument, then `env_var`) loads exactly that file. Otherwise
    `config.yaml` under `config_dir` is used when present, with `config.local.yaml`
    deep-merged on top. No file at all yields an empty config.
    """

    explicit_path = None
    if config_path is not None:
        explicit_path = str(config_path).strip() or None
    elif env_var:
        explicit_path = os.environ.get(env_var, "").strip() or None

    if explicit_path:
        expanded = os.path.abspath(os.path.expandvars(os.path.expanduser(explicit_path)))
        cfg = _read_mapping(expanded)
        meta = {
            "mode": "env" if config_path is None else "explicit",
            "paths": [expanded],
            "env_var": env_var,
        }
        return cfg, meta

    directory = os.path.abspath(os.path.expanduser(config_dir))
    base_config_path = os.path.join(directory, "config.yaml")
    local_overlay_path = os.path.join(directory, LOCAL_OVERLAY_NAME)

    if not os.path.exists(base_config_path):
        return {}, {"mode": "defaults", "paths": [], "env_var": env_var}

    cfg = _read_mapping(base_config_path)
    loaded_paths = [base_config_path]
    mode = "base"

    if os.path.exists(local_overlay_path):
        overlay = _read_mapping(local_overlay_path)
        cfg = _overlay(cfg, overlay)
        loaded_paths.append(local_overlay_path)
        mode = "base+local"

    return cfg, {"mode": mode, "paths": loaded_paths, "env_var": env_var}


@dataclass(frozen=True)
class BufferConfig:
    producer: int = 1
    transform: int = 0


@dataclass(frozen=True)
class YcatConfig:
    output: str = "yaml"
    log_level: str = "warning"
    buffers: BufferConfig = BufferConfig()

    @property
    def log_level_value(self) -> int:
        return getattr(logging, self.log_level.upper())

    @staticmethod
    def from_dict(cfg: Mapping[str, Any]) -> tuple["YcatConfig", list[str]]:
        """
        Parse and validate configuration, returning (YcatConfig, warnings).

        Unknown keys are errors unless `strict: false`, in which case they are
        reported as warnings.

        Raises:
            ValueError: if a key is invalid (or unknown in strict mode).
            TypeError: if a key has the wrong type.
        """

        if not isinstance(cfg, Mapping):
            raise ValueError("Config must be a mapping")

        warnings: list[str] = []
        ns = ConfigNamespace(cfg)
        strict = ns.get_bool("strict", default=True)
        output = ns.get_str("output", default="yaml", choices=OUTPUT_FORMATS)
        log_level = ns.get_str("log_level", default="warning", choices=LOG_LEVELS)

        buffers_ns = ns.namespace("buffers", default=None)
        buffers = BufferConfig(
            producer=buffers_ns.get_int("producer", default=1, min_value=0),
            transform=buffers_ns.get_int("transform", default=0, min_value=0),
        )

        if strict:
            ns.assert_consumed()
        else:
            for scope in (ns, buffers_ns):
                for key in scope.unconsumed_keys():
                    prefix = f"{scope.path}." if scope.path else ""
                    warnings.append(f"Ignoring unknown config key: {prefix}{key}")

        return (
            YcatConfig(
                output=str(output),
                log_level=str(log_level),
                buffers=buffers,
            ),
            warnings,
        )
