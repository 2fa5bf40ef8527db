# linkshades/app/config.py
from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from linkshades.core.errors import ConfigError
from linkshades.model.translate import DEFAULT_MAX_COMMAND, DEFAULT_MIN_COMMAND, Calibration
from linkshades.protocol.core.parser import DEFAULT_MAX_PAYLOAD

PERSIST_MODES = ("sync", "async")

# YAML section/key -> GatewayConfig field
_YAML_KEYS: Dict[str, Dict[str, str]] = {
    "server": {"host": "host", "port": "port"},
    "calibration": {"min": "shade_min", "max": "shade_max"},
    "storage": {
        "data_file": "data_file",
        "persist_mode": "persist_mode",
        "persist_interval_s": "persist_interval_s",
    },
    "session": {"idle_timeout_s": "idle_timeout_s", "max_payload": "max_payload"},
    "logging": {"level": "log_level", "file": "log_file", "event_log": "event_log"},
}

# Environment variable -> GatewayConfig field (bare names kept for existing deployments)
_ENV_KEYS: Dict[str, str] = {
    "PORT": "port",
    "SHADE_MIN": "shade_min",
    "SHADE_MAX": "shade_max",
    "DATA_FILE": "data_file",
    "LINKSHADES_HOST": "host",
    "LINKSHADES_PORT": "port",
    "LINKSHADES_SHADE_MIN": "shade_min",
    "LINKSHADES_SHADE_MAX": "shade_max",
    "LINKSHADES_DATA_FILE": "data_file",
    "LINKSHADES_PERSIST_MODE": "persist_mode",
    "LINKSHADES_IDLE_TIMEOUT_S": "idle_timeout_s",
    "LINKSHADES_LOG_LEVEL": "log_level",
    "LINKSHADES_LOG_FILE": "log_file",
    "LINKSHADES_EVENT_LOG": "event_log",
}


@dataclass(frozen=True)
class GatewayConfig:
    host: str = "0.0.0.0"
    port: int = 4000
    shade_min: int = DEFAULT_MIN_COMMAND
    shade_max: int = DEFAULT_MAX_COMMAND
    data_file: str = "./shades_data.json"
    persist_mode: str = "sync"
    persist_interval_s: float = 0.5
    idle_timeout_s: Optional[float] = None
    max_payload: int = DEFAULT_MAX_PAYLOAD
    event_log: Optional[str] = None
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @property
    def calibration(self) -> Calibration:
        return Calibration(self.shade_min, self.shade_max)

    def validate(self) -> "GatewayConfig":
        if not (0 <= self.port <= 65535):
            raise ConfigError(f"Invalid port {self.port}.", hint="Use a TCP port between 0 and 65535.")
        try:
            Calibration(self.shade_min, self.shade_max)
        except ValueError as e:
            raise ConfigError(
                "Invalid shade calibration.",
                hint=str(e),
                details={"shade_min": self.shade_min, "shade_max": self.shade_max},
            ) from None
        if self.persist_mode not in PERSIST_MODES:
            raise ConfigError(
                f"Unknown persist mode '{self.persist_mode}'.",
                hint=f"Use one of: {', '.join(PERSIST_MODES)}.",
            )
        if self.idle_timeout_s is not None and self.idle_timeout_s <= 0:
            raise ConfigError("idle_timeout_s must be positive (omit it to disable).")
        return self


# ---------------- casting ----------------

_FIELD_TYPES = {f.name: f.type for f in fields(GatewayConfig)}


def _cast(name: str, value: Any) -> Any:
    """Cast a raw YAML/env/CLI value to the type of GatewayConfig.<name>."""
    ftype = str(_FIELD_TYPES[name])

    if value is None or (isinstance(value, str) and value.strip() == "" and "Optional" in ftype):
        if "Optional" in ftype:
            return None
        raise ConfigError(f"Config value '{name}' must not be empty.")

    try:
        if "int" in ftype:
            return int(value)
        if "float" in ftype:
            return float(value)
        return str(value)
    except (TypeError, ValueError):
        raise ConfigError(
            f"Invalid value for '{name}': {value!r}.",
            hint=f"Expected {ftype}.",
        ) from None


# ---------------- sources ----------------

def load_yaml_config(path: str | Path) -> Dict[str, Any]:
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            doc = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {path}") from None
    except yaml.YAMLError as e:
        raise ConfigError("Failed to parse config file.", hint=str(e), details={"path": str(path)}) from None

    if not isinstance(doc, dict):
        raise ConfigError("Config file must contain a mapping.", details={"path": str(path)})

    out: Dict[str, Any] = {}
    for section, keys in _YAML_KEYS.items():
        sect = doc.get(section) or {}
        if not isinstance(sect, dict):
            raise ConfigError(f"Config section '{section}' must be a mapping.", details={"path": str(path)})
        for key, field_name in keys.items():
            if key in sect:
                out[field_name] = sect[key]
    return out


def env_overrides(env: Mapping[str, str]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    # bare names first so LINKSHADES_* wins
    for var in sorted(_ENV_KEYS, key=lambda v: v.startswith("LINKSHADES_")):
        if var in env and env[var] != "":
            out[_ENV_KEYS[var]] = env[var]
    return out


def load_config(
    path: Optional[str | Path] = None,
    *,
    env: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> GatewayConfig:
    """
    Build the gateway config. Precedence: overrides > environment > YAML file > defaults.
    """
    env = os.environ if env is None else env

    merged: Dict[str, Any] = {}
    if path is not None:
        merged.update(load_yaml_config(path))
    merged.update(env_overrides(env))
    merged.update({k: v for k, v in (overrides or {}).items() if v is not None})

    unknown = set(merged) - set(_FIELD_TYPES)
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")

    cfg = replace(GatewayConfig(), **{k: _cast(k, v) for k, v in merged.items()})
    return cfg.validate()
