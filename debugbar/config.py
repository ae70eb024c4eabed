"""
Config system - Layered debugbar configuration with dotted-key access.

Merge order (later overrides earlier):
1. Built-in defaults (``DEFAULTS``)
2. Config files (JSON or YAML)
3. ``.env`` file (``DEBUGBAR_*`` keys only)
4. Environment variables (``DEBUGBAR_*`` prefix)
5. Manual overrides
"""

from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import dotenv_values


DEFAULTS: Dict[str, Any] = {
    "enabled": False,
    "inject": True,
    "capture_ajax": True,
    "include_vendors": True,
    "route_prefix": "_debugbar",
    "asset_base_url": None,
    "storage": {
        "enabled": False,
        "driver": "file",
        "path": ".debugbar/storage",
    },
    "headers": {
        "name": "x-debugbar",
        "max_length": 4096,
        "max_total_length": 250000,
    },
    "stash": {
        "cookie": "debugbar_stash",
        "max_entries": 256,
        "ttl": 300,
    },
    "collectors": {
        "python_info": True,
        "messages": True,
        "time": True,
        "memory": True,
        "exceptions": True,
        "framework": False,
        "default_request": False,
        "request": True,
        "events": False,
        "views": True,
        "route": True,
        "log": True,
        "db": True,
        "mail": True,
        "logs": False,
        "files": False,
        "config": False,
        "auth": False,
    },
    "options": {
        "exceptions": {"chain": True},
        "auth": {"show_name": False},
        "db": {"with_params": False, "timeline": False},
        "mail": {"full_log": False},
        "views": {"data": True},
        "logs": {"file": None, "lines": 100},
        "ajax": {"open_handler": False},
    },
}


class ConfigError(Exception):
    """Raised when a configuration source cannot be read."""
    pass


class ConfigLoader:
    """
    Loads and merges debugbar configuration from multiple sources.

    Values are addressed with dot-separated paths such as
    ``collectors.time`` or ``options.db.timeline``.
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None, env_prefix: str = "DEBUGBAR_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = data if data is not None else {}

    @classmethod
    def load(
        cls,
        paths: Optional[list[str]] = None,
        env_prefix: str = "DEBUGBAR_",
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "ConfigLoader":
        """
        Load configuration from every source with proper merge strategy.

        Args:
            paths: List of config file paths (glob patterns supported)
            env_prefix: Prefix for environment variables
            env_file: Path to .env file
            overrides: Manual overrides (highest precedence)

        Returns:
            Configured ConfigLoader instance
        """
        loader = cls(copy.deepcopy(DEFAULTS), env_prefix=env_prefix)

        if paths:
            for pattern in paths:
                loader._load_from_files(pattern)

        if env_file:
            loader._load_env_file(env_file)

        loader._load_from_env()

        if overrides:
            loader._merge_dict(loader.config_data, overrides)

        return loader

    @classmethod
    def from_dict(cls, data: Dict[str, Any], *, defaults: bool = True) -> "ConfigLoader":
        """Build a loader from a plain mapping, merged over the defaults."""
        base = copy.deepcopy(DEFAULTS) if defaults else {}
        loader = cls(base)
        loader._merge_dict(loader.config_data, copy.deepcopy(data))
        return loader

    def _load_from_files(self, pattern: str):
        """Load config from JSON or YAML files."""
        from glob import glob

        for path_str in sorted(glob(pattern)):
            path = Path(path_str)
            if path.suffix == ".json":
                self._load_json_file(path)
            elif path.suffix in (".yaml", ".yml"):
                self._load_yaml_file(path)
            else:
                raise ConfigError(f"Unsupported config file type: {path}")

    def _load_json_file(self, path: Path):
        """Load config from JSON file."""
        with open(path) as f:
            data = json.load(f)
            if data:
                self._merge_dict(self.config_data, data)

    def _load_yaml_file(self, path: Path):
        """Load config from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
            if data:
                self._merge_dict(self.config_data, data)

    def _load_env_file(self, path: str):
        """Load prefixed keys from a .env file."""
        if not Path(path).exists():
            return
        for key, value in dotenv_values(path).items():
            if value is not None and key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _load_from_env(self):
        """Load config from environment variables."""
        for key, value in os.environ.items():
            if key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str):
        """Convert DEBUGBAR_OPTIONS__DB__TIMELINE to options.db.timeline."""
        key = key[len(self.env_prefix):]
        parts = key.lower().split("__")

        current = self.config_data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        current[parts[-1]] = self._parse_value(value)

    @staticmethod
    def _parse_value(value: str) -> Any:
        """Parse string value to appropriate type."""
        if value.lower() in ("true", "yes", "on"):
            return True
        if value.lower() in ("false", "no", "off"):
            return False

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value

    def _merge_dict(self, target: dict, source: dict):
        """Deep merge source into target."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._merge_dict(target[key], value)
            else:
                target[key] = value

    def get(self, path: str, default: Any = None) -> Any:
        """Get config value by dot-separated path."""
        current: Any = self.config_data
        for part in path.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    def set(self, path: str, value: Any) -> None:
        """Set config value by dot-separated path, creating parents."""
        parts = path.split(".")
        current = self.config_data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]
        current[parts[-1]] = value

    def has(self, path: str) -> bool:
        sentinel = object()
        return self.get(path, sentinel) is not sentinel

    def to_dict(self) -> dict:
        """Export all config as dictionary."""
        return copy.deepcopy(self.config_data)


def as_bool(value: Any, default: bool = False) -> bool:
    """Read a stored flag; strings parse like environment values, anything else non-numeric is ``default``."""
    if value is None:
        return default
    if isinstance(value, str):
        value = ConfigLoader._parse_value(value.strip())
    if isinstance(value, (bool, int, float)):
        return bool(value)
    return default


class ConfigGate:
    """
    Per-collector enable/disable decisions backed by a ``ConfigLoader``.

    ``should_collect`` never raises: a missing key yields the caller's default.
    """

    __slots__ = ("config",)

    def __init__(self, config: ConfigLoader):
        self.config = config

    def should_collect(self, name: str, default: bool = False) -> bool:
        value = self.config.get(f"collectors.{name}")
        return as_bool(value, default)

    def option(self, collector: str, option: str, default: Any = None) -> Any:
        return self.config.get(f"options.{collector}.{option}", default)


__all__ = ["DEFAULTS", "ConfigError", "ConfigLoader", "ConfigGate", "as_bool"]
