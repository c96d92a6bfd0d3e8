from __future__ import annotations

import copy
import logging
import os
import tomllib
from pathlib import Path

from tea.config.defaults import DEFAULT_CONFIG
from tea.stream.trigger import TriggerConfigError, TriggerSpec

log = logging.getLogger(__name__)


class ConfigManager:
    def __init__(self, config_path: str | None = None) -> None:
        if config_path is not None:
            self._config_path = Path(config_path).expanduser()
        else:
            xdg = os.environ.get("XDG_CONFIG_HOME", "~/.config")
            self._config_path = Path(xdg).expanduser() / "tea" / "config.toml"
        self._config: dict = {}

    @property
    def path(self) -> Path:
        return self._config_path

    @property
    def config(self) -> dict:
        if not self._config:
            self._config = self.load()
        return self._config

    def load(self) -> dict:
        defaults = copy.deepcopy(DEFAULT_CONFIG)
        if not self._config_path.exists():
            log.debug("No config file at %s; using defaults", self._config_path)
            self._config = defaults
            return defaults

        with open(self._config_path, "rb") as f:
            user_config = tomllib.load(f)

        merged = self._deep_merge(defaults, user_config)
        self._config = merged
        return merged

    def _deep_merge(self, base: dict, override: dict) -> dict:
        result = base.copy()
        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    def get(self, key_path: str, default: object = None) -> object:
        keys = key_path.split(".")
        current: object = self.config
        for key in keys:
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return default
        return current

    def triggers(self) -> list[TriggerSpec]:
        """Trigger specs from the ``[[triggers]]`` tables."""
        raw = self.get("triggers", [])
        if not isinstance(raw, list):
            raise TriggerConfigError("'triggers' must be an array of tables")
        specs: list[TriggerSpec] = []
        for entry in raw:
            if not isinstance(entry, dict):
                raise TriggerConfigError(f"invalid trigger entry: {entry!r}")
            specs.append(TriggerSpec.from_dict(entry))
        return specs
