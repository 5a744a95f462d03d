# src/mutator/core/managers/config_manager.py
import json
import logging
from typing import Any, Dict, Iterable, Optional

from mutator.core.utils.path_utils import PathUtils

logger = logging.getLogger(__name__)

TRUE_STRINGS = ("1", "true", "yes", "on")


def _coerce(current: Any, value: Any) -> Any:
    """Casts an override to the type of the value it replaces (bools parse from text)."""
    if current is None or isinstance(value, type(current)):
        return value
    if isinstance(current, bool):
        return str(value).strip().lower() in TRUE_STRINGS
    if isinstance(current, (list, dict)):
        parsed = json.loads(value) if isinstance(value, str) else value
        if not isinstance(parsed, type(current)):
            raise TypeError(f"expected a JSON {type(current).__name__}")
        return parsed
    return type(current)(value)


class ConfigManager:
    """
    Process-wide engine settings.

    Defaults come from the packaged settings.json; the CLI layers `--set`
    overrides on top for the current run. `reset()` drops every override.
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(ConfigManager, cls).__new__(cls)
            cls._instance._config = {}
            cls._instance.reset()
        return cls._instance

    def get_all(self) -> Dict[str, Any]:
        """Returns the effective configuration (defaults plus overrides)."""
        return self._config

    def get_nested(self, key_path: str, default: Optional[Any] = None) -> Any:
        """Looks up a dotted key such as 'model.timeout_ms'."""
        node: Any = self._config
        for key in key_path.split('.'):
            if not isinstance(node, dict):
                return default
            node = node.get(key)
        return default if node is None else node

    def set_nested(self, key_path: str, value: Any) -> bool:
        """
        Overrides a dotted key in memory, creating intermediate sections.
        The value is cast to the type of the current one where possible.
        """
        *parents, leaf = key_path.split('.')
        section = self._config
        for key in parents:
            section = section.setdefault(key, {})
            if not isinstance(section, dict):
                logger.error("Cannot override '%s': '%s' is not a section.", key_path, key)
                return False

        try:
            value = _coerce(section.get(leaf), value)
        except (ValueError, TypeError):
            logger.warning("Override for '%s' kept as %s: no cast to the current type.",
                           key_path, type(value).__name__)

        section[leaf] = value
        logger.info("Config override: %s = %r", key_path, value)
        return True

    def apply_overrides(self, pairs: Iterable[str]) -> None:
        """Applies `key=value` strings, as given to the CLI's `--set`."""
        for pair in pairs:
            key_path, sep, value = pair.partition("=")
            if not sep or not key_path.strip():
                raise ValueError(f"Expected key=value, got {pair!r}")
            if not self.set_nested(key_path.strip(), value.strip()):
                raise ValueError(f"Cannot override {key_path.strip()!r}")

    def reset(self):
        """Reloads settings.json, discarding in-memory overrides."""
        settings_file = PathUtils.get_settings_file()
        try:
            with open(settings_file, "r", encoding="utf-8") as f:
                self._config = json.load(f)
            logger.debug("Settings loaded from %s.", settings_file)
        except FileNotFoundError:
            logger.warning("settings.json not found at %s. Using empty config.", settings_file)
            self._config = {}
        except (OSError, ValueError) as e:
            logger.error("Failed to load %s: %s", settings_file, e)
            self._config = {}


# Shared by the CLI, controllers and services.
config_manager = ConfigManager()
