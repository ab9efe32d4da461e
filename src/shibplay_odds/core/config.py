"""YAML configuration with environment overrides for the odds tools.

Settings live in ``config/settings.yaml`` next to the package. A developer
may drop a ``settings.local.yaml`` beside it; its mappings are merged over
the defaults key by key. Any scalar written as ``${NAME}`` or
``${NAME:default}`` is replaced by that environment variable (``.env`` is
loaded first). References embedded inside a longer string are rejected.

Consumers read sections through typed accessors, which convert the value
and raise ``ConfigError`` naming the offending key when it cannot be
converted::

    loader = get_config()
    interval = loader.get_float("odds.poll_interval_seconds", 15.0)
"""

import os
import re
from pathlib import Path
from typing import Any, cast

import yaml
from dotenv import load_dotenv

_DEFAULT_CONFIG_DIR = Path(__file__).parent.parent / "config"
_BASE_FILE = "settings.yaml"
_LOCAL_FILE = "settings.local.yaml"

_WHOLE_REFERENCE = re.compile(r"^\$\{(?P<name>[^}:]+)(?::(?P<default>[^}]*))?\}$")
_ANY_REFERENCE = re.compile(r"\$\{[^}]+\}")

_TRUE_WORDS = frozenset({"1", "true", "yes", "on"})
_FALSE_WORDS = frozenset({"0", "false", "no", "off"})


class ConfigError(Exception):
    """Raise when configuration loading or validation fails."""


def _read_yaml(path: Path) -> dict[str, Any]:
    """Return the mapping stored in ``path``, or an empty dict if it is absent."""
    if not path.exists():
        return {}
    with path.open() as f:
        data: Any = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"{path.name} must contain a mapping, got {type(data).__name__}"
        raise ConfigError(msg)
    return cast("dict[str, Any]", data)


def _merge(base: dict[str, Any], override: dict[str, Any]) -> None:
    """Merge ``override`` into ``base`` in place, descending into nested mappings."""
    for key, value in override.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _merge(cast("dict[str, Any]", current), cast("dict[str, Any]", value))
        else:
            base[key] = value


def _resolve(value: Any) -> Any:
    """Substitute environment references throughout a parsed config tree."""
    if isinstance(value, dict):
        return {k: _resolve(v) for k, v in cast("dict[str, Any]", value).items()}
    if isinstance(value, list):
        return [_resolve(item) for item in cast("list[Any]", value)]
    if not isinstance(value, str):
        return value

    match = _WHOLE_REFERENCE.match(value)
    if match is not None:
        name = match["name"]
        resolved = os.getenv(name, match["default"])
        if resolved is None:
            msg = f"Required environment variable ${{{name}}} is not set and has no default"
            raise ConfigError(msg)
        return resolved
    if _ANY_REFERENCE.search(value):
        msg = f"Unresolved environment variable reference in: {value}"
        raise ConfigError(msg)
    return value


class ConfigLoader:
    """Layered YAML settings with typed lookups by dotted key.

    Args:
        config_dir: Directory holding ``settings.yaml`` and the optional
            ``settings.local.yaml``. Defaults to the packaged config.

    """

    def __init__(self, config_dir: Path | None = None) -> None:
        """Load ``.env``, then read and resolve the YAML layers.

        Args:
            config_dir: Directory holding the settings files.

        """
        load_dotenv()
        self.config_dir = Path(config_dir) if config_dir is not None else _DEFAULT_CONFIG_DIR
        merged = _read_yaml(self.config_dir / _BASE_FILE)
        _merge(merged, _read_yaml(self.config_dir / _LOCAL_FILE))
        self._config: dict[str, Any] = _resolve(merged)

    def get(self, key: str, default: Any = None) -> Any:
        """Return the raw value at a dotted key such as ``"squid.endpoint"``.

        Missing keys, null values, and paths through a scalar yield
        ``default``.
        """
        node: Any = self._config
        for part in key.split("."):
            if not isinstance(node, dict):
                return default
            node = cast("dict[str, Any]", node).get(part)
            if node is None:
                return default
        return node

    def get_section(self, name: str) -> dict[str, Any]:
        """Return a top-level section, or an empty dict when absent.

        Raises:
            ConfigError: If the section is present but not a mapping.

        """
        section = self.get(name, {})
        if not isinstance(section, dict):
            msg = f"{name} config must be a dict, got {type(section).__name__}"
            raise ConfigError(msg)
        return cast("dict[str, Any]", section)

    def get_str(self, key: str, default: str) -> str:
        """Return the value at ``key`` as a string."""
        return str(self.get(key, default))

    def get_float(self, key: str, default: float) -> float:
        """Return the value at ``key`` as a float.

        Raises:
            ConfigError: If the value is not numeric.

        """
        value = self.get(key, default)
        if isinstance(value, bool):
            raise ConfigError(_invalid(key, "a number", value))
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ConfigError(_invalid(key, "a number", value)) from exc

    def get_int(self, key: str, default: int) -> int:
        """Return the value at ``key`` as an integer.

        Raises:
            ConfigError: If the value is not a whole number.

        """
        value = self.get(key, default)
        if isinstance(value, bool) or isinstance(value, float):
            raise ConfigError(_invalid(key, "an integer", value))
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ConfigError(_invalid(key, "an integer", value)) from exc

    def get_bool(self, key: str, default: bool) -> bool:
        """Return the value at ``key`` as a boolean.

        YAML booleans are taken as is; substituted strings accept
        ``true/false``, ``yes/no``, ``on/off`` and ``1/0``.

        Raises:
            ConfigError: If the value is not recognisable as a boolean.

        """
        value = self.get(key, default)
        if isinstance(value, bool):
            return value
        word = str(value).strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
        raise ConfigError(_invalid(key, "a boolean", value))


def _invalid(key: str, expected: str, value: Any) -> str:
    return f"{key} must be {expected}, got {value!r}"


_config: ConfigLoader | None = None


def get_config() -> ConfigLoader:
    """Return the process-wide loader, reading the files on first use."""
    global _config  # noqa: PLW0603
    if _config is None:
        _config = ConfigLoader()
    return _config
