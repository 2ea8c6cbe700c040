"""Configuration loading for branchwatch.

Sources, later ones winning:

1. built-in defaults
2. ``~/.branchwatch/config.toml``
3. the nearest ``.branchwatch/config.toml`` at or above the repository
4. ``BRANCHWATCH_GIT_*`` environment variables
"""

from __future__ import annotations

import os
import sys
import threading
import warnings
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from pydantic import ValidationError

from .config_schema import BranchwatchConfig
from .exceptions import BranchwatchError


CONFIG_DIR = ".branchwatch"
CONFIG_FILENAME = "config.toml"

# Environment variable -> (section, key)
ENV_MAPPING: Dict[str, Tuple[str, str]] = {
    "BRANCHWATCH_GIT_EXECUTABLE": ("git", "executable"),
    "BRANCHWATCH_GIT_TERMINAL_PROMPT": ("git", "terminal_prompt"),
}


class ConfigError(BranchwatchError):
    """Configuration loading or validation error."""

    pass


def _user_config_file() -> Path:
    return Path.home() / CONFIG_DIR / CONFIG_FILENAME


def _find_project_config(start: Path) -> Optional[Path]:
    """Closest config file in ``start`` or one of its parents."""
    start = start.resolve()
    for directory in (start, *start.parents):
        candidate = directory / CONFIG_DIR / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def _read_toml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, ValueError) as e:  # TOMLDecodeError is a ValueError
        raise ConfigError(f"Cannot read {path}: {e}")


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursive dict merge; non-dict values in ``override`` replace."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            value = _merge(merged[key], value)
        merged[key] = value
    return merged


def _env_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for env_var, (section, key) in ENV_MAPPING.items():
        value = os.getenv(env_var)
        if value is not None:
            # Pydantic converts the string
            overrides.setdefault(section, {})[key] = value
    return overrides


def load_config(
    project_path: Optional[Path] = None,
    skip_env: bool = False,
) -> BranchwatchConfig:
    """Load and merge configuration for the repository at ``project_path``.

    An unreadable user config only warns; an unreadable project config raises.

    Raises:
        ConfigError: If the project config or the merged result is invalid
    """
    data: Dict[str, Any] = {}

    user_file = _user_config_file()
    if user_file.is_file():
        try:
            data = _read_toml(user_file)
        except ConfigError as e:
            warnings.warn(f"Skipping invalid user config: {e}", UserWarning)

    project_file = _find_project_config(Path(project_path or Path.cwd()))
    if project_file is not None:
        try:
            data = _merge(data, _read_toml(project_file))
        except ConfigError as e:
            raise ConfigError(f"Invalid project config: {e}")

    if not skip_env:
        data = _merge(data, _env_overrides())

    try:
        return BranchwatchConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Config validation failed:\n{e}")


_cache: Dict[Optional[Path], BranchwatchConfig] = {}
_cache_lock = threading.Lock()


def get_config(project_path: Optional[Path] = None, force_reload: bool = False) -> BranchwatchConfig:
    """Config for ``project_path``, cached per resolved path."""
    key = Path(project_path).resolve() if project_path else None
    with _cache_lock:
        if force_reload or key not in _cache:
            _cache[key] = load_config(key)
        return _cache[key]


def clear_config_cache() -> None:
    with _cache_lock:
        _cache.clear()
