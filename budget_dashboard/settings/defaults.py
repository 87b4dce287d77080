"""Preset loader for budget settings."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

# Preset directory
CONFIG_DIR = Path(__file__).parent


def load_config(config_name: str) -> Dict[str, Any]:
    """Load a preset file by name.

    Args:
        config_name: Name of the preset file (without .json extension)

    Returns:
        Dictionary containing the preset

    Raises:
        FileNotFoundError: If the preset file doesn't exist
        json.JSONDecodeError: If the preset file is invalid JSON

    Example:
        >>> config = load_config('budget')
        >>> config['forecast']['warning_gap']
        -20000
    """
    config_path = CONFIG_DIR / f"{config_name}.json"

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        return json.load(f)


@lru_cache(maxsize=1)
def _cached_budget_config() -> Dict[str, Any]:
    return load_config('budget')


def get_budget_config() -> Dict[str, Any]:
    """Get the budget presets.

    Returns a fresh copy on every call so callers may mutate it freely.
    """
    return json.loads(json.dumps(_cached_budget_config()))


def get_config_value(config_name: str, *keys: str, default: Any = None) -> Any:
    """Get a nested preset value by key path.

    Example:
        >>> get_config_value('budget', 'forecast', 'warning_gap')
        -20000
    """
    try:
        config = get_budget_config() if config_name == 'budget' else load_config(config_name)
        value = config
        for key in keys:
            value = value[key]
        return value
    except (KeyError, FileNotFoundError):
        return default
