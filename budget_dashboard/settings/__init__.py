"""Preset files and loaders.

Tunable presets (default categories, forecast thresholds, parser
keywords) are stored in JSON files so they can be changed without code
changes.
"""

from .defaults import load_config, get_budget_config, get_config_value

__all__ = ['load_config', 'get_budget_config', 'get_config_value']
