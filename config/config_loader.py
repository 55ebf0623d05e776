"""
config_loader.py
-----------------
Singleton config loader. Reads config.yaml once and caches it.
Detectors, the insight generator and the forecaster read every threshold
through the accessors below, never hardcoded values.
"""

import os
import yaml
from typing import Any, Dict


_CONFIG_CACHE: Dict[str, Any] = {}


def load_config(config_path: str | None = None) -> Dict[str, Any]:
    """
    Load and cache the YAML configuration file.

    Args:
        config_path: Path to config.yaml. Defaults to config/ relative to this file.

    Returns:
        Full config dictionary.
    """
    global _CONFIG_CACHE

    if _CONFIG_CACHE:
        return _CONFIG_CACHE

    if config_path is None:
        config_path = os.path.join(os.path.dirname(__file__), "config.yaml")

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r") as f:
        _CONFIG_CACHE = yaml.safe_load(f)

    return _CONFIG_CACHE


def get_section(name: str) -> Dict[str, Any]:
    """
    Returns a top-level config section.

    Raises:
        KeyError: If the section is not in the config.
    """
    config = load_config()
    if name not in config:
        raise KeyError(
            f"No config section '{name}'. "
            f"Available: {list(config.keys())}"
        )
    return config[name]


def get_engine_config() -> Dict[str, Any]:
    """Returns the engine block (input schema, bucket sizes)."""
    return get_section("engine")


def get_pattern_detection_config() -> Dict[str, Any]:
    """Returns the pattern_detection block."""
    return get_section("pattern_detection")


def get_insight_config() -> Dict[str, Any]:
    """Returns the insights block."""
    return get_section("insights")


def get_forecast_config() -> Dict[str, Any]:
    """Returns the forecast block."""
    return get_section("forecast")


def reset_config() -> None:
    """Clears cached config. Useful for testing."""
    global _CONFIG_CACHE
    _CONFIG_CACHE = {}
