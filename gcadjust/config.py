# File: gcadjust/config.py
# Location: gcadjust/gcadjust/config.py

"""
Configuration management module.

This module handles loading configuration from a JSON file.
All default values reside in config.json, which is included in
the installed package directory. The adjustment options live under
the "adjust" key; see ``gcadjust.adjust.base.AdjustConfig.from_dict``.

If no config_file is provided, this module attempts to load the default
config.json from the package installation directory.
"""

import json
import logging
import os
from typing import Any, Dict, Optional

logger = logging.getLogger("gcadjust")


def default_config_path() -> str:
    """Return the path of the packaged config.json."""
    return os.path.join(os.path.dirname(__file__), "config.json")


def load_config(config_file: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from a JSON file.

    If no config_file is provided, the function attempts to load the
    'config.json' from the installed package directory. If it fails
    to find or parse the file, it raises an error.

    Parameters
    ----------
    config_file : str, optional
        Path to a configuration file in JSON format. If None, defaults to
        the package-installed 'config.json'.

    Returns
    -------
    dict
        Configuration dictionary loaded from the JSON file.

    Raises
    ------
    FileNotFoundError
        If the specified configuration file does not exist.
    ValueError
        If there is an error parsing the JSON configuration file.
    """
    if not config_file:
        config_file = default_config_path()

    if not os.path.exists(config_file):
        raise FileNotFoundError(f"Configuration file '{config_file}' not found.")

    with open(config_file, "r", encoding="utf-8") as f:
        try:
            config = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Error parsing JSON configuration: {e}")

    logger.debug(f"Configuration loaded from {config_file}")
    return config


def merge_config(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge user overrides into a base configuration, one level deep.

    Nested dictionaries (such as the "adjust" section) are merged key by key
    so that a user file only needs to name the options it changes.
    """
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            section = dict(merged[key])
            section.update(value)
            merged[key] = section
        else:
            merged[key] = value
    return merged
