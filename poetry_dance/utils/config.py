"""
Config - Utilities Module
Loads the YAML system config. Each component receives its own section as a
plain dict and falls back to built-in defaults for any missing key.
"""

import os

import yaml

from poetry_dance.utils.logger import setup_logger

logger = setup_logger(__name__)

DEFAULT_CONFIG_PATH = "config/system_config.yaml"

SECTIONS = ("system", "camera", "sampler", "engine", "session",
            "progress", "dashboard")


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> dict:
    """
    Read the YAML config and make sure every known section exists.

    Raises:
        FileNotFoundError: config file is missing
        ValueError: top level of the document is not a mapping
    """
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    if not isinstance(config, dict):
        raise ValueError(f"Config root must be a mapping: {config_path}")

    for section in SECTIONS:
        if config.get(section) is None:
            config[section] = {}
    if config.get("courses") is None:
        config["courses"] = []

    logger.info(f"✅ Config loaded: {config_path}")
    return config
