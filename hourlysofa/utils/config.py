"""
Configuration loading utilities for hourly SOFA runs.

This module reads run settings (grid lookback, trailing window length,
batching) from a YAML or JSON file so the same batch job can be repeated
with identical parameters.
"""

import os
import json
from dataclasses import fields
from typing import Any, Dict, Optional

import yaml

from .logging_config import get_logger

logger = get_logger('utils.config')

DEFAULT_CONFIG_NAMES = ['sofa_config.yaml', 'sofa_config.yml', 'sofa_config.json']


def _find_default_config() -> Optional[str]:
    for name in DEFAULT_CONFIG_NAMES:
        candidate = os.path.join(os.getcwd(), name)
        if os.path.exists(candidate):
            return candidate
    return None


def _read_config_file(config_path: str) -> Dict[str, Any]:
    ext = os.path.splitext(config_path)[1].lower()
    with open(config_path, 'r') as f:
        if ext in ('.yaml', '.yml'):
            raw = yaml.safe_load(f)
        elif ext == '.json':
            try:
                raw = json.load(f)
            except json.JSONDecodeError as e:
                raise json.JSONDecodeError(
                    f"Invalid JSON in configuration file {config_path}: {str(e)}",
                    e.doc, e.pos
                )
        else:
            raise ValueError(
                f"Unsupported configuration file type '{ext}' for {config_path}\n"
                "Supported types are: .yaml, .yml, .json"
            )

    # An empty YAML file parses to None
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(
            f"Configuration file {config_path} must contain a mapping, got {type(raw).__name__}"
        )
    return raw


def load_sofa_config(config_path: Optional[str] = None, **overrides):
    """
    Load a :class:`~hourlysofa.sofa.SofaConfig` from a YAML or JSON file.

    Parameters
    ----------
    config_path : str, optional
        Path to the configuration file. If None, looks for
        ``sofa_config.yaml``, ``sofa_config.yml`` or ``sofa_config.json``
        in the current directory and falls back to defaults when none exists.
    **overrides
        Values that take precedence over the file, e.g. ``n_workers=4``.

    Returns
    -------
    SofaConfig

    Raises
    ------
    FileNotFoundError
        If an explicit config_path does not exist
    ValueError
        If the file holds unknown keys or invalid values
    """
    from hourlysofa.sofa._utils import SofaConfig

    if config_path is None:
        config_path = _find_default_config()
        if config_path is None:
            logger.info("No configuration file found, using default SOFA settings")
            return SofaConfig(**overrides)
    elif not os.path.exists(config_path):
        raise FileNotFoundError(
            f"Configuration file not found: {config_path}\n"
            "Please either:\n"
            "  1. Create a sofa_config.yaml file in the current directory\n"
            "  2. Provide config_path pointing to your config file\n"
            "  3. Pass SofaConfig(...) directly to calculate_sofa_hourly"
        )

    values = _read_config_file(config_path)
    values.update(overrides)

    known = {f.name for f in fields(SofaConfig)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ValueError(
            f"Unknown keys in configuration file {config_path}: {unknown}\n"
            f"Supported keys are: {sorted(known)}"
        )

    cfg = SofaConfig(**values)
    logger.info(f"Configuration loaded successfully from {config_path}")
    return cfg


def create_example_config(config_path: str = "./sofa_config.yaml") -> None:
    """Write a config file holding the default settings."""
    from hourlysofa.sofa._utils import SofaConfig

    defaults = {f.name: getattr(SofaConfig(), f.name) for f in fields(SofaConfig)}
    with open(config_path, 'w') as f:
        if config_path.endswith('.json'):
            json.dump(defaults, f, indent=2)
        else:
            yaml.safe_dump(defaults, f, sort_keys=False)

    logger.info(f"Example configuration file created at: {config_path}")
