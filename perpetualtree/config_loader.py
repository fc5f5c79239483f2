#!/usr/bin/env python3
"""
Configuration loader for perpetualtree supporting YAML and TOML formats.

This module provides utilities to load and validate configuration files
using the Pydantic models defined in config_models.py.
"""

import logging
from pathlib import Path
from typing import Dict, Any, Union

import toml
import yaml
from pydantic import ValidationError

from .config_models import PerpetualTreeConfig
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def detect_config_format(config_path: Path) -> str:
    """Detect configuration file format based on extension and content."""

    suffix = config_path.suffix.lower()

    # Prioritize file extension for known formats
    if suffix in ['.yaml', '.yml']:
        return 'yaml'
    elif suffix in ['.toml']:
        return 'toml'

    # Try to detect by content only if extension is unknown
    try:
        with open(config_path, 'r') as f:
            content = f.read().strip()
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration file {config_path}: {e}")

    if content.startswith('[') or '\n[' in content:
        return 'toml'
    return 'yaml'


def load_yaml_config(config_path: Path) -> Dict[str, Any]:
    """Load YAML configuration file."""

    try:
        with open(config_path, 'r') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        error_msg = f"Error parsing YAML configuration in {config_path}:"
        error_msg += f"\n  → {e}"
        error_msg += "\n  → Make sure the file uses proper YAML syntax (check indentation, colons, etc.)"
        raise ConfigurationError(error_msg)
    except OSError as e:
        raise ConfigurationError(f"Error loading YAML configuration from {config_path}: {e}")

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"YAML configuration in {config_path} must be a mapping")
    return data


def load_toml_config(config_path: Path) -> Dict[str, Any]:
    """Load TOML configuration file."""

    try:
        with open(config_path, 'r') as f:
            return toml.load(f)
    except toml.TomlDecodeError as e:
        raise ConfigurationError(f"Error parsing TOML configuration: {e}")
    except OSError as e:
        raise ConfigurationError(f"Error loading TOML configuration: {e}")


def load_configuration(config_path: Union[str, Path]) -> PerpetualTreeConfig:
    """Load and validate configuration from file."""

    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    # Detect format and load data
    format_type = detect_config_format(config_path)
    logger.info(f"Loading {format_type.upper()} configuration from: {config_path}")

    if format_type == 'yaml':
        data = load_yaml_config(config_path)
    else:
        data = load_toml_config(config_path)

    # Validate and create configuration object
    try:
        config = PerpetualTreeConfig(**data)
    except ValidationError as e:
        error_msg = f"Configuration validation failed for {config_path} ({format_type.upper()} format)"

        if "alignment_file" in str(e):
            error_msg += "\n  → The specified alignment file was not found. Please check the file path."
        elif "partition_file" in str(e):
            error_msg += "\n  → The specified partition file was not found. Please check the file path."
        elif "prev_dir" in str(e):
            error_msg += "\n  → Warm-start rounds need the previous round's base directory (prev_dir)."
        else:
            error_msg += f"\n  → {e}"

        raise ConfigurationError(error_msg, context={'format': format_type}) from e

    logger.info("Configuration loaded and validated successfully")
    return config


def _example_config() -> Dict[str, Any]:
    return {
        'input_output': {
            'alignment_file': 'alignment.phy',
            'partition_file': 'partitions.txt',
            'base_dir': 'round_1',
            'prev_dir': 'round_0',
            'debug': False
        },
        'iteration': {
            'update_id': 1,
            'mode': 'warm_start',
            'num_candidates': 4,
            'num_best': 2,
            'seed_base': 123
        },
        'computational': {
            'threads': 0,
            'max_workers': 4,
            'parsimonator_path': 'parsimonator',
            'raxml_light_path': 'raxmlLight',
            'raxml_path': 'raxmlHPC',
            'refinement_timeout': 7200
        },
        'naming': {
            'best_ml_folder_name': 'best_ml_trees',
            'best_ml_bunch_name': 'best_bunch.nw'
        },
        'visualization': {
            'enable': False,
            'format': 'png'
        }
    }


def create_example_yaml_config(output_path: Path) -> None:
    """Create an example YAML configuration file."""

    with open(output_path, 'w') as f:
        yaml.dump(_example_config(), f, default_flow_style=False, sort_keys=False, indent=2)

    logger.info(f"Example YAML configuration created: {output_path}")


def create_example_toml_config(output_path: Path) -> None:
    """Create an example TOML configuration file."""

    with open(output_path, 'w') as f:
        toml.dump(_example_config(), f)

    logger.info(f"Example TOML configuration created: {output_path}")
