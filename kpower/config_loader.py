#!/usr/bin/env python3
"""
Configuration loader for kpower supporting YAML, TOML, and legacy INI formats.

This module provides utilities to load and validate configuration files
using the Pydantic models defined in config_models.py.
"""

import configparser
import logging
from pathlib import Path
from typing import Any, Dict, Union

import toml
import yaml
from pydantic import ValidationError

from .config_models import KPowerConfig
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# INI keys (flat, legacy style) mapped to (section, field)
INI_KEY_MAP = {
    'alignment': ('input_output', 'alignment_file'),
    'alignment_file': ('input_output', 'alignment_file'),
    'format': ('input_output', 'alignment_format'),
    'outdir': ('input_output', 'output_dir'),
    'output_dir': ('input_output', 'output_dir'),
    'make_plot': ('input_output', 'make_plot'),
    'figure_format': ('input_output', 'figure_format'),
    'log_file': ('input_output', 'log_file'),
    'debug': ('input_output', 'debug'),
    'model': ('model', 'base_model'),
    'base_model': ('model', 'base_model'),
    'mix_type': ('model', 'mix_type'),
    'k_min': ('model', 'k_min'),
    'k_max': ('model', 'k_max'),
    'ic': ('model', 'criterion'),
    'criterion': ('model', 'criterion'),
    'tree_mode': ('model', 'tree_mode'),
    'fixed_tree': ('model', 'fixed_tree'),
    'b': ('simulation', 'replicates'),
    'replicates': ('simulation', 'replicates'),
    'seed': ('simulation', 'seed'),
    'mimic_gaps': ('simulation', 'mimic_gaps'),
    'replay_variant': ('simulation', 'replay_variant'),
    'iqtree': ('computational', 'iqtree_path'),
    'iqtree_path': ('computational', 'iqtree_path'),
    'threads': ('computational', 'threads'),
    'n_cores': ('computational', 'n_cores'),
    'timeout': ('computational', 'fit_timeout'),
    'fit_timeout': ('computational', 'fit_timeout'),
    'simulation_timeout': ('computational', 'simulation_timeout'),
    'missing_policy': ('computational', 'missing_policy'),
    'isolate_failures': ('computational', 'isolate_failures'),
}

# Fields kept as strings even when they look numeric or boolean
_STRING_FIELDS = {'base_model', 'mix_type', 'alignment_file', 'output_dir', 'fixed_tree',
                  'iqtree_path', 'log_file'}


def detect_config_format(config_path: Path) -> str:
    """Detect configuration file format based on extension and content."""

    suffix = config_path.suffix.lower()

    if suffix in ['.yaml', '.yml']:
        return 'yaml'
    elif suffix in ['.toml']:
        return 'toml'
    elif suffix in ['.ini', '.cfg', '.config', '.conf']:
        return 'ini'

    # Try to detect by content only if extension is unknown
    try:
        content = config_path.read_text().strip()
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration file: {e}", config_file=config_path)

    if content.startswith(('---', '%YAML')) or ':\n' in content or ': ' in content:
        return 'yaml'

    if '[' in content and ']' in content and '=' in content:
        if '[[' in content or content.count('"') > content.count("'"):
            return 'toml'
        return 'ini'

    return 'ini'


def load_yaml_config(config_path: Path) -> Dict[str, Any]:
    """Load YAML configuration file."""

    try:
        with open(config_path, 'r') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        error_msg = f"Error parsing YAML configuration in {config_path}:"
        error_msg += f"\n  → {e}"
        error_msg += "\n  → Make sure the file uses proper YAML syntax (check indentation, colons, etc.)"
        raise ConfigurationError(error_msg, config_file=config_path)
    except OSError as e:
        raise ConfigurationError(f"Error loading YAML configuration from {config_path}: {e}",
                                 config_file=config_path)

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"YAML configuration in {config_path} must be a mapping of sections",
                                 config_file=config_path)
    return data


def load_toml_config(config_path: Path) -> Dict[str, Any]:
    """Load TOML configuration file."""

    try:
        with open(config_path, 'r') as f:
            return toml.load(f)
    except toml.TomlDecodeError as e:
        raise ConfigurationError(f"Error parsing TOML configuration: {e}", config_file=config_path)
    except OSError as e:
        raise ConfigurationError(f"Error loading TOML configuration: {e}", config_file=config_path)


def convert_value(value: str) -> Union[str, bool, int, float]:
    """Convert INI string values to appropriate types."""
    value = value.strip()

    if value.lower() in ('true', 'yes', 'on'):
        return True
    elif value.lower() in ('false', 'no', 'off'):
        return False

    try:
        if '.' in value:
            return float(value)
        return int(value)
    except ValueError:
        return value


def load_ini_config(config_path: Path) -> Dict[str, Any]:
    """Load legacy flat INI configuration file and convert to the nested format."""

    config = configparser.ConfigParser()

    try:
        config.read(config_path)
    except configparser.Error as e:
        error_msg = f"Error parsing INI configuration in {config_path}:"
        error_msg += f"\n  → {e}"
        if "no section headers" in str(e).lower():
            error_msg += "\n  → INI files require section headers like [DEFAULT]"
        error_msg += "\n  → For better validation, consider using YAML format instead"
        raise ConfigurationError(error_msg, config_file=config_path)

    data: Dict[str, Dict[str, Any]] = {}
    sections = [config.defaults()] + [config[name] for name in config.sections()]

    for section in sections:
        for key, value in section.items():
            target = INI_KEY_MAP.get(key.lower())
            if target is None:
                logger.warning(f"Ignoring unknown INI key: {key}")
                continue
            section_name, field_name = target
            converted = value.strip() if field_name in _STRING_FIELDS else convert_value(value)
            data.setdefault(section_name, {})[field_name] = converted

    return data


def load_config_data(config_path: Union[str, Path]) -> Dict[str, Any]:
    """Read a configuration file into nested section dictionaries without validating."""

    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}", config_file=config_path)

    format_type = detect_config_format(config_path)
    logger.info(f"Loading {format_type.upper()} configuration from: {config_path}")

    if format_type == 'yaml':
        return load_yaml_config(config_path)
    elif format_type == 'toml':
        return load_toml_config(config_path)

    data = load_ini_config(config_path)
    logger.warning(
        "INI configuration format is deprecated. "
        "Consider migrating to YAML or TOML format for better features."
    )
    return data


def load_configuration(config_path: Union[str, Path]) -> KPowerConfig:
    """Load and validate configuration from file."""
    return build_configuration(load_config_data(config_path), source=config_path)


def build_configuration(data: Dict[str, Any], source: Union[str, Path, None] = None) -> KPowerConfig:
    """
    Validate a nested configuration dictionary.

    Args:
        data: Sections as loaded from a file or assembled by the CLI
        source: Configuration file the data came from, for error messages

    Raises:
        ConfigurationError: Validation failed
    """
    try:
        config = KPowerConfig(**data)
    except ValidationError as e:
        error_msg = "Configuration validation failed"
        if source is not None:
            error_msg += f" for {source}"

        text = str(e)
        if "alignment_file" in text:
            error_msg += "\n  → The specified alignment file was not found. Please check the file path."
        if "k_max" in text or "k_min" in text:
            error_msg += "\n  → K range must satisfy 1 <= k_min <= k_max"
        if "threads" in text:
            error_msg += "\n  → Invalid thread count. Use 'AUTO' or a positive integer"
        error_msg += f"\n  → {e}"
        error_msg += "\n  → Use --generate-config to create an example configuration"

        raise ConfigurationError(error_msg, config_file=source) from e

    logger.debug("Configuration loaded and validated successfully")
    return config


def example_config() -> Dict[str, Any]:
    """Example configuration with every section filled in."""
    return {
        'input_output': {
            'alignment_file': 'my_alignment.fasta',
            'output_dir': 'kpower_output',
            'make_plot': True,
            'figure_format': 'png',
            'debug': False
        },
        'model': {
            'base_model': 'GTR',
            'mix_type': '+R',
            'k_min': 1,
            'k_max': 6,
            'criterion': 'BIC',
            'tree_mode': 'nj'
        },
        'simulation': {
            'replicates': 1000,
            'seed': 1,
            'mimic_gaps': True,
            'replay_variant': 'plain'
        },
        'computational': {
            'n_cores': 1,
            'fit_timeout': 3600,
            'simulation_timeout': 7200,
            'missing_policy': 'exclude',
            'isolate_failures': True
        }
    }


def create_example_yaml_config(output_path: Union[str, Path]) -> None:
    """Create an example YAML configuration file."""

    with open(output_path, 'w') as f:
        yaml.dump(example_config(), f, default_flow_style=False, sort_keys=False, indent=2)

    logger.info(f"Example YAML configuration created: {output_path}")


def create_example_toml_config(output_path: Union[str, Path]) -> None:
    """Create an example TOML configuration file."""

    with open(output_path, 'w') as f:
        toml.dump(example_config(), f)

    logger.info(f"Example TOML configuration created: {output_path}")
