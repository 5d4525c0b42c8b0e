"""
Configuration file support for the PRODE CLI.

Supports YAML and JSON config files with CLI argument override. Keys are
the ProdeConfig field names plus the input/output keys of ``prode run``:

    scores: data/scores.tsv
    adjacency: data/string.csv
    modality: NICE
    groups: data/samples.csv
    case: mutant
    control: wildtype
    output: results/nice
    filter_ctrl: true
    n_iter: 20000
"""

from __future__ import annotations

import json
from argparse import Namespace
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict

import yaml

from prode.core.exceptions import ConfigurationError
from prode.pipeline import ProdeConfig

__all__ = ['load_config', 'INPUT_KEYS', 'merge_config_with_args', 'config_from_args']

INPUT_KEYS = (
    "scores",
    "adjacency",
    "edge_list",
    "design",
    "groups",
    "group_column",
    "covariates",
    "case",
    "control",
    "modality",
    "output",
)
PATH_KEYS = ("scores", "adjacency", "design", "groups", "output", "background_table")


def load_config(config_path: Path) -> Dict[str, Any]:
    """Read a run configuration (.yaml, .yml or .json) into a dict.

    An empty file gives an empty dict. Raises FileNotFoundError for a missing
    file and ValueError for an unknown suffix, a parse error or a top level
    that is not a mapping.
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()
    if suffix in ('.yaml', '.yml'):
        parse, parse_error = yaml.safe_load, yaml.YAMLError
    elif suffix == '.json':
        parse, parse_error = json.load, json.JSONDecodeError
    else:
        raise ValueError(f"Unsupported config format '{suffix}' (use .yaml, .yml or .json)")

    with open(config_path, 'r') as f:
        try:
            config = parse(f)
        except parse_error as e:
            raise ValueError(f"Cannot parse {config_path.name}: {e}") from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ValueError(f"{config_path.name} must hold a mapping of option names to values")
    return config


def merge_config_with_args(config: Dict[str, Any], args: Namespace) -> Namespace:
    """
    Merge config file values with CLI arguments.

    Priority (highest to lowest):
    1. Explicitly provided CLI arguments (any value other than None)
    2. Config file values
    3. ProdeConfig / CLI defaults

    Raises:
        ConfigurationError: For keys that are neither options nor inputs
    """
    option_names = {f.name for f in fields(ProdeConfig)}
    unknown = sorted(set(config) - option_names - set(INPUT_KEYS))
    if unknown:
        raise ConfigurationError(f"Unknown config keys: {unknown}")

    merged = Namespace(**vars(args))
    for key, config_value in config.items():
        if getattr(merged, key, None) is not None or config_value is None:
            continue
        if key in PATH_KEYS:
            config_value = Path(config_value)
        setattr(merged, key, config_value)
    return merged


def config_from_args(args: Namespace) -> ProdeConfig:
    """ProdeConfig from merged arguments; unset options keep their defaults."""
    values = {}
    for f in fields(ProdeConfig):
        value = getattr(args, f.name, None)
        if value is not None:
            values[f.name] = value
    return ProdeConfig(**values)
