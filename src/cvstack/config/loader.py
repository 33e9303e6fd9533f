"""
Configuration loading and merging logic.

Supports:
1. Loading from YAML files (with ``_base`` inheritance)
2. CLI argument overrides (dot-notation: e.g., folds=5, survival.horizon=4)
3. Validation and resolution
"""

import copy
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from cvstack.config.defaults import DEFAULT_ENSEMBLE_CONFIG, DEFAULT_SURVIVAL_CONFIG
from cvstack.config.schema import EnsembleConfig
from cvstack.config.validation import ConfigurationError

logger = logging.getLogger(__name__)

# Keys that should always be lists
LIST_KEYS = {"covariates"}

# Keys that should always be strings (not parsed as int/float)
STRING_KEYS = {
    "infile",
    "outdir",
    "outcome_col",
    "id_col",
    "weights_col",
    "ftime_col",
    "ftype_col",
    "strata_col",
}

PATH_KEYS = ["infile", "outdir"]


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *overlay* into *base* (overlay wins on leaf conflicts).

    Returns a new dict; neither input is mutated.
    """
    merged = base.copy()
    for key, value in overlay.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_yaml(file_path: str | Path) -> dict[str, Any]:
    """Load configuration from YAML file.

    Supports a ``_base`` key: if present, the referenced YAML file is loaded
    first and the current file's values are deep-merged on top.  The ``_base``
    path is resolved relative to the directory containing *file_path*.
    """
    file_path = Path(file_path).resolve()
    if not file_path.exists():
        raise FileNotFoundError(f"Config file not found: {file_path}")

    with open(file_path) as f:
        config_dict = yaml.safe_load(f) or {}

    base_ref = config_dict.pop("_base", None)
    if base_ref is not None:
        base_path = (file_path.parent / base_ref).resolve()
        base_dict = load_yaml(base_path)
        config_dict = _deep_merge(base_dict, config_dict)

    return config_dict


def resolve_paths_relative_to_config(
    config_dict: dict[str, Any], config_file: Path
) -> dict[str, Any]:
    """
    Resolve relative ``infile``/``outdir`` values against the config file directory.

    Only values that exist relative to the config directory, or that clearly
    contain a directory separator, are rewritten.
    """
    config_dir = Path(config_file).resolve().parent
    resolved_dict = config_dict.copy()

    for key in PATH_KEYS:
        value = resolved_dict.get(key)
        if not isinstance(value, str):
            continue
        path = Path(value)
        if path.is_absolute():
            continue
        resolved = config_dir / path
        if resolved.exists() or "/" in value or "\\" in value:
            resolved_dict[key] = str(resolved)

    return resolved_dict


def apply_overrides(config_dict: dict[str, Any], overrides: list[str]) -> dict[str, Any]:
    """
    Apply CLI overrides to config dictionary.

    Supports dot-notation for nested keys:
        folds=5 -> config_dict['folds'] = 5
        survival.horizon=4 -> config_dict['survival']['horizon'] = 4

    Args:
        config_dict: Base configuration dictionary
        overrides: List of "key=value" or "nested.key=value" strings

    Returns:
        Updated config dictionary
    """
    for override in overrides:
        if "=" not in override:
            raise ValueError(f"Invalid override format: {override}. Expected 'key=value'")

        key_path, value_str = override.split("=", 1)
        keys = key_path.split(".")

        target = config_dict
        for key in keys[:-1]:
            if target.get(key) is None:
                target[key] = {}
            target = target[key]

        final_key = keys[-1]
        value = _parse_value(
            value_str,
            force_list=final_key in LIST_KEYS,
            force_string=final_key in STRING_KEYS,
        )
        target[final_key] = value

    return config_dict


def _parse_value(value_str: str, force_list: bool = False, force_string: bool = False) -> Any:
    """
    Parse string value to appropriate Python type.

    Args:
        value_str: String to parse
        force_list: If True, always return a list (for comma-separated or single values)
        force_string: If True, always return a string (skip int/float parsing)
    """
    if force_string:
        return value_str

    if value_str.lower() in ("true", "yes"):
        return [True] if force_list else True
    if value_str.lower() in ("false", "no"):
        return [False] if force_list else False

    if value_str.lower() in ("none", "null"):
        return [None] if force_list else None

    if "," in value_str or force_list:
        parsed = []
        for v in (v.strip() for v in value_str.split(",")):
            parsed.append(_parse_scalar(v))
        return parsed

    return _parse_scalar(value_str)


def _parse_scalar(value_str: str) -> Any:
    try:
        return int(value_str)
    except ValueError:
        pass
    try:
        return float(value_str)
    except ValueError:
        pass
    return value_str


def load_ensemble_config(
    config_file: str | Path | None = None,
    overrides: list[str] | None = None,
) -> EnsembleConfig:
    """
    Load ensemble configuration from file and CLI overrides.

    Args:
        config_file: Path to YAML config file (optional)
        overrides: List of CLI overrides in "key=value" format (optional)

    Returns:
        Validated EnsembleConfig instance

    Raises:
        ConfigurationError: If the merged configuration does not validate
    """
    config_dict = copy.deepcopy(DEFAULT_ENSEMBLE_CONFIG)

    if config_file is not None:
        config_file_path = Path(config_file)
        file_config = load_yaml(config_file_path)
        file_config = resolve_paths_relative_to_config(file_config, config_file_path)

        # Lists (library, screens) are replaced, nested dicts are merged
        config_dict = _deep_merge(config_dict, file_config)

    if overrides:
        config_dict = apply_overrides(config_dict, overrides)

    if isinstance(config_dict.get("survival"), dict):
        config_dict["survival"] = {**DEFAULT_SURVIVAL_CONFIG, **config_dict["survival"]}

    try:
        return EnsembleConfig(**config_dict)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid ensemble configuration:\n{e}") from e


def save_config(config: EnsembleConfig, output_path: str | Path):
    """Save resolved configuration to YAML file."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = config.model_dump(mode="json")

    with open(output_path, "w") as f:
        yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)


def log_config_summary(config: EnsembleConfig, log: logging.Logger | None = None):
    """Log a human-readable configuration summary."""
    log = log or logger
    lines = ["=" * 80, "Configuration Summary", "=" * 80]

    def format_dict(d, indent=0):
        result = []
        for key, value in d.items():
            if isinstance(value, dict):
                result.append(f"{'  ' * indent}{key}:")
                result.extend(format_dict(value, indent + 1))
            else:
                result.append(f"{'  ' * indent}{key}: {value}")
        return result

    lines.extend(format_dict(config.model_dump(mode="json")))
    lines.append("=" * 80)
    log.info("\n".join(lines))
