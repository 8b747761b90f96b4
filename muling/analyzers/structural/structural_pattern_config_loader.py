import json
from pathlib import Path
from typing import Dict, Any
from loguru import logger

REQUIRED_SECTIONS = [
    "fan_in_detection",
    "fan_out_detection",
    "cycle_detection",
    "shell_chain_detection",
    "suppression",
    "account_scoring",
]


def load_structural_pattern_config(config_path: str = None) -> Dict[str, Any]:
    """
    Configuration loader for StructuralPatternAnalyzer detection settings.
    Loads structural pattern configuration from a JSON file.

    Args:
        config_path: Optional custom path to config file. If None, uses the
            settings file shipped next to this module.

    Returns:
        Dictionary containing structural pattern configuration

    Raises:
        RuntimeError: If the file is missing, unreadable or not valid JSON
        ValueError: If the configuration structure is invalid
    """
    if config_path is None:
        config_path = Path(__file__).parent / 'structural_pattern_settings.json'

    config_path = Path(config_path)

    if not config_path.exists():
        logger.error(f"Configuration file not found at {config_path}")
        raise RuntimeError(f"Structural pattern configuration not found: {config_path}")

    try:
        with open(config_path, 'r') as f:
            logger.info(f"Loading structural pattern configuration from {config_path}")
            config_data = json.load(f)
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in configuration file {config_path}: {e}")
        raise RuntimeError(f"Failed to parse configuration from {config_path}: {e}") from e
    except OSError as e:
        logger.error(f"Cannot read configuration file {config_path}: {e}")
        raise RuntimeError(f"Failed to read configuration from {config_path}: {e}") from e

    validate_config(config_data)
    return config_data


def validate_config(config: Dict[str, Any]) -> None:
    """Validate configuration structure."""
    for key in REQUIRED_SECTIONS:
        if key not in config:
            raise ValueError(f"Missing required configuration key: {key}")

    for section in ("fan_in_detection", "fan_out_detection"):
        window_config = config[section]
        for key in ("window_hours", "min_unique_counterparties"):
            if key not in window_config:
                raise ValueError(f"Missing required {section} parameter: {key}")

    cycle_config = config["cycle_detection"]
    required_cycle_keys = ["min_cycle_length", "max_cycle_length", "max_paths_per_start", "max_neighbors"]
    for key in required_cycle_keys:
        if key not in cycle_config:
            raise ValueError(f"Missing required cycle detection parameter: {key}")

    chain_config = config["shell_chain_detection"]
    required_chain_keys = ["max_depth", "max_paths_per_start", "max_neighbors"]
    for key in required_chain_keys:
        if key not in chain_config:
            raise ValueError(f"Missing required shell chain detection parameter: {key}")

    scoring_config = config["account_scoring"]
    if "pattern_weights" not in scoring_config:
        raise ValueError("Missing required account scoring parameter: pattern_weights")


def get_config_summary(config: Dict[str, Any]) -> Dict[str, Any]:
    """Get summary information about the loaded configuration."""
    return {
        "config_sections": len(config),
        "available_sections": list(config.keys()),
        "detection_methods": [
            "fan_in_detection", "fan_out_detection", "cycle_detection", "shell_chain_detection"
        ],
        "suppression_enabled": bool(config.get("suppression", {}).get("enabled", False)),
    }
