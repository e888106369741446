"""Configuration loader from YAML."""

from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .schema import SerpConfig


def load_config(yaml_path: Optional[Union[str, Path]] = None) -> SerpConfig:
    """
    Load configuration from YAML file.

    Args:
        yaml_path: Path to YAML file (defaults to defaults.yaml)

    Returns:
        SerpConfig object
    """
    if yaml_path is None:
        yaml_path = Path(__file__).parent / "defaults.yaml"

    with open(yaml_path, 'r') as f:
        data = yaml.safe_load(f)

    return SerpConfig.from_dict(data)


def config_from_dict(data: Dict[str, Any]) -> SerpConfig:
    """Create config from dictionary."""
    return SerpConfig.from_dict(data)
