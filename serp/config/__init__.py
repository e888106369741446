"""Protocol configuration: pydantic schema and YAML loader."""

from .schema import NativeCurrencyConfig, StableCurrencyConfig, SerpConfig
from .loader import load_config, config_from_dict

__all__ = [
    'NativeCurrencyConfig',
    'StableCurrencyConfig',
    'SerpConfig',
    'load_config',
    'config_from_dict',
]
