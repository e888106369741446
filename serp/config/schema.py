"""Pydantic schema for protocol configuration."""

import hashlib
import json
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List

from pydantic import BaseModel, Field, field_validator, model_validator

from ..core import DEFAULT_SERPER


class NativeCurrencyConfig(BaseModel):
    """The native currency incentives settle in."""
    symbol: str = Field(min_length=1, description="Currency code")
    name: str = Field(min_length=1, description="Full currency name")
    minimum_balance: int = Field(ge=0, default=0, description="Existential deposit")


class StableCurrencyConfig(BaseModel):
    """One peg-tracking stable currency and its controller parameters."""
    symbol: str = Field(min_length=1, description="Currency code")
    name: str = Field(min_length=1, description="Full currency name")
    peg_currency: str = Field(min_length=1, description="External peg reference, e.g. USD")
    peg_unit: int = Field(gt=0, description="Integer price of one peg unit")
    tolerance: int = Field(ge=0, default=0, description="No-op band around the peg")
    incentive_rate: str = Field(default="0", description="Serp quote rate in [0, 1], as a decimal string")
    adjustment_frequency: int = Field(ge=1, default=1, description="Minimum ticks between adjustments")
    minimum_balance: int = Field(ge=0, default=0, description="Existential deposit")

    @field_validator('incentive_rate', mode='before')
    @classmethod
    def validate_incentive_rate(cls, v):
        """Accept numbers or strings; keep the exact decimal text."""
        try:
            rate = Decimal(str(v))
        except InvalidOperation:
            raise ValueError(f"incentive_rate is not a number: {v!r}")
        if not rate.is_finite():
            raise ValueError(f"incentive_rate must be finite, got {v!r}")
        if rate < 0 or rate > 1:
            raise ValueError(f"incentive_rate must be within [0, 1], got {v}")
        return str(v)


class SerpConfig(BaseModel):
    """Complete configuration for an ElasticReserveProtocol."""
    native: NativeCurrencyConfig
    stables: List[StableCurrencyConfig] = Field(min_length=1)
    serper: str = Field(default=DEFAULT_SERPER, min_length=1, description="Account paid/charged serp incentives")
    verbose: bool = False

    @model_validator(mode='after')
    def validate_symbols(self):
        """Stable symbols must be unique and distinct from the native symbol."""
        symbols = [s.symbol for s in self.stables]
        if len(set(symbols)) != len(symbols):
            raise ValueError(f"Duplicate stable currency symbols: {sorted(symbols)}")
        if self.native.symbol in symbols:
            raise ValueError(f"Stable currency cannot reuse the native symbol {self.native.symbol}")
        return self

    def stable(self, symbol: str) -> StableCurrencyConfig:
        for s in self.stables:
            if s.symbol == symbol:
                return s
        raise KeyError(symbol)

    def config_hash(self) -> str:
        """Compute config hash for reproducibility."""
        config_str = json.dumps(self.model_dump(), sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SerpConfig':
        """Create config from dictionary."""
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return self.model_dump()
