"""
serp - Elastic Reserve Protocol

A multi-currency ledger plus a supply-elasticity controller that expands or
contracts peg-tracking currencies and pays serpers an incentive in the
native currency.

Usage:
    from serp import (
        ElasticReserveProtocol, DefaultPriceProvider, StaticDataProvider,
        Price, load_config,
    )

    feed = StaticDataProvider({
        'SETUSD': Price.from_decimal("1.1"),
        'SETEUR': Price.one(),
        'SETM': Price.from_int(10),
    })
    feed.feed_value('EUR', Price.one())
    protocol = ElasticReserveProtocol(load_config(), DefaultPriceProvider(feed))

    # Outstanding supply held by the serper
    protocol.ledger.deposit('SETUSD', protocol.serper, 1_000_000)

    # One tick: SETUSD trades at 1.1 -> expand by 10%
    report = protocol.on_tick(1, 'SETUSD')
    report.supply_change    # 100_000
    report.native_amount    # 11_020
"""

# Core types
from .core import (
    LedgerView,
    Currency,
    PegTarget,
    AccountData,
    BalanceLock,
    BalanceChange,
    PendingAdjustment,
    AdjustmentOrigin,
    AdjustmentRecord,
    build_adjustment,
    native,
    stable,
    ExecuteResult,
    BalanceStatus,
    ChangeKind,
    Direction,
    NoOpReason,
    OriginType,
    SerpError,
    InsufficientBalance,
    Overflow,
    Underflow,
    DivisionByZero,
    CurrencyNotRegistered,
    InvalidCurrencyConfiguration,
    StepFailed,
    SkipTick,
    PriceUnavailable,
    NoQuotableMarket,
    ToleranceNotMet,
    FrequencyNotMet,
    BALANCE_MAX,
    DEFAULT_SERPER,
)

# Fixed-point prices
from .fixed import Price, ACCURACY

# Ledger
from .ledger import Ledger, CurrencyHandle

# Market quoting
from .market import SerpQuote, market_price, serp_quote, native_amount_for, quote

# Price inputs
from .oracle import (
    DataProvider,
    PriceProvider,
    StaticDataProvider,
    TimeSeriesDataProvider,
    DefaultPriceProvider,
    PriceOracleAdapter,
)

# Supply controller
from .controller import ElasticParams, SupplyController, TickOutcome, TickReport

# Composition root
from .protocol import ElasticReserveProtocol

# Configuration
from .config import (
    NativeCurrencyConfig,
    StableCurrencyConfig,
    SerpConfig,
    load_config,
    config_from_dict,
)

__all__ = [
    # Core
    'LedgerView', 'Currency', 'PegTarget', 'AccountData', 'BalanceLock',
    'BalanceChange', 'PendingAdjustment', 'AdjustmentOrigin', 'AdjustmentRecord',
    'build_adjustment', 'native', 'stable',
    'ExecuteResult', 'BalanceStatus', 'ChangeKind', 'Direction', 'NoOpReason', 'OriginType',
    'SerpError', 'InsufficientBalance', 'Overflow', 'Underflow', 'DivisionByZero',
    'CurrencyNotRegistered', 'InvalidCurrencyConfiguration', 'StepFailed',
    'SkipTick', 'PriceUnavailable', 'NoQuotableMarket', 'ToleranceNotMet', 'FrequencyNotMet',
    'BALANCE_MAX', 'DEFAULT_SERPER',
    # Fixed point
    'Price', 'ACCURACY',
    # Ledger
    'Ledger', 'CurrencyHandle',
    # Market
    'SerpQuote', 'market_price', 'serp_quote', 'native_amount_for', 'quote',
    # Oracle
    'DataProvider', 'PriceProvider', 'StaticDataProvider', 'TimeSeriesDataProvider',
    'DefaultPriceProvider', 'PriceOracleAdapter',
    # Controller
    'ElasticParams', 'SupplyController', 'TickOutcome', 'TickReport',
    # Protocol
    'ElasticReserveProtocol',
    # Config
    'NativeCurrencyConfig', 'StableCurrencyConfig', 'SerpConfig', 'load_config', 'config_from_dict',
]

__version__ = '0.1.0'
