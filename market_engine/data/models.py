from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class Candle:
    ts: int          # open time, epoch ms
    o: float
    h: float
    l: float
    c: float
    v: float
    close_ts: int = 0  # close time, epoch ms


@dataclass(frozen=True)
class OIData:
    latest: float
    average: float   # approximated as latest * 0.999


ZERO_OI = OIData(latest=0.0, average=0.0)


@dataclass(frozen=True)
class OITopData:
    """Open-interest ranking row for a symbol, supplied by an external ranking feed."""
    rank: int = 0
    oi_delta_percent: float = 0.0
    oi_delta_value: float = 0.0
    price_delta_percent: float = 0.0
    net_long: float = 0.0
    net_short: float = 0.0


@dataclass(frozen=True)
class IntradaySeries:
    """3m view, oldest -> newest. Indicator tuples may be shorter than `mid_prices`."""
    mid_prices: Tuple[float, ...] = ()
    ema20_values: Tuple[float, ...] = ()
    macd_values: Tuple[float, ...] = ()
    rsi7_values: Tuple[float, ...] = ()
    rsi14_values: Tuple[float, ...] = ()


@dataclass(frozen=True)
class LongerTermData:
    """4h context."""
    ema20: float = 0.0
    ema50: float = 0.0
    atr3: float = 0.0
    atr14: float = 0.0
    current_volume: float = 0.0
    average_volume: float = 0.0
    macd_values: Tuple[float, ...] = ()
    rsi14_values: Tuple[float, ...] = ()


@dataclass(frozen=True)
class LevelPoint:
    price: float
    index: int


@dataclass(frozen=True)
class SupportResistanceLevel:
    price: float
    strength: int      # touch count
    score: float       # recency-weighted touches
    distance: float    # % from current price, >= 0
    is_support: bool


@dataclass(frozen=True)
class SupportResistanceTimeframe:
    supports: Tuple[SupportResistanceLevel, ...] = ()
    resistances: Tuple[SupportResistanceLevel, ...] = ()


@dataclass(frozen=True)
class SupportResistanceConfluence:
    base_timeframe: str
    supports: Tuple[SupportResistanceLevel, ...] = ()
    resistances: Tuple[SupportResistanceLevel, ...] = ()


@dataclass(frozen=True)
class SupportResistanceSummary:
    timeframes: Dict[str, SupportResistanceTimeframe] = field(default_factory=dict)
    confluence: Optional[SupportResistanceConfluence] = None


@dataclass(frozen=True)
class MarketSnapshot:
    symbol: str
    current_price: float
    price_change_1h: float   # %
    price_change_4h: float   # %
    current_ema20: float
    current_macd: float
    current_rsi7: float
    open_interest: OIData
    funding_rate: float
    intraday: IntradaySeries
    longer_term: LongerTermData
    support_resistance: SupportResistanceSummary
    oi_top: Optional[OITopData] = None
