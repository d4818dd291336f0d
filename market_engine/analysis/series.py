from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from market_engine.analysis.indicators import atr, ema, ema_values, macd_values, rsi_values
from market_engine.data.models import Candle, IntradaySeries, LongerTermData

SERIES_WINDOW = 10


def _tail(values: List[Optional[float]], start: int) -> Tuple[float, ...]:
    # Points whose prefix was too short are skipped, so the tuple may be shorter than the window.
    return tuple(v for v in values[start:] if v is not None)


def calculate_intraday_series(candles: Sequence[Candle], window: int = SERIES_WINDOW) -> IntradaySeries:
    """Last `window` closes plus EMA20 / MACD / RSI7 / RSI14 at each of those points."""
    start = max(0, len(candles) - window)
    return IntradaySeries(
        mid_prices=tuple(c.c for c in candles[start:]),
        ema20_values=_tail(ema_values(candles, 20), start),
        macd_values=_tail(macd_values(candles), start),
        rsi7_values=_tail(rsi_values(candles, 7), start),
        rsi14_values=_tail(rsi_values(candles, 14), start),
    )


def calculate_longer_term_data(candles: Sequence[Candle], window: int = SERIES_WINDOW) -> LongerTermData:
    """Whole-slice EMA/ATR/volume context plus the last `window` MACD and RSI14 points."""
    current_volume = 0.0
    average_volume = 0.0
    if candles:
        current_volume = candles[-1].v
        average_volume = sum(c.v for c in candles) / len(candles)

    start = max(0, len(candles) - window)
    return LongerTermData(
        ema20=ema(candles, 20),
        ema50=ema(candles, 50),
        atr3=atr(candles, 3),
        atr14=atr(candles, 14),
        current_volume=current_volume,
        average_volume=average_volume,
        macd_values=_tail(macd_values(candles), start),
        rsi14_values=_tail(rsi_values(candles, 14), start),
    )
