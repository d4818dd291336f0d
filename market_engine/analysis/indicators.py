from __future__ import annotations

from typing import List, Optional, Sequence

from market_engine.data.models import Candle

MACD_FAST = 12
MACD_SLOW = 26


def ema(candles: Sequence[Candle], period: int) -> float:
    """
    EMA seeded with the SMA of the first `period` closes, then k = 2/(period+1).
    Returns 0.0 when fewer than `period` candles are available.
    """
    if period <= 0 or len(candles) < period:
        return 0.0

    value = _sma_seed(candles, period)
    k = 2.0 / (period + 1)
    for c in candles[period:]:
        value = (c.c - value) * k + value
    return value


def macd(candles: Sequence[Candle]) -> float:
    """EMA12 - EMA26 (no signal line). 0.0 below 26 candles."""
    if len(candles) < MACD_SLOW:
        return 0.0
    return ema(candles, MACD_FAST) - ema(candles, MACD_SLOW)


def rsi(candles: Sequence[Candle], period: int) -> float:
    """
    Wilder RSI. Initial averages come from the first `period` deltas.
    100.0 when the average loss is zero, 0.0 when len(candles) <= period.
    """
    if period <= 0 or len(candles) <= period:
        return 0.0

    gains = 0.0
    losses = 0.0
    for i in range(1, period + 1):
        change = candles[i].c - candles[i - 1].c
        if change > 0:
            gains += change
        else:
            losses -= change

    avg_gain = gains / period
    avg_loss = losses / period
    for i in range(period + 1, len(candles)):
        avg_gain, avg_loss = _wilder_step(avg_gain, avg_loss, candles[i].c - candles[i - 1].c, period)

    return _rsi_from_averages(avg_gain, avg_loss)


def atr(candles: Sequence[Candle], period: int) -> float:
    """Wilder ATR over true ranges. 0.0 when len(candles) <= period."""
    if period <= 0 or len(candles) <= period:
        return 0.0

    trs = [0.0] * len(candles)
    for i in range(1, len(candles)):
        trs[i] = true_range(candles[i], candles[i - 1].c)

    value = sum(trs[1 : period + 1]) / period
    for i in range(period + 1, len(candles)):
        value = (value * (period - 1) + trs[i]) / period
    return value


def _sma_seed(candles: Sequence[Candle], period: int) -> float:
    # offsets from the first close: a flat series seeds to exactly that close
    base = candles[0].c
    return base + sum(c.c - base for c in candles[:period]) / period


def true_range(candle: Candle, prev_close: float) -> float:
    return max(candle.h - candle.l, abs(candle.h - prev_close), abs(candle.l - prev_close))


def _wilder_step(avg_gain: float, avg_loss: float, change: float, period: int):
    if change > 0:
        avg_gain = (avg_gain * (period - 1) + change) / period
        avg_loss = (avg_loss * (period - 1)) / period
    else:
        avg_gain = (avg_gain * (period - 1)) / period
        avg_loss = (avg_loss * (period - 1) + (-change)) / period
    return avg_gain, avg_loss


def _rsi_from_averages(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))


# ---------------------------------------------------------------------------
# Per-index variants.
#
# values[i] equals the scalar function applied to candles[: i + 1], or None while
# the prefix is too short. The running state is carried forward instead of
# recomputing every prefix, with the same arithmetic in the same order.
# ---------------------------------------------------------------------------

def ema_values(candles: Sequence[Candle], period: int) -> List[Optional[float]]:
    out: List[Optional[float]] = [None] * len(candles)
    if period <= 0 or len(candles) < period:
        return out

    value = _sma_seed(candles, period)
    out[period - 1] = value
    k = 2.0 / (period + 1)
    for i in range(period, len(candles)):
        value = (candles[i].c - value) * k + value
        out[i] = value
    return out


def macd_values(candles: Sequence[Candle]) -> List[Optional[float]]:
    fast = ema_values(candles, MACD_FAST)
    slow = ema_values(candles, MACD_SLOW)
    out: List[Optional[float]] = [None] * len(candles)
    for i in range(MACD_SLOW - 1, len(candles)):
        out[i] = fast[i] - slow[i]  # type: ignore[operator]
    return out


def rsi_values(candles: Sequence[Candle], period: int) -> List[Optional[float]]:
    out: List[Optional[float]] = [None] * len(candles)
    if period <= 0 or len(candles) <= period:
        return out

    gains = 0.0
    losses = 0.0
    for i in range(1, period + 1):
        change = candles[i].c - candles[i - 1].c
        if change > 0:
            gains += change
        else:
            losses -= change

    avg_gain = gains / period
    avg_loss = losses / period
    out[period] = _rsi_from_averages(avg_gain, avg_loss)
    for i in range(period + 1, len(candles)):
        avg_gain, avg_loss = _wilder_step(avg_gain, avg_loss, candles[i].c - candles[i - 1].c, period)
        out[i] = _rsi_from_averages(avg_gain, avg_loss)
    return out
