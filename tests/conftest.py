import io
import logging
import math

import pytest

from market_engine.data.models import Candle
from market_engine.utils.logger import LOGGER_NAME, setup_logger


def _candle(i, close, high, low, volume=1.0):
    ts = i * 60_000
    return Candle(ts=ts, o=close, h=high, l=low, c=close, v=volume, close_ts=ts + 59_999)


@pytest.fixture
def make_candles():
    """Candles from closes; high/low sit `spread` away from the close."""

    def _make(closes, spread=0.0, volumes=None):
        return [
            _candle(i, c, c + spread, c - spread, volumes[i] if volumes else 1.0)
            for i, c in enumerate(closes)
        ]

    return _make


@pytest.fixture
def single_support_candles():
    """
    120 candles in a steady uptrend with one dip to 50000 at index 10,
    revisited (within 0.2%) at indices 40 and 70. Last close is 51490.
    """
    dips = {10: 50000.0, 40: 50010.0, 70: 50020.0}
    out = []
    for i in range(120):
        low = dips.get(i, 50200.0 + 10 * i)
        out.append(_candle(i, 50300.0 + 10 * i, 50400.0 + 10 * i, low))
    return out


@pytest.fixture
def wave_candles():
    """Oscillating series with a slow drift, enough structure for levels on both sides."""

    def _make(n=150, base=100.0, amp=5.0, period=12.0, drift=0.0):
        out = []
        for i in range(n):
            c = base + amp * math.sin(2 * math.pi * i / period) + drift * i
            out.append(_candle(i, c, c + 0.3, c - 0.3, 10.0 + (i % 5)))
        return out

    return _make


@pytest.fixture
def log_stream():
    """Package logger at DEBUG writing into a buffer; restored afterwards."""
    buf = io.StringIO()
    setup_logger(level="DEBUG", fmt="text", stream=buf)
    yield buf
    root = logging.getLogger(LOGGER_NAME)
    for h in list(root.handlers):
        root.removeHandler(h)
    root.setLevel(logging.NOTSET)
    root.propagate = True
