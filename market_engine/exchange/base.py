from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List

from market_engine.data.models import Candle


class ExchangeClient(ABC):
    name: str

    @abstractmethod
    def ping(self) -> bool:
        """Return True if the exchange is reachable."""
        raise NotImplementedError

    @abstractmethod
    def fetch_ohlcv(self, symbol: str, interval: str, limit: int = 150) -> List[Candle]:
        """Most recent `limit` candles, oldest -> newest. Raises on transport or decoding errors."""
        raise NotImplementedError

    @abstractmethod
    def fetch_open_interest(self, symbol: str) -> float:
        raise NotImplementedError

    @abstractmethod
    def fetch_funding_rate(self, symbol: str) -> float:
        raise NotImplementedError


class OpenInterestTableSource(ABC):
    name: str

    @abstractmethod
    def fetch_open_interest_table(self) -> Dict[str, float]:
        """Whole-market open interest keyed by normalized symbol (e.g. BTCUSDT)."""
        raise NotImplementedError
