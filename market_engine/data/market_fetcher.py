from __future__ import annotations

from typing import List

import requests

from market_engine.data.models import Candle
from market_engine.exchange.base import ExchangeClient


class KlineFetchError(RuntimeError):
    def __init__(self, symbol: str, interval: str, cause: str) -> None:
        super().__init__(f"Failed to fetch {interval} klines for {symbol}: {cause}")
        self.symbol = symbol
        self.interval = interval


class MarketFetcher:
    def __init__(self, client: ExchangeClient) -> None:
        self.client = client

    def get_candles(self, symbol: str, interval: str, limit: int = 150) -> List[Candle]:
        """Kline history is load-bearing: any failure, including an empty result, is raised."""
        try:
            candles = self.client.fetch_ohlcv(symbol=symbol, interval=interval, limit=limit)
        except (requests.RequestException, ValueError, KeyError, TypeError) as e:
            raise KlineFetchError(symbol, interval, str(e)) from e

        if not candles:
            raise KlineFetchError(symbol, interval, "empty response")
        return candles
