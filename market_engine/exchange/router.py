from __future__ import annotations

from typing import Optional

from market_engine.config import AppConfig
from market_engine.exchange.base import ExchangeClient, OpenInterestTableSource
from market_engine.exchange.binance_futures import BinanceFuturesClient
from market_engine.exchange.hyperliquid import HyperliquidClient

SUPPORTED_EXCHANGES = ("binance", "hyperliquid")


class ExchangeRouter:
    """
    Klines and funding always come from Binance futures.
    The exchange selector only changes where open interest is read from.
    """

    def __init__(self, cfg: AppConfig) -> None:
        self.cfg = cfg
        self.client: ExchangeClient = BinanceFuturesClient(cfg)
        self._oi_sources = {"hyperliquid": HyperliquidClient(cfg)}

    def get_client(self) -> ExchangeClient:
        if self.client.ping():
            return self.client
        raise RuntimeError(f"Exchange unavailable: {self.client.name} ping failed.")

    def get_open_interest_source(self, exchange: str) -> Optional[OpenInterestTableSource]:
        name = (exchange or "").lower()
        if name not in SUPPORTED_EXCHANGES:
            raise ValueError(f"Unsupported exchange: {exchange}")
        return self._oi_sources.get(name)
