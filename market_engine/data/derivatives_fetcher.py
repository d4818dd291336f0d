from __future__ import annotations

from typing import FrozenSet, Iterable, Optional

import requests

from market_engine.data.cache import OpenInterestCache, OI_AVERAGE_FACTOR
from market_engine.data.models import OIData, ZERO_OI
from market_engine.exchange.base import ExchangeClient
from market_engine.utils.logger import get_logger
from market_engine.utils.symbols import normalize

logger = get_logger(__name__)

# Enrichment failures degrade to zero values instead of failing the snapshot.
_ENRICHMENT_ERRORS = (requests.RequestException, ValueError, KeyError, TypeError)


class DerivativesFetcher:
    def __init__(
        self,
        client: ExchangeClient,
        oi_cache: Optional[OpenInterestCache] = None,
        default_coins: Iterable[str] = (),
    ) -> None:
        self.client = client
        self.oi_cache = oi_cache
        self.default_coins: FrozenSet[str] = frozenset(normalize(s) for s in default_coins)

    def is_oi_eligible(self, symbol: str) -> bool:
        # No allow-set configured means every symbol is eligible.
        if not self.default_coins:
            return True
        return normalize(symbol) in self.default_coins

    def get_open_interest(self, symbol: str, exchange: str = "binance") -> OIData:
        if not self.is_oi_eligible(symbol):
            return ZERO_OI

        try:
            if exchange == "hyperliquid" and self.oi_cache is not None:
                return self.oi_cache.get(symbol)
            oi = self.client.fetch_open_interest(symbol)
            return OIData(latest=oi, average=oi * OI_AVERAGE_FACTOR)
        except _ENRICHMENT_ERRORS as e:
            logger.warning("OI_UNAVAILABLE | %s | ex=%s | %s", symbol, exchange, e)
            return ZERO_OI

    def get_funding_rate(self, symbol: str) -> float:
        try:
            return self.client.fetch_funding_rate(symbol)
        except _ENRICHMENT_ERRORS as e:
            logger.warning("FUNDING_UNAVAILABLE | %s | %s", symbol, e)
            return 0.0
