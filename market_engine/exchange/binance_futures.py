from __future__ import annotations

import requests
from typing import Any, List

from market_engine.config import AppConfig
from market_engine.data.models import Candle
from market_engine.exchange.base import ExchangeClient


def _parse_kline_row(row: Any) -> Candle:
    # row: [open_time, o, h, l, c, v, close_time, ...]
    if not isinstance(row, (list, tuple)) or len(row) < 7:
        raise ValueError(f"Unexpected kline row: {row!r}")
    return Candle(
        ts=int(row[0]),
        o=float(row[1]),
        h=float(row[2]),
        l=float(row[3]),
        c=float(row[4]),
        v=float(row[5]),
        close_ts=int(row[6]),
    )


class BinanceFuturesClient(ExchangeClient):
    name = "binance"

    def __init__(self, cfg: AppConfig) -> None:
        self.cfg = cfg
        self.base = "https://fapi.binance.com"
        self.timeout = cfg.http_timeout_sec

    def ping(self) -> bool:
        try:
            r = requests.get(f"{self.base}/fapi/v1/ping", timeout=5)
            return r.status_code == 200
        except requests.RequestException:
            return False

    def fetch_ohlcv(self, symbol: str, interval: str, limit: int = 150) -> List[Candle]:
        url = f"{self.base}/fapi/v1/klines"
        params = {"symbol": symbol, "interval": interval, "limit": limit}
        r = requests.get(url, params=params, timeout=self.timeout)
        r.raise_for_status()
        data = r.json()
        if not isinstance(data, list):
            raise ValueError(f"Unexpected klines payload for {symbol} {interval}: {data!r}")
        return [_parse_kline_row(row) for row in data]

    def fetch_open_interest(self, symbol: str) -> float:
        # USD-M endpoint returns contracts (base-asset units).
        r = requests.get(f"{self.base}/fapi/v1/openInterest", params={"symbol": symbol}, timeout=self.timeout)
        r.raise_for_status()
        return float(r.json()["openInterest"])

    def fetch_funding_rate(self, symbol: str) -> float:
        r = requests.get(f"{self.base}/fapi/v1/premiumIndex", params={"symbol": symbol}, timeout=self.timeout)
        r.raise_for_status()
        return float(r.json()["lastFundingRate"])
