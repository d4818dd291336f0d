from __future__ import annotations

import os
from dataclasses import dataclass
from typing import FrozenSet, List, Optional

from market_engine.utils.symbols import normalize


def _getenv(name: str, default: Optional[str] = None) -> str:
    val = os.getenv(name, default)
    if val is None:
        raise RuntimeError(f"Missing required env var: {name}")
    return val


def _split_csv(s: str) -> List[str]:
    return [x.strip() for x in s.split(",") if x.strip()]


def _getbool(name: str, default: str = "false") -> bool:
    return _getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class AppConfig:
    app_env: str
    symbols: List[str]
    exchange: str
    scan_interval_sec: int

    # Open-interest eligibility; empty means every symbol is eligible.
    default_coins: FrozenSet[str]

    # Kline retrieval
    kline_limit: int
    http_timeout_sec: float
    include_htf_levels: bool

    # Open-interest bulk cache (hyperliquid)
    oi_cache_ttl_sec: float
    oi_bulk_timeout_sec: float

    # Multi-symbol fetch
    min_oi_value_musd: float
    fetch_workers: int

    @staticmethod
    def load() -> "AppConfig":
        symbols = [normalize(s) for s in _split_csv(_getenv("SYMBOLS", "BTCUSDT,ETHUSDT"))]
        coins = frozenset(normalize(s) for s in _split_csv(_getenv("DEFAULT_COINS", "")))

        return AppConfig(
            app_env=_getenv("APP_ENV", "dev"),
            symbols=symbols,
            exchange=_getenv("EXCHANGE", "binance").strip().lower(),
            scan_interval_sec=int(_getenv("SCAN_INTERVAL_SEC", "180")),
            default_coins=coins,
            kline_limit=int(_getenv("KLINE_LIMIT", "150")),
            http_timeout_sec=float(_getenv("HTTP_TIMEOUT_SEC", "10")),
            include_htf_levels=_getbool("INCLUDE_HTF_LEVELS"),
            oi_cache_ttl_sec=float(_getenv("OI_CACHE_TTL_SEC", "30")),
            oi_bulk_timeout_sec=float(_getenv("OI_BULK_TIMEOUT_SEC", "30")),
            min_oi_value_musd=float(_getenv("MIN_OI_VALUE_MUSD", "15")),
            fetch_workers=max(1, int(_getenv("FETCH_WORKERS", "4"))),
        )
