from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from market_engine.analysis.confluence import calculate_support_resistance_summary
from market_engine.analysis.indicators import ema, macd, rsi
from market_engine.analysis.series import calculate_intraday_series, calculate_longer_term_data
from market_engine.config import AppConfig
from market_engine.data.cache import OpenInterestCache
from market_engine.data.derivatives_fetcher import DerivativesFetcher
from market_engine.data.market_fetcher import KlineFetchError, MarketFetcher
from market_engine.data.models import Candle, MarketSnapshot, OITopData
from market_engine.exchange.router import ExchangeRouter
from market_engine.utils.logger import get_logger
from market_engine.utils.symbols import normalize
from market_engine.utils.timeframes import HTF_EXTRA_TIMEFRAMES, SNAPSHOT_TIMEFRAMES

logger = get_logger(__name__)

MIN_KLINES = 150
CANDLES_PER_HOUR_3M = 20


def _pct_change(current: float, previous: float) -> float:
    if previous <= 0:
        return 0.0
    return (current - previous) / previous * 100.0


def price_change_1h(candles_3m: Sequence[Candle]) -> float:
    """Change vs the close 20 three-minute candles back. 0.0 with fewer than 21 candles."""
    if len(candles_3m) < CANDLES_PER_HOUR_3M + 1:
        return 0.0
    return _pct_change(candles_3m[-1].c, candles_3m[-(CANDLES_PER_HOUR_3M + 1)].c)


def price_change_4h(current_price: float, candles_4h: Sequence[Candle]) -> float:
    """Change vs the previous 4h close. 0.0 with fewer than 2 candles."""
    if len(candles_4h) < 2:
        return 0.0
    return _pct_change(current_price, candles_4h[-2].c)


def build_snapshot(
    symbol: str,
    exchange: str,
    market: MarketFetcher,
    deriv: DerivativesFetcher,
    include_htf_levels: bool = False,
    kline_limit: int = MIN_KLINES,
) -> MarketSnapshot:
    symbol = normalize(symbol)
    limit = max(kline_limit, MIN_KLINES)

    timeframes = SNAPSHOT_TIMEFRAMES + (HTF_EXTRA_TIMEFRAMES if include_htf_levels else ())
    candles: Dict[str, List[Candle]] = {}
    for tf in timeframes:
        # KlineFetchError propagates: no partial snapshot.
        candles[tf.name] = market.get_candles(symbol, tf.name, limit=limit)

    candles_3m = candles["3m"]
    candles_4h = candles["4h"]

    current_price = candles_3m[-1].c

    return MarketSnapshot(
        symbol=symbol,
        current_price=current_price,
        price_change_1h=price_change_1h(candles_3m),
        price_change_4h=price_change_4h(current_price, candles_4h),
        current_ema20=ema(candles_3m, 20),
        current_macd=macd(candles_3m),
        current_rsi7=rsi(candles_3m, 7),
        open_interest=deriv.get_open_interest(symbol, exchange),
        funding_rate=deriv.get_funding_rate(symbol),
        intraday=calculate_intraday_series(candles_3m),
        longer_term=calculate_longer_term_data(candles_4h),
        support_resistance=calculate_support_resistance_summary(candles, current_price),
    )


class MarketEngine:
    """
    Entry point for snapshot construction.
    The open-interest cache is the only state shared across calls.
    """

    def __init__(
        self,
        cfg: AppConfig,
        router: Optional[ExchangeRouter] = None,
        oi_cache: Optional[OpenInterestCache] = None,
    ) -> None:
        self.cfg = cfg
        self.router = router or ExchangeRouter(cfg)

        if oi_cache is None:
            source = self.router.get_open_interest_source("hyperliquid")
            if source is not None:
                oi_cache = OpenInterestCache(source.fetch_open_interest_table, ttl_sec=cfg.oi_cache_ttl_sec)
        self.oi_cache = oi_cache

        self.market = MarketFetcher(self.router.client)
        self.deriv = DerivativesFetcher(self.router.client, self.oi_cache, cfg.default_coins)

    def _exchange(self, exchange: Optional[str]) -> str:
        name = (exchange or self.cfg.exchange).lower()
        # Validates the name.
        self.router.get_open_interest_source(name)
        return name

    def get(self, symbol: str, exchange: Optional[str] = None) -> MarketSnapshot:
        return build_snapshot(
            symbol,
            self._exchange(exchange),
            self.market,
            self.deriv,
            include_htf_levels=self.cfg.include_htf_levels,
            kline_limit=self.cfg.kline_limit,
        )

    def _passes_liquidity(self, snap: MarketSnapshot) -> bool:
        min_value = self.cfg.min_oi_value_musd
        if min_value <= 0 or snap.current_price <= 0:
            return True
        oi_value_musd = snap.open_interest.latest * snap.current_price / 1_000_000
        if oi_value_musd < min_value:
            logger.info(
                "SKIP_LOW_OI | %s | oi_value=%.2fM < %.2fM | oi=%.0f x price=%.4f",
                snap.symbol,
                oi_value_musd,
                min_value,
                snap.open_interest.latest,
                snap.current_price,
            )
            return False
        return True

    def get_many(
        self,
        symbols: Iterable[str],
        exchange: Optional[str] = None,
        keep: Iterable[str] = (),
        oi_top: Optional[Mapping[str, OITopData]] = None,
    ) -> Dict[str, MarketSnapshot]:
        """
        Snapshots for several symbols, fetched in parallel.

        - a symbol whose snapshot fails is logged and left out
        - symbols below the open-interest value floor are left out unless listed in `keep`
          (e.g. open positions, which still need data to be managed)
        - `oi_top` rows (keyed by symbol, any spelling) are attached to matching snapshots
        - the result follows input order, independent of completion order
        """
        ranking = {normalize(s): row for s, row in (oi_top or {}).items()}
        ex = self._exchange(exchange)
        ordered: List[str] = []
        for s in symbols:
            n = normalize(s)
            if n not in ordered:
                ordered.append(n)
        kept = {normalize(s) for s in keep}

        if not ordered:
            return {}

        workers = min(self.cfg.fetch_workers, len(ordered))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [(sym, pool.submit(self.get, sym, ex)) for sym in ordered]

            out: Dict[str, MarketSnapshot] = {}
            for sym, fut in futures:
                try:
                    snap = fut.result()
                except KlineFetchError as e:
                    logger.warning("SNAPSHOT_FAILED | %s | %s", sym, e)
                    continue

                if sym not in kept and not self._passes_liquidity(snap):
                    continue
                if sym in ranking:
                    snap = replace(snap, oi_top=ranking[sym])
                out[sym] = snap

        return out
