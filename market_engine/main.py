from __future__ import annotations

import time

from market_engine.config import AppConfig
from market_engine.report import format_snapshot
from market_engine.snapshot import MarketEngine
from market_engine.utils.logger import setup_logger


def main() -> None:
    log = setup_logger()
    cfg = AppConfig.load()

    engine = MarketEngine(cfg)

    while True:
        try:
            engine.router.get_client()
            snapshots = engine.get_many(cfg.symbols, cfg.exchange)

            for snap in snapshots.values():
                sr = snap.support_resistance
                log.info(
                    "SNAPSHOT %s | ex=%s | price=%s | chg1h=%.2f%% | chg4h=%.2f%% | ema20=%.3f | rsi7=%.2f | funding=%s | oi=%s | sr_tfs=%s | confluence=%s",
                    snap.symbol,
                    cfg.exchange,
                    snap.current_price,
                    snap.price_change_1h,
                    snap.price_change_4h,
                    snap.current_ema20,
                    snap.current_rsi7,
                    snap.funding_rate,
                    snap.open_interest.latest,
                    ",".join(sr.timeframes.keys()),
                    sr.confluence.base_timeframe if sr.confluence else None,
                )
                log.debug("MARKET_BLOCK %s\n%s", snap.symbol, format_snapshot(snap))

            time.sleep(cfg.scan_interval_sec)

        except Exception as e:
            log.exception("Main loop error: %s", e)
            time.sleep(10)


if __name__ == "__main__":
    main()
