from __future__ import annotations

from typing import Any, Dict

import requests

from market_engine.config import AppConfig
from market_engine.exchange.base import OpenInterestTableSource
from market_engine.utils.logger import get_logger
from market_engine.utils.symbols import normalize

logger = get_logger(__name__)


class OpenInterestPayloadError(ValueError):
    """Bulk open-interest response could not be fetched or decoded."""


def parse_open_interest_table(payload: Any) -> Dict[str, float]:
    """
    Decode a `metaAndAssetCtxs` response: [{"universe": [{"name": ...}, ...]}, [{"openInterest": "..."}, ...]].
    Both arrays are parallel. Structural problems raise; individual malformed entries are skipped.
    """
    if not isinstance(payload, list) or len(payload) < 2:
        raise OpenInterestPayloadError("hyperliquid oi: response is not a [meta, assetCtxs] pair")

    meta = payload[0]
    if not isinstance(meta, dict):
        raise OpenInterestPayloadError("hyperliquid oi: meta is not an object")

    universe = meta.get("universe")
    if not isinstance(universe, list):
        raise OpenInterestPayloadError("hyperliquid oi: universe is not an array")

    asset_ctxs = payload[1]
    if not isinstance(asset_ctxs, list):
        raise OpenInterestPayloadError("hyperliquid oi: assetCtxs is not an array")

    if len(universe) != len(asset_ctxs):
        raise OpenInterestPayloadError(
            f"hyperliquid oi: universe/assetCtxs length mismatch ({len(universe)} != {len(asset_ctxs)})"
        )

    table: Dict[str, float] = {}
    skipped = 0
    for item, ctx in zip(universe, asset_ctxs):
        if not isinstance(item, dict) or not isinstance(ctx, dict):
            skipped += 1
            continue
        name = item.get("name")
        raw = ctx.get("openInterest")
        if not isinstance(name, str) or not isinstance(raw, str):
            skipped += 1
            continue
        try:
            oi = float(raw)
        except ValueError:
            skipped += 1
            continue
        table[normalize(name + "USDT")] = oi

    if skipped:
        logger.debug("HL_OI_PARSE | skipped=%d kept=%d", skipped, len(table))
    return table


class HyperliquidClient(OpenInterestTableSource):
    name = "hyperliquid"

    def __init__(self, cfg: AppConfig) -> None:
        self.cfg = cfg
        self.url = "https://api.hyperliquid.xyz/info"
        self.timeout = cfg.oi_bulk_timeout_sec

    def fetch_open_interest_table(self) -> Dict[str, float]:
        try:
            r = requests.post(self.url, json={"type": "metaAndAssetCtxs"}, timeout=self.timeout)
        except requests.RequestException as e:
            raise OpenInterestPayloadError(f"hyperliquid oi: request failed: {e}") from e

        if r.status_code != 200:
            raise OpenInterestPayloadError(f"hyperliquid oi: status {r.status_code}: {r.text[:200]}")

        try:
            payload = r.json()
        except ValueError as e:
            raise OpenInterestPayloadError(f"hyperliquid oi: invalid json: {e}") from e

        return parse_open_interest_table(payload)
