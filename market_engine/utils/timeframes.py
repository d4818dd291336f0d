from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class TF:
    name: str
    seconds: int


TF_3M = TF("3m", 3 * 60)
TF_15M = TF("15m", 15 * 60)
TF_1H = TF("1h", 60 * 60)
TF_4H = TF("4h", 4 * 60 * 60)
TF_12H = TF("12h", 12 * 60 * 60)
TF_1D = TF("1d", 24 * 60 * 60)

# Shortest first. Support/resistance output and rendering follow this order.
SR_TIMEFRAMES: Tuple[TF, ...] = (TF_3M, TF_15M, TF_1H, TF_4H, TF_12H, TF_1D)

# Snapshot always fetches these; 12h/1d are optional extras.
SNAPSHOT_TIMEFRAMES: Tuple[TF, ...] = (TF_3M, TF_15M, TF_1H, TF_4H)
HTF_EXTRA_TIMEFRAMES: Tuple[TF, ...] = (TF_12H, TF_1D)

# Candidates for the confluence base timeframe, in preference order.
CONFLUENCE_BASE_ORDER: Tuple[str, ...] = ("3m", "15m", "1h", "4h")
