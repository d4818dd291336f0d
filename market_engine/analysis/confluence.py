from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from market_engine.analysis.levels import (
    calculate_support_resistance_levels,
    sort_and_filter_levels,
    update_level_distances,
    SR_LOOKBACK,
)
from market_engine.data.models import (
    Candle,
    SupportResistanceConfluence,
    SupportResistanceLevel,
    SupportResistanceSummary,
    SupportResistanceTimeframe,
)
from market_engine.utils.logger import get_logger
from market_engine.utils.timeframes import CONFLUENCE_BASE_ORDER, SR_TIMEFRAMES

logger = get_logger(__name__)

CONFLUENCE_TOLERANCE = 0.002
BASE_WEIGHT = 0.5

# Longer timeframes count more. Iteration order also decides which match wins.
TIMEFRAME_WEIGHTS: Tuple[Tuple[str, float], ...] = (
    ("3m", 0.8),
    ("15m", 1.0),
    ("1h", 1.2),
    ("4h", 1.4),
    ("12h", 1.6),
    ("1d", 1.8),
)


@dataclass(frozen=True)
class WeightedLevelSet:
    levels: Tuple[SupportResistanceLevel, ...]
    weight: float
    timeframe: str = ""


def _round_half_away(x: float) -> int:
    return int(math.floor(abs(x) + 0.5)) * (1 if x >= 0 else -1)


def find_confluence_levels(
    base: Sequence[SupportResistanceLevel],
    sets: Sequence[WeightedLevelSet],
    tolerance: float,
    current_price: float,
    is_support: bool,
) -> List[SupportResistanceLevel]:
    """
    Keep base levels corroborated by at least one other timeframe.

    The base level is discounted to half its score/strength. The first set (in the
    given order) with a level inside `tolerance` contributes that level's score and
    strength scaled by the set weight; later sets are not consulted for that base level.
    """
    if not base or not sets:
        return []

    result: List[SupportResistanceLevel] = []
    for level in base:
        score = level.score * BASE_WEIGHT
        strength = _round_half_away(level.strength * BASE_WEIGHT)

        matched = False
        for ws in sets:
            for other in ws.levels:
                denom = (level.price + other.price) / 2.0
                if denom == 0:
                    continue
                if abs(level.price - other.price) / denom <= tolerance:
                    matched = True
                    score += other.score * ws.weight
                    strength += _round_half_away(other.strength * ws.weight)
                    logger.debug(
                        "CONFLUENCE_MATCH | %s | base=%.4f | %s=%.4f | weight=%.1f",
                        "support" if is_support else "resistance",
                        level.price,
                        ws.timeframe or "?",
                        other.price,
                        ws.weight,
                    )
                    break
            if matched:
                break

        if matched:
            result.append(replace(level, score=score, strength=strength))

    # Base levels were sided against the base timeframe's own close.
    if current_price > 0:
        if is_support:
            result = [x for x in result if x.price < current_price]
        else:
            result = [x for x in result if x.price > current_price]

    if not result:
        return []

    result = update_level_distances(result, current_price, is_support)
    return sort_and_filter_levels(result, is_support)


def calculate_support_resistance_summary(
    candles_by_timeframe: Mapping[str, Sequence[Candle]],
    current_price: float,
    lookback: int = SR_LOOKBACK,
) -> SupportResistanceSummary:
    """
    Per-timeframe levels for every known timeframe with data, plus confluence of the
    shortest available base timeframe against the others.
    """
    timeframes: Dict[str, SupportResistanceTimeframe] = {}
    for tf in SR_TIMEFRAMES:
        candles = candles_by_timeframe.get(tf.name)
        if not candles:
            continue

        supports, resistances = calculate_support_resistance_levels(candles, lookback)
        if not supports and not resistances:
            continue

        timeframes[tf.name] = SupportResistanceTimeframe(
            supports=tuple(supports),
            resistances=tuple(resistances),
        )

    base_name: Optional[str] = next((n for n in CONFLUENCE_BASE_ORDER if n in timeframes), None)
    if base_name is None:
        return SupportResistanceSummary(timeframes=timeframes)

    base = timeframes[base_name]
    support_sets: List[WeightedLevelSet] = []
    resistance_sets: List[WeightedLevelSet] = []
    for name, weight in TIMEFRAME_WEIGHTS:
        if name == base_name or name not in timeframes:
            continue
        tf_levels = timeframes[name]
        support_sets.append(WeightedLevelSet(levels=tf_levels.supports, weight=weight, timeframe=name))
        resistance_sets.append(WeightedLevelSet(levels=tf_levels.resistances, weight=weight, timeframe=name))

    if not support_sets:
        return SupportResistanceSummary(timeframes=timeframes)

    confluence = SupportResistanceConfluence(
        base_timeframe=base_name,
        supports=tuple(find_confluence_levels(base.supports, support_sets, CONFLUENCE_TOLERANCE, current_price, True)),
        resistances=tuple(
            find_confluence_levels(base.resistances, resistance_sets, CONFLUENCE_TOLERANCE, current_price, False)
        ),
    )
    return SupportResistanceSummary(timeframes=timeframes, confluence=confluence)
