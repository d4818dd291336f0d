from __future__ import annotations

from dataclasses import replace
from typing import Callable, Dict, List, Sequence, Tuple

from market_engine.data.models import Candle, LevelPoint, SupportResistanceLevel

SR_LOOKBACK = 120
EXTREMUM_WINDOW = 3
DUPLICATE_TOLERANCE = 0.001
TOUCH_TOLERANCE = 0.002
MERGE_TOLERANCE = 0.002
MAX_LEVELS = 5


def recency_weight(total: int, index: int) -> float:
    """Linear ramp: 0.5 for the oldest candle up to 1.0 for the newest."""
    if total <= 1:
        return 1.0
    index = min(max(index, 0), total - 1)
    return 0.5 + 0.5 * (index / (total - 1))


def _find_extrema(
    candles: Sequence[Candle],
    value: Callable[[Candle], float],
    beats: Callable[[float, float], bool],
    window: int = EXTREMUM_WINDOW,
) -> List[LevelPoint]:
    if len(candles) < 3:
        return []

    points: List[LevelPoint] = []
    for i in range(window, len(candles) - window):
        cur = value(candles[i])
        if any(beats(value(candles[j]), cur) for j in range(i - window, i + window + 1) if j != i):
            continue
        # Near-duplicate of an extremum already taken.
        if cur != 0 and any(abs(p.price - cur) / cur < DUPLICATE_TOLERANCE for p in points):
            continue
        points.append(LevelPoint(price=cur, index=i))
    return points


def find_local_minima(candles: Sequence[Candle]) -> List[LevelPoint]:
    """Lows with no strictly lower low within +-3 candles."""
    return _find_extrema(candles, lambda c: c.l, lambda other, cur: other < cur)


def find_local_maxima(candles: Sequence[Candle]) -> List[LevelPoint]:
    """Highs with no strictly higher high within +-3 candles."""
    return _find_extrema(candles, lambda c: c.h, lambda other, cur: other > cur)


def _touch_stats(
    candles: Sequence[Candle],
    points: List[LevelPoint],
    value: Callable[[Candle], float],
) -> Dict[int, Tuple[int, float]]:
    total = len(candles)
    stats: Dict[int, Tuple[int, float]] = {}
    for p in points:
        touches = 1
        weight = recency_weight(total, p.index)
        if p.price > 0:
            lo = p.price * (1 - TOUCH_TOLERANCE)
            hi = p.price * (1 + TOUCH_TOLERANCE)
            for idx, candle in enumerate(candles):
                if idx == p.index:
                    continue
                if lo <= value(candle) <= hi:
                    touches += 1
                    weight += recency_weight(total, idx)
        stats[p.index] = (touches, weight)
    return stats


def calculate_support_resistance_levels(
    candles: Sequence[Candle],
    lookback: int = SR_LOOKBACK,
) -> Tuple[List[SupportResistanceLevel], List[SupportResistanceLevel]]:
    """
    Supports/resistances for one timeframe.

    - extrema are searched in the last `lookback` candles only
    - strength counts the extremum itself plus every candle touching it within +-0.2%
    - score sums the recency weights of those touches
    - supports must sit below the last close, resistances above it
    Result is merged, distance-annotated and ranked (top 5 per side, nearest first).
    """
    if not candles:
        return [], []

    recent = candles[-lookback:] if len(candles) > lookback else candles
    current_price = recent[-1].c

    minima = find_local_minima(recent)
    maxima = find_local_maxima(recent)
    support_stats = _touch_stats(recent, minima, lambda c: c.l)
    resistance_stats = _touch_stats(recent, maxima, lambda c: c.h)

    supports = [
        SupportResistanceLevel(
            price=p.price,
            strength=support_stats[p.index][0],
            score=support_stats[p.index][1],
            distance=0.0,
            is_support=True,
        )
        for p in minima
        if p.price < current_price
    ]
    resistances = [
        SupportResistanceLevel(
            price=p.price,
            strength=resistance_stats[p.index][0],
            score=resistance_stats[p.index][1],
            distance=0.0,
            is_support=False,
        )
        for p in maxima
        if p.price > current_price
    ]

    supports = merge_nearby_levels(supports, MERGE_TOLERANCE)
    resistances = merge_nearby_levels(resistances, MERGE_TOLERANCE)

    supports = update_level_distances(supports, current_price, True)
    resistances = update_level_distances(resistances, current_price, False)

    return sort_and_filter_levels(supports, True), sort_and_filter_levels(resistances, False)


def _merged_price(a: SupportResistanceLevel, b: SupportResistanceLevel) -> float:
    total = a.score + b.score
    if total > 0:
        return (a.price * a.score + b.price * b.score) / total
    total = a.strength + b.strength
    if total > 0:
        return (a.price * a.strength + b.price * b.strength) / total
    return (a.price + b.price) / 2.0


def merge_nearby_levels(
    levels: Sequence[SupportResistanceLevel],
    tolerance: float = MERGE_TOLERANCE,
) -> List[SupportResistanceLevel]:
    """
    Fold price-sorted neighbours within `tolerance` (relative to their mean) into one level.
    The running merged level is compared against the next one, so a chain of close levels
    collapses into a single entry.
    """
    if not levels:
        return []

    ordered = sorted(levels, key=lambda x: x.price)
    merged: List[SupportResistanceLevel] = []
    current = replace(ordered[0], distance=0.0)

    for lvl in ordered[1:]:
        denom = (current.price + lvl.price) / 2.0
        if denom == 0:
            denom = 1.0
        if abs(lvl.price - current.price) / denom <= tolerance:
            current = replace(
                current,
                price=_merged_price(current, lvl),
                strength=current.strength + lvl.strength,
                score=current.score + lvl.score,
            )
        else:
            merged.append(current)
            current = replace(lvl, distance=0.0)

    merged.append(current)
    return merged


def update_level_distances(
    levels: Sequence[SupportResistanceLevel],
    current_price: float,
    is_support: bool,
) -> List[SupportResistanceLevel]:
    """Distance in % of `current_price`, always >= 0. Unchanged when the price is not positive."""
    if current_price <= 0:
        return list(levels)

    out: List[SupportResistanceLevel] = []
    for lvl in levels:
        if is_support:
            d = abs((current_price - lvl.price) / current_price * 100.0)
        else:
            d = abs((lvl.price - current_price) / current_price * 100.0)
        out.append(replace(lvl, distance=d))
    return out


def _nearer_price_key(lvl: SupportResistanceLevel, is_support: bool) -> float:
    # Supports: higher price first. Resistances: lower price first.
    return -lvl.price if is_support else lvl.price


def sort_and_filter_levels(
    levels: Sequence[SupportResistanceLevel],
    is_support: bool,
    limit: int = MAX_LEVELS,
) -> List[SupportResistanceLevel]:
    """
    Rank by score desc, strength desc, distance asc, then the price nearer the market.
    Keep the top `limit`, then present them nearest first.
    """
    if not levels:
        return []

    ranked = sorted(
        levels,
        key=lambda x: (-x.score, -x.strength, x.distance, _nearer_price_key(x, is_support)),
    )[:limit]

    return sorted(ranked, key=lambda x: (x.distance, _nearer_price_key(x, is_support)))
