from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Sequence

from market_engine.data.models import MarketSnapshot, OITopData, SupportResistanceLevel
from market_engine.utils.timeframes import SR_TIMEFRAMES

LEVELS_SHOWN = 3
CAUTION_NOTE = "WARNING - Trading rule: do not chase longs into resistance, and do not chase shorts into support."


def format_float_list(values: Sequence[float]) -> str:
    return "[" + ", ".join(f"{v:.3f}" for v in values) + "]"


def format_levels(levels: Sequence[SupportResistanceLevel], limit: int = LEVELS_SHOWN) -> str:
    if not levels:
        return "-"
    return " | ".join(
        f"{lvl.price:.2f} (strength {lvl.strength}, score {lvl.score:.2f}, distance {lvl.distance:.2f}%)"
        for lvl in levels[:limit]
    )


def format_oi_top(top: OITopData) -> List[str]:
    """Ranking block; zero fields are left out."""
    lines = ["Open interest ranking:", ""]
    if top.rank > 0:
        lines.append(f"Rank: #{top.rank}")
    if top.oi_delta_value > 0:
        lines.append(f"OI change value: {top.oi_delta_value:.2f}")
    if top.oi_delta_percent != 0:
        lines.append(f"OI change: {top.oi_delta_percent:.2f}%")
    if top.price_delta_percent != 0:
        lines.append(f"Price change: {top.price_delta_percent:.2f}%")
    if top.net_long > 0 or top.net_short > 0:
        lines.append(f"Net long: {top.net_long:.2f} | net short: {top.net_short:.2f}")
    return lines


def format_snapshot(snap: MarketSnapshot) -> str:
    """
    Plain-text market block for prompts and logs.
    Same snapshot in, same text out.
    """
    lines: List[str] = []

    lines.append(
        f"current_price = {snap.current_price:.2f}, EMA20 = {snap.current_ema20:.3f}, "
        f"MACD = {snap.current_macd:.3f}, RSI(7) = {snap.current_rsi7:.3f}"
    )
    lines.append(f"price change: 1h {snap.price_change_1h:+.2f}% | 4h {snap.price_change_4h:+.2f}%")
    lines.append("")

    lines.append(f"Open interest and funding for {snap.symbol}:")
    lines.append("")
    oi = snap.open_interest
    oi_value_usd = oi.latest * snap.current_price
    lines.append(f"Open interest: latest {oi.latest:.2f} (contracts) | value {oi_value_usd:.2f} USD | average {oi.average:.2f}")
    lines.append("")
    lines.append(f"Funding rate: {snap.funding_rate:.2e}")
    lines.append("")

    if snap.oi_top is not None:
        lines.extend(format_oi_top(snap.oi_top))
        lines.append("")

    intraday = snap.intraday
    lines.append("3m series (oldest -> newest):")
    lines.append("")
    for label, values in (
        ("Close", intraday.mid_prices),
        ("EMA(20)", intraday.ema20_values),
        ("MACD", intraday.macd_values),
        ("RSI(7)", intraday.rsi7_values),
        ("RSI(14)", intraday.rsi14_values),
    ):
        if values:
            lines.append(f"{label}: {format_float_list(values)}")
            lines.append("")

    lt = snap.longer_term
    lines.append("4h context:")
    lines.append("")
    lines.append(f"EMA: 20-period {lt.ema20:.3f} vs. 50-period {lt.ema50:.3f}")
    lines.append("")
    lines.append(f"ATR: 3-period {lt.atr3:.3f} vs. 14-period {lt.atr14:.3f}")
    lines.append("")
    lines.append(f"Volume: current {lt.current_volume:.3f} vs. average {lt.average_volume:.3f}")
    lines.append("")
    if lt.macd_values:
        lines.append(f"MACD: {format_float_list(lt.macd_values)}")
        lines.append("")
    if lt.rsi14_values:
        lines.append(f"RSI(14): {format_float_list(lt.rsi14_values)}")
        lines.append("")

    sr = snap.support_resistance
    if sr.timeframes:
        lines.append("Support / resistance:")
        lines.append("")
        for tf in SR_TIMEFRAMES:
            tf_levels = sr.timeframes.get(tf.name)
            if tf_levels is None:
                continue
            lines.append(f"[{tf.name}] support: {format_levels(tf_levels.supports)}")
            lines.append(f"[{tf.name}] resistance: {format_levels(tf_levels.resistances)}")
            lines.append("")

        if sr.confluence is not None:
            lines.append(f"Multi-timeframe confluence ({sr.confluence.base_timeframe} vs higher timeframes):")
            lines.append(f"confluence support: {format_levels(sr.confluence.supports)}")
            lines.append(f"confluence resistance: {format_levels(sr.confluence.resistances)}")
            lines.append("")

        lines.append(CAUTION_NOTE)
        lines.append("")

    return "\n".join(lines) + "\n"


def to_json_safe(obj: Any) -> Any:
    """Recursively convert dataclasses / tuples / dicts into JSON-safe values."""
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, (list, tuple)):
        return [to_json_safe(x) for x in obj]
    if isinstance(obj, dict):
        return {str(k): to_json_safe(v) for k, v in obj.items()}
    if hasattr(obj, "__dataclass_fields__"):
        return to_json_safe(asdict(obj))
    return str(obj)


def snapshot_to_dict(snap: MarketSnapshot) -> Dict[str, Any]:
    return to_json_safe(snap)
