import json

from market_engine.data.models import (
    IntradaySeries,
    LongerTermData,
    MarketSnapshot,
    OIData,
    OITopData,
    SupportResistanceConfluence,
    SupportResistanceLevel,
    SupportResistanceSummary,
    SupportResistanceTimeframe,
)
from market_engine.report import CAUTION_NOTE, format_levels, format_snapshot, snapshot_to_dict


def _lvl(price, is_support=True, strength=2, score=1.5, distance=1.0):
    return SupportResistanceLevel(price=price, strength=strength, score=score, distance=distance, is_support=is_support)


def _snapshot(sr=None, oi_top=None):
    return MarketSnapshot(
        symbol="BTCUSDT",
        current_price=100.0,
        price_change_1h=1.25,
        price_change_4h=-0.5,
        current_ema20=99.5,
        current_macd=0.12345,
        current_rsi7=55.0,
        open_interest=OIData(latest=1000.0, average=999.0),
        funding_rate=0.0001,
        intraday=IntradaySeries(mid_prices=(99.0, 100.0), ema20_values=(99.4,), rsi7_values=(50.0, 55.0)),
        longer_term=LongerTermData(ema20=98.0, ema50=97.0, atr3=1.5, atr14=1.2, current_volume=10.0, average_volume=8.0),
        support_resistance=sr or SupportResistanceSummary(),
        oi_top=oi_top,
    )


def test_format_levels():
    assert format_levels([]) == "-"
    text = format_levels([_lvl(95.0), _lvl(94.0), _lvl(93.0), _lvl(92.0)])
    assert text.count("|") == 2
    assert text.startswith("95.00 (strength 2, score 1.50, distance 1.00%)")


def test_format_snapshot_sections():
    sr = SupportResistanceSummary(
        timeframes={
            "1h": SupportResistanceTimeframe(supports=(_lvl(97.0),), resistances=()),
            "3m": SupportResistanceTimeframe(supports=(_lvl(99.0),), resistances=(_lvl(101.0, is_support=False),)),
        },
        confluence=SupportResistanceConfluence(base_timeframe="3m", supports=(_lvl(99.0),)),
    )
    text = format_snapshot(_snapshot(sr))

    assert text.startswith("current_price = 100.00, EMA20 = 99.500, MACD = 0.123, RSI(7) = 55.000\n")
    assert "Open interest: latest 1000.00 (contracts) | value 100000.00 USD | average 999.00" in text
    assert "Funding rate: 1.00e-04" in text
    assert "Close: [99.000, 100.000]" in text
    assert "MACD: " not in text
    assert "[1h] resistance: -" in text
    # fixed timeframe order regardless of dict order
    assert text.index("[3m] support") < text.index("[1h] support")
    assert "Multi-timeframe confluence (3m vs higher timeframes):" in text
    assert "confluence resistance: -" in text
    assert CAUTION_NOTE in text


def test_format_snapshot_without_levels_has_no_sr_section():
    text = format_snapshot(_snapshot())
    assert "Support / resistance" not in text
    assert CAUTION_NOTE not in text


def test_format_is_deterministic():
    assert format_snapshot(_snapshot()) == format_snapshot(_snapshot())


def test_snapshot_to_dict_is_json_safe():
    sr = SupportResistanceSummary(
        timeframes={"3m": SupportResistanceTimeframe(supports=(_lvl(99.0),))},
    )
    data = snapshot_to_dict(_snapshot(sr))
    json.dumps(data)
    assert data["symbol"] == "BTCUSDT"
    assert data["support_resistance"]["timeframes"]["3m"]["supports"][0]["price"] == 99.0
    assert data["support_resistance"]["confluence"] is None


def test_format_snapshot_oi_ranking_block():
    top = OITopData(rank=3, oi_delta_percent=-2.5, oi_delta_value=1234.5, price_delta_percent=0.0, net_long=10.0)
    text = format_snapshot(_snapshot(oi_top=top))

    assert "Open interest ranking:" in text
    assert "Rank: #3" in text
    assert "OI change value: 1234.50" in text
    assert "OI change: -2.50%" in text
    assert "Price change:" not in text
    assert "Net long: 10.00 | net short: 0.00" in text
    assert text.index("Funding rate") < text.index("Open interest ranking") < text.index("3m series")


def test_format_snapshot_oi_ranking_skips_zero_fields():
    text = format_snapshot(_snapshot(oi_top=OITopData(oi_delta_value=-5.0)))
    assert "Open interest ranking:" in text
    assert "Rank:" not in text
    assert "OI change value" not in text
    assert "Net long" not in text


def test_format_snapshot_without_oi_ranking():
    assert "Open interest ranking" not in format_snapshot(_snapshot())
    assert snapshot_to_dict(_snapshot())["oi_top"] is None
