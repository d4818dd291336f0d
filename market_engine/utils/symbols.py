from __future__ import annotations

QUOTE = "USDT"


def normalize(symbol: str) -> str:
    """Upper-case and make sure the symbol is a USDT-quoted pair."""
    symbol = (symbol or "").strip().upper()
    if symbol.endswith(QUOTE):
        return symbol
    return symbol + QUOTE
