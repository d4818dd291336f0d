import pytest
import requests

from market_engine.config import AppConfig
from market_engine.exchange import binance_futures, hyperliquid
from market_engine.exchange.binance_futures import BinanceFuturesClient
from market_engine.exchange.hyperliquid import (
    HyperliquidClient,
    OpenInterestPayloadError,
    parse_open_interest_table,
)
from market_engine.exchange.router import ExchangeRouter


class FakeResponse:
    def __init__(self, payload=None, status_code=200, text=""):
        self._payload = payload
        self.status_code = status_code
        self.text = text

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"status {self.status_code}")


@pytest.fixture
def cfg():
    return AppConfig(
        app_env="test",
        symbols=["BTCUSDT"],
        exchange="binance",
        scan_interval_sec=60,
        default_coins=frozenset(),
        kline_limit=150,
        http_timeout_sec=5,
        include_htf_levels=False,
        oi_cache_ttl_sec=30,
        oi_bulk_timeout_sec=30,
        min_oi_value_musd=15,
        fetch_workers=2,
    )


class TestParseOpenInterestTable:
    def test_parses_parallel_arrays(self):
        payload = [
            {"universe": [{"name": "BTC"}, {"name": "eth"}]},
            [{"openInterest": "123.5"}, {"openInterest": "42"}],
        ]
        assert parse_open_interest_table(payload) == {"BTCUSDT": 123.5, "ETHUSDT": 42.0}

    def test_malformed_entries_are_skipped(self):
        payload = [
            {"universe": [{"name": "BTC"}, {"name": 7}, "junk", {"name": "SOL"}]},
            [{"openInterest": "1"}, {"openInterest": "2"}, {}, {"openInterest": "n/a"}],
        ]
        assert parse_open_interest_table(payload) == {"BTCUSDT": 1.0}

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            [],
            [{"universe": []}],
            ["meta", []],
            [{"universe": "x"}, []],
            [{"universe": []}, {"not": "a list"}],
        ],
    )
    def test_shape_errors(self, payload):
        with pytest.raises(OpenInterestPayloadError):
            parse_open_interest_table(payload)

    def test_length_mismatch(self):
        payload = [{"universe": [{"name": "BTC"}]}, []]
        with pytest.raises(OpenInterestPayloadError, match="length mismatch"):
            parse_open_interest_table(payload)


class TestHyperliquidClient:
    def test_fetch_table(self, cfg, monkeypatch):
        seen = {}

        def fake_post(url, json=None, timeout=None):
            seen.update(url=url, json=json, timeout=timeout)
            return FakeResponse([{"universe": [{"name": "BTC"}]}, [{"openInterest": "10"}]])

        monkeypatch.setattr(hyperliquid.requests, "post", fake_post)
        assert HyperliquidClient(cfg).fetch_open_interest_table() == {"BTCUSDT": 10.0}
        assert seen["json"] == {"type": "metaAndAssetCtxs"}
        assert seen["timeout"] == 30

    def test_bad_status(self, cfg, monkeypatch):
        monkeypatch.setattr(hyperliquid.requests, "post", lambda *a, **k: FakeResponse(status_code=500, text="boom"))
        with pytest.raises(OpenInterestPayloadError, match="status 500"):
            HyperliquidClient(cfg).fetch_open_interest_table()

    def test_transport_error(self, cfg, monkeypatch):
        def fail(*a, **k):
            raise requests.ConnectionError("down")

        monkeypatch.setattr(hyperliquid.requests, "post", fail)
        with pytest.raises(OpenInterestPayloadError, match="request failed"):
            HyperliquidClient(cfg).fetch_open_interest_table()

    def test_invalid_json(self, cfg, monkeypatch):
        monkeypatch.setattr(hyperliquid.requests, "post", lambda *a, **k: FakeResponse(ValueError("bad json")))
        with pytest.raises(OpenInterestPayloadError, match="invalid json"):
            HyperliquidClient(cfg).fetch_open_interest_table()


class TestBinanceFuturesClient:
    def test_fetch_ohlcv(self, cfg, monkeypatch):
        rows = [
            [1700000000000, "100.0", "101.0", "99.0", "100.5", "12.3", 1700000179999, "0", 1],
            [1700000180000, "100.5", "102.0", "100.0", "101.5", "8.1", 1700000359999, "0", 1],
        ]
        monkeypatch.setattr(binance_futures.requests, "get", lambda *a, **k: FakeResponse(rows))
        candles = BinanceFuturesClient(cfg).fetch_ohlcv("BTCUSDT", "3m", limit=2)

        assert len(candles) == 2
        assert candles[0].ts == 1700000000000
        assert candles[0].close_ts == 1700000179999
        assert (candles[1].o, candles[1].h, candles[1].l, candles[1].c, candles[1].v) == (100.5, 102.0, 100.0, 101.5, 8.1)

    def test_fetch_ohlcv_malformed_row_raises(self, cfg, monkeypatch):
        monkeypatch.setattr(binance_futures.requests, "get", lambda *a, **k: FakeResponse([[1, "2"]]))
        with pytest.raises(ValueError):
            BinanceFuturesClient(cfg).fetch_ohlcv("BTCUSDT", "3m")

    def test_fetch_ohlcv_error_payload_raises(self, cfg, monkeypatch):
        monkeypatch.setattr(
            binance_futures.requests, "get", lambda *a, **k: FakeResponse({"code": -1121, "msg": "Invalid symbol."})
        )
        with pytest.raises(ValueError):
            BinanceFuturesClient(cfg).fetch_ohlcv("NOPEUSDT", "3m")

    def test_fetch_ohlcv_http_error_raises(self, cfg, monkeypatch):
        monkeypatch.setattr(binance_futures.requests, "get", lambda *a, **k: FakeResponse(status_code=429))
        with pytest.raises(requests.HTTPError):
            BinanceFuturesClient(cfg).fetch_ohlcv("BTCUSDT", "3m")

    def test_open_interest_and_funding(self, cfg, monkeypatch):
        def fake_get(url, params=None, timeout=None):
            if url.endswith("/openInterest"):
                return FakeResponse({"openInterest": "81234.5", "symbol": params["symbol"]})
            return FakeResponse({"symbol": params["symbol"], "lastFundingRate": "0.00010000"})

        monkeypatch.setattr(binance_futures.requests, "get", fake_get)
        client = BinanceFuturesClient(cfg)
        assert client.fetch_open_interest("BTCUSDT") == 81234.5
        assert client.fetch_funding_rate("BTCUSDT") == pytest.approx(0.0001)


class TestRouter:
    def test_open_interest_source(self, cfg):
        router = ExchangeRouter(cfg)
        assert isinstance(router.get_open_interest_source("hyperliquid"), HyperliquidClient)
        assert router.get_open_interest_source("Binance") is None
        with pytest.raises(ValueError):
            router.get_open_interest_source("kraken")

    def test_get_client_raises_when_unreachable(self, cfg, monkeypatch):
        router = ExchangeRouter(cfg)
        monkeypatch.setattr(router.client, "ping", lambda: False)
        with pytest.raises(RuntimeError):
            router.get_client()
