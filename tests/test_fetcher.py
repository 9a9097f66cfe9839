import asyncio
import contextlib

import pytest
from aiohttp import web

import smc_signal_bot.fetcher as fetcher_mod
import smc_signal_bot.providers.binance as binance_mod
import smc_signal_bot.providers.bybit as bybit_mod
from smc_signal_bot.config import ProviderConfig, SourceConfig
from smc_signal_bot.errors import DataUnavailable, ProviderError, RateLimited
from smc_signal_bot.fetcher import CandleFetcher, build_providers
from smc_signal_bot.models import Candle
from smc_signal_bot.providers.base import RestProvider
from smc_signal_bot.providers.binance import BinanceProvider, normalize_binance_klines
from smc_signal_bot.providers.bybit import BybitProvider, bybit_interval, normalize_bybit_klines


def _c(idx: int, price: float = 10.0) -> Candle:
    return Candle(open_time_ms=idx * 60_000, open=price, high=price + 1, low=price - 1, close=price, volume=1.0)


class FakeProvider:
    def __init__(self, name, result=None, exc=None):
        self.name = name
        self.result = result
        self.exc = exc
        self.calls = []
        self.closed = False

    async def fetch_klines(self, symbol, timeframe, limit):
        self.calls.append((symbol, timeframe, limit))
        if self.exc is not None:
            raise self.exc
        return self.result

    async def close(self):
        self.closed = True


def test_first_successful_source_wins():
    async def _run():
        a = FakeProvider("a", exc=ProviderError("a", "boom", status=500))
        b = FakeProvider("b", result=[_c(0), _c(1)])
        c = FakeProvider("c", result=[_c(5)])
        f = CandleFetcher([a, b, c], rate_limit_cooldown_s=0)
        out = await f.fetch("BTCUSDT", "1h", 300)
        assert [x.open_time_ms for x in out] == [0, 60_000]
        assert a.calls == [("BTCUSDT", "1h", 300)]
        assert c.calls == []

    asyncio.run(_run())


def test_rate_limit_cools_down_then_moves_on(monkeypatch):
    sleeps = []

    async def fake_sleep(s):
        sleeps.append(s)

    monkeypatch.setattr(fetcher_mod.asyncio, "sleep", fake_sleep)

    async def _run():
        a = FakeProvider("a", exc=RateLimited("a", "slow down", status=429))
        b = FakeProvider("b", result=[_c(0)])
        f = CandleFetcher([a, b], rate_limit_cooldown_s=4.0)
        out = await f.fetch("ETHUSDT", "4h", 10)
        assert len(out) == 1
        # the rate-limited source is not retried
        assert len(a.calls) == 1

    asyncio.run(_run())
    assert sleeps == [4.0]


def test_empty_and_timeout_fall_through_to_data_unavailable():
    async def _run():
        a = FakeProvider("a", result=[])
        b = FakeProvider("b", exc=asyncio.TimeoutError())
        f = CandleFetcher([a, b], rate_limit_cooldown_s=0)
        with pytest.raises(DataUnavailable) as ei:
            await f.fetch("XRPUSDT", "15m", 50)
        assert [src for src, _ in ei.value.failures] == ["a", "b"]
        assert "XRPUSDT 15m" in str(ei.value)
        await f.close()
        assert a.closed and b.closed

    asyncio.run(_run())


def test_binance_normalization_keeps_oldest_first():
    rows = [
        [1000, "10.0", "11.0", "9.5", "10.5", "123.4", 1999, "0", 10],
        [2000, "10.5", "12.0", "10.0", "11.5", "99.0", 2999, "0", 10],
    ]
    out = normalize_binance_klines("binance-futures", rows)
    assert out[0] == Candle(1000, 10.0, 11.0, 9.5, 10.5, 123.4)
    assert out[1].open_time_ms == 2000


def test_binance_error_payload_raises():
    with pytest.raises(ProviderError):
        normalize_binance_klines("binance-spot", {"code": -1121, "msg": "Invalid symbol."})
    with pytest.raises(ProviderError):
        normalize_binance_klines("binance-spot", [[1000, "1", "2"]])
    with pytest.raises(ProviderError):
        normalize_binance_klines("binance-spot", [[1000, "1", "nan", "0.5", "1", "1"]])


def test_bybit_normalization_reverses_newest_first():
    payload = {
        "retCode": 0,
        "retMsg": "OK",
        "result": {
            "category": "linear",
            "list": [
                ["3000", "12", "13", "11", "12.5", "5", "60"],
                ["2000", "11", "12", "10", "12", "4", "48"],
                ["1000", "10", "11", "9", "11", "3", "33"],
            ],
        },
    }
    out = normalize_bybit_klines("bybit-linear", payload)
    assert [c.open_time_ms for c in out] == [1000, 2000, 3000]
    assert out[0].close == 11.0
    assert out[-1].volume == 5.0


def test_bybit_error_and_missing_list():
    with pytest.raises(ProviderError):
        normalize_bybit_klines("bybit-linear", {"retCode": 10001, "retMsg": "params error"})
    with pytest.raises(ProviderError):
        normalize_bybit_klines("bybit-linear", {"retCode": 0, "result": {}})


def test_bybit_interval_translation():
    assert bybit_interval("1d") == "D"
    assert bybit_interval("4h") == "240"
    assert bybit_interval("1h") == "60"
    assert bybit_interval("15m") == "15"
    assert bybit_interval("7x") == "60"


def test_build_providers_in_priority_order():
    cfg = ProviderConfig(
        sources=[
            SourceConfig(type="binance", market="futures"),
            SourceConfig(type="binance", market="spot"),
            SourceConfig(type="bybit", category="linear"),
        ],
        timeout_s=7,
    )
    providers = build_providers(cfg)
    assert [p.name for p in providers] == ["binance-futures", "binance-spot", "bybit-linear"]
    assert isinstance(providers[0], BinanceProvider)
    assert isinstance(providers[2], BybitProvider)
    assert providers[1].rest_timeout_s == 7

    with pytest.raises(ValueError):
        build_providers(ProviderConfig(sources=[SourceConfig(type="kraken")]))


KLINE_ROWS = [
    [1000, "10.0", "11.0", "9.5", "10.5", "123.4", 1999, "0", 10],
    [2000, "10.5", "12.0", "10.0", "11.5", "99.0", 2999, "0", 10],
]


@contextlib.asynccontextmanager
async def _serve(routes):
    app = web.Application()
    app.add_routes(routes)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    host, port = runner.addresses[0][:2]
    try:
        yield f"http://{host}:{port}"
    finally:
        await runner.cleanup()


def test_http_status_mapping():
    async def status(request):
        return web.Response(status=int(request.match_info["code"]), text="nope")

    async def html(request):
        return web.Response(status=200, text="<html>maintenance</html>", content_type="text/html")

    async def _run():
        async with _serve([web.get("/status/{code}", status), web.get("/html", html)]) as base:
            p = BinanceProvider("futures")
            try:
                for code in (403, 418, 429):
                    with pytest.raises(RateLimited) as ei:
                        await p._get_json(f"{base}/status/{code}", {})
                    assert ei.value.status == code
                with pytest.raises(ProviderError) as ei:
                    await p._get_json(f"{base}/status/500", {})
                assert not isinstance(ei.value, RateLimited)
                assert ei.value.status == 500
                with pytest.raises(ProviderError) as ei:
                    await p._get_json(f"{base}/html", {})
                assert not isinstance(ei.value, RateLimited)
            finally:
                await p.close()

    asyncio.run(_run())


def test_non_json_source_falls_through_to_next(monkeypatch):
    async def futures(request):
        return web.Response(status=200, text="<html>oops</html>", content_type="text/html")

    async def spot(request):
        assert request.query["symbol"] == "BTCUSDT"
        assert request.query["interval"] == "1h"
        return web.json_response(KLINE_ROWS)

    async def _run():
        async with _serve([web.get("/fapi/v1/klines", futures), web.get("/api/v3/klines", spot)]) as base:
            monkeypatch.setattr(binance_mod, "_rest_base", lambda market: base)
            f = CandleFetcher([BinanceProvider("futures"), BinanceProvider("spot")], rate_limit_cooldown_s=0)
            try:
                out = await f.fetch("btcusdt", "1h", 300)
            finally:
                await f.close()
        assert [c.open_time_ms for c in out] == [1000, 2000]

    asyncio.run(_run())


def test_bybit_request_parameters_on_the_wire(monkeypatch):
    seen = []

    async def kline(request):
        seen.append(dict(request.query))
        return web.json_response({"retCode": 0, "retMsg": "OK", "result": {"list": [["1000", "1", "2", "0.5", "1.5", "7"]]}})

    async def _run():
        async with _serve([web.get("/v5/market/kline", kline)]) as base:
            monkeypatch.setattr(bybit_mod, "BYBIT_KLINE_URL", base + "/v5/market/kline")
            p = BybitProvider("linear")
            try:
                for tf in ("1d", "4h", "1h", "15m"):
                    out = await p.fetch_klines("ethusdt", tf, 120)
                    assert out[0].volume == 7.0
            finally:
                await p.close()

    asyncio.run(_run())
    assert [q["interval"] for q in seen] == ["D", "240", "60", "15"]
    assert all(q["category"] == "linear" for q in seen)
    assert all(q["symbol"] == "ETHUSDT" and q["limit"] == "120" for q in seen)


def test_rest_provider_is_abstract():
    with pytest.raises(TypeError):
        RestProvider()
