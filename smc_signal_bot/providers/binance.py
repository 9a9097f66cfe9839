from __future__ import annotations

import logging
from typing import Any, List

from ..errors import ProviderError
from ..models import Candle
from .base import RestProvider, rows_to_candles

log = logging.getLogger("binance")


def _rest_base(market: str) -> str:
    return "https://fapi.binance.com" if market == "futures" else "https://api.binance.com"


def _klines_path(market: str) -> str:
    return "/fapi/v1/klines" if market == "futures" else "/api/v3/klines"


def normalize_binance_klines(source: str, data: Any) -> List[Candle]:
    """Binance returns a flat array of kline arrays; [0]=open time, [1..5]=OHLCV."""
    if not isinstance(data, list):
        # error payloads look like {"code": -1121, "msg": "Invalid symbol."}
        msg = data.get("msg") if isinstance(data, dict) else repr(data)[:200]
        raise ProviderError(source, f"unexpected payload: {msg}")
    return rows_to_candles(source, data)


class BinanceProvider(RestProvider):
    def __init__(self, market: str = "futures", **kwargs):
        super().__init__(**kwargs)
        self.market = market
        self.name = f"binance-{market}"

    async def fetch_klines(self, symbol: str, timeframe: str, limit: int) -> List[Candle]:
        url = _rest_base(self.market) + _klines_path(self.market)
        params = {"symbol": symbol.upper(), "interval": timeframe, "limit": int(limit)}
        data = await self._get_json(url, params)
        candles = normalize_binance_klines(self.name, data)
        log.debug("klines_ok source=%s symbol=%s tf=%s bars=%d", self.name, symbol, timeframe, len(candles))
        return candles
