from __future__ import annotations

import logging
from typing import Any, Dict, List

from ..errors import ProviderError
from ..models import Candle
from .base import RestProvider, rows_to_candles

log = logging.getLogger("bybit")

BYBIT_KLINE_URL = "https://api.bybit.com/v5/market/kline"

# Binance-style interval code -> Bybit v5 interval code
INTERVAL_MAP: Dict[str, str] = {
    "1m": "1",
    "3m": "3",
    "5m": "5",
    "15m": "15",
    "30m": "30",
    "1h": "60",
    "2h": "120",
    "4h": "240",
    "6h": "360",
    "12h": "720",
    "1d": "D",
    "1w": "W",
}


def bybit_interval(timeframe: str) -> str:
    return INTERVAL_MAP.get((timeframe or "").strip().lower(), "60")


def normalize_bybit_klines(source: str, data: Any) -> List[Candle]:
    """Bybit nests rows under result.list, newest first."""
    if not isinstance(data, dict):
        raise ProviderError(source, f"unexpected payload: {repr(data)[:200]}")
    ret_code = data.get("retCode", 0)
    if ret_code not in (0, "0"):
        raise ProviderError(source, f"retCode={ret_code} msg={data.get('retMsg')}")
    result = data.get("result") or {}
    rows = result.get("list") if isinstance(result, dict) else None
    if not isinstance(rows, list):
        raise ProviderError(source, "Invalid Bybit response")
    return rows_to_candles(source, rows)


class BybitProvider(RestProvider):
    def __init__(self, category: str = "linear", **kwargs):
        super().__init__(**kwargs)
        self.category = category
        self.name = f"bybit-{category}"

    async def fetch_klines(self, symbol: str, timeframe: str, limit: int) -> List[Candle]:
        params = {
            "category": self.category,
            "symbol": symbol.upper(),
            "interval": bybit_interval(timeframe),
            "limit": int(limit),
        }
        data = await self._get_json(BYBIT_KLINE_URL, params)
        candles = normalize_bybit_klines(self.name, data)
        log.debug("klines_ok source=%s symbol=%s tf=%s bars=%d", self.name, symbol, timeframe, len(candles))
        return candles
