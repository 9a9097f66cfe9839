from __future__ import annotations

import abc
import math
from typing import Any, Dict, List, Optional, Sequence

import aiohttp

from ..errors import ProviderError, RateLimited
from ..models import Candle

# Status codes treated as "back off and try elsewhere".
RATE_LIMIT_STATUSES = (403, 418, 429)


def rows_to_candles(source: str, rows: Sequence[Sequence[Any]]) -> List[Candle]:
    """Normalize `[open_time, o, h, l, c, v, ...]` rows into Candles, oldest first."""
    out: List[Candle] = []
    for row in rows:
        if not isinstance(row, (list, tuple)) or len(row) < 6:
            raise ProviderError(source, f"malformed kline row: {row!r}"[:200])
        try:
            c = Candle(
                open_time_ms=int(float(row[0])),
                open=float(row[1]),
                high=float(row[2]),
                low=float(row[3]),
                close=float(row[4]),
                volume=float(row[5]),
            )
        except (TypeError, ValueError) as e:
            raise ProviderError(source, f"unparseable kline row: {e}") from e
        if not all(math.isfinite(v) for v in (c.open, c.high, c.low, c.close, c.volume)):
            raise ProviderError(source, f"non-finite kline row at {c.open_time_ms}")
        out.append(c)
    if len(out) > 1 and out[0].open_time_ms > out[-1].open_time_ms:
        out.reverse()
    return out


class RestProvider(abc.ABC):
    """Shared aiohttp plumbing: one lazily-created session, one request per fetch."""

    name = "rest"

    def __init__(
        self,
        *,
        rest_timeout_s: int = 10,
        user_agent: str = "Mozilla/5.0 (compatible; SMCSignalBot/1.0)",
        rest_conn_limit: int = 40,
        rest_conn_limit_per_host: int = 10,
    ):
        self.rest_timeout_s = rest_timeout_s
        self.user_agent = user_agent
        self.rest_conn_limit = rest_conn_limit
        self.rest_conn_limit_per_host = rest_conn_limit_per_host
        self._session: Optional[aiohttp.ClientSession] = None

    async def close(self) -> None:
        """Close the shared aiohttp session (best-effort)."""
        if self._session is not None and not self._session.closed:
            await self._session.close()

    def _timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(
            total=self.rest_timeout_s,
            connect=min(10, self.rest_timeout_s),
            sock_connect=min(10, self.rest_timeout_s),
            sock_read=max(5, int(self.rest_timeout_s * 0.75)),
        )

    def _connector(self) -> aiohttp.TCPConnector:
        return aiohttp.TCPConnector(
            limit=self.rest_conn_limit,
            limit_per_host=self.rest_conn_limit_per_host,
            ttl_dns_cache=300,
            enable_cleanup_closed=True,
        )

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout(),
                connector=self._connector(),
                headers={"User-Agent": self.user_agent, "Accept": "application/json"},
            )
        return self._session

    async def _get_json(self, url: str, params: Dict[str, Any]) -> Any:
        sess = await self._get_session()
        async with sess.get(url, params=params) as resp:
            if resp.status in RATE_LIMIT_STATUSES:
                txt = await resp.text()
                raise RateLimited(self.name, f"rate limited: {txt[:200]}", status=resp.status)
            if resp.status != 200:
                txt = await resp.text()
                raise ProviderError(self.name, f"klines failed: {resp.status} {txt[:500]}", status=resp.status)
            # Some proxies return a wrong content-type; be tolerant.
            try:
                return await resp.json(content_type=None)
            except (ValueError, aiohttp.ContentTypeError) as e:
                raise ProviderError(self.name, f"undecodable body: {e}", status=resp.status) from e

    @abc.abstractmethod
    async def fetch_klines(self, symbol: str, timeframe: str, limit: int) -> List[Candle]:
        raise NotImplementedError
