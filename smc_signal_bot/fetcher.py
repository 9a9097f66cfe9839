from __future__ import annotations

import asyncio
import logging
from typing import List, Sequence, Tuple

import aiohttp

from .config import ProviderConfig
from .errors import DataUnavailable, ProviderError, RateLimited
from .models import Candle
from .providers.base import RestProvider
from .providers.binance import BinanceProvider
from .providers.bybit import BybitProvider

log = logging.getLogger("fetcher")


def build_providers(cfg: ProviderConfig) -> List[RestProvider]:
    """Instantiate providers in configured priority order."""
    out: List[RestProvider] = []
    for src in cfg.sources or []:
        common = dict(rest_timeout_s=cfg.timeout_s, user_agent=cfg.user_agent)
        if src.type == "binance":
            out.append(BinanceProvider(market=src.market, **common))
        elif src.type == "bybit":
            out.append(BybitProvider(category=src.category, **common))
        else:
            raise ValueError(f"Unsupported provider type: {src.type}")
    return out


class CandleFetcher:
    """Tries each provider once, in order; the first non-empty series wins."""

    def __init__(self, providers: Sequence[RestProvider], *, rate_limit_cooldown_s: float = 4.0):
        self.providers = list(providers)
        self.rate_limit_cooldown_s = float(rate_limit_cooldown_s)

    @classmethod
    def from_config(cls, cfg: ProviderConfig) -> "CandleFetcher":
        return cls(build_providers(cfg), rate_limit_cooldown_s=cfg.rate_limit_cooldown_s)

    async def close(self) -> None:
        for p in self.providers:
            await p.close()

    async def fetch(self, symbol: str, timeframe: str, limit: int) -> List[Candle]:
        failures: List[Tuple[str, str]] = []
        for provider in self.providers:
            name = getattr(provider, "name", type(provider).__name__)
            try:
                candles = await provider.fetch_klines(symbol, timeframe, limit)
            except RateLimited as e:
                failures.append((name, f"rate_limited status={e.status}"))
                log.warning(
                    "source_rate_limited source=%s status=%s symbol=%s tf=%s cooldown=%.1fs",
                    name,
                    e.status,
                    symbol,
                    timeframe,
                    self.rate_limit_cooldown_s,
                )
                await asyncio.sleep(self.rate_limit_cooldown_s)
                continue
            except asyncio.TimeoutError:
                failures.append((name, "timeout"))
                log.warning("source_timeout source=%s symbol=%s tf=%s", name, symbol, timeframe)
                continue
            except (ProviderError, aiohttp.ClientError) as e:
                failures.append((name, str(e)[:200]))
                log.warning("source_failed source=%s symbol=%s tf=%s err=%s", name, symbol, timeframe, e)
                continue
            except Exception as e:
                failures.append((name, f"{type(e).__name__}: {e}"[:200]))
                log.exception("source_error source=%s symbol=%s tf=%s err=%s", name, symbol, timeframe, e)
                continue

            if not candles:
                failures.append((name, "empty"))
                log.warning("source_empty source=%s symbol=%s tf=%s", name, symbol, timeframe)
                continue
            return candles

        raise DataUnavailable(symbol, timeframe, failures)
