from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence

from .config import Config
from .engine import SignalEngine
from .fetcher import CandleFetcher
from .models import SignalResult

log = logging.getLogger("scanner")


class SignalScanner:
    """Runs the engine over many symbols with bounded concurrency."""

    def __init__(self, cfg: Config, fetcher: Optional[CandleFetcher] = None):
        self.cfg = cfg
        self.fetcher = fetcher or CandleFetcher.from_config(cfg.provider)
        self.engine = SignalEngine(
            self.fetcher,
            cfg.analysis,
            cfg.risk,
            candle_limit=cfg.provider.candle_limit,
        )

    async def close(self) -> None:
        await self.fetcher.close()

    async def scan(self, symbols: Optional[Sequence[str]] = None) -> List[SignalResult]:
        symbols = [s.strip().upper() for s in (symbols or self.cfg.scanner.symbols or []) if s.strip()]
        if not symbols:
            raise ValueError("No symbols configured.")

        log.info("scan_start symbols=%d timeframes=%s", len(symbols), [tf.label for tf in self.cfg.analysis.timeframes])
        sem = asyncio.Semaphore(max(1, int(self.cfg.scanner.concurrency)))

        async def _one(sym: str) -> SignalResult:
            async with sem:
                res = await self.engine.analyze(sym)
            log.info(
                "result symbol=%s direction=%s confidence=%d rr=%s reason=%s",
                res.symbol,
                res.direction,
                res.confidence,
                res.risk_reward,
                res.reason,
            )
            return res

        results = await asyncio.gather(*[_one(sym) for sym in symbols])
        trades = sum(1 for r in results if r.is_trade)
        log.info("scan_done symbols=%d trades=%d", len(results), trades)
        return list(results)
