from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Sequence

from .config import AnalysisConfig, RiskConfig
from .errors import AnalysisError, AnalysisRejected, DataUnavailable, NoData
from .fetcher import CandleFetcher
from .fusion import decide_direction, directional_bias, overall_confidence
from .levels import calculate_levels
from .models import Candle, SignalResult, TimeframeAnalysis
from .scoring import analyze_timeframe
from .sizing import size_position

log = logging.getLogger("engine")


class SignalEngine:
    """Multi-timeframe analysis for one symbol per call. Holds no per-call state."""

    def __init__(
        self,
        fetcher: CandleFetcher,
        cfg: Optional[AnalysisConfig] = None,
        risk: Optional[RiskConfig] = None,
        *,
        candle_limit: int = 300,
    ):
        self.fetcher = fetcher
        self.cfg = cfg or AnalysisConfig()
        self.risk = risk or RiskConfig()
        self.candle_limit = candle_limit

    async def analyze(self, symbol: str) -> SignalResult:
        """Fetch, analyze and evaluate `symbol`. Never raises."""
        label = str(symbol)
        try:
            symbol = label = symbol.upper()
            candles_by_label = await self._fetch_all(symbol)
            return self.analyze_candles(symbol, candles_by_label)
        except Exception as e:
            log.exception("analysis_error symbol=%s err=%s", label, e)
            return SignalResult(symbol=label, direction="NO_TRADE", confidence=0, reason=f"Analysis error: {e}")

    async def _fetch_all(self, symbol: str) -> Dict[str, List[Candle]]:
        async def _one(label: str, interval: str) -> Optional[List[Candle]]:
            try:
                return await self.fetcher.fetch(symbol, interval, self.candle_limit)
            except DataUnavailable as e:
                log.warning("timeframe_dropped symbol=%s tf=%s err=%s", symbol, label, e)
                return None

        tfs = self.cfg.timeframes
        results = await asyncio.gather(*[_one(tf.label, tf.interval) for tf in tfs], return_exceptions=True)
        out: Dict[str, List[Candle]] = {}
        for tf, res in zip(tfs, results):
            if isinstance(res, BaseException):
                log.warning("timeframe_dropped symbol=%s tf=%s err=%s: %s", symbol, tf.label, type(res).__name__, res)
                continue
            if res:
                out[tf.label] = res
        return out

    def analyze_candles(self, symbol: str, candles_by_label: Dict[str, Sequence[Candle]]) -> SignalResult:
        """Evaluate already-fetched candles, keeping the configured timeframe order."""
        analyses: List[TimeframeAnalysis] = []
        for tf in self.cfg.timeframes:
            candles = candles_by_label.get(tf.label)
            if not candles:
                continue
            analysis = analyze_timeframe(tf.label, candles, self.cfg)
            if analysis is not None:
                analyses.append(analysis)
        return self.evaluate(symbol, analyses)

    def evaluate(self, symbol: str, analyses: Sequence[TimeframeAnalysis]) -> SignalResult:
        try:
            return self._evaluate(symbol, analyses)
        except AnalysisRejected as e:
            log.info("no_signal symbol=%s direction=%s confidence=%d reason=%s", symbol, e.direction, e.confidence, e.reason)
            return SignalResult(symbol=symbol, direction=e.direction, confidence=e.confidence, reason=e.reason)
        except AnalysisError as e:
            log.warning("analysis_error symbol=%s err=%s", symbol, e)
            return SignalResult(symbol=symbol, direction="NO_TRADE", confidence=0, reason=f"Analysis error: {e}")

    def _evaluate(self, symbol: str, analyses: Sequence[TimeframeAnalysis]) -> SignalResult:
        if not analyses:
            raise NoData()

        price = analyses[0].price
        bias = directional_bias(analyses, self.cfg)
        confidence = overall_confidence(analyses, self.cfg)
        direction = decide_direction(confidence, bias, self.cfg)

        primary = next((a for a in analyses if a.confidence > self.cfg.primary_confidence), analyses[0])
        if price <= 0:
            raise AnalysisError(f"invalid price {price} on {analyses[0].label}")

        levels = calculate_levels(direction, price, primary, self.cfg)
        pos = size_position(self.risk.risk_percent, self.risk.account_balance, levels.entry, levels.stop_loss)

        log.info(
            "signal symbol=%s direction=%s confidence=%d bias=%.2f primary=%s entry=%.6g sl=%.6g tp=%.6g rr=%.2f",
            symbol,
            direction,
            confidence,
            bias,
            primary.label,
            levels.entry,
            levels.stop_loss,
            levels.take_profit,
            levels.risk_reward,
        )
        return SignalResult(
            symbol=symbol,
            direction=direction,
            confidence=confidence,
            entry=round(levels.entry, 8),
            stop_loss=round(levels.stop_loss, 8),
            take_profit=round(levels.take_profit, 8),
            risk_reward=round(levels.risk_reward, 2),
            position_size=pos.size,
            max_loss=pos.max_loss,
        )
