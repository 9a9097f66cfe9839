from __future__ import annotations

import math
from typing import Sequence

from .config import AnalysisConfig
from .errors import LowConfidence, NoBias
from .models import TimeframeAnalysis
from .scoring import timeframe_score

_TREND_SIGN = {"bullish": 1.0, "bearish": -1.0}


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def confluence_bonus(analyses: Sequence[TimeframeAnalysis]) -> float:
    """+8 per timeframe whose trend is backed by a same-side order block, max 30."""
    bullish = sum(
        1 for a in analyses
        if a.trend == "bullish" and any(ob.type == "bullish" for ob in a.order_blocks)
    )
    bearish = sum(
        1 for a in analyses
        if a.trend == "bearish" and any(ob.type == "bearish" for ob in a.order_blocks)
    )
    return float(min(30, max(bullish, bearish) * 8))


def overall_confidence(analyses: Sequence[TimeframeAnalysis], cfg: AnalysisConfig) -> int:
    total = 0.0
    max_score = 0.0
    for a in analyses:
        w = cfg.weight_for(a.label)
        total += timeframe_score(a) * w
        max_score += 100.0 * w
    if max_score <= 0:
        return 0
    pct = total / max_score * 100.0 + confluence_bonus(analyses)
    return _round_half_up(min(100.0, max(0.0, pct)))


def directional_bias(analyses: Sequence[TimeframeAnalysis], cfg: AnalysisConfig) -> float:
    bias = 0.0
    for a in analyses:
        w = cfg.weight_for(a.label)
        sign = _TREND_SIGN.get(a.trend, 0.0)
        bias += w * sign
        st = a.structure
        if st.break_of_structure:
            bias += 0.5 * w * _TREND_SIGN.get(st.trend, 0.0)
    return bias


def decide_direction(confidence: int, bias: float, cfg: AnalysisConfig) -> str:
    """LONG/SHORT, or raise LowConfidence / NoBias."""
    if confidence < cfg.min_confidence:
        raise LowConfidence(confidence, cfg.min_confidence)
    if bias > cfg.bias_threshold:
        return "LONG"
    if bias < -cfg.bias_threshold:
        return "SHORT"
    raise NoBias(confidence)
