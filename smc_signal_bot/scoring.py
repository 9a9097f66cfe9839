from __future__ import annotations

from typing import Optional, Sequence

from .config import AnalysisConfig
from .indicators import atr_wilder
from .models import Candle, MarketStructure, TimeframeAnalysis, VolumeProfile
from .patterns import (
    analyze_volume_profile,
    filter_relevant,
    find_fair_value_gaps,
    find_liquidity_levels,
    find_order_blocks,
)
from .structure import detect_structure, trend_strength


def timeframe_confidence(structure: MarketStructure, volume_profile: VolumeProfile, order_block_count: int) -> int:
    """Quick single-timeframe heuristic, used to pick the primary timeframe."""
    confidence = 50
    if structure.trend != "neutral":
        confidence += 20
    if volume_profile.volume_delta > 1.2:
        confidence += 15
    if order_block_count > 0:
        confidence += 10
    return min(95, confidence)


def timeframe_score(analysis: TimeframeAnalysis) -> float:
    """Richer 0..100 score fed into the multi-timeframe fusion."""
    st = analysis.structure
    score = 0.0
    score += 25 if st.trend != "neutral" else 0
    score += 15 if st.break_of_structure else 0
    score += 8 if st.change_of_character else 0
    score += min(30.0, max(0.0, analysis.volume_profile.volume_delta - 1.0) * 60.0)
    score += min(25, len(analysis.order_blocks) * 4)
    score += min(20, len(analysis.fair_value_gaps) * 3)
    if analysis.liquidity_levels:
        score += 15
        if any(abs(analysis.price - lv.price) < analysis.atr * 0.5 for lv in analysis.liquidity_levels):
            score += 15
    return min(100.0, score)


def analyze_timeframe(
    label: str,
    candles: Sequence[Candle],
    cfg: Optional[AnalysisConfig] = None,
) -> Optional[TimeframeAnalysis]:
    if not candles:
        return None
    cfg = cfg or AnalysisConfig()
    price = candles[-1].close

    structure = detect_structure(candles, cfg.swing_lookback, cfg.min_structure_candles)
    order_blocks = find_order_blocks(candles)
    fvgs = find_fair_value_gaps(candles)
    liquidity = find_liquidity_levels(candles, cfg.liquidity_lookback, cfg.liquidity_margin)
    profile = analyze_volume_profile(candles, cfg.volume_bands, cfg.volume_tick)

    return TimeframeAnalysis(
        label=label,
        price=price,
        trend=structure.trend,
        strength=trend_strength(structure),
        structure=structure,
        order_blocks=tuple(filter_relevant(order_blocks, price, cfg.relevance_pct)),
        fair_value_gaps=tuple(filter_relevant(fvgs, price, cfg.relevance_pct)),
        liquidity_levels=tuple(filter_relevant(liquidity, price, cfg.relevance_pct)),
        volume_profile=profile,
        atr=atr_wilder(list(candles), cfg.atr_period),
        confidence=timeframe_confidence(structure, profile, len(order_blocks)),
        order_block_count=len(order_blocks),
    )
