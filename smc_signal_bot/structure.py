from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from .models import Candle, MarketStructure, SwingPoint


def is_swing_high(highs: Sequence[float], index: int, lookback: int = 3) -> bool:
    """Strictly above every high within `lookback` bars on each side (window truncated at the edges)."""
    for i in range(1, lookback + 1):
        if index - i >= 0 and highs[index] <= highs[index - i]:
            return False
        if index + i < len(highs) and highs[index] <= highs[index + i]:
            return False
    return True


def is_swing_low(lows: Sequence[float], index: int, lookback: int = 3) -> bool:
    for i in range(1, lookback + 1):
        if index - i >= 0 and lows[index] >= lows[index - i]:
            return False
        if index + i < len(lows) and lows[index] >= lows[index + i]:
            return False
    return True


def find_swings(
    candles: Sequence[Candle],
    lookback: int,
    margin: Optional[int] = None,
) -> Tuple[List[SwingPoint], List[SwingPoint]]:
    """Swing highs and lows over indices [margin, n - margin). margin defaults to lookback."""
    margin = lookback if margin is None else margin
    highs = [c.high for c in candles]
    lows = [c.low for c in candles]
    swing_highs: List[SwingPoint] = []
    swing_lows: List[SwingPoint] = []
    for i in range(margin, len(candles) - margin):
        if is_swing_high(highs, i, lookback):
            swing_highs.append(SwingPoint(index=i, price=highs[i], time_ms=candles[i].open_time_ms))
        if is_swing_low(lows, i, lookback):
            swing_lows.append(SwingPoint(index=i, price=lows[i], time_ms=candles[i].open_time_ms))
    return swing_highs, swing_lows


def _trend(swing_highs: Sequence[SwingPoint], swing_lows: Sequence[SwingPoint]) -> str:
    if len(swing_highs) < 2 or len(swing_lows) < 2:
        return "neutral"
    h0, h1 = swing_highs[-2].price, swing_highs[-1].price
    l0, l1 = swing_lows[-2].price, swing_lows[-1].price
    if h1 > h0 and l1 > l0:
        return "bullish"
    if h1 < h0 and l1 < l0:
        return "bearish"
    return "neutral"


def _break_of_structure(trend: str, swing_highs: Sequence[SwingPoint], swing_lows: Sequence[SwingPoint]) -> bool:
    if len(swing_highs) < 3 or len(swing_lows) < 3:
        return False
    h = [p.price for p in swing_highs[-3:]]
    lo = [p.price for p in swing_lows[-3:]]
    if trend == "bullish":
        return h[2] > h[1] > h[0]
    if trend == "bearish":
        return lo[2] < lo[1] < lo[0]
    return False


def _change_of_character(trend: str, swing_highs: Sequence[SwingPoint], swing_lows: Sequence[SwingPoint]) -> bool:
    if len(swing_highs) < 3 or len(swing_lows) < 3:
        return False
    h = [p.price for p in swing_highs[-3:]]
    lo = [p.price for p in swing_lows[-3:]]
    if trend == "bullish":
        # dipped under the prior low, then recovered above it
        return lo[2] > lo[1] and lo[1] < lo[0]
    if trend == "bearish":
        return h[2] < h[1] and h[1] > h[0]
    return False


def detect_structure(candles: Sequence[Candle], lookback: int = 3, min_candles: int = 10) -> MarketStructure:
    """Swing structure, trend, BOS and CHoCH. Short series give an empty neutral structure."""
    if not candles or len(candles) < min_candles:
        return MarketStructure()
    swing_highs, swing_lows = find_swings(candles, lookback)
    trend = _trend(swing_highs, swing_lows)
    return MarketStructure(
        swing_highs=tuple(swing_highs),
        swing_lows=tuple(swing_lows),
        trend=trend,
        break_of_structure=_break_of_structure(trend, swing_highs, swing_lows),
        change_of_character=_change_of_character(trend, swing_highs, swing_lows),
    )


def trend_strength(structure: MarketStructure) -> float:
    """Mean absolute slope (price per bar) of the last two swing highs and lows."""
    if len(structure.swing_highs) < 2 or len(structure.swing_lows) < 2:
        return 0.0
    h0, h1 = structure.swing_highs[-2:]
    l0, l1 = structure.swing_lows[-2:]
    high_slope = (h1.price - h0.price) / (h1.index - h0.index)
    low_slope = (l1.price - l0.price) / (l1.index - l0.index)
    return abs(high_slope + low_slope) / 2.0
