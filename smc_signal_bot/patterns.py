from __future__ import annotations

import math
from typing import Dict, List, Optional, Sequence, TypeVar, Union

from .models import Candle, FairValueGap, LiquidityLevel, OrderBlock, VolumeProfile
from .structure import is_swing_high, is_swing_low

ORDER_BLOCK_STRENGTH = 0.7
FVG_STRENGTH = 0.6

T = TypeVar("T", OrderBlock, FairValueGap, LiquidityLevel)


def _body(c: Candle) -> float:
    return abs(c.close - c.open)


def find_order_blocks(candles: Sequence[Candle], body_ratio: float = 1.5, keep: int = 10) -> List[OrderBlock]:
    if not candles or len(candles) < 3:
        return []
    blocks: List[OrderBlock] = []
    for i in range(1, len(candles) - 1):
        cur, nxt = candles[i], candles[i + 1]
        if _body(nxt) <= _body(cur) * body_ratio:
            continue
        if cur.close < cur.open and nxt.close < nxt.open:
            blocks.append(OrderBlock("bearish", cur.high, cur.low, cur.open_time_ms, ORDER_BLOCK_STRENGTH))
        elif cur.close > cur.open and nxt.close > nxt.open:
            blocks.append(OrderBlock("bullish", cur.high, cur.low, cur.open_time_ms, ORDER_BLOCK_STRENGTH))
    return blocks[-keep:]


def find_fair_value_gaps(candles: Sequence[Candle], keep: int = 8) -> List[FairValueGap]:
    if not candles or len(candles) < 3:
        return []
    gaps: List[FairValueGap] = []
    for i in range(1, len(candles) - 1):
        prev, cur, nxt = candles[i - 1], candles[i], candles[i + 1]
        # the gap spans the untraded band between the middle bar and its neighbours
        if cur.low > max(prev.high, nxt.high):
            gaps.append(FairValueGap("bullish", cur.low, max(prev.high, nxt.high), cur.open_time_ms, FVG_STRENGTH))
        if cur.high < min(prev.low, nxt.low):
            gaps.append(FairValueGap("bearish", min(prev.low, nxt.low), cur.high, cur.open_time_ms, FVG_STRENGTH))
    return gaps[-keep:]


def find_liquidity_levels(
    candles: Sequence[Candle],
    lookback: int = 2,
    margin: int = 5,
    keep: int = 6,
) -> List[LiquidityLevel]:
    if not candles or len(candles) < 10:
        return []
    highs = [c.high for c in candles]
    lows = [c.low for c in candles]
    levels: List[LiquidityLevel] = []
    for i in range(margin, len(candles) - margin):
        if is_swing_high(highs, i, lookback):
            levels.append(LiquidityLevel("resistance", highs[i], candles[i].open_time_ms, "strong"))
        if is_swing_low(lows, i, lookback):
            levels.append(LiquidityLevel("support", lows[i], candles[i].open_time_ms, "strong"))
    return levels[-keep:]


def volume_delta(candles: Sequence[Candle], recent: int = 5, prior: int = 15) -> float:
    """Mean volume of the last `recent` bars over the mean of the `prior` bars before them."""
    if not candles or len(candles) < recent + prior:
        return 1.0
    recent_avg = sum(c.volume for c in candles[-recent:]) / recent
    older_avg = sum(c.volume for c in candles[-(recent + prior):-recent]) / prior
    return 1.0 if older_avg == 0 else recent_avg / older_avg


def _price_tick(candles: Sequence[Candle]) -> float:
    top = max(abs(c.high) for c in candles)
    if top <= 0:
        return 1.0
    # five significant digits of the largest price
    return 10.0 ** (math.floor(math.log10(top)) - 4)


def analyze_volume_profile(
    candles: Sequence[Candle],
    bands: int = 10,
    tick: Optional[float] = None,
) -> VolumeProfile:
    if not candles:
        return VolumeProfile(point_of_control=0.0, total_volume=0.0, average_volume=0.0, volume_delta=1.0)
    tick = tick if tick and tick > 0 else _price_tick(candles)

    buckets: Dict[int, float] = {}
    anchors: Dict[int, float] = {}  # first real price seen per bucket
    total = 0.0

    def add(price: float, vol: float) -> None:
        key = int(round(price / tick))
        buckets[key] = buckets.get(key, 0.0) + vol
        anchors.setdefault(key, price)

    for c in candles:
        total += c.volume
        rng = c.high - c.low
        if rng <= 0:
            add(c.low, c.volume)
            continue
        step = rng / bands
        for k in range(bands):
            add(c.low + step * k, c.volume / bands)

    poc_key = None
    max_vol = -1.0
    for key in sorted(buckets):
        if buckets[key] > max_vol:
            max_vol = buckets[key]
            poc_key = key

    return VolumeProfile(
        point_of_control=anchors[poc_key],
        total_volume=total,
        average_volume=total / len(candles),
        volume_delta=volume_delta(candles),
    )


def _reference_price(item: Union[OrderBlock, FairValueGap, LiquidityLevel]) -> float:
    if isinstance(item, LiquidityLevel):
        return item.price
    return (item.high + item.low) / 2.0


def filter_relevant(items: Sequence[T], price: float, pct: float = 0.05) -> List[T]:
    """Keep levels (or zone midpoints) within `pct` of price."""
    if not items or price <= 0:
        return []
    return [it for it in items if abs(_reference_price(it) - price) / price < pct]
