from __future__ import annotations
from typing import List, Optional

from .models import Candle


def sma(values: List[float], length: int) -> Optional[float]:
    if length <= 0 or len(values) < length:
        return None
    return sum(values[-length:]) / float(length)


def rma_next(prev: Optional[float], x: float, length: int) -> float:
    """Wilder's RMA step."""
    if length <= 1:
        return x
    if prev is None:
        return x
    alpha = 1.0 / float(length)
    return prev + alpha * (x - prev)


def true_range(high: float, low: float, prev_close: float) -> float:
    return max(high - low, abs(high - prev_close), abs(low - prev_close))


def atr_wilder(candles: List[Candle], length: int = 14) -> float:
    """Wilder ATR: SMA seed over the first `length` true ranges, RMA afterwards.

    Returns 0.0 when there are not enough candles.
    """
    if length <= 0 or len(candles) < length + 1:
        return 0.0
    trs = [
        true_range(candles[i].high, candles[i].low, candles[i - 1].close)
        for i in range(1, len(candles))
    ]
    atr = sma(trs[:length], length)
    for tr in trs[length:]:
        atr = rma_next(atr, tr, length)
    return float(atr)
