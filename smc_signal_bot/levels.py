"""Entry, stop-loss and take-profit selection.

All distances are expressed in ATR units of the primary timeframe. The final
take-profit is always clamped so that reward/risk stays within
[rr_min, rr_max].
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .config import AnalysisConfig
from .models import TimeframeAnalysis

MIN_ATR = 0.0001


@dataclass(frozen=True)
class TradeLevels:
    entry: float
    stop_loss: float
    take_profit: float
    risk_reward: float


def _level_prices(analysis: TimeframeAnalysis, kind: str) -> List[float]:
    return [lv.price for lv in analysis.liquidity_levels if lv.type == kind]


def find_long_entry(price: float, analysis: TimeframeAnalysis) -> float:
    obs = [ob for ob in analysis.order_blocks if ob.type == "bullish" and ob.low < price < ob.high * 1.02]
    if obs:
        best = max(obs, key=lambda ob: ob.strength)
        return best.low * 0.998
    fvgs = [g for g in analysis.fair_value_gaps if g.type == "bullish" and g.low < price < g.high]
    if fvgs:
        return max(fvgs[0].low, price * 0.995)
    supports = [p for p in _level_prices(analysis, "support") if p < price]
    if supports:
        return max(supports) * 1.001
    return price * 0.998


def find_short_entry(price: float, analysis: TimeframeAnalysis) -> float:
    obs = [ob for ob in analysis.order_blocks if ob.type == "bearish" and ob.low * 0.98 < price < ob.high]
    if obs:
        best = max(obs, key=lambda ob: ob.strength)
        return best.high * 1.002
    fvgs = [g for g in analysis.fair_value_gaps if g.type == "bearish" and g.low < price < g.high]
    if fvgs:
        return min(fvgs[0].high, price * 1.005)
    resistances = [p for p in _level_prices(analysis, "resistance") if p > price]
    if resistances:
        return min(resistances) * 0.999
    return price * 1.002


def select_stop_loss(entry: float, direction: str, analysis: TimeframeAnalysis, atr: float, cfg: AnalysisConfig) -> float:
    search = atr * cfg.stop_search_atr
    if direction == "LONG":
        supports = [p for p in _level_prices(analysis, "support") if entry - search <= p < entry]
        if supports:
            return min(max(supports), entry - atr * cfg.stop_atr)
        return entry - atr * cfg.stop_fallback_atr
    resistances = [p for p in _level_prices(analysis, "resistance") if entry < p <= entry + search]
    if resistances:
        return max(min(resistances), entry + atr * cfg.stop_atr)
    return entry + atr * cfg.stop_fallback_atr


def clamp_take_profit(entry: float, stop: float, take_profit: float, rr_min: float, rr_max: float) -> float:
    """Pull take-profit into [entry + rr_min*risk, entry + rr_max*risk] on its side of entry."""
    risk = abs(entry - stop)
    if take_profit >= entry:
        return min(max(take_profit, entry + risk * rr_min), entry + risk * rr_max)
    return max(min(take_profit, entry - risk * rr_min), entry - risk * rr_max)


def select_take_profit(
    entry: float,
    stop: float,
    direction: str,
    analysis: TimeframeAnalysis,
    atr: float,
    cfg: AnalysisConfig,
) -> float:
    search = atr * cfg.target_search_atr
    if direction == "LONG":
        targets = [p for p in _level_prices(analysis, "resistance") if entry < p <= entry + search]
        tp = min(targets) if targets else entry + atr * cfg.target_fallback_atr
    else:
        targets = [p for p in _level_prices(analysis, "support") if entry - search <= p < entry]
        tp = max(targets) if targets else entry - atr * cfg.target_fallback_atr
    return clamp_take_profit(entry, stop, tp, cfg.rr_min, cfg.rr_max)


def validate_levels(
    entry: float,
    stop: float,
    take_profit: float,
    atr: float,
    cfg: Optional[AnalysisConfig] = None,
    direction: Optional[str] = None,
) -> TradeLevels:
    """Bound stop/target distances by ATR, then enforce the reward/risk window.

    Risk is re-derived after the stop has been pulled in, so the returned
    risk_reward always lies in [rr_min, rr_max]. Re-validating the output is a
    no-op.
    """
    cfg = cfg or AnalysisConfig()
    if not atr or atr <= 0:
        atr = abs(entry - stop) or 1.0
    if direction is not None:
        long_side = direction == "LONG"
    elif stop != entry:
        long_side = stop < entry
    else:
        long_side = take_profit >= entry

    max_distance = atr * cfg.max_distance_atr
    if abs(entry - stop) > max_distance or stop == entry:
        stop = entry - atr * cfg.stop_reset_atr if long_side else entry + atr * cfg.stop_reset_atr
    if abs(entry - take_profit) > max_distance:
        take_profit = entry + atr * cfg.target_reset_atr if long_side else entry - atr * cfg.target_reset_atr

    risk = abs(entry - stop)
    rr = abs(take_profit - entry) / risk
    wrong_side = take_profit < entry if long_side else take_profit > entry
    if wrong_side or rr < cfg.rr_min or rr > cfg.rr_max:
        bound = cfg.rr_max if (rr > cfg.rr_max and not wrong_side) else cfg.rr_min
        take_profit = entry + risk * bound if long_side else entry - risk * bound
        rr = bound
    return TradeLevels(entry=entry, stop_loss=stop, take_profit=take_profit, risk_reward=rr)


def calculate_levels(
    direction: str,
    price: float,
    analysis: TimeframeAnalysis,
    cfg: Optional[AnalysisConfig] = None,
) -> TradeLevels:
    if direction not in ("LONG", "SHORT"):
        raise ValueError(f"levels need LONG or SHORT, got {direction}")
    cfg = cfg or AnalysisConfig()
    atr = analysis.atr if analysis.atr and analysis.atr > 0 else MIN_ATR

    entry = find_long_entry(price, analysis) if direction == "LONG" else find_short_entry(price, analysis)
    stop = select_stop_loss(entry, direction, analysis, atr, cfg)
    tp = select_take_profit(entry, stop, direction, analysis, atr, cfg)
    return validate_levels(entry, stop, tp, atr, cfg, direction=direction)
