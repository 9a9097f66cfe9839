from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class Candle:
    open_time_ms: int
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class SwingPoint:
    index: int
    price: float
    time_ms: int


@dataclass(frozen=True)
class MarketStructure:
    swing_highs: Tuple[SwingPoint, ...] = ()
    swing_lows: Tuple[SwingPoint, ...] = ()
    trend: str = "neutral"  # bullish | bearish | neutral
    break_of_structure: bool = False
    change_of_character: bool = False


@dataclass(frozen=True)
class OrderBlock:
    type: str  # bullish or bearish
    high: float
    low: float
    time_ms: int
    strength: float


@dataclass(frozen=True)
class FairValueGap:
    type: str  # bullish or bearish
    high: float
    low: float
    time_ms: int
    strength: float


@dataclass(frozen=True)
class LiquidityLevel:
    type: str  # support or resistance
    price: float
    time_ms: int
    strength: str


@dataclass(frozen=True)
class VolumeProfile:
    point_of_control: float
    total_volume: float
    average_volume: float
    volume_delta: float


@dataclass(frozen=True)
class TimeframeAnalysis:
    label: str
    price: float
    trend: str
    strength: float
    structure: MarketStructure
    order_blocks: Tuple[OrderBlock, ...]
    fair_value_gaps: Tuple[FairValueGap, ...]
    liquidity_levels: Tuple[LiquidityLevel, ...]
    volume_profile: VolumeProfile
    atr: float
    confidence: int
    order_block_count: int = 0  # before the proximity filter


@dataclass(frozen=True)
class SignalResult:
    symbol: str
    direction: str  # LONG | SHORT | NEUTRAL | NO_TRADE
    confidence: int
    entry: Optional[float] = None
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    risk_reward: Optional[float] = None
    position_size: Optional[float] = None
    max_loss: Optional[float] = None
    reason: Optional[str] = None

    @property
    def is_trade(self) -> bool:
        return self.direction in ("LONG", "SHORT")

    def to_dict(self) -> Dict[str, object]:
        out: Dict[str, object] = {
            "symbol": self.symbol,
            "direction": self.direction,
            "confidence": self.confidence,
        }
        for key in ("entry", "stop_loss", "take_profit", "risk_reward", "position_size", "max_loss", "reason"):
            val = getattr(self, key)
            if val is not None:
                out[key] = val
        return out
