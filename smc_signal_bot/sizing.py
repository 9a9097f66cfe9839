from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PositionSize:
    size: float
    max_loss: float


def size_position(risk_percent: float, balance: float, entry: float, stop: float) -> PositionSize:
    """Units such that hitting `stop` loses `risk_percent` of `balance`."""
    risk_amount = balance * (risk_percent / 100.0)
    per_unit = abs(entry - stop)
    size = 0.0 if per_unit == 0 else risk_amount / per_unit
    return PositionSize(size=round(size, 4), max_loss=round(risk_amount, 2))
