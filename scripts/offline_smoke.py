from __future__ import annotations

import json

from smc_signal_bot.config import AnalysisConfig
from smc_signal_bot.engine import SignalEngine
from smc_signal_bot.fetcher import CandleFetcher
from smc_signal_bot.models import Candle


def candle(idx: int, mid: float, vol: float = 1.0, up: bool = True) -> Candle:
    o, c = (mid - 0.2, mid + 0.2) if up else (mid + 0.2, mid - 0.2)
    return Candle(open_time_ms=idx * 60_000, open=o, high=mid + 0.5, low=mid - 0.5, close=c, volume=vol)


def zigzag(n: int, slope: float, *, surge: bool = False):
    """Ten-bar zigzag riding a linear drift; slope < 0 gives a downtrend."""
    out = []
    for i in range(n):
        phase = i % 10
        offset = phase if phase <= 5 else 10 - phase
        mid = 200.0 + slope * i + (offset if slope >= 0 else -offset)
        vol = 3.0 if (surge and i >= n - 5) else 1.0
        out.append(candle(i, mid, vol, up=phase < 5))
    return out


def run_case(name: str, engine: SignalEngine, candles) -> None:
    by_label = {tf.label: candles for tf in engine.cfg.timeframes}
    res = engine.analyze_candles("TESTUSDT", by_label)
    print(f"{name}:", json.dumps(res.to_dict()))


def main():
    engine = SignalEngine(CandleFetcher([]), AnalysisConfig())

    run_case("uptrend_volume_surge", engine, zigzag(300, 0.5, surge=True))
    run_case("downtrend_volume_surge", engine, zigzag(300, -0.5, surge=True))
    run_case("uptrend_flat_volume", engine, zigzag(300, 0.5))
    run_case("too_short", engine, zigzag(8, 0.5))
    run_case("no_data", engine, [])


if __name__ == "__main__":
    main()
