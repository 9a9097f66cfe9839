import pytest

from smc_signal_bot.config import AnalysisConfig, TimeframeSpec
from smc_signal_bot.errors import LowConfidence, NoBias
from smc_signal_bot.fusion import confluence_bonus, decide_direction, directional_bias, overall_confidence
from smc_signal_bot.models import (
    Candle,
    FairValueGap,
    LiquidityLevel,
    MarketStructure,
    OrderBlock,
    SwingPoint,
    TimeframeAnalysis,
    VolumeProfile,
)
from smc_signal_bot.scoring import analyze_timeframe, timeframe_confidence, timeframe_score


def _structure(trend: str = "neutral", bos: bool = False, choch: bool = False) -> MarketStructure:
    if trend == "bullish":
        highs = (SwingPoint(5, 110, 0), SwingPoint(15, 112, 0))
        lows = (SwingPoint(10, 100, 0), SwingPoint(20, 102, 0))
    elif trend == "bearish":
        highs = (SwingPoint(5, 112, 0), SwingPoint(15, 110, 0))
        lows = (SwingPoint(10, 102, 0), SwingPoint(20, 100, 0))
    else:
        highs, lows = (), ()
    return MarketStructure(highs, lows, trend, bos, choch)


def _analysis(
    label: str = "D1",
    trend: str = "neutral",
    *,
    bos: bool = False,
    choch: bool = False,
    delta: float = 1.0,
    order_blocks=(),
    fvgs=(),
    levels=(),
    price: float = 100.0,
    atr: float = 2.0,
    confidence: int = 50,
) -> TimeframeAnalysis:
    return TimeframeAnalysis(
        label=label,
        price=price,
        trend=trend,
        strength=0.0,
        structure=_structure(trend, bos, choch),
        order_blocks=tuple(order_blocks),
        fair_value_gaps=tuple(fvgs),
        liquidity_levels=tuple(levels),
        volume_profile=VolumeProfile(price, 100.0, 1.0, delta),
        atr=atr,
        confidence=confidence,
        order_block_count=len(order_blocks),
    )


def test_quick_confidence_components_and_cap():
    prof = VolumeProfile(100, 10, 1, 1.0)
    assert timeframe_confidence(_structure(), prof, 0) == 50
    assert timeframe_confidence(_structure("bullish"), prof, 0) == 70
    hot = VolumeProfile(100, 10, 1, 1.5)
    assert timeframe_confidence(_structure("bearish"), hot, 3) == 95


def test_rich_score_components():
    assert timeframe_score(_analysis()) == 0
    assert timeframe_score(_analysis(trend="bullish", bos=True, choch=True)) == 48
    # 1.25 delta -> 15, two OBs -> 8, two FVGs -> 6
    obs = [OrderBlock("bullish", 101, 99, 0, 0.7)] * 2
    gaps = [FairValueGap("bullish", 101, 99, 0, 0.6)] * 2
    assert timeframe_score(_analysis(delta=1.25, order_blocks=obs, fvgs=gaps)) == pytest.approx(29)
    # weak volume never subtracts
    assert timeframe_score(_analysis(delta=0.2)) == 0


def test_rich_score_liquidity_bonus_and_cap():
    far = [LiquidityLevel("support", 97, 0, "strong")]
    near = [LiquidityLevel("support", 99.5, 0, "strong")]
    assert timeframe_score(_analysis(levels=far)) == 15
    assert timeframe_score(_analysis(levels=near)) == 30
    obs = [OrderBlock("bullish", 101, 99, 0, 0.7)] * 10
    gaps = [FairValueGap("bearish", 101, 99, 0, 0.6)] * 8
    maxed = _analysis(trend="bullish", bos=True, choch=True, delta=3.0, order_blocks=obs, fvgs=gaps, levels=near)
    assert timeframe_score(maxed) == 100


def test_bias_of_two_bullish_timeframes_is_weight_sum():
    cfg = AnalysisConfig(timeframes=(TimeframeSpec("D1", "1d", 1.5), TimeframeSpec("15M", "15m", 0.8)))
    analyses = [_analysis("D1", "bullish"), _analysis("15M", "bullish")]
    bias = directional_bias(analyses, cfg)
    assert bias == pytest.approx(2.3)
    assert decide_direction(75, bias, cfg) == "LONG"


def test_bias_bos_adjustment_and_short():
    cfg = AnalysisConfig()
    analyses = [_analysis("D1", "bearish", bos=True), _analysis("H4", "bullish")]
    # -1.5 - 0.75 + 1.3
    assert directional_bias(analyses, cfg) == pytest.approx(-0.95)
    assert decide_direction(80, -0.95, cfg) == "SHORT"


def test_decide_direction_rejections_keep_confidence():
    cfg = AnalysisConfig()
    with pytest.raises(LowConfidence) as low:
        decide_direction(59, 3.0, cfg)
    assert low.value.direction == "NO_TRADE"
    assert low.value.confidence == 59
    assert low.value.reason == "Confidence 59% < 60%"

    with pytest.raises(NoBias) as flat:
        decide_direction(60, 0.5, cfg)
    assert flat.value.direction == "NEUTRAL"
    assert flat.value.confidence == 60


def test_confluence_bonus_counts_matching_order_blocks():
    bull_ob = OrderBlock("bullish", 101, 99, 0, 0.7)
    bear_ob = OrderBlock("bearish", 101, 99, 0, 0.7)
    analyses = [
        _analysis("D1", "bullish", order_blocks=[bull_ob]),
        _analysis("H4", "bullish", order_blocks=[bull_ob]),
        _analysis("H1", "bearish", order_blocks=[bear_ob]),
        _analysis("15M", "bullish", order_blocks=[bear_ob]),
    ]
    assert confluence_bonus(analyses) == 16
    assert confluence_bonus(analyses[:2] * 3) == 30


def test_overall_confidence_weighted_plus_bonus():
    cfg = AnalysisConfig()
    bull_ob = OrderBlock("bullish", 101, 99, 0, 0.7)
    analyses = [
        _analysis("D1", "bullish", order_blocks=[bull_ob]),  # 25 + 4
        _analysis("H4"),  # 0
    ]
    expected = (29 * 1.5) / (100 * 1.5 + 100 * 1.3) * 100 + 8
    assert overall_confidence(analyses, cfg) == int(expected + 0.5)
    assert overall_confidence([], cfg) == 0


def test_confidence_bounded_for_degenerate_candles():
    cfg = AnalysisConfig()
    flat = [Candle(i * 60_000, 10.0, 10.0, 10.0, 10.0, 0.0) for i in range(50)]
    a = analyze_timeframe("D1", flat, cfg)
    assert a.trend == "neutral"
    assert a.atr == 0.0
    assert 0 <= a.confidence <= 100
    assert 0 <= overall_confidence([a], cfg) <= 100
    assert analyze_timeframe("D1", [], cfg) is None


def test_analyze_timeframe_filters_far_levels():
    cfg = AnalysisConfig()
    candles = []
    for i in range(60):
        phase = i % 10
        offset = phase if phase <= 5 else 10 - phase
        mid = 100.0 + 0.5 * i + offset
        candles.append(Candle(i * 60_000, mid - 0.2, mid + 0.5, mid - 0.5, mid + 0.2, 1.0))
    a = analyze_timeframe("H1", candles, cfg)
    assert a.trend == "bullish"
    assert a.price == candles[-1].close
    assert all(abs(lv.price - a.price) / a.price < 0.05 for lv in a.liquidity_levels)
    assert a.atr > 0
    assert a.confidence == 70
