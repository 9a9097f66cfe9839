from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
import os
import yaml


def _env_override(value: Any, env_key: str) -> Any:
    env_val = os.getenv(env_key)
    if env_val is None:
        return value
    # basic parsing
    if isinstance(value, bool):
        return env_val.strip().lower() in ("1", "true", "yes", "y", "on")
    if isinstance(value, int):
        try:
            return int(env_val)
        except ValueError:
            return value
    if isinstance(value, float):
        try:
            return float(env_val)
        except ValueError:
            return value
    return env_val


@dataclass(frozen=True)
class TimeframeSpec:
    label: str  # D1, H4, ...
    interval: str  # exchange code: 1d, 4h, 1h, 15m
    weight: float


DEFAULT_TIMEFRAMES: Tuple[TimeframeSpec, ...] = (
    TimeframeSpec("D1", "1d", 1.5),
    TimeframeSpec("H4", "4h", 1.3),
    TimeframeSpec("H1", "1h", 1.1),
    TimeframeSpec("15M", "15m", 0.8),
)


@dataclass(frozen=True)
class AnalysisConfig:
    timeframes: Tuple[TimeframeSpec, ...] = DEFAULT_TIMEFRAMES

    # Thresholds
    min_confidence: int = 60
    bias_threshold: float = 0.5
    primary_confidence: int = 70
    rr_min: float = 1.5
    rr_max: float = 2.5

    # Detector windows
    min_structure_candles: int = 10
    swing_lookback: int = 3
    liquidity_lookback: int = 2
    liquidity_margin: int = 5
    atr_period: int = 14
    relevance_pct: float = 0.05
    volume_bands: int = 10
    volume_tick: Optional[float] = None  # None -> derived from price magnitude

    # Level multipliers (in ATR units)
    stop_search_atr: float = 1.5
    stop_atr: float = 0.6
    stop_fallback_atr: float = 0.8
    target_search_atr: float = 1.2
    target_fallback_atr: float = 0.8
    max_distance_atr: float = 2.5
    stop_reset_atr: float = 1.0
    target_reset_atr: float = 1.5

    def weight_for(self, label: str) -> float:
        for tf in self.timeframes:
            if tf.label == label:
                return tf.weight
        return 1.0


@dataclass
class SourceConfig:
    type: str = "binance"  # binance | bybit
    market: str = "futures"  # binance: futures|spot
    category: str = "linear"  # bybit


@dataclass
class ProviderConfig:
    sources: List[SourceConfig] = None
    timeout_s: int = 10
    rate_limit_cooldown_s: float = 4.0
    candle_limit: int = 300
    user_agent: str = "Mozilla/5.0 (compatible; SMCSignalBot/1.0)"


@dataclass
class RiskConfig:
    risk_percent: float = 2.0
    account_balance: float = 1000.0


@dataclass
class ScannerConfig:
    symbols: List[str] = None
    concurrency: int = 4


@dataclass
class AppConfig:
    name: str = "SMC Signal Bot"
    log_level: str = "INFO"


@dataclass
class Config:
    app: AppConfig
    provider: ProviderConfig
    analysis: AnalysisConfig
    risk: RiskConfig
    scanner: ScannerConfig = field(default_factory=ScannerConfig)


DEFAULT_SOURCES: Tuple[Dict[str, str], ...] = (
    {"type": "binance", "market": "futures"},
    {"type": "binance", "market": "spot"},
    {"type": "bybit", "category": "linear"},
)

SOURCE_TYPES = ("binance", "bybit")


def _parse_sources(raw: Optional[List[Dict[str, Any]]]) -> List[SourceConfig]:
    out: List[SourceConfig] = []
    for item in raw if raw is not None else DEFAULT_SOURCES:
        src = SourceConfig(**item)
        if src.type not in SOURCE_TYPES:
            raise ValueError(f"Unsupported provider type: {src.type} (use one of {SOURCE_TYPES})")
        out.append(src)
    return out


def _parse_analysis(raw: Dict[str, Any]) -> AnalysisConfig:
    raw = dict(raw)
    tfs = raw.pop("timeframes", None)
    if tfs is not None:
        raw["timeframes"] = tuple(TimeframeSpec(**tf) for tf in tfs)
    return AnalysisConfig(**raw)


def default_config() -> Config:
    return Config(
        app=AppConfig(),
        provider=ProviderConfig(sources=_parse_sources(None)),
        analysis=AnalysisConfig(),
        risk=RiskConfig(),
        scanner=ScannerConfig(symbols=[]),
    )


def load_config(path: str) -> Config:
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    app = raw.get("app", {})
    provider = dict(raw.get("provider", {}))
    analysis = raw.get("analysis", {})
    risk = raw.get("risk", {})
    scanner = raw.get("scanner", {})

    sources = _parse_sources(provider.pop("sources", None))

    cfg = Config(
        app=AppConfig(**app),
        provider=ProviderConfig(sources=sources, **provider),
        analysis=_parse_analysis(analysis),
        risk=RiskConfig(**risk),
        scanner=ScannerConfig(**scanner),
    )

    # env overrides (useful on servers)
    cfg.app.log_level = _env_override(cfg.app.log_level, "SMC_LOG_LEVEL")
    cfg.risk.account_balance = _env_override(float(cfg.risk.account_balance), "SMC_ACCOUNT_BALANCE")
    cfg.risk.risk_percent = _env_override(float(cfg.risk.risk_percent), "SMC_RISK_PERCENT")
    if cfg.scanner.symbols is None:
        cfg.scanner.symbols = []

    # Allow SMC_SYMBOLS="BTCUSDT,ETHUSDT"
    sym_env = os.getenv("SMC_SYMBOLS")
    if sym_env:
        cfg.scanner.symbols = [x.strip().upper() for x in sym_env.split(",") if x.strip()]

    return cfg
