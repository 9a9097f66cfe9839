from __future__ import annotations

from typing import List, Optional, Tuple


class ProviderError(Exception):
    """A single candle source failed (bad status, malformed payload, ...)."""

    def __init__(self, source: str, message: str, status: Optional[int] = None):
        super().__init__(f"{source}: {message}")
        self.source = source
        self.status = status


class RateLimited(ProviderError):
    """403/418/429 from a source. The fetcher cools down before the next one."""


class DataUnavailable(Exception):
    def __init__(self, symbol: str, interval: str, failures: List[Tuple[str, str]]):
        detail = "; ".join(f"{src}={err}" for src, err in failures) or "no sources configured"
        super().__init__(f"All sources failed for {symbol} {interval}: {detail}")
        self.symbol = symbol
        self.interval = interval
        self.failures = failures


class AnalysisRejected(Exception):
    """Analysis finished but did not clear a threshold."""

    direction = "NO_TRADE"

    def __init__(self, reason: str, confidence: int = 0):
        super().__init__(reason)
        self.reason = reason
        self.confidence = confidence


class NoData(AnalysisRejected):
    def __init__(self) -> None:
        super().__init__("No data", 0)


class LowConfidence(AnalysisRejected):
    def __init__(self, confidence: int, floor: int):
        super().__init__(f"Confidence {confidence}% < {floor}%", confidence)


class NoBias(AnalysisRejected):
    direction = "NEUTRAL"

    def __init__(self, confidence: int):
        super().__init__("No clear bias", confidence)


class AnalysisError(Exception):
    pass
