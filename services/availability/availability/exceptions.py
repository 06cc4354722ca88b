"""Errors raised by the stock engine and its data source"""
from typing import Optional


class StockEngineError(Exception):
    """Base class for recoverable stock engine errors"""


class UpstreamUnavailable(StockEngineError):
    """An upstream table could not be read

    Availability for the affected equipment is unknown; callers must not treat
    it as zero usage or zero stock.
    """

    def __init__(self, source: str, message: str = ""):
        self.source = source
        super().__init__(f"Upstream source '{source}' unavailable: {message}" if message else f"Upstream source '{source}' unavailable")


class InconsistentInput(StockEngineError):
    """A single upstream record is malformed and was skipped"""

    def __init__(self, record_type: str, record_id: Optional[object], reason: str):
        self.record_type = record_type
        self.record_id = record_id
        self.reason = reason
        super().__init__(f"Skipping {record_type} {record_id}: {reason}")


class StaleCache(StockEngineError):
    """A cache entry outlived an invalidation of its bucket"""


class CalculationTimeout(StockEngineError):
    """A batch calculation exceeded its deadline; partial results were discarded"""
