"""Pipeline orchestration for duty aggregation and notification dispatch."""

from .aggregator import DutyAggregator, format_time_range
from .models import AggregationResult, BulkRunResult, SingleRunResult
from .runner import DispatchPipeline, InvalidRequestError, validate_date_window

__all__ = [
    "DispatchPipeline",
    "DutyAggregator",
    "InvalidRequestError",
    "AggregationResult",
    "BulkRunResult",
    "SingleRunResult",
    "format_time_range",
    "validate_date_window",
]
