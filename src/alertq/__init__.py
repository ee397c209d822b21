"""
alertq: reactive runner for alerting query evaluation.

Submit a batch of QuerySpecs to an AlertingQueryRunner and observe the
per-query Loading/Done/Error state through ``subscribe()``.
"""

from .config import RunnerSettings
from .core import (
    AggregateResult,
    Frame,
    LoadingState,
    QueryResult,
    QuerySpec,
    RelativeTimeRange,
)
from .runner import AlertingQueryRunner, ResultSubscription

__version__ = "0.1.0"

__all__ = [
    "AggregateResult",
    "AlertingQueryRunner",
    "Frame",
    "LoadingState",
    "QueryResult",
    "QuerySpec",
    "RelativeTimeRange",
    "ResultSubscription",
    "RunnerSettings",
]
