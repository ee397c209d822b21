"""Query runner, run pipeline and result stream."""

from .pipeline import (
    PipelineRun,
    RunEmission,
    RunPhase,
    RunPipeline,
    initial_state,
    map_to_error,
    map_to_results,
)
from .query_runner import AlertingQueryRunner
from .stream import ResultStream, ResultSubscription, SubscriptionClosed

__all__ = [
    "AlertingQueryRunner",
    "PipelineRun",
    "ResultStream",
    "ResultSubscription",
    "RunEmission",
    "RunPhase",
    "RunPipeline",
    "SubscriptionClosed",
    "initial_state",
    "map_to_error",
    "map_to_results",
]
