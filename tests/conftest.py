"""
Pytest configuration and shared fixtures for the alertq test suite.
"""

import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

import pytest

from alertq.capabilities.evaluation import (
    EvaluationClient,
    EvaluationRequest,
    EvaluationResponse,
    EvaluationResult,
)
from alertq.core.models import QuerySpec, RelativeTimeRange
from alertq.integrations.mock import frame_json

FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


class ControlledEvaluationClient(EvaluationClient):
    """Evaluation client whose calls stay pending until the test resolves them."""

    def __init__(self) -> None:
        self.calls: List[Tuple[EvaluationRequest, asyncio.Future]] = []
        self.cancelled: List[str] = []

    async def evaluate(self, request: EvaluationRequest) -> EvaluationResponse:
        future = asyncio.get_running_loop().create_future()
        self.calls.append((request, future))
        return await future

    def cancel(self, request_id: str) -> None:
        self.cancelled.append(request_id)

    async def wait_for_calls(self, count: int) -> None:
        for _ in range(200):
            if len(self.calls) >= count:
                return
            await asyncio.sleep(0)
        raise AssertionError(f"expected {count} evaluate calls, got {len(self.calls)}")

    def respond(self, index: int, frames: Dict[str, list]) -> None:
        _, future = self.calls[index]
        if not future.done():
            future.set_result(
                EvaluationResponse(
                    results={
                        ref_id: EvaluationResult(frames=payloads)
                        for ref_id, payloads in frames.items()
                    }
                )
            )

    def fail(self, index: int, error: BaseException) -> None:
        _, future = self.calls[index]
        if not future.done():
            future.set_exception(error)


def make_query(
    ref_id: str,
    from_seconds: Optional[int] = 3600,
    expr: str = "up",
) -> QuerySpec:
    relative = (
        RelativeTimeRange(from_=from_seconds, to=0) if from_seconds is not None else None
    )
    return QuerySpec(
        ref_id=ref_id,
        relative_time_range=relative,
        datasource_uid="prom",
        model={"expr": expr, "refId": ref_id},
    )


def time_value_frame(*extra_fields: str) -> dict:
    fields = ["time", "value", *extra_fields]
    return frame_json(fields, [[1, 2]] + [[3, 4] for _ in fields[1:]])


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def controlled_client() -> ControlledEvaluationClient:
    return ControlledEvaluationClient()


async def next_result(subscription, timeout: float = 2.0):
    return await asyncio.wait_for(subscription.get(), timeout)


def malformed_frames() -> List[dict]:
    """Frame payloads that pass the response schema but cannot be decoded."""
    bad_labels = frame_json(["time", "value"], [[1], [2]])
    bad_labels["schema"]["fields"][1]["labels"] = {"le": 1}
    return [
        {"schema": {"fields": [{"name": "value"}]}, "data": {"values": [5]}},
        {"schema": {"fields": [{"name": "value"}]}, "data": "oops"},
        bad_labels,
    ]
