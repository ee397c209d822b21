"""Mock evaluation client used as a golden reference implementation."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from alertq.capabilities.evaluation import (
    EvaluationClient,
    EvaluationRequest,
    EvaluationResponse,
    EvaluationResult,
)

FieldSpec = Union[str, Tuple[str, str]]


def frame_json(
    fields: Sequence[FieldSpec],
    values: Optional[Sequence[Sequence[Any]]] = None,
    *,
    name: Optional[str] = None,
    ref_id: Optional[str] = None,
    labels: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """Build a DataFrameJSON payload.

    ``fields`` entries are either a name (type "number", "time" for a field
    called "time") or a ``(name, type)`` pair.
    """
    schema_fields: List[Dict[str, Any]] = []
    for spec in fields:
        if isinstance(spec, tuple):
            field_name, field_type = spec
        else:
            field_name = spec
            field_type = "time" if spec == "time" else "number"
        entry: Dict[str, Any] = {"name": field_name, "type": field_type}
        if labels and field_type != "time":
            entry["labels"] = dict(labels)
        schema_fields.append(entry)

    schema: Dict[str, Any] = {"fields": schema_fields}
    if name is not None:
        schema["name"] = name
    if ref_id is not None:
        schema["refId"] = ref_id

    columns = [list(column) for column in values] if values else [[] for _ in fields]
    return {"schema": schema, "data": {"values": columns}}


class MockEvaluationClient(EvaluationClient):
    """Deterministic in-memory backend.

    Args:
        frames: refId -> list of DataFrameJSON payloads returned for it.
        errors: refId -> per-query error message returned for it.
        failure: Exception raised for every call instead of answering.
        delay: Seconds to wait before answering.
    """

    def __init__(
        self,
        frames: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        *,
        errors: Optional[Dict[str, str]] = None,
        failure: Optional[BaseException] = None,
        delay: float = 0.0,
    ) -> None:
        self.frames: Dict[str, List[Dict[str, Any]]] = dict(frames or {})
        self.errors: Dict[str, str] = dict(errors or {})
        self.failure = failure
        self.delay = delay
        self.requests: List[EvaluationRequest] = []
        self.cancelled: List[str] = []

    def set_frames(self, ref_id: str, frames: List[Dict[str, Any]]) -> None:
        self.frames[ref_id] = frames

    async def evaluate(self, request: EvaluationRequest) -> EvaluationResponse:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.failure is not None:
            raise self.failure

        results: Dict[str, EvaluationResult] = {}
        for query in request.data:
            if query.ref_id in self.errors:
                results[query.ref_id] = EvaluationResult(error=self.errors[query.ref_id])
            elif query.ref_id in self.frames:
                results[query.ref_id] = EvaluationResult(frames=self.frames[query.ref_id])
        return EvaluationResponse(results=results)

    def cancel(self, request_id: str) -> None:
        self.cancelled.append(request_id)
