"""Evaluation request/response wire models."""

from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from jsonschema import validate
from jsonschema.exceptions import ValidationError as JsonSchemaValidationError
from pydantic import BaseModel, ConfigDict, Field

from alertq.core.errors import ProtocolError
from alertq.core.models import QuerySpec


EVALUATION_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["results"],
    "properties": {
        "results": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "properties": {
                    "frames": {"type": ["array", "null"], "items": {"type": "object"}},
                    "error": {"type": ["string", "null"]},
                },
                "additionalProperties": True,
            },
        },
    },
    "additionalProperties": True,
}


def new_request_id() -> str:
    return f"alertq_{uuid.uuid4().hex[:12]}"


class EvaluationRequest(BaseModel):
    """A batch of queries plus the id used to cancel the call."""

    model_config = ConfigDict(frozen=True)

    request_id: str = Field(default_factory=new_request_id)
    data: List[QuerySpec] = Field(default_factory=list)

    def to_body(self) -> Dict[str, Any]:
        return {"data": [query.to_wire() for query in self.data]}


class EvaluationResult(BaseModel):
    frames: List[Dict[str, Any]] = Field(default_factory=list)
    error: Optional[str] = None


class EvaluationResponse(BaseModel):
    results: Dict[str, EvaluationResult] = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any) -> "EvaluationResponse":
        """Validate a decoded response body.

        Raises:
            ProtocolError: If the body does not match the wire contract.
        """
        try:
            validate(instance=payload, schema=EVALUATION_RESPONSE_SCHEMA)
        except JsonSchemaValidationError as e:
            raise ProtocolError(f"Invalid evaluation response: {e.message}") from e

        results = {
            ref_id: EvaluationResult(
                frames=entry.get("frames") or [],
                error=entry.get("error"),
            )
            for ref_id, entry in payload["results"].items()
        }
        return cls(results=results)
