"""Evaluation capability exports."""

from .base import EvaluationClient
from .models import (
    EVALUATION_RESPONSE_SCHEMA,
    EvaluationRequest,
    EvaluationResponse,
    EvaluationResult,
    new_request_id,
)

__all__ = [
    "EVALUATION_RESPONSE_SCHEMA",
    "EvaluationClient",
    "EvaluationRequest",
    "EvaluationResponse",
    "EvaluationResult",
    "new_request_id",
]
