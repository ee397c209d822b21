"""Backend evaluation client interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from .models import EvaluationRequest, EvaluationResponse


class EvaluationClient(ABC):
    """Evaluates a batch of alert queries on the backend."""

    @abstractmethod
    async def evaluate(self, request: EvaluationRequest) -> EvaluationResponse:
        """Evaluate ``request.data``; raise on transport or protocol failure."""
        pass

    @abstractmethod
    def cancel(self, request_id: str) -> None:
        """Abort the in-flight call tagged ``request_id``, if any."""
        pass

    async def aclose(self) -> None:
        """Release client resources."""
        return None
