"""HTTP evaluation client backed by httpx.

Calls are tracked by request id: starting a call with an id that is still
in flight cancels the earlier call, and ``cancel(request_id)`` aborts it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from alertq.capabilities.evaluation import (
    EvaluationClient,
    EvaluationRequest,
    EvaluationResponse,
)
from alertq.config import DEFAULT_EVAL_PATH, DEFAULT_TIMEOUT, RunnerSettings
from alertq.core.errors import ProtocolError, TransportError

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-Id"


class HttpEvaluationClient(EvaluationClient):
    """Evaluation client for the backend's ``POST /api/v1/eval`` endpoint.

    Args:
        base_url: Backend root URL (e.g. "http://localhost:3000").
        eval_path: Evaluation endpoint path.
        timeout: Per-request timeout in seconds.
        api_token: Optional bearer token.
        headers: Extra default headers.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        *,
        eval_path: str = DEFAULT_EVAL_PATH,
        timeout: float = DEFAULT_TIMEOUT,
        api_token: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        default_headers: Dict[str, str] = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if api_token:
            default_headers["Authorization"] = f"Bearer {api_token}"
        if headers:
            default_headers.update(headers)

        self.eval_path = eval_path
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers=default_headers,
            transport=transport,
        )
        self._inflight: Dict[str, asyncio.Task] = {}

    @classmethod
    def from_settings(
        cls,
        settings: RunnerSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "HttpEvaluationClient":
        return cls(
            settings.base_url,
            eval_path=settings.eval_path,
            timeout=settings.timeout,
            api_token=settings.api_token,
            transport=transport,
        )

    @property
    def inflight_count(self) -> int:
        return sum(1 for task in self._inflight.values() if not task.done())

    async def evaluate(self, request: EvaluationRequest) -> EvaluationResponse:
        self.cancel(request.request_id)

        task = asyncio.ensure_future(self._post(request))
        self._inflight[request.request_id] = task
        try:
            return await task
        finally:
            if self._inflight.get(request.request_id) is task:
                del self._inflight[request.request_id]

    def cancel(self, request_id: str) -> None:
        task = self._inflight.pop(request_id, None)
        if task is not None and not task.done():
            logger.debug("Cancelling evaluation request %s", request_id)
            task.cancel()

    async def aclose(self) -> None:
        for request_id in list(self._inflight):
            self.cancel(request_id)
        await self._client.aclose()

    async def __aenter__(self) -> "HttpEvaluationClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _post(self, request: EvaluationRequest) -> EvaluationResponse:
        try:
            response = await self._client.post(
                self.eval_path,
                json=request.to_body(),
                headers={REQUEST_ID_HEADER: request.request_id},
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"Evaluation request timed out: {e}") from e
        except httpx.RequestError as e:
            raise TransportError(f"Evaluation request failed: {e}") from e

        if response.is_error:
            raise TransportError(
                f"Evaluation failed with status {response.status_code}",
                status=response.status_code,
                status_text=response.reason_phrase,
                data=_json_or_text(response),
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise ProtocolError("Evaluation response is not valid JSON") from e

        return EvaluationResponse.from_payload(payload)


def _json_or_text(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None
