"""Error taxonomy for query evaluation and the per-query error payload."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel


class AlertQueryError(Exception):
    """Base class for errors raised while evaluating alert queries."""


class TransportError(AlertQueryError):
    """The evaluation call failed outright (network, timeout, bad status)."""

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        status_text: Optional[str] = None,
        data: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.status_text = status_text
        self.data = data


class ProtocolError(AlertQueryError):
    """The backend answered, but not in the shape that was asked for."""

    def __init__(self, message: str, *, ref_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.ref_id = ref_id


class FrameDecodeError(ProtocolError):
    """A frame payload could not be decoded."""


class StaleRunError(AlertQueryError):
    """A run completed after a newer run superseded it."""

    def __init__(self, generation: int, current_generation: int) -> None:
        super().__init__(
            f"Run {generation} superseded by run {current_generation}"
        )
        self.generation = generation
        self.current_generation = current_generation


class QueryBatchError(ValueError):
    """The submitted batch is malformed (e.g. duplicate refIds)."""


class QueryErrorInfo(BaseModel):
    """Error payload attached to a failed QueryResult."""

    message: str
    status: Optional[int] = None
    status_text: Optional[str] = None
    data: Any = None
    ref_id: Optional[str] = None


_DEFAULT_MESSAGE = "Query error"


def to_query_error(error: BaseException, *, ref_id: Optional[str] = None) -> QueryErrorInfo:
    """Normalize any exception into a QueryErrorInfo.

    The message is taken, in order, from the response body ``message``, the
    response body ``error``, the exception text, and the status text.
    """
    status = getattr(error, "status", None)
    status_text = getattr(error, "status_text", None)
    data = getattr(error, "data", None)
    if ref_id is None:
        ref_id = getattr(error, "ref_id", None)

    message: Optional[str] = None
    if isinstance(data, dict):
        for key in ("message", "error"):
            value = data.get(key)
            if isinstance(value, str) and value:
                message = value
                break
    if not message:
        message = str(error) or None
    if not message:
        message = status_text or _DEFAULT_MESSAGE

    return QueryErrorInfo(
        message=message,
        status=status,
        status_text=status_text,
        data=data,
        ref_id=ref_id,
    )
