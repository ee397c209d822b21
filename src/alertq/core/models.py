"""Query, result and aggregate models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .errors import QueryErrorInfo
from .frames import Frame

# Grafana-style alert queries look back ten minutes unless told otherwise.
DEFAULT_RELATIVE_FROM_SECONDS = 600


class LoadingState(str, Enum):
    NOT_STARTED = "NotStarted"
    LOADING = "Loading"
    DONE = "Done"
    ERROR = "Error"


class RelativeTimeRange(BaseModel):
    """Window expressed as seconds before "now" (``from`` >= ``to`` >= 0)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_: int = Field(default=DEFAULT_RELATIVE_FROM_SECONDS, alias="from", ge=0)
    to: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def check_order(self) -> "RelativeTimeRange":
        if self.from_ < self.to:
            raise ValueError("relative range 'from' must not be after 'to'")
        return self


class RawTimeRange(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_: str = Field(alias="from")
    to: str


class TimeRange(BaseModel):
    """Absolute window resolved from a RelativeTimeRange."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_: datetime = Field(alias="from")
    to: datetime
    raw: RawTimeRange


class QuerySpec(BaseModel):
    """One alerting query as submitted to the evaluation backend."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    ref_id: str = Field(alias="refId")
    relative_time_range: Optional[RelativeTimeRange] = Field(
        default=None, alias="relativeTimeRange"
    )
    query_type: str = Field(default="", alias="queryType")
    datasource_uid: Optional[str] = Field(default=None, alias="datasourceUid")
    model: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("ref_id")
    @classmethod
    def check_ref_id(cls, value: str) -> str:
        if not value:
            raise ValueError("refId must not be empty")
        return value

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class QueryResult(BaseModel):
    """Per-query state within an aggregate."""

    model_config = ConfigDict(frozen=True)

    state: LoadingState
    time_range: TimeRange
    series: List[Frame] = Field(default_factory=list)
    error: Optional[QueryErrorInfo] = None
    structure_revision: Optional[int] = Field(default=None, ge=1)


class AggregateResult(Mapping[str, QueryResult]):
    """Read-only ``refId -> QueryResult`` view published to subscribers."""

    __slots__ = ("_results", "generation")

    def __init__(
        self,
        results: Optional[Mapping[str, QueryResult]] = None,
        *,
        generation: int = 0,
    ) -> None:
        self._results = MappingProxyType(dict(results or {}))
        self.generation = generation

    def __getitem__(self, ref_id: str) -> QueryResult:
        return self._results[ref_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._results)

    def __len__(self) -> int:
        return len(self._results)

    def __repr__(self) -> str:
        states = {ref_id: result.state.value for ref_id, result in self._results.items()}
        return f"AggregateResult(generation={self.generation}, states={states})"

    @property
    def state(self) -> LoadingState:
        states = {result.state for result in self._results.values()}
        if LoadingState.LOADING in states:
            return LoadingState.LOADING
        if LoadingState.ERROR in states:
            return LoadingState.ERROR
        return LoadingState.DONE
