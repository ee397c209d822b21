"""Prometheus query payload and a pure edit reducer.

Edits never mutate the query they are applied to; ``apply_query_edit``
returns a new query, and callers pass that query to the runner explicitly.
"""

from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import QuerySpec

QueryFormat = Literal["time_series", "table", "heatmap"]

FORMAT_OPTIONS: Dict[str, str] = {
    "time_series": "Time series",
    "table": "Table",
    "heatmap": "Heatmap",
}

INTERVAL_FACTOR_OPTIONS = (1, 2, 3, 4, 5, 10)

# Changing one of these re-runs the query right away; text inputs only run
# once the edit is committed.
_RUN_ON_CHANGE = frozenset({"format", "instant", "interval_factor", "exemplar"})


def format_label(format: str) -> str:
    """Display label for a query format, e.g. "Time series"."""
    return FORMAT_OPTIONS[format]


def interval_factor_label(factor: int) -> str:
    return f"1/{factor}"


class PromQuery(BaseModel):
    """Prometheus query payload as stored in ``QuerySpec.model``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    expr: str = ""
    legend_format: str = Field(default="", alias="legendFormat")
    interval: str = ""
    interval_factor: int = Field(default=1, alias="intervalFactor")
    format: QueryFormat = "time_series"
    instant: bool = False
    exemplar: bool = True
    hide: bool = False

    @field_validator("interval_factor")
    @classmethod
    def check_interval_factor(cls, value: int) -> int:
        if value not in INTERVAL_FACTOR_OPTIONS:
            raise ValueError(
                f"interval factor must be one of {list(INTERVAL_FACTOR_OPTIONS)}"
            )
        return value

    @classmethod
    def from_model(cls, model: Dict[str, Any]) -> "PromQuery":
        """Read a query payload, ignoring keys this model does not know."""
        known = {name for name in cls.model_fields}
        known |= {f.alias for f in cls.model_fields.values() if f.alias}
        return cls.model_validate({k: v for k, v in model.items() if k in known})

    def to_model(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class PromQueryEdit(BaseModel):
    """A single user edit; ``None`` means "leave unchanged"."""

    model_config = ConfigDict(frozen=True)

    expr: Optional[str] = None
    legend_format: Optional[str] = None
    interval: Optional[str] = None
    interval_factor: Optional[int] = None
    format: Optional[QueryFormat] = None
    instant: Optional[bool] = None
    exemplar: Optional[bool] = None
    hide: Optional[bool] = None

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


def apply_query_edit(query: PromQuery, edit: PromQueryEdit) -> PromQuery:
    changes = edit.changes()
    if not changes:
        return query
    # Re-validate so an out-of-range interval factor is rejected.
    return PromQuery.model_validate({**query.model_dump(), **changes})


def edit_triggers_run(edit: PromQueryEdit) -> bool:
    return bool(_RUN_ON_CHANGE & edit.changes().keys())


def apply_spec_edit(spec: QuerySpec, edit: PromQueryEdit) -> QuerySpec:
    """Apply ``edit`` to the Prometheus payload of ``spec``.

    Keys of the payload unknown to PromQuery (datasource refs, etc.) are kept.
    """
    current = PromQuery.from_model(spec.model)
    updated = apply_query_edit(current, edit)
    return spec.model_copy(update={"model": {**spec.model, **updated.to_model()}})
