"""Data frame models, wire decoding and structure comparison."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import FrameDecodeError


class FieldType(str, Enum):
    """Column types understood by the evaluation backend."""

    TIME = "time"
    NUMBER = "number"
    STRING = "string"
    BOOLEAN = "boolean"
    TRACE = "trace"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Optional[str]) -> "FieldType":
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


class FrameField(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type: FieldType = FieldType.OTHER
    labels: Dict[str, str] = Field(default_factory=dict)
    config: Dict[str, Any] = Field(default_factory=dict)
    values: List[Any] = Field(default_factory=list)


class Frame(BaseModel):
    """A decoded column-oriented data table.

    Only the field names, types, labels and config take part in structure
    comparison; ``values`` never do.
    """

    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    ref_id: Optional[str] = None
    meta: Dict[str, Any] = Field(default_factory=dict)
    fields: List[FrameField] = Field(default_factory=list)

    @property
    def length(self) -> int:
        if not self.fields:
            return 0
        return len(self.fields[0].values)

    def field_names(self) -> List[str]:
        return [field.name for field in self.fields]

    def to_dataframe(self) -> pd.DataFrame:
        """Return the frame as a pandas DataFrame, one column per field."""
        columns: Dict[str, List[Any]] = {}
        for index, field in enumerate(self.fields):
            name = field.name or f"field_{index}"
            if name in columns:
                name = f"{name}_{index}"
            columns[name] = list(field.values)
        return pd.DataFrame(columns)


def frame_from_json(payload: Dict[str, Any]) -> Frame:
    """Decode a DataFrameJSON payload (``schema`` + ``data.values``).

    Raises:
        FrameDecodeError: For any payload that does not have the
            DataFrameJSON shape, including columns that do not line up with
            the schema fields and field entries that fail validation.
    """
    if not isinstance(payload, dict):
        raise FrameDecodeError("Frame payload must be an object")

    schema = payload.get("schema")
    if not isinstance(schema, dict):
        raise FrameDecodeError("Frame payload is missing its schema")

    field_specs = schema.get("fields") or []
    if not isinstance(field_specs, list):
        raise FrameDecodeError("Frame schema fields must be a list")

    data = payload.get("data") or {}
    if not isinstance(data, dict):
        raise FrameDecodeError("Frame data must be an object")
    values = data.get("values") or []
    if not isinstance(values, list):
        raise FrameDecodeError("Frame data values must be a list of columns")

    if values and len(values) != len(field_specs):
        raise FrameDecodeError(
            f"Frame has {len(field_specs)} fields but {len(values)} value columns"
        )

    fields: List[FrameField] = []
    for index, spec in enumerate(field_specs):
        if not isinstance(spec, dict):
            raise FrameDecodeError(f"Field {index} is not an object")
        column = values[index] if values else []
        if column is not None and not isinstance(column, list):
            raise FrameDecodeError(f"Value column {index} is not a list")
        try:
            fields.append(
                FrameField(
                    name=str(spec.get("name") or ""),
                    type=FieldType.parse(spec.get("type")),
                    labels=spec.get("labels") or {},
                    config=spec.get("config") or {},
                    values=column or [],
                )
            )
        except ValidationError as e:
            raise FrameDecodeError(f"Field {index} is invalid: {e}") from e

    try:
        return Frame(
            name=schema.get("name"),
            ref_id=schema.get("refId"),
            meta=schema.get("meta") or {},
            fields=fields,
        )
    except ValidationError as e:
        raise FrameDecodeError(f"Frame schema is invalid: {e}") from e


def compare_frame_structures(
    a: Frame, b: Frame, *, skip_config: bool = False
) -> bool:
    """True when both frames have the same field layout."""
    if a is b:
        return True
    if len(a.fields) != len(b.fields):
        return False

    for field_a, field_b in zip(a.fields, b.fields):
        if field_a.type != field_b.type:
            return False
        if field_a.name != field_b.name:
            return False
        if field_a.labels != field_b.labels:
            return False
        if skip_config:
            continue
        if field_a.config != field_b.config:
            return False

    return True


def compare_series_structures(
    a: Sequence[Frame], b: Sequence[Frame], *, skip_config: bool = False
) -> bool:
    """Pairwise frame comparison; frame count and order matter."""
    if len(a) != len(b):
        return False
    return all(
        compare_frame_structures(frame_a, frame_b, skip_config=skip_config)
        for frame_a, frame_b in zip(a, b)
    )
