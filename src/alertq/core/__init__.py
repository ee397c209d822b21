"""Core value types, frame handling and revision tracking."""

from .errors import (
    AlertQueryError,
    FrameDecodeError,
    ProtocolError,
    QueryBatchError,
    QueryErrorInfo,
    StaleRunError,
    TransportError,
    to_query_error,
)
from .frames import (
    FieldType,
    Frame,
    FrameField,
    compare_frame_structures,
    compare_series_structures,
    frame_from_json,
)
from .models import (
    AggregateResult,
    LoadingState,
    QueryResult,
    QuerySpec,
    RelativeTimeRange,
    TimeRange,
)
from .reporting import ErrorReporter, InMemoryErrorReporter, LoggingErrorReporter
from .revision import StructureRevisionTracker, set_structure_revision
from .time_range import relative_to_time_range

__all__ = [
    "AggregateResult",
    "AlertQueryError",
    "ErrorReporter",
    "FieldType",
    "Frame",
    "FrameDecodeError",
    "FrameField",
    "InMemoryErrorReporter",
    "LoadingState",
    "LoggingErrorReporter",
    "ProtocolError",
    "QueryBatchError",
    "QueryErrorInfo",
    "QueryResult",
    "QuerySpec",
    "RelativeTimeRange",
    "StaleRunError",
    "StructureRevisionTracker",
    "TimeRange",
    "TransportError",
    "compare_frame_structures",
    "compare_series_structures",
    "frame_from_json",
    "relative_to_time_range",
    "set_structure_revision",
    "to_query_error",
]
