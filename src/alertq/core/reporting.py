"""
Error reporter interface and reference implementations.

Unexpected failures inside a run (malformed responses, undecodable frames)
are handed to an ErrorReporter instead of being raised, so that the run can
still publish its error-state aggregate.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)


class ErrorReporter(ABC):
    """Receives errors that were converted into query results."""

    @abstractmethod
    def report(
        self, error: BaseException, context: Optional[Mapping[str, Any]] = None
    ) -> None:
        ...


class LoggingErrorReporter(ErrorReporter):
    """Default reporter: writes to the ``alertq`` logger."""

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self._log = log or logger

    def report(
        self, error: BaseException, context: Optional[Mapping[str, Any]] = None
    ) -> None:
        self._log.error(
            "Query runner error: %s (context=%s)",
            error,
            dict(context or {}),
            exc_info=(type(error), error, error.__traceback__),
        )


@dataclass
class ReportedError:
    error: BaseException
    context: Dict[str, Any] = field(default_factory=dict)


class InMemoryErrorReporter(ErrorReporter):
    """Non-persistent reporter that keeps every report, for tests."""

    def __init__(self) -> None:
        self.reports: List[ReportedError] = []

    def report(
        self, error: BaseException, context: Optional[Mapping[str, Any]] = None
    ) -> None:
        self.reports.append(ReportedError(error=error, context=dict(context or {})))

    def errors_of(self, error_type: type) -> List[BaseException]:
        return [r.error for r in self.reports if isinstance(r.error, error_type)]

    def clear(self) -> None:
        self.reports.clear()


def safe_report(
    reporter: ErrorReporter,
    error: BaseException,
    context: Optional[Mapping[str, Any]] = None,
) -> None:
    """Report ``error``; a failing reporter is logged, never raised."""
    try:
        reporter.report(error, context)
    except Exception:
        logger.warning("Error reporter %r failed", reporter, exc_info=True)
