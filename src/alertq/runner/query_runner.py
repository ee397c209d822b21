"""
Stateful runner that observers subscribe to.

Holds the last result per refId, publishes aggregates through a replay-latest
stream, and makes sure a superseded run can never overwrite a newer one:
every ``run`` gets a new generation, and emissions from any other generation
are dropped.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from alertq.capabilities.evaluation import EvaluationClient
from alertq.config import DEFAULT_LOADING_DELAY, RunnerSettings
from alertq.core.errors import QueryBatchError, StaleRunError
from alertq.core.models import AggregateResult, QueryResult, QuerySpec
from alertq.core.reporting import ErrorReporter, LoggingErrorReporter, safe_report
from alertq.core.revision import StructureRevisionTracker

from .pipeline import PipelineRun, RunEmission, RunPipeline, map_to_error
from .stream import ResultStream, ResultSubscription

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AlertingQueryRunner:
    """Runs batches of alert queries and publishes their aggregate state.

    Args:
        client: Backend evaluation client.
        loading_delay: Seconds before the Loading placeholder is published.
        reporter: Receives errors converted into query results.
        owns_client: Close ``client`` in ``aclose()``.
        clock: Returns "now" for time-range resolution.
    """

    def __init__(
        self,
        client: EvaluationClient,
        *,
        loading_delay: float = DEFAULT_LOADING_DELAY,
        reporter: Optional[ErrorReporter] = None,
        owns_client: bool = False,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._client = client
        self._owns_client = owns_client
        self._reporter = reporter or LoggingErrorReporter()
        self._clock = clock or _utcnow
        self._pipeline = RunPipeline(
            client, loading_delay=loading_delay, reporter=self._reporter
        )
        self._stream = ResultStream()
        self._revisions = StructureRevisionTracker()
        self._last_result: Dict[str, QueryResult] = {}
        self._ref_ids: Tuple[str, ...] = ()
        self._generation = 0
        self._current: Optional[PipelineRun] = None
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(
        cls,
        settings: Optional[RunnerSettings] = None,
        *,
        reporter: Optional[ErrorReporter] = None,
        **client_kwargs: Any,
    ) -> "AlertingQueryRunner":
        """Build a runner with an HTTP client; settings default to the env."""
        from alertq.integrations.http import HttpEvaluationClient

        settings = settings or RunnerSettings.from_env()
        client = HttpEvaluationClient.from_settings(settings, **client_kwargs)
        return cls(
            client,
            loading_delay=settings.loading_delay,
            reporter=reporter,
            owns_client=True,
        )

    @property
    def latest(self) -> Optional[AggregateResult]:
        return self._stream.latest

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def current_run(self) -> Optional[PipelineRun]:
        return self._current

    def subscribe(self) -> ResultSubscription:
        """Stream of aggregates, starting with the latest one if any."""
        return self._stream.subscribe()

    async def run(self, queries: Sequence[QuerySpec]) -> None:
        """Start evaluating ``queries``; supersedes any run in flight.

        Returns once the run is started. Raises QueryBatchError for a batch
        with duplicate refIds, before touching any state.
        """
        queries = tuple(queries)
        _check_unique_ref_ids(queries)

        self._stop_current()
        self._generation += 1
        generation = self._generation
        self._ref_ids = tuple(query.ref_id for query in queries)

        if not queries:
            logger.debug("Run %s has no queries", generation)
            self._stream.publish(AggregateResult({}, generation=generation))
            return

        run = self._pipeline.prepare(queries, generation, now=self._clock())
        self._current = run
        logger.debug(
            "Starting run %s (%s) for queries %s",
            generation,
            run.request_id,
            list(self._ref_ids),
        )
        self._task = asyncio.create_task(self._consume(run))

    def cancel(self) -> None:
        """Stop the run in flight; the latest aggregate stays current."""
        if self._current is not None:
            logger.debug("Cancelling run %s", self._current.generation)
        self._stop_current()

    async def join(self) -> None:
        """Wait until the run in flight (if any) has settled."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait({task})

    async def aclose(self) -> None:
        self.cancel()
        await self.join()
        self._stream.close()
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "AlertingQueryRunner":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def _stop_current(self) -> None:
        # The task reference is kept so join() can wait for its cleanup.
        self._current = None
        task = self._task
        if task is not None and not task.done():
            task.cancel()

    async def _consume(self, run: PipelineRun) -> None:
        try:
            async with aclosing(self._pipeline.stream(run)) as emissions:
                async for emission in emissions:
                    self._handle(emission)
        except asyncio.CancelledError:
            logger.debug("Run %s cancelled", run.generation)
            raise
        except StaleRunError as e:
            # Closing the stream above already released the request.
            logger.debug("Dropping results: %s", e)
        except Exception as e:
            safe_report(self._reporter, e, {"generation": run.generation})
            try:
                self._handle(
                    RunEmission(run.generation, map_to_error(run.initial, e), terminal=True)
                )
            except StaleRunError as stale:
                logger.debug("Dropping results: %s", stale)
        finally:
            if self._current is run:
                self._current = None

    def _handle(self, emission: RunEmission) -> None:
        """Record and publish ``emission``.

        Raises:
            StaleRunError: If the emission belongs to a superseded run.
        """
        current = self._current
        if current is None or emission.generation != current.generation:
            raise StaleRunError(emission.generation, self._generation)

        for ref_id, result in emission.results.items():
            self._last_result[ref_id] = self._revisions.apply(ref_id, result)
        self._publish(emission.generation)

    def _publish(self, generation: int) -> None:
        results = {
            ref_id: self._last_result[ref_id]
            for ref_id in self._ref_ids
            if ref_id in self._last_result
        }
        self._stream.publish(AggregateResult(results, generation=generation))


def _check_unique_ref_ids(queries: Sequence[QuerySpec]) -> None:
    seen = set()
    duplicates = []
    for query in queries:
        if query.ref_id in seen and query.ref_id not in duplicates:
            duplicates.append(query.ref_id)
        seen.add(query.ref_id)
    if duplicates:
        raise QueryBatchError(f"Duplicate refIds in batch: {duplicates}")
