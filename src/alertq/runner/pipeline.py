"""
Run pipeline: one batch evaluation end to end.

A run starts the evaluation call and a placeholder timer side by side. Both
report into a single queue that the pipeline drains:

- timer first, call still pending: emit the Loading placeholder;
- call finished: emit the terminal Done/Error mapping and stop.

The network handle is released exactly once however the run ends.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import AsyncIterator, Dict, Optional, Sequence, Tuple

from alertq.capabilities.evaluation import (
    EvaluationClient,
    EvaluationRequest,
    EvaluationResponse,
    new_request_id,
)
from alertq.config import DEFAULT_LOADING_DELAY
from alertq.core.errors import (
    FrameDecodeError,
    ProtocolError,
    QueryErrorInfo,
    TransportError,
    to_query_error,
)
from alertq.core.frames import frame_from_json
from alertq.core.models import LoadingState, QueryResult, QuerySpec
from alertq.core.reporting import ErrorReporter, LoggingErrorReporter, safe_report
from alertq.core.time_range import relative_to_time_range

logger = logging.getLogger(__name__)

_TIMER = "timer"
_NETWORK = "network"


class RunPhase(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    DONE = "done"
    ERROR = "error"
    SUPERSEDED = "superseded"


@dataclass
class PipelineRun:
    """Bookkeeping for one ``run`` invocation."""

    generation: int
    queries: Tuple[QuerySpec, ...]
    initial: Dict[str, QueryResult]
    request_id: str = field(default_factory=new_request_id)
    phase: RunPhase = RunPhase.IDLE
    placeholder_emitted: bool = False
    released: bool = False

    @property
    def finished(self) -> bool:
        return self.phase in (RunPhase.DONE, RunPhase.ERROR, RunPhase.SUPERSEDED)


@dataclass(frozen=True)
class RunEmission:
    generation: int
    results: Dict[str, QueryResult]
    terminal: bool


def initial_state(
    queries: Sequence[QuerySpec],
    state: LoadingState,
    now: Optional[datetime] = None,
) -> Dict[str, QueryResult]:
    """Per-query placeholder results with resolved time ranges."""
    now = now or datetime.now(timezone.utc)
    return {
        query.ref_id: QueryResult(
            state=state,
            series=[],
            time_range=relative_to_time_range(query.relative_time_range, now),
        )
        for query in queries
    }


def map_to_results(
    initial: Dict[str, QueryResult],
    response: EvaluationResponse,
    reporter: Optional[ErrorReporter] = None,
) -> Dict[str, QueryResult]:
    """Map a successful response onto the requested refIds.

    A refId missing from the response, carrying a backend error, or with an
    undecodable frame becomes an Error for that refId only.
    """
    results: Dict[str, QueryResult] = {}

    for ref_id, base in initial.items():
        entry = response.results.get(ref_id)
        if entry is None:
            missing = ProtocolError(
                f"Evaluation response has no result for query {ref_id}",
                ref_id=ref_id,
            )
            if reporter is not None:
                safe_report(reporter, missing, {"ref_id": ref_id})
            results[ref_id] = _as_error(base, to_query_error(missing))
            continue

        if entry.error:
            results[ref_id] = _as_error(
                base, QueryErrorInfo(message=entry.error, ref_id=ref_id)
            )
            continue

        try:
            series = [frame_from_json(payload) for payload in entry.frames]
        except FrameDecodeError as e:
            e.ref_id = ref_id
            if reporter is not None:
                safe_report(reporter, e, {"ref_id": ref_id})
            results[ref_id] = _as_error(base, to_query_error(e))
            continue

        results[ref_id] = QueryResult(
            state=LoadingState.DONE,
            time_range=base.time_range,
            series=series,
        )

    extra = set(response.results) - set(initial)
    if extra:
        logger.debug("Ignoring results for unrequested queries: %s", sorted(extra))

    return results


def map_to_error(
    initial: Dict[str, QueryResult], error: BaseException
) -> Dict[str, QueryResult]:
    """Apply one uniform error to every query of the batch."""
    query_error = to_query_error(error)
    return {ref_id: _as_error(base, query_error) for ref_id, base in initial.items()}


def _as_error(base: QueryResult, error: QueryErrorInfo) -> QueryResult:
    return base.model_copy(update={"state": LoadingState.ERROR, "error": error})


class RunPipeline:
    """Executes batches against an EvaluationClient."""

    def __init__(
        self,
        client: EvaluationClient,
        *,
        loading_delay: float = DEFAULT_LOADING_DELAY,
        reporter: Optional[ErrorReporter] = None,
    ) -> None:
        self.client = client
        self.loading_delay = loading_delay
        self.reporter = reporter or LoggingErrorReporter()

    def prepare(
        self,
        queries: Sequence[QuerySpec],
        generation: int,
        now: Optional[datetime] = None,
    ) -> PipelineRun:
        return PipelineRun(
            generation=generation,
            queries=tuple(queries),
            initial=initial_state(queries, LoadingState.LOADING, now),
        )

    async def stream(self, run: PipelineRun) -> AsyncIterator[RunEmission]:
        """Yield the optional placeholder, then the terminal results."""
        if run.phase is not RunPhase.IDLE:
            raise RuntimeError(f"Run {run.generation} was already started")

        queue: "asyncio.Queue[Tuple[str, Optional[asyncio.Future]]]" = asyncio.Queue()
        request = EvaluationRequest(request_id=run.request_id, data=list(run.queries))

        run.phase = RunPhase.PENDING
        network = asyncio.ensure_future(self.client.evaluate(request))
        network.add_done_callback(lambda task: queue.put_nowait((_NETWORK, task)))
        timer = asyncio.ensure_future(self._placeholder_timer(queue))

        try:
            while True:
                source, task = await queue.get()
                if source == _TIMER:
                    if run.phase is RunPhase.PENDING and not network.done():
                        run.placeholder_emitted = True
                        logger.debug("Run %s still pending, emitting placeholder", run.generation)
                        yield RunEmission(run.generation, dict(run.initial), terminal=False)
                    continue

                timer.cancel()
                results = self._map_outcome(run, network)
                yield RunEmission(run.generation, results, terminal=True)
                return
        except (asyncio.CancelledError, GeneratorExit):
            if not run.finished:
                run.phase = RunPhase.SUPERSEDED
            raise
        finally:
            timer.cancel()
            if not network.done():
                network.cancel()
            elif not network.cancelled():
                # Mark a failure as retrieved even when it was never mapped.
                network.exception()
            self._release(run)

    async def _placeholder_timer(
        self, queue: "asyncio.Queue[Tuple[str, Optional[asyncio.Future]]]"
    ) -> None:
        await asyncio.sleep(self.loading_delay)
        queue.put_nowait((_TIMER, None))

    def _map_outcome(
        self, run: PipelineRun, network: "asyncio.Future[EvaluationResponse]"
    ) -> Dict[str, QueryResult]:
        context = {"generation": run.generation, "request_id": run.request_id}

        if network.cancelled():
            run.phase = RunPhase.ERROR
            return map_to_error(run.initial, TransportError("Evaluation request was cancelled"))

        error = network.exception()
        if error is not None:
            run.phase = RunPhase.ERROR
            if isinstance(error, TransportError):
                logger.info("Evaluation request %s failed: %s", run.request_id, error)
            else:
                safe_report(self.reporter, error, context)
            return map_to_error(run.initial, error)

        try:
            results = map_to_results(run.initial, network.result(), self.reporter)
        except Exception as e:
            run.phase = RunPhase.ERROR
            safe_report(self.reporter, e, context)
            return map_to_error(run.initial, e)

        run.phase = RunPhase.DONE
        return results

    def _release(self, run: PipelineRun) -> None:
        if run.released:
            return
        run.released = True
        try:
            self.client.cancel(run.request_id)
        except Exception as e:
            safe_report(self.reporter, e, {"request_id": run.request_id, "stage": "release"})
