"""Tests for the run pipeline: mapping, placeholder race and cleanup."""

import asyncio
from contextlib import aclosing

import pytest

from conftest import FIXED_NOW, make_query, malformed_frames, time_value_frame

from alertq.capabilities.evaluation import EvaluationResponse, EvaluationResult
from alertq.core.errors import FrameDecodeError, ProtocolError, TransportError
from alertq.core.models import LoadingState
from alertq.core.reporting import InMemoryErrorReporter
from alertq.integrations.mock import MockEvaluationClient
from alertq.runner.pipeline import (
    RunPhase,
    RunPipeline,
    initial_state,
    map_to_error,
    map_to_results,
)


def _initial(*ref_ids):
    return initial_state([make_query(r) for r in ref_ids], LoadingState.LOADING, FIXED_NOW)


class TestMapping:
    def test_initial_state_is_loading_with_resolved_ranges(self):
        initial = _initial("A", "B")
        assert set(initial) == {"A", "B"}
        for result in initial.values():
            assert result.state == LoadingState.LOADING
            assert result.series == []
            assert result.error is None
            assert result.time_range.to == FIXED_NOW

    def test_success_maps_frames_in_response_order(self):
        first = time_value_frame()
        second = time_value_frame("label")
        response = EvaluationResponse(
            results={"A": EvaluationResult(frames=[first, second])}
        )
        results = map_to_results(_initial("A"), response)
        assert results["A"].state == LoadingState.DONE
        assert [f.field_names() for f in results["A"].series] == [
            ["time", "value"],
            ["time", "value", "label"],
        ]

    def test_missing_ref_id_becomes_error_for_that_query_only(self):
        reporter = InMemoryErrorReporter()
        response = EvaluationResponse(
            results={
                "A": EvaluationResult(frames=[time_value_frame()]),
                "C": EvaluationResult(frames=[time_value_frame()]),
            }
        )
        initial = _initial("A", "B", "C")
        results = map_to_results(initial, response, reporter)

        assert results["A"].state == LoadingState.DONE
        assert results["C"].state == LoadingState.DONE
        assert results["B"].state == LoadingState.ERROR
        assert results["B"].error.ref_id == "B"
        assert results["B"].time_range == initial["B"].time_range
        assert len(reporter.errors_of(ProtocolError)) == 1

    def test_backend_error_entry_becomes_error(self):
        response = EvaluationResponse(results={"A": EvaluationResult(error="parse error")})
        results = map_to_results(_initial("A"), response)
        assert results["A"].state == LoadingState.ERROR
        assert results["A"].error.message == "parse error"

    def test_undecodable_frame_is_isolated_and_reported(self):
        reporter = InMemoryErrorReporter()
        response = EvaluationResponse(
            results={
                "A": EvaluationResult(frames=[{"data": {}}]),
                "B": EvaluationResult(frames=[time_value_frame()]),
            }
        )
        results = map_to_results(_initial("A", "B"), response, reporter)
        assert results["A"].state == LoadingState.ERROR
        assert results["B"].state == LoadingState.DONE
        (error,) = reporter.errors_of(FrameDecodeError)
        assert error.ref_id == "A"

    @pytest.mark.parametrize("bad_frame", malformed_frames())
    def test_malformed_frame_does_not_fail_other_queries(self, bad_frame):
        reporter = InMemoryErrorReporter()
        response = EvaluationResponse(
            results={
                "A": EvaluationResult(frames=[bad_frame]),
                "B": EvaluationResult(frames=[time_value_frame()]),
            }
        )
        results = map_to_results(_initial("A", "B"), response, reporter)

        assert results["A"].state == LoadingState.ERROR
        assert results["A"].error.ref_id == "A"
        assert results["B"].state == LoadingState.DONE
        assert len(reporter.errors_of(FrameDecodeError)) == 1

    def test_unrequested_results_are_ignored(self):
        response = EvaluationResponse(
            results={
                "A": EvaluationResult(frames=[]),
                "Z": EvaluationResult(frames=[time_value_frame()]),
            }
        )
        assert set(map_to_results(_initial("A"), response)) == {"A"}

    def test_transport_error_applies_to_every_query(self):
        initial = _initial("A", "B", "C")
        results = map_to_error(initial, TransportError("gateway timeout", status=504))
        assert len(results) == 3
        for ref_id, result in results.items():
            assert result.state == LoadingState.ERROR
            assert result.error.message == "gateway timeout"
            assert result.error.status == 504
            assert result.time_range == initial[ref_id].time_range


async def _collect(pipeline, run):
    async with aclosing(pipeline.stream(run)) as emissions:
        return [emission async for emission in emissions]


@pytest.mark.asyncio
async def test_fast_response_suppresses_placeholder():
    client = MockEvaluationClient({"A": [time_value_frame()]})
    pipeline = RunPipeline(client, loading_delay=0.5)
    run = pipeline.prepare([make_query("A")], generation=1, now=FIXED_NOW)

    emissions = await _collect(pipeline, run)

    assert len(emissions) == 1
    assert emissions[0].terminal
    assert emissions[0].results["A"].state == LoadingState.DONE
    assert run.phase == RunPhase.DONE
    assert not run.placeholder_emitted
    assert client.cancelled == [run.request_id]
    assert client.requests[0].request_id == run.request_id


@pytest.mark.asyncio
async def test_slow_response_emits_placeholder_first(controlled_client):
    pipeline = RunPipeline(controlled_client, loading_delay=0.01)
    run = pipeline.prepare([make_query("A")], generation=7, now=FIXED_NOW)

    async with aclosing(pipeline.stream(run)) as emissions:
        placeholder = await asyncio.wait_for(emissions.__anext__(), 1.0)
        assert not placeholder.terminal
        assert placeholder.generation == 7
        assert placeholder.results["A"].state == LoadingState.LOADING

        controlled_client.respond(0, {"A": [time_value_frame()]})
        terminal = await asyncio.wait_for(emissions.__anext__(), 1.0)
        assert terminal.terminal
        assert terminal.results["A"].state == LoadingState.DONE

    assert run.placeholder_emitted
    assert controlled_client.cancelled == [run.request_id]


@pytest.mark.asyncio
async def test_failure_maps_to_uniform_error():
    reporter = InMemoryErrorReporter()
    client = MockEvaluationClient(failure=TransportError("connection reset"))
    pipeline = RunPipeline(client, loading_delay=0.5, reporter=reporter)
    run = pipeline.prepare([make_query("A"), make_query("B")], generation=1)

    (emission,) = await _collect(pipeline, run)

    assert run.phase == RunPhase.ERROR
    assert {r.state for r in emission.results.values()} == {LoadingState.ERROR}
    # Transport failures are expected and only logged.
    assert reporter.reports == []
    assert client.cancelled == [run.request_id]


@pytest.mark.asyncio
async def test_unexpected_client_failure_is_reported():
    reporter = InMemoryErrorReporter()
    client = MockEvaluationClient(failure=KeyError("results"))
    pipeline = RunPipeline(client, loading_delay=0.5, reporter=reporter)
    run = pipeline.prepare([make_query("A")], generation=1)

    (emission,) = await _collect(pipeline, run)

    assert emission.results["A"].state == LoadingState.ERROR
    assert len(reporter.errors_of(KeyError)) == 1


@pytest.mark.asyncio
async def test_closing_mid_flight_releases_once_and_cancels_call(controlled_client):
    pipeline = RunPipeline(controlled_client, loading_delay=0.01)
    run = pipeline.prepare([make_query("A")], generation=1)

    emissions = pipeline.stream(run)
    await asyncio.wait_for(emissions.__anext__(), 1.0)
    await emissions.aclose()

    _, future = controlled_client.calls[0]
    await asyncio.sleep(0)
    assert future.cancelled()
    assert run.phase == RunPhase.SUPERSEDED
    assert run.released
    assert controlled_client.cancelled == [run.request_id]


@pytest.mark.asyncio
async def test_run_cannot_be_streamed_twice():
    client = MockEvaluationClient({"A": []})
    pipeline = RunPipeline(client, loading_delay=0.5)
    run = pipeline.prepare([make_query("A")], generation=1)
    await _collect(pipeline, run)

    with pytest.raises(RuntimeError, match="already started"):
        await _collect(pipeline, run)
