"""Golden path: run a query batch against the mock backend and watch states."""

import asyncio

from alertq import AlertingQueryRunner, QuerySpec, RelativeTimeRange
from alertq.core.query_edit import (
    PromQuery,
    PromQueryEdit,
    apply_spec_edit,
    edit_triggers_run,
    format_label,
)
from alertq.integrations.mock import MockEvaluationClient, frame_json


def build_runner() -> AlertingQueryRunner:
    client = MockEvaluationClient(
        {
            "A": [frame_json(["time", "value"], [[1, 2], [0.5, 0.7]], labels={"job": "api"})],
            "B": [frame_json(["time", "value"], [[1, 2], [3, 4]])],
        },
        delay=0.3,
    )
    return AlertingQueryRunner(client, loading_delay=0.1)


async def main() -> None:
    queries = [
        QuerySpec(
            ref_id="A",
            relative_time_range=RelativeTimeRange(from_=3600, to=0),
            datasource_uid="prom",
            model={"expr": "rate(http_requests_total[5m])"},
        ),
        QuerySpec(ref_id="B", datasource_uid="prom", model={"expr": "up"}),
    ]

    async with build_runner() as runner:
        subscription = runner.subscribe()
        await runner.run(queries)
        await runner.join()

        edit = PromQueryEdit(format="table", instant=True)
        if edit_triggers_run(edit):
            edited = apply_spec_edit(queries[0], edit)
            print("Re-running A as", format_label(PromQuery.from_model(edited.model).format))
            await runner.run([edited, queries[1]])
            await runner.join()

    async for aggregate in subscription:
        print(f"generation={aggregate.generation} state={aggregate.state.value}")
        for ref_id, result in aggregate.items():
            print(
                f"  {ref_id}: {result.state.value} "
                f"series={len(result.series)} revision={result.structure_revision}"
            )


if __name__ == "__main__":
    asyncio.run(main())
