"""Structure revision tracking for query results.

A query's ``structure_revision`` tells consumers whether the shape of its
frames (field names, types, labels, config) changed since the previous
successful evaluation, so that they can skip rebuilding anything that only
depends on the shape.
"""

from __future__ import annotations

from typing import Dict, Optional

from .frames import compare_series_structures
from .models import LoadingState, QueryResult


def set_structure_revision(
    result: QueryResult, previous: Optional[QueryResult]
) -> QueryResult:
    """Return ``result`` with its structure revision assigned.

    Args:
        result: Newly produced result for a refId.
        previous: The last Done result for the same refId, if any.
    """
    if previous is None:
        return result.model_copy(update={"structure_revision": 1})

    revision = previous.structure_revision
    if revision is None or result.state is not LoadingState.DONE:
        return result.model_copy(update={"structure_revision": revision or 1})

    if not compare_series_structures(result.series, previous.series):
        revision += 1

    return result.model_copy(update={"structure_revision": revision})


class StructureRevisionTracker:
    """Keeps the per-refId comparison baseline across runs.

    Only Done results become the baseline; Loading and Error results carry
    the baseline's revision without replacing it.
    """

    def __init__(self) -> None:
        self._baselines: Dict[str, QueryResult] = {}

    def apply(self, ref_id: str, result: QueryResult) -> QueryResult:
        revised = set_structure_revision(result, self._baselines.get(ref_id))
        if revised.state is LoadingState.DONE:
            self._baselines[ref_id] = revised
        return revised

    def revision(self, ref_id: str) -> Optional[int]:
        baseline = self._baselines.get(ref_id)
        return baseline.structure_revision if baseline else None
