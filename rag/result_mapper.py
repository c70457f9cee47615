"""
Normalizes raw store rows into ranked results.
"""

import logging
import math
from typing import Iterable, List

from database.schemas import DocumentPayload, RankedResult
from database.vector_search import CandidateRow

logger = logging.getLogger(__name__)


def clamp_similarity(value) -> float:
    """Force a score into [0, 1]; non-numeric and NaN scores become 0."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, value))


def rank_key(row: CandidateRow):
    return (row.priority_tier, -clamp_similarity(row.combined_similarity))


def to_ranked_result(row: CandidateRow) -> RankedResult:
    return RankedResult(
        document=DocumentPayload(
            id=row.id,
            title=row.title or 'Untitled Document',
            content=row.content or '',
            metadata=row.metadata or {},
        ),
        similarity=clamp_similarity(row.combined_similarity),
    )


def map_rows(rows: Iterable[CandidateRow], limit: int) -> List[RankedResult]:
    """
    Map candidate rows to results.

    Rows are ordered by priority tier then similarity (stable, so store
    order breaks ties), duplicate document ids keep their best-ranked
    occurrence, and the list is cut to ``limit``.
    """
    results: List[RankedResult] = []
    seen_ids = set()

    for row in sorted(rows, key=rank_key):
        if row.id in seen_ids:
            logger.debug(f"Dropping duplicate document {row.id}")
            continue
        seen_ids.add(row.id)
        results.append(to_ranked_result(row))
        if len(results) >= limit:
            break

    return results
