"""
Tests for mapping store rows to ranked results.
"""

import math

import pytest

from database.vector_search import CandidateRow
from rag.result_mapper import clamp_similarity, map_rows


def make_row(doc_id, similarity, tier=3, title="Doc", content="body", metadata=None):
    return CandidateRow(
        id=doc_id,
        title=title,
        content=content,
        metadata=metadata,
        base_similarity=similarity,
        similarity=similarity,
        priority_tier=tier,
    )


@pytest.mark.parametrize("value,expected", [
    (0.42, 0.42),
    (1.7, 1.0),
    (-0.3, 0.0),
    (math.nan, 0.0),
    (None, 0.0),
    ("0.25", 0.25),
])
def test_clamp_similarity(value, expected):
    assert clamp_similarity(value) == pytest.approx(expected)


def test_results_sorted_by_tier_then_similarity():
    rows = [
        make_row(1, 0.9, tier=3),
        make_row(2, 0.6, tier=2),
        make_row(3, 0.7, tier=1),
        make_row(4, 0.95, tier=2),
    ]
    results = map_rows(rows, limit=10)
    assert [r.document.id for r in results] == [3, 4, 2, 1]


def test_limit_respected():
    rows = [make_row(i, 0.5) for i in range(8)]
    assert len(map_rows(rows, limit=3)) == 3


def test_duplicate_ids_keep_best_ranked():
    rows = [make_row(7, 0.4, tier=3), make_row(7, 0.8, tier=1), make_row(8, 0.5)]
    results = map_rows(rows, limit=5)
    assert [r.document.id for r in results] == [7, 8]
    assert results[0].similarity == pytest.approx(0.8)


def test_similarity_is_capped():
    row = make_row(1, 1.0)
    row.similarity = 1.6
    assert map_rows([row], limit=1)[0].similarity == 1.0


def test_missing_fields_get_defaults():
    result = map_rows([make_row(1, 0.5, title=None, content=None, metadata=None)], limit=1)[0]
    assert result.document.title == "Untitled Document"
    assert result.document.content == ""
    assert result.document.metadata == {}


def test_empty_rows():
    assert map_rows([], limit=5) == []
