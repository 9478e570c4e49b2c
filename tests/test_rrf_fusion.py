"""Tests for Reciprocal Rank Fusion."""

from __future__ import annotations

import pytest

from bookmark_search.search import RRF_K, HybridResult, rrf_fusion


def test_semantic_only_keeps_order_with_no_lexical_rank() -> None:
    results = rrf_fusion([1, 2, 3], [], 0.5)

    assert [result.id for result in results] == [1, 2, 3]
    assert all(result.lexical_rank is None for result in results)
    assert [result.semantic_rank for result in results] == [1, 2, 3]


def test_full_semantic_weight_ignores_lexical_order() -> None:
    assert rrf_fusion([1, 2], [2, 1], 1.0)[0].id == 1


def test_zero_semantic_weight_follows_lexical_order() -> None:
    assert rrf_fusion([1, 2], [2, 1], 0.0)[0].id == 2


def test_scores_sum_weighted_contributions() -> None:
    results = {result.id: result for result in rrf_fusion([1, 2], [2, 3], 0.6)}

    assert results[1].score == pytest.approx(0.6 / (RRF_K + 1))
    assert results[2].score == pytest.approx(0.6 / (RRF_K + 2) + 0.4 / (RRF_K + 1))
    assert results[3].score == pytest.approx(0.4 / (RRF_K + 2))
    assert results[2] == HybridResult(
        id=2, score=results[2].score, semantic_rank=2, lexical_rank=1
    )


def test_item_in_both_lists_outranks_single_list_items() -> None:
    results = rrf_fusion([1, 2], [2, 3], 0.5)

    assert results[0].id == 2
    assert results[0].matched_by == "semantic+lexical"


@pytest.mark.parametrize(("weight", "clamped"), [(-3.0, 0.0), (7.5, 1.0)])
def test_weight_is_clamped(weight: float, clamped: float) -> None:
    assert rrf_fusion([1, 2], [2, 1], weight) == rrf_fusion([1, 2], [2, 1], clamped)


def test_ties_break_by_ascending_id() -> None:
    results = rrf_fusion([5], [3], 0.5)

    assert [result.id for result in results] == [3, 5]
    assert results[0].score == pytest.approx(results[1].score)


def test_duplicate_ids_keep_first_rank() -> None:
    [result] = rrf_fusion([4, 4, 4], [], 1.0)

    assert result.semantic_rank == 1
    assert result.score == pytest.approx(1.0 / (RRF_K + 1))


def test_empty_inputs() -> None:
    assert rrf_fusion([], []) == []
