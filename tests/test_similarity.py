"""Tests for cosine similarity and the chunk vector index."""

from __future__ import annotations

import math

import pytest

from doc_search.search import SimilarityIndex, cosine_similarity

from .conftest import store_chunks


def test_cosine_is_symmetric_and_bounded() -> None:
    a = [0.3, -1.2, 4.0]
    b = [2.0, 0.5, -0.1]

    assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))
    assert -1.0 <= cosine_similarity(a, b) <= 1.0


def test_cosine_of_vector_with_itself_is_one() -> None:
    assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)


def test_cosine_of_opposite_vectors_is_minus_one() -> None:
    assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)


@pytest.mark.parametrize(
    ("a", "b"),
    [
        ([0.0, 0.0], [1.0, 2.0]),
        ([], []),
        ([1.0, 2.0], [1.0, 2.0, 3.0]),
        ([math.nan, 1.0], [1.0, 1.0]),
        ([math.inf, 1.0], [1.0, 1.0]),
    ],
)
def test_cosine_degenerate_inputs_score_zero(a, b) -> None:
    assert cosine_similarity(a, b) == 0.0


def test_identical_vectors_rank_in_insertion_order(storage) -> None:
    chunks = store_chunks(storage, "a.txt", ["first", "second", "third"])
    index = SimilarityIndex(storage)
    for record in chunks:
        assert index.upsert(record.id, [1.0, 0.0, 1.0])

    results = index.query([1.0, 0.0, 1.0], k=10)

    assert [chunk_id for chunk_id, _ in results] == [record.id for record in chunks]
    assert all(score == pytest.approx(1.0) for _, score in results)


def test_results_ordered_by_descending_similarity(storage) -> None:
    chunks = store_chunks(storage, "a.txt", ["far", "near", "mid"])
    index = SimilarityIndex(storage, min_similarity=-1.0)
    index.upsert(chunks[0].id, [0.0, 1.0])
    index.upsert(chunks[1].id, [1.0, 0.0])
    index.upsert(chunks[2].id, [1.0, 1.0])

    results = index.query([1.0, 0.0], k=10)

    assert [chunk_id for chunk_id, _ in results] == [
        chunks[1].id,
        chunks[2].id,
        chunks[0].id,
    ]


def test_threshold_drops_weak_matches(storage) -> None:
    chunks = store_chunks(storage, "a.txt", ["orthogonal", "aligned"])
    index = SimilarityIndex(storage, min_similarity=0.5)
    index.upsert(chunks[0].id, [0.0, 1.0])
    index.upsert(chunks[1].id, [1.0, 0.1])

    results = index.query([1.0, 0.0], k=10)

    assert [chunk_id for chunk_id, _ in results] == [chunks[1].id]
    assert all(score >= 0.5 for _, score in results)


def test_k_limits_result_count(storage) -> None:
    chunks = store_chunks(storage, "a.txt", [f"chunk {i}" for i in range(5)])
    index = SimilarityIndex(storage)
    for record in chunks:
        index.upsert(record.id, [1.0, 1.0])

    assert len(index.query([1.0, 1.0], k=2)) == 2
    assert index.query([1.0, 1.0], k=0) == []


def test_chunks_without_vectors_are_skipped(storage) -> None:
    chunks = store_chunks(storage, "a.txt", ["embedded", "pending"])
    index = SimilarityIndex(storage)
    index.upsert(chunks[0].id, [1.0, 0.0])

    results = index.query([1.0, 0.0], k=10)

    assert [chunk_id for chunk_id, _ in results] == [chunks[0].id]


def test_mismatched_dimensions_are_skipped(storage) -> None:
    chunks = store_chunks(storage, "a.txt", ["two dims", "three dims"])
    index = SimilarityIndex(storage)
    index.upsert(chunks[0].id, [1.0, 0.0])
    index.upsert(chunks[1].id, [1.0, 0.0, 0.0])

    results = index.query([1.0, 0.0], k=10)

    assert [chunk_id for chunk_id, _ in results] == [chunks[0].id]


def test_upsert_unknown_chunk_returns_false(storage) -> None:
    index = SimilarityIndex(storage)

    assert index.upsert("chunk_missing", [1.0, 2.0]) is False


@pytest.mark.parametrize("vector", [[], [math.nan, 1.0], [math.inf]])
def test_upsert_invalid_vector_is_refused(storage, vector) -> None:
    chunks = store_chunks(storage, "a.txt", ["text"])
    index = SimilarityIndex(storage)

    assert index.upsert(chunks[0].id, vector) is False
    assert storage.get_vector(chunks[0].id) is None


def test_upsert_replaces_previous_vector(storage) -> None:
    chunks = store_chunks(storage, "a.txt", ["text"])
    index = SimilarityIndex(storage)

    index.upsert(chunks[0].id, [1.0, 0.0])
    index.upsert(chunks[0].id, [0.0, 1.0])

    assert storage.get_vector(chunks[0].id) == (0.0, 1.0)
    assert index.query([1.0, 0.0], k=10) == []


def test_invalid_query_vector_returns_nothing(storage) -> None:
    chunks = store_chunks(storage, "a.txt", ["text"])
    index = SimilarityIndex(storage)
    index.upsert(chunks[0].id, [1.0, 0.0])

    assert index.query([0.0, 0.0], k=10) == []
    assert index.query([], k=10) == []


def test_min_similarity_out_of_range_raises(storage) -> None:
    with pytest.raises(ValueError):
        SimilarityIndex(storage, min_similarity=1.5)


def test_zero_threshold_excludes_zero_and_orthogonal_vectors(storage) -> None:
    chunks = store_chunks(storage, "a.txt", ["zero", "orthogonal"])
    index = SimilarityIndex(storage, min_similarity=0.0)
    index.upsert(chunks[0].id, [0.0, 0.0])
    index.upsert(chunks[1].id, [0.0, 1.0])

    assert index.query([1.0, 0.0], k=10) == []


def test_zero_vectors_never_match_even_at_lowest_threshold(storage) -> None:
    chunks = store_chunks(storage, "a.txt", ["zero", "opposite"])
    index = SimilarityIndex(storage, min_similarity=-1.0)
    index.upsert(chunks[0].id, [0.0, 0.0])
    index.upsert(chunks[1].id, [-1.0, 0.0])

    assert index.query([1.0, 0.0], k=10) == []


def test_score_equal_to_threshold_is_excluded(storage) -> None:
    chunks = store_chunks(storage, "a.txt", ["exact"])
    index = SimilarityIndex(storage, min_similarity=1.0)
    index.upsert(chunks[0].id, [1.0, 0.0])

    assert index.query([1.0, 0.0], k=10) == []
