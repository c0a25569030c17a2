from multiprocessing.pool import ThreadPool

import numpy as np
import pandas as pd
import pytest

from src.engine.aggregate import (
    AggregateMerger,
    AggregateTable,
    aggregate_chunk,
    merge_partials,
)
from src.engine.partition import partition_ratings


@pytest.fixture
def random_ratings():
    rng = np.random.default_rng(7)
    n = 600
    return pd.DataFrame({
        "UserID": rng.integers(1, 50, size=n),
        "MovieID": rng.integers(1, 40, size=n),
        "Rating": rng.uniform(0.5, 5.0, size=n),
    })


def _truth(ratings):
    return ratings.groupby("MovieID")["Rating"].agg(["sum", "count"]).sort_index()


def test_aggregate_chunk_sums_and_counts(sample_ratings):
    # act
    partial = aggregate_chunk(sample_ratings)

    # assert
    assert partial.loc[1, "sum"] == pytest.approx(10.0)
    assert partial.loc[1, "count"] == 3
    assert partial.loc[3, "sum"] == pytest.approx(9.0)
    assert partial.loc[99, "count"] == 1
    assert partial["count"].dtype == np.int64


def test_aggregate_empty_chunk_is_empty(sample_ratings):
    # act
    partial = aggregate_chunk(sample_ratings.iloc[0:0])

    # assert
    assert partial.empty
    assert list(partial.columns) == ["sum", "count"]


@pytest.mark.parametrize("chunk_size", [1, 7, 64, 599, 600])
def test_merge_matches_single_pass(random_ratings, chunk_size):
    # arrange
    truth = _truth(random_ratings)
    partials = [aggregate_chunk(c) for c in partition_ratings(random_ratings, chunk_size)]

    # act
    table = merge_partials(partials)

    # assert — counts exact, sums within floating-point tolerance
    np.testing.assert_array_equal(table.movie_ids, truth.index.to_numpy())
    np.testing.assert_array_equal(table.counts, truth["count"].to_numpy())
    np.testing.assert_allclose(table.sums, truth["sum"].to_numpy(), rtol=1e-12)


def test_merge_is_independent_of_fold_order(random_ratings):
    # arrange
    partials = [aggregate_chunk(c) for c in partition_ratings(random_ratings, 50)]

    # act
    forward = merge_partials(partials)
    backward = merge_partials(list(reversed(partials)))

    # assert
    np.testing.assert_array_equal(forward.movie_ids, backward.movie_ids)
    np.testing.assert_array_equal(forward.counts, backward.counts)
    np.testing.assert_allclose(forward.sums, backward.sums, rtol=1e-12)


def test_concurrent_folds_lose_nothing(random_ratings):
    # arrange
    partials = [aggregate_chunk(c) for c in partition_ratings(random_ratings, 10)]
    merger = AggregateMerger()

    # act — folds race on the shared table
    with ThreadPool(processes=8) as pool:
        pool.map(merger.fold, partials)
    table = merger.freeze()

    # assert
    assert table.total_count == len(random_ratings)
    np.testing.assert_array_equal(table.counts, _truth(random_ratings)["count"].to_numpy())


def test_fold_after_freeze_is_rejected(sample_ratings):
    # arrange
    merger = AggregateMerger()
    merger.fold(aggregate_chunk(sample_ratings))
    merger.freeze()

    # act / assert
    with pytest.raises(RuntimeError):
        merger.fold(aggregate_chunk(sample_ratings))


def test_frozen_table_is_read_only(sample_ratings):
    # arrange
    table = merge_partials([aggregate_chunk(sample_ratings)])

    # act / assert
    with pytest.raises(ValueError):
        table.sums[0] = 0.0
    with pytest.raises(ValueError):
        table.counts[0] = 0


def test_merge_of_nothing_is_empty():
    # act
    table = merge_partials([])

    # assert
    assert len(table) == 0
    assert table.total_count == 0


def test_table_lookup_and_subset(sample_ratings):
    # arrange
    table = merge_partials([aggregate_chunk(sample_ratings)])

    # act
    entry = table.get(2)
    missing = table.get(42)
    subset = table.subset([1, 3, 42])

    # assert
    assert entry.sum == pytest.approx(7.0)
    assert entry.count == 2
    assert missing is None
    assert subset.movie_ids.tolist() == [1, 3]
    assert [e.count for e in subset.entries()] == [3, 2]


def test_table_round_trips_through_frame():
    # arrange
    table = AggregateTable(
        movie_ids=np.array([3, 1], dtype=np.int64),
        sums=np.array([6.0, 2.0]),
        counts=np.array([2, 1], dtype=np.int64),
    )

    # act
    rebuilt = AggregateTable.from_frame(table.to_frame())

    # assert
    assert rebuilt.movie_ids.tolist() == [1, 3]
    assert rebuilt.counts.tolist() == [1, 2]


def test_table_built_from_unsorted_ids_is_sorted_and_searchable():
    # arrange
    table = AggregateTable(
        movie_ids=np.array([30, 10, 20], dtype=np.int64),
        sums=np.array([9.0, 4.0, 7.0]),
        counts=np.array([3, 1, 2], dtype=np.int64),
    )

    # act
    found = [table.get(mid) for mid in (10, 20, 30)]

    # assert
    assert table.movie_ids.tolist() == [10, 20, 30]
    assert table.sums.tolist() == [4.0, 7.0, 9.0]
    assert [(e.movie_id, e.count) for e in found] == [(10, 1), (20, 2), (30, 3)]
    assert table.get(15) is None
