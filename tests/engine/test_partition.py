import pandas as pd
import pytest

from src.engine.partition import partition_ratings
from src.errors import InvalidConfiguration


def _ratings(n):
    return pd.DataFrame({
        "UserID": list(range(n)),
        "MovieID": [i % 3 for i in range(n)],
        "Rating": [float(i % 5 + 1) for i in range(n)],
    })


def test_chunk_count_is_ceiling():
    # arrange
    ratings = _ratings(10)

    # act
    chunks = partition_ratings(ratings, chunk_size=3)

    # assert — ceil(10 / 3) = 4, last chunk holds the remainder
    assert [len(c) for c in chunks] == [3, 3, 3, 1]


def test_chunks_preserve_order_and_cover_every_row():
    # arrange
    ratings = _ratings(17)

    # act
    chunks = partition_ratings(ratings, chunk_size=4)

    # assert
    rejoined = pd.concat(chunks)
    assert rejoined["UserID"].tolist() == list(range(17))


def test_exact_multiple_has_no_short_chunk():
    # arrange
    ratings = _ratings(12)

    # act
    chunks = partition_ratings(ratings, chunk_size=4)

    # assert
    assert [len(c) for c in chunks] == [4, 4, 4]


def test_chunk_larger_than_input_gives_single_chunk():
    # arrange
    ratings = _ratings(5)

    # act
    chunks = partition_ratings(ratings, chunk_size=100)

    # assert
    assert len(chunks) == 1
    assert len(chunks[0]) == 5


def test_empty_input_gives_no_chunks():
    # arrange
    ratings = _ratings(0)

    # act
    chunks = partition_ratings(ratings, chunk_size=3)

    # assert
    assert chunks == []


@pytest.mark.parametrize("chunk_size", [0, -1, 2.5, True])
def test_invalid_chunk_size_rejected(chunk_size):
    with pytest.raises(InvalidConfiguration):
        partition_ratings(_ratings(3), chunk_size=chunk_size)
