from typing import List

import pandas as pd

from src.errors import InvalidConfiguration


def validate_chunk_size(chunk_size: int) -> int:
    if isinstance(chunk_size, bool) or not isinstance(chunk_size, int):
        raise InvalidConfiguration(f"chunk_size must be an int, got {chunk_size!r}")
    if chunk_size <= 0:
        raise InvalidConfiguration(f"chunk_size must be positive, got {chunk_size}")
    return chunk_size


def partition_ratings(ratings: pd.DataFrame, chunk_size: int) -> List[pd.DataFrame]:
    """Split ratings into consecutive chunks of at most ``chunk_size`` rows.

    Parameters
    ----------
    ratings : pd.DataFrame
        Observed interactions (UserID, MovieID, Rating), already filtered.
    chunk_size : int
        Maximum number of rows per chunk.

    Returns
    -------
    list[pd.DataFrame]
        ``ceil(len(ratings) / chunk_size)`` chunks in original row order;
        only the last one may be shorter. Empty input gives no chunks.
    """
    validate_chunk_size(chunk_size)
    return [
        ratings.iloc[start:start + chunk_size]
        for start in range(0, len(ratings), chunk_size)
    ]
