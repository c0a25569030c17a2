from __future__ import annotations

from typing import List

import numpy as np
import pandas as pd

from src.engine.aggregate import AggregateTable
from src.errors import InvalidConfiguration
from src.models.base import Catalog, TopEntry


def validate_top_n(n: int) -> int:
    if isinstance(n, bool) or not isinstance(n, (int, np.integer)):
        raise InvalidConfiguration(f"n must be an int, got {n!r}")
    if n <= 0:
        raise InvalidConfiguration(f"n must be positive, got {n}")
    return int(n)


def rank_movies(table: AggregateTable) -> pd.DataFrame:
    """Rank every movie with at least one rating.

    Returns
    -------
    pd.DataFrame
        Columns MovieID, sum, count, average, sorted by average
        (descending), then count (descending), then MovieID (ascending).
    """
    ranking = table.to_frame().reset_index()
    ranking = ranking[ranking["count"] > 0].copy()
    ranking["average"] = ranking["sum"] / ranking["count"]
    return ranking.sort_values(
        by=["average", "count", "MovieID"],
        ascending=[False, False, True],
    ).reset_index(drop=True)


def select_top_n(table: AggregateTable, n: int, catalog: Catalog) -> List[TopEntry]:
    """Return the ``n`` best-rated movies of a frozen aggregate.

    Parameters
    ----------
    table : AggregateTable
        Global per-movie (sum, count) after merge.
    n : int
        Number of rows to return. Fewer rows come back when fewer movies
        qualify.
    catalog : Catalog
        Used to resolve titles; unresolved ids get ``"Unknown"``.

    Returns
    -------
    list[TopEntry]
        At most ``n`` entries in rank order.
    """
    n = validate_top_n(n)
    if len(table) == 0:
        return []

    top = rank_movies(table).head(n)
    titles = catalog.titles_for(top["MovieID"].to_numpy())

    return [
        TopEntry(
            movie_id=int(mid),
            title=str(title),
            average=float(avg),
            count=int(cnt),
        )
        for mid, title, avg, cnt in zip(
            top["MovieID"], titles, top["average"], top["count"]
        )
    ]
