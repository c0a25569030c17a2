from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

import numpy as np
import pandas as pd

from src.models.base import AggregateEntry

logger = logging.getLogger(__name__)

AGGREGATE_COLUMNS = ["sum", "count"]


def empty_partial() -> pd.DataFrame:
    frame = pd.DataFrame({
        "sum": pd.Series(dtype=np.float64),
        "count": pd.Series(dtype=np.int64),
    })
    frame.index = pd.Index([], dtype=np.int64, name="MovieID")
    return frame


def aggregate_chunk(chunk: pd.DataFrame) -> pd.DataFrame:
    """Compute per-movie rating sum and count for one chunk.

    Parameters
    ----------
    chunk : pd.DataFrame
        Consecutive slice of the ratings table (UserID, MovieID, Rating).

    Returns
    -------
    pd.DataFrame
        Partial aggregate indexed by MovieID with columns ``sum`` (float)
        and ``count`` (int). Built only from ``chunk``; no shared state.
    """
    if chunk.empty:
        return empty_partial()

    partial = chunk.groupby("MovieID", sort=False)["Rating"].agg(["sum", "count"])
    partial.index = partial.index.astype(np.int64)
    return partial.astype({"sum": np.float64, "count": np.int64})


@dataclass(frozen=True, eq=False)
class AggregateTable:
    """Frozen global aggregate: per-movie (sum, count), kept sorted by MovieID."""

    movie_ids: np.ndarray
    sums: np.ndarray
    counts: np.ndarray

    def __post_init__(self) -> None:
        order = np.argsort(np.asarray(self.movie_ids, dtype=np.int64), kind="stable")
        for name in ("movie_ids", "sums", "counts"):
            values = np.asarray(getattr(self, name))[order].copy()
            values.setflags(write=False)
            object.__setattr__(self, name, values)

    @classmethod
    def from_frame(cls, frame: pd.DataFrame) -> "AggregateTable":
        return cls(
            movie_ids=frame.index.to_numpy(dtype=np.int64),
            sums=frame["sum"].to_numpy(dtype=np.float64),
            counts=frame["count"].to_numpy(dtype=np.int64),
        )

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {"sum": self.sums, "count": self.counts},
            index=pd.Index(self.movie_ids, name="MovieID"),
        )

    def subset(self, movie_ids: Iterable[int]) -> "AggregateTable":
        keep = np.isin(self.movie_ids, np.fromiter(movie_ids, dtype=np.int64))
        return AggregateTable(
            movie_ids=self.movie_ids[keep],
            sums=self.sums[keep],
            counts=self.counts[keep],
        )

    def get(self, movie_id: int) -> Optional[AggregateEntry]:
        idx = np.searchsorted(self.movie_ids, movie_id)
        if idx >= len(self.movie_ids) or self.movie_ids[idx] != movie_id:
            return None
        return AggregateEntry(
            movie_id=int(self.movie_ids[idx]),
            sum=float(self.sums[idx]),
            count=int(self.counts[idx]),
        )

    def entries(self) -> Iterator[AggregateEntry]:
        for mid, s, c in zip(self.movie_ids, self.sums, self.counts):
            yield AggregateEntry(movie_id=int(mid), sum=float(s), count=int(c))

    @property
    def total_count(self) -> int:
        return int(self.counts.sum())

    def __len__(self) -> int:
        return int(self.movie_ids.size)


class AggregateMerger:
    """Fold partial aggregates into one global table.

    Each ``fold`` is a single critical section on the shared table. Once
    ``freeze`` has been called the merger rejects further folds.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._table = empty_partial()
        self._n_folded = 0
        self._frozen: Optional[AggregateTable] = None

    def fold(self, partial: pd.DataFrame) -> None:
        with self._lock:
            if self._frozen is not None:
                raise RuntimeError("Cannot fold into a frozen aggregate")
            self._table = self._table.add(partial[AGGREGATE_COLUMNS], fill_value=0)
            self._n_folded += 1

    def fold_all(self, partials: Iterable[pd.DataFrame]) -> "AggregateMerger":
        for partial in partials:
            self.fold(partial)
        return self

    def freeze(self) -> AggregateTable:
        with self._lock:
            if self._frozen is None:
                table = self._table.astype({"sum": np.float64, "count": np.int64})
                self._frozen = AggregateTable.from_frame(table)
                logger.debug(
                    "Froze aggregate: %d partials, %d movies, %d ratings",
                    self._n_folded,
                    len(self._frozen),
                    self._frozen.total_count,
                )
            return self._frozen


def merge_partials(partials: Iterable[pd.DataFrame]) -> AggregateTable:
    return AggregateMerger().fold_all(partials).freeze()
