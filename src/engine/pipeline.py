from __future__ import annotations

import logging
from functools import partial
from multiprocessing.pool import ThreadPool
from typing import Callable, List, Literal, Optional

import pandas as pd

from src.engine.aggregate import AggregateMerger, AggregateTable, aggregate_chunk
from src.engine.partition import partition_ratings
from src.errors import ConcurrencyFault, InvalidConfiguration
from src.models.base import Catalog
from src.models.filters import NoFilter, RatingFilter

logger = logging.getLogger(__name__)

FilterStage = Literal["partition", "chunk"]
FILTER_STAGES = ("partition", "chunk")

ChunkWorker = Callable[[pd.DataFrame], pd.DataFrame]


def _filter_then_aggregate(
    chunk: pd.DataFrame,
    rating_filter: RatingFilter,
    catalog: Catalog,
) -> pd.DataFrame:
    return aggregate_chunk(rating_filter.apply(chunk, catalog))


def run_sequential(chunks: List[pd.DataFrame], worker: ChunkWorker) -> List[pd.DataFrame]:
    return [worker(chunk) for chunk in chunks]


def run_parallel(
    chunks: List[pd.DataFrame],
    worker: ChunkWorker,
    max_workers: Optional[int] = None,
) -> List[pd.DataFrame]:
    """Aggregate each chunk on its own pool thread and collect the partials.

    ``pool.map`` returns only once every worker has finished, so callers
    never observe a partial result list. The first worker exception aborts
    the pool and is re-raised as ``ConcurrencyFault``.
    """
    if not chunks:
        return []

    processes = len(chunks) if max_workers is None else min(max_workers, len(chunks))
    logger.debug("Aggregating %d chunks on %d threads", len(chunks), processes)

    try:
        with ThreadPool(processes=processes) as pool:
            return pool.map(worker, chunks)
    except Exception as err:
        raise ConcurrencyFault(f"Chunk worker failed: {err!r}") from err


def aggregate_ratings(
    ratings: pd.DataFrame,
    chunk_size: int,
    parallel: bool = False,
    max_workers: Optional[int] = None,
    rating_filter: Optional[RatingFilter] = None,
    catalog: Optional[Catalog] = None,
    filter_stage: FilterStage = "partition",
) -> AggregateTable:
    """Filter, partition, aggregate and merge ratings into a frozen table.

    Parameters
    ----------
    ratings : pd.DataFrame
        Observed interactions (UserID, MovieID, Rating).
    chunk_size : int
        Rows per chunk; must be positive.
    parallel : bool
        Aggregate chunks on a thread pool (one worker per chunk, capped by
        ``max_workers``) instead of one after another.
    max_workers : int | None
        Upper bound on pool threads. ``None`` means one thread per chunk.
    rating_filter : RatingFilter | None
        Predicate applied to ratings. Requires ``catalog`` unless it is a
        ``NoFilter``.
    catalog : Catalog | None
        Reference data used by ``rating_filter``.
    filter_stage : {"partition", "chunk"}
        ``"partition"`` filters the whole rating set before partitioning;
        ``"chunk"`` partitions the raw ratings and filters inside each
        worker. Both produce the same table.

    Returns
    -------
    AggregateTable
        Frozen per-movie (sum, count).
    """
    if filter_stage not in FILTER_STAGES:
        raise InvalidConfiguration(f"Unknown filter_stage: {filter_stage!r}")
    if max_workers is not None and max_workers <= 0:
        raise InvalidConfiguration(f"max_workers must be positive, got {max_workers}")

    rating_filter = rating_filter or NoFilter()
    if catalog is None and not isinstance(rating_filter, NoFilter):
        raise InvalidConfiguration(f"{rating_filter!r} needs a catalog")

    worker: ChunkWorker = aggregate_chunk
    if not isinstance(rating_filter, NoFilter):
        if filter_stage == "partition":
            ratings = rating_filter.apply(ratings, catalog)
        else:
            worker = partial(_filter_then_aggregate, rating_filter=rating_filter, catalog=catalog)

    chunks = partition_ratings(ratings, chunk_size)

    if parallel:
        partials = run_parallel(chunks, worker, max_workers=max_workers)
    else:
        partials = run_sequential(chunks, worker)

    merger = AggregateMerger()
    merger.fold_all(partials)
    return merger.freeze()
