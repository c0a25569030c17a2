from src.engine.aggregate import (
    AggregateMerger,
    AggregateTable,
    aggregate_chunk,
    merge_partials,
)
from src.engine.partition import partition_ratings
from src.engine.pipeline import aggregate_ratings, run_parallel, run_sequential
from src.engine.selector import rank_movies, select_top_n

__all__ = [
    "AggregateMerger",
    "AggregateTable",
    "aggregate_chunk",
    "merge_partials",
    "partition_ratings",
    "aggregate_ratings",
    "run_parallel",
    "run_sequential",
    "rank_movies",
    "select_top_n",
]
