from src.models.base import (
    AggregateEntry,
    Catalog,
    Movie,
    Rating,
    TopEntry,
    User,
    ratings_frame,
)
from src.models.filters import (
    GENRES,
    AgeRangeFilter,
    GenderFilter,
    GenreFilter,
    NoFilter,
    RatingFilter,
    parse_filter,
)

__all__ = [
    "AggregateEntry",
    "Catalog",
    "Movie",
    "Rating",
    "TopEntry",
    "User",
    "ratings_frame",
    "GENRES",
    "AgeRangeFilter",
    "GenderFilter",
    "GenreFilter",
    "NoFilter",
    "RatingFilter",
    "parse_filter",
]
