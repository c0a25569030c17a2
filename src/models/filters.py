from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

import numpy as np
import pandas as pd

from src.errors import InvalidConfiguration
from src.models.base import Catalog, Rating, ratings_frame

if TYPE_CHECKING:
    from src.engine.aggregate import AggregateTable

# Union of the genre tags used across the MovieLens releases (100k, 1M, 10M, 25M).
GENRES = frozenset({
    "(no genres listed)",
    "Action",
    "Adventure",
    "Animation",
    "Children",
    "Children's",
    "Comedy",
    "Crime",
    "Documentary",
    "Drama",
    "Fantasy",
    "Film-Noir",
    "Horror",
    "IMAX",
    "Musical",
    "Mystery",
    "Romance",
    "Sci-Fi",
    "Thriller",
    "Unknown",
    "War",
    "Western",
})

GENDERS = frozenset({"M", "F"})


class RatingFilter(ABC):
    """Predicate over ratings, evaluated against the reference catalog."""

    @abstractmethod
    def mask(self, ratings: pd.DataFrame, catalog: Catalog) -> np.ndarray:
        """Return a boolean array, one entry per row of ``ratings``.

        Parameters
        ----------
        ratings : pd.DataFrame
            Observed interactions (UserID, MovieID, Rating).
        catalog : Catalog
            Movie and user reference data used to resolve ids.

        Returns
        -------
        np.ndarray
            ``True`` where the rating passes the filter. Ratings whose
            movie or user does not resolve in ``catalog`` are excluded by
            filters that depend on that reference.
        """
        raise NotImplementedError

    @abstractmethod
    def describe(self) -> str:
        """Short text form, parseable by ``parse_filter``."""
        raise NotImplementedError

    def apply(self, ratings: pd.DataFrame, catalog: Catalog) -> pd.DataFrame:
        """Keep the rows of ``ratings`` that pass the filter, in original order."""
        if ratings.empty:
            return ratings
        return ratings[self.mask(ratings, catalog)]

    def matches(self, rating: Rating, catalog: Catalog) -> bool:
        return bool(self.mask(ratings_frame([rating]), catalog)[0])

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.describe()!r})"


class NoFilter(RatingFilter):
    """Keep every rating."""

    def mask(self, ratings: pd.DataFrame, catalog: Catalog) -> np.ndarray:
        del catalog
        return np.ones(len(ratings), dtype=bool)

    def describe(self) -> str:
        return "none"


class GenderFilter(RatingFilter):
    """Keep ratings whose user resolves and has the target gender."""

    def __init__(self, target: str) -> None:
        if target not in GENDERS:
            raise InvalidConfiguration(
                f"Gender must be one of {sorted(GENDERS)}, got {target!r}"
            )
        self.target = target

    def mask(self, ratings: pd.DataFrame, catalog: Catalog) -> np.ndarray:
        genders = catalog.user_attribute(ratings["UserID"].to_numpy(), "Gender")
        return (genders == self.target).to_numpy(dtype=bool)

    def describe(self) -> str:
        return f"gender={self.target}"


class GenreFilter(RatingFilter):
    """Keep ratings whose movie resolves and is tagged with the genre."""

    def __init__(self, name: str) -> None:
        if name not in GENRES:
            raise InvalidConfiguration(
                f"Unknown genre {name!r}; expected one of {sorted(GENRES)}"
            )
        self.name = name

    def mask(self, ratings: pd.DataFrame, catalog: Catalog) -> np.ndarray:
        genre_ids = catalog.genre_movie_ids(self.name)
        return np.isin(ratings["MovieID"].to_numpy(dtype=np.int64), genre_ids)

    def restrict(self, table: AggregateTable, catalog: Catalog) -> AggregateTable:
        """Apply the filter to an already merged aggregate table.

        Genre membership depends only on the movie, so restricting the
        merged table gives the same result as filtering ratings up front.
        """
        return table.subset(catalog.genre_movie_ids(self.name))

    def describe(self) -> str:
        return f"genre={self.name}"


class AgeRangeFilter(RatingFilter):
    """Keep ratings whose user resolves and satisfies ``min_age <= age < max_age``.

    ``max_age=None`` leaves the range open above.
    """

    def __init__(self, min_age: int = 0, max_age: Optional[int] = None) -> None:
        if max_age is not None and max_age < min_age:
            raise InvalidConfiguration(
                f"Age range is inverted: min_age={min_age}, max_age={max_age}"
            )
        self.min_age = int(min_age)
        self.max_age = None if max_age is None else int(max_age)

    def mask(self, ratings: pd.DataFrame, catalog: Catalog) -> np.ndarray:
        ages = pd.to_numeric(
            catalog.user_attribute(ratings["UserID"].to_numpy(), "Age"), errors="coerce"
        ).to_numpy(dtype=np.float64)
        upper = math.inf if self.max_age is None else self.max_age
        # NaN (unresolved user) compares False on both sides
        return (ages >= self.min_age) & (ages < upper)

    def describe(self) -> str:
        upper = "" if self.max_age is None else str(self.max_age)
        return f"age={self.min_age}-{upper}"


def parse_filter(text: str) -> RatingFilter:
    """Parse ``none``, ``gender=M``, ``genre=Comedy``, ``age=18-30`` or ``age=30-``."""
    if text.strip().lower() in ("", "none"):
        return NoFilter()

    kind, sep, value = text.strip().partition("=")
    kind = kind.strip().lower()
    value = value.strip()
    if not sep or not value:
        raise InvalidConfiguration(f"Cannot parse filter {text!r}")

    if kind == "gender":
        return GenderFilter(value.upper())
    if kind == "genre":
        return GenreFilter(value)
    if kind == "age":
        low, dash, high = value.partition("-")
        try:
            min_age = int(low) if low.strip() else 0
            max_age = int(high) if high.strip() else None
        except ValueError as err:
            raise InvalidConfiguration(f"Cannot parse age range {value!r}") from err
        if not dash:
            raise InvalidConfiguration(f"Age range needs a '-': {value!r}")
        return AgeRangeFilter(min_age, max_age)
    raise InvalidConfiguration(f"Unknown filter kind: {kind!r}")
