from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

import numpy as np
import pandas as pd

UNKNOWN_TITLE = "Unknown"

RATING_COLUMNS = ["UserID", "MovieID", "Rating"]
MOVIE_COLUMNS = ["MovieID", "Title", "Genres"]
USER_COLUMNS = ["UserID", "Gender", "Age"]


@dataclass(frozen=True, kw_only=True)
class Rating:
    user_id: int
    movie_id: int
    score: float


@dataclass(frozen=True, kw_only=True)
class Movie:
    movie_id: int
    title: str
    genres: frozenset[str] = frozenset()


@dataclass(frozen=True, kw_only=True)
class User:
    user_id: int
    age: int
    gender: str


@dataclass(frozen=True, kw_only=True)
class AggregateEntry:
    movie_id: int
    sum: float
    count: int


@dataclass(frozen=True, kw_only=True)
class TopEntry:
    movie_id: int
    title: str
    average: float
    count: int

    @property
    def formatted_average(self) -> str:
        """Average rendered with exactly two fractional digits."""
        return f"{self.average:.2f}"


def ratings_frame(ratings: Iterable[Rating]) -> pd.DataFrame:
    """Build a ratings DataFrame (UserID, MovieID, Rating) from records, keeping order."""
    rows = [(r.user_id, r.movie_id, r.score) for r in ratings]
    frame = pd.DataFrame(rows, columns=RATING_COLUMNS)
    return frame.astype({"UserID": np.int64, "MovieID": np.int64, "Rating": np.float64})


@dataclass(frozen=True, eq=False)
class Catalog:
    """Read-only movie and user reference data.

    Parameters
    ----------
    movies : pd.DataFrame
        Movie side-information (MovieID, Title, Genres). ``Genres`` holds a
        ``frozenset`` of genre names per movie.
    users : pd.DataFrame
        User side-information (UserID, Gender, Age). May be empty for
        datasets that ship no user file.
    """

    movies: pd.DataFrame
    users: pd.DataFrame = field(
        default_factory=lambda: pd.DataFrame(columns=USER_COLUMNS)
    )

    def __post_init__(self) -> None:
        movies = self.movies.drop_duplicates(subset="MovieID", keep="last")
        users = self.users.drop_duplicates(subset="UserID", keep="last")
        object.__setattr__(self, "movies", movies.reset_index(drop=True))
        object.__setattr__(self, "users", users.reset_index(drop=True))
        object.__setattr__(
            self, "_titles", pd.Series(movies["Title"].values, index=movies["MovieID"].astype(np.int64))
        )
        object.__setattr__(
            self, "_user_index", users.set_index(users["UserID"].astype(np.int64))
        )

    @classmethod
    def from_records(
        cls,
        movies: Iterable[Movie],
        users: Optional[Iterable[User]] = None,
    ) -> "Catalog":
        movie_rows = [(m.movie_id, m.title, frozenset(m.genres)) for m in movies]
        user_rows = [(u.user_id, u.gender, u.age) for u in (users or [])]
        return cls(
            movies=pd.DataFrame(movie_rows, columns=MOVIE_COLUMNS),
            users=pd.DataFrame(user_rows, columns=USER_COLUMNS),
        )

    @property
    def n_movies(self) -> int:
        return int(len(self.movies))

    @property
    def n_users(self) -> int:
        return int(len(self.users))

    def title_of(self, movie_id: int) -> str:
        title = self._titles.get(int(movie_id))
        return UNKNOWN_TITLE if title is None or pd.isna(title) else str(title)

    def titles_for(self, movie_ids: np.ndarray) -> np.ndarray:
        """Vectorized ``title_of``: unresolved ids map to ``UNKNOWN_TITLE``."""
        titles = self._titles.reindex(np.asarray(movie_ids, dtype=np.int64))
        return titles.fillna(UNKNOWN_TITLE).astype(str).to_numpy()

    def genre_movie_ids(self, genre: str) -> np.ndarray:
        """Return ids of movies whose genre set contains ``genre`` (exact match)."""
        has_genre = self.movies["Genres"].map(lambda genres: genre in genres)
        return self.movies.loc[has_genre.astype(bool), "MovieID"].to_numpy(dtype=np.int64)

    def user_attribute(self, user_ids: np.ndarray, column: str) -> pd.Series:
        """Look up ``column`` for each user id; unresolved users give NaN."""
        return self._user_index[column].reindex(np.asarray(user_ids, dtype=np.int64))

    def known_movies(self) -> np.ndarray:
        return self.movies["MovieID"].to_numpy(dtype=np.int64)

    def known_users(self) -> np.ndarray:
        return self.users["UserID"].to_numpy(dtype=np.int64)
