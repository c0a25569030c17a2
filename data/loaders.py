"""Load MovieLens ratings, movies and users from a data directory.

Three on-disk layouts are understood:

- ``ml-100k``: ``u.item`` / ``u.user`` / ``u.data`` (pipe and tab separated,
  genres stored as 19 binary flag columns);
- ``dat`` (ML-1M, ML-10M): ``movies.dat`` / ``users.dat`` / ``ratings.dat``
  separated by ``::``; ``users.dat`` is absent from ML-10M;
- ``csv`` (ML-20M, ML-25M): ``movies.csv`` / ``ratings.csv`` with a header
  row and no user file.

Any unparsable line aborts the whole load with ``MalformedRecord``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional

import numpy as np
import pandas as pd

from src.errors import InvalidConfiguration, MalformedRecord, MissingInputFile
from src.models.base import MOVIE_COLUMNS, RATING_COLUMNS, USER_COLUMNS, Catalog
from src.models.filters import GENRES

logger = logging.getLogger(__name__)

# Column order of the genre flags in ml-100k u.item
ML100K_GENRES = [
    "Unknown", "Action", "Adventure", "Animation", "Children's", "Comedy",
    "Crime", "Documentary", "Drama", "Fantasy", "Film-Noir", "Horror",
    "Musical", "Mystery", "Romance", "Sci-Fi", "Thriller", "War", "Western",
]

_LINE_RE = re.compile(r"line (\d+)")

RATING_FILE_COLUMNS = ["UserID", "MovieID", "Rating", "Timestamp"]
# Positional dtypes for the fast path; the timestamp is left to inference
RATING_DTYPES = {0: np.int64, 1: np.int64, 2: np.float64}


@dataclass(frozen=True, kw_only=True)
class Dataset:
    ratings: pd.DataFrame
    catalog: Catalog
    dataset_format: str

    @property
    def n_ratings(self) -> int:
        return int(len(self.ratings))


def _read_table(
    path: Path,
    sep: str,
    names: List[str],
    encoding: str,
    has_header: bool = False,
    dtype=str,
) -> pd.DataFrame:
    """Read a delimited file positionally and check its field count.

    The number of columns comes from the first data line; a later line with
    more fields fails in the parser, one with fewer is padded. A first line
    whose field count differs from ``names`` is a ``MalformedRecord``.
    """
    try:
        raw = pd.read_csv(
            path,
            sep=sep,
            engine="python" if len(sep) > 1 else "c",
            header=None,
            skiprows=1 if has_header else 0,
            index_col=False,
            encoding=encoding,
            dtype=dtype,
            keep_default_na=False,
        )
    except pd.errors.EmptyDataError:
        logger.warning("%s is empty", path)
        return pd.DataFrame(columns=names, dtype=object)
    except (pd.errors.ParserError, UnicodeDecodeError) as err:
        match = _LINE_RE.search(str(err))
        line = int(match.group(1)) if match else 0
        raise MalformedRecord(path, line, str(err)) from err

    if raw.shape[1] != len(names):
        raise MalformedRecord(
            path,
            _first_line(has_header),
            f"expected {len(names)} fields, found {raw.shape[1]}",
        )
    raw.columns = names
    return raw


def _first_line(has_header: bool) -> int:
    return 2 if has_header else 1


def _numeric_column(
    frame: pd.DataFrame,
    column: str,
    path: Path,
    has_header: bool,
    integer: bool = True,
) -> np.ndarray:
    raw = frame[column]
    values = pd.to_numeric(raw.str.strip(), errors="coerce")
    bad = values.isna().to_numpy(copy=True)
    if integer:
        bad = bad | ~np.isclose(values.fillna(0).to_numpy() % 1, 0)
    if bad.any():
        idx = int(np.flatnonzero(bad)[0])
        raise MalformedRecord(
            path,
            idx + _first_line(has_header),
            f"invalid {column} value {raw.iloc[idx]!r}",
        )
    return values.to_numpy(dtype=np.int64 if integer else np.float64)


def _required_text(frame: pd.DataFrame, column: str, path: Path, has_header: bool) -> pd.Series:
    values = frame[column].fillna("").str.strip()
    missing = (values == "").to_numpy()
    if missing.any():
        idx = int(np.flatnonzero(missing)[0])
        raise MalformedRecord(path, idx + _first_line(has_header), f"missing {column}")
    return values


def _split_genres(raw: pd.Series) -> List[frozenset]:
    return [
        frozenset(g for g in text.split("|") if g) if text else frozenset()
        for text in raw.fillna("").str.strip()
    ]


def _warn_unknown_genres(movies: pd.DataFrame, path: Path) -> None:
    seen = set().union(*movies["Genres"]) if len(movies) else set()
    unknown = sorted(seen - GENRES)
    if unknown:
        logger.warning("Genres outside the known vocabulary in %s: %s", path, unknown)


# ── ml-100k ───────────────────────────────────────────────────────────────────

def _load_movies_100k(path: Path) -> pd.DataFrame:
    names = ["MovieID", "Title", "ReleaseDate", "VideoReleaseDate", "IMDbURL"] + ML100K_GENRES
    raw = _read_table(path, sep="|", names=names, encoding="latin-1")
    movie_ids = _numeric_column(raw, "MovieID", path, has_header=False)
    titles = _required_text(raw, "Title", path, has_header=False)

    flags = raw[ML100K_GENRES].fillna("0").apply(lambda col: col.str.strip() == "1")
    genres = [
        frozenset(g for g, on in zip(ML100K_GENRES, row) if on)
        for row in flags.to_numpy()
    ]
    return pd.DataFrame({"MovieID": movie_ids, "Title": titles.to_numpy(), "Genres": genres})


def _load_users_100k(path: Path) -> pd.DataFrame:
    names = ["UserID", "Age", "Gender", "Occupation", "Zip-code"]
    raw = _read_table(path, sep="|", names=names, encoding="latin-1")
    return pd.DataFrame({
        "UserID": _numeric_column(raw, "UserID", path, has_header=False),
        "Gender": _required_text(raw, "Gender", path, has_header=False).to_numpy(),
        "Age": _numeric_column(raw, "Age", path, has_header=False),
    })


def _load_ratings_100k(path: Path) -> pd.DataFrame:
    return _read_ratings(path, sep="\t", encoding="latin-1", has_header=False)


# ── ML-1M / ML-10M (``::`` separated) ─────────────────────────────────────────

def _load_movies_dat(path: Path) -> pd.DataFrame:
    raw = _read_table(path, sep="::", names=["MovieID", "Title", "Genres"], encoding="latin-1")
    return pd.DataFrame({
        "MovieID": _numeric_column(raw, "MovieID", path, has_header=False),
        "Title": _required_text(raw, "Title", path, has_header=False).to_numpy(),
        "Genres": _split_genres(raw["Genres"]),
    })


def _load_users_dat(path: Path) -> pd.DataFrame:
    names = ["UserID", "Gender", "Age", "Occupation", "Zip-code"]
    raw = _read_table(path, sep="::", names=names, encoding="latin-1")
    return pd.DataFrame({
        "UserID": _numeric_column(raw, "UserID", path, has_header=False),
        "Gender": _required_text(raw, "Gender", path, has_header=False).to_numpy(),
        "Age": _numeric_column(raw, "Age", path, has_header=False),
    })


def _load_ratings_dat(path: Path) -> pd.DataFrame:
    return _read_ratings(path, sep="::", encoding="latin-1", has_header=False)


# ── ML-20M / ML-25M (csv with header) ─────────────────────────────────────────

def _load_movies_csv(path: Path) -> pd.DataFrame:
    raw = _read_table(
        path, sep=",", names=["MovieID", "Title", "Genres"], encoding="utf-8", has_header=True
    )
    return pd.DataFrame({
        "MovieID": _numeric_column(raw, "MovieID", path, has_header=True),
        "Title": _required_text(raw, "Title", path, has_header=True).to_numpy(),
        "Genres": _split_genres(raw["Genres"]),
    })


def _load_ratings_csv(path: Path) -> pd.DataFrame:
    return _read_ratings(path, sep=",", encoding="utf-8", has_header=True)


def _read_ratings(path: Path, sep: str, encoding: str, has_header: bool) -> pd.DataFrame:
    """Read a ratings file with numeric dtypes, re-reading as text on failure.

    The typed read keeps large rating files out of Python strings. Any value
    the parser cannot convert sends the file through the text path, which
    validates every column and reports the first bad line.
    """
    try:
        typed = _read_table(path, sep, RATING_FILE_COLUMNS, encoding, has_header, dtype=RATING_DTYPES)
    except (ValueError, OverflowError) as err:
        logger.debug("Typed read of %s failed (%s); validating as text", path, err)
    else:
        if typed.empty:
            return _ratings_from_raw(typed, path, has_header)
        ratings = typed[RATING_COLUMNS]
        numeric = all(pd.api.types.is_numeric_dtype(ratings[col]) for col in RATING_COLUMNS)
        if numeric and not ratings.isna().any().any():
            return ratings.astype({"UserID": np.int64, "MovieID": np.int64, "Rating": np.float64})
        logger.debug("Typed read of %s produced non-numeric values; validating as text", path)

    raw = _read_table(path, sep, RATING_FILE_COLUMNS, encoding, has_header)
    return _ratings_from_raw(raw, path, has_header)


def _ratings_from_raw(raw: pd.DataFrame, path: Path, has_header: bool) -> pd.DataFrame:
    return pd.DataFrame({
        "UserID": _numeric_column(raw, "UserID", path, has_header),
        "MovieID": _numeric_column(raw, "MovieID", path, has_header),
        "Rating": _numeric_column(raw, "Rating", path, has_header, integer=False),
    })[RATING_COLUMNS]


@dataclass(frozen=True, kw_only=True)
class DatasetLayout:
    name: str
    movies_file: str
    ratings_file: str
    users_file: Optional[str]
    users_required: bool
    load_movies: Callable[[Path], pd.DataFrame]
    load_ratings: Callable[[Path], pd.DataFrame]
    load_users: Optional[Callable[[Path], pd.DataFrame]]


LAYOUTS: Dict[str, DatasetLayout] = {
    "ml-100k": DatasetLayout(
        name="ml-100k",
        movies_file="u.item",
        ratings_file="u.data",
        users_file="u.user",
        users_required=True,
        load_movies=_load_movies_100k,
        load_ratings=_load_ratings_100k,
        load_users=_load_users_100k,
    ),
    "dat": DatasetLayout(
        name="dat",
        movies_file="movies.dat",
        ratings_file="ratings.dat",
        users_file="users.dat",
        users_required=False,
        load_movies=_load_movies_dat,
        load_ratings=_load_ratings_dat,
        load_users=_load_users_dat,
    ),
    "csv": DatasetLayout(
        name="csv",
        movies_file="movies.csv",
        ratings_file="ratings.csv",
        users_file=None,
        users_required=False,
        load_movies=_load_movies_csv,
        load_ratings=_load_ratings_csv,
        load_users=None,
    ),
}

FORMAT_ALIASES = {
    "ml-1m": "dat",
    "ml-10m": "dat",
    "ml-20m": "csv",
    "ml-25m": "csv",
}


def resolve_layout(dataset_format: str) -> DatasetLayout:
    key = FORMAT_ALIASES.get(dataset_format, dataset_format)
    if key not in LAYOUTS:
        known = sorted(set(LAYOUTS) | set(FORMAT_ALIASES))
        raise InvalidConfiguration(
            f"Unknown dataset format {dataset_format!r}; expected one of {known}"
        )
    return LAYOUTS[key]


def detect_layout(data_dir: Path) -> DatasetLayout:
    """Pick the layout whose ratings file is present in ``data_dir``."""
    data_dir = Path(data_dir)
    if not data_dir.is_dir():
        raise MissingInputFile(f"Data directory not found: {data_dir}")
    for layout in LAYOUTS.values():
        if (data_dir / layout.ratings_file).is_file():
            return layout
    expected = [layout.ratings_file for layout in LAYOUTS.values()]
    raise MissingInputFile(f"No ratings file ({', '.join(expected)}) found in {data_dir}")


def _require(path: Path) -> Path:
    if not path.is_file():
        raise MissingInputFile(f"Input file not found: {path}")
    return path


def _log_referential_gaps(ratings: pd.DataFrame, catalog: Catalog) -> None:
    unknown_movies = int((~ratings["MovieID"].isin(catalog.known_movies())).sum())
    if unknown_movies:
        logger.warning("%d ratings reference movies missing from the catalog", unknown_movies)
    if catalog.n_users:
        unknown_users = int((~ratings["UserID"].isin(catalog.known_users())).sum())
        if unknown_users:
            logger.warning("%d ratings reference users missing from the catalog", unknown_users)


def load_dataset(data_dir: Path, dataset_format: Optional[str] = None) -> Dataset:
    """Load ratings and the movie / user catalog from ``data_dir``.

    Parameters
    ----------
    data_dir : Path
        Directory holding one MovieLens release.
    dataset_format : str | None
        ``ml-100k``, ``dat`` (``ml-1m``, ``ml-10m``) or ``csv``
        (``ml-20m``, ``ml-25m``). Detected from file names when omitted.

    Returns
    -------
    Dataset
        Ratings (UserID, MovieID, Rating) in file order and the catalog.
        The user table is empty for releases without a user file.

    Raises
    ------
    MissingInputFile
        If the directory, the movies file or the ratings file is absent.
    MalformedRecord
        On the first unparsable line of any file.
    """
    data_dir = Path(data_dir)
    if dataset_format is None:
        layout = detect_layout(data_dir)
    else:
        layout = resolve_layout(dataset_format)

    movies_path = _require(data_dir / layout.movies_file)
    ratings_path = _require(data_dir / layout.ratings_file)

    users = pd.DataFrame(columns=USER_COLUMNS)
    if layout.users_file is not None:
        users_path = data_dir / layout.users_file
        if users_path.is_file():
            users = layout.load_users(users_path)
            logger.info("Loaded %d users from %s", len(users), users_path)
        elif layout.users_required:
            raise MissingInputFile(f"Input file not found: {users_path}")
        else:
            logger.warning("No %s in %s; demographic reports will be empty", layout.users_file, data_dir)

    movies = layout.load_movies(movies_path)[MOVIE_COLUMNS]
    logger.info("Loaded %d movies from %s", len(movies), movies_path)
    _warn_unknown_genres(movies, movies_path)

    ratings = layout.load_ratings(ratings_path)
    logger.info("Loaded %d ratings from %s", len(ratings), ratings_path)

    catalog = Catalog(movies=movies, users=users)
    _log_referential_gaps(ratings, catalog)
    return Dataset(ratings=ratings, catalog=catalog, dataset_format=layout.name)
