import pandas as pd
import pytest

from src.models.base import Catalog


# ── Fixtures ──────────────────────────────────────────────────────────────────
#
# Per-movie truth for sample_ratings (all users):
#   movie 1: 5, 4, 1  -> sum 10, count 3
#   movie 2: 3, 4     -> sum 7,  count 2
#   movie 3: 5, 4     -> sum 9,  count 2
#   movie 4: 5        -> sum 5,  count 1
#   movie 5: 2        -> sum 2,  count 1
#   movie 99: 5       -> not in the catalog
# User 5 is not in the catalog.

@pytest.fixture
def sample_movies():
    return pd.DataFrame({
        "MovieID": [1, 2, 3, 4, 5],
        "Title": [
            "Toy Story (1995)",
            "Heat (1995)",
            "Clueless (1995)",
            "Willow (1988)",
            "Casino (1995)",
        ],
        "Genres": [
            frozenset({"Animation", "Children's", "Comedy"}),
            frozenset({"Action", "Crime", "Thriller"}),
            frozenset({"Comedy", "Romance"}),
            frozenset({"Action", "Adventure", "Fantasy"}),
            frozenset({"Drama", "Thriller"}),
        ],
    })


@pytest.fixture
def sample_users():
    return pd.DataFrame({
        "UserID": [1, 2, 3, 4],
        "Gender": ["M", "F", "M", "F"],
        "Age": [15, 25, 35, 18],
    })


@pytest.fixture
def sample_ratings():
    return pd.DataFrame({
        "UserID":  [1, 1, 2, 2, 3, 3, 4, 4, 5, 1],
        "MovieID": [1, 2, 1, 3, 2, 5, 4, 3, 1, 99],
        "Rating":  [5.0, 3.0, 4.0, 5.0, 4.0, 2.0, 5.0, 4.0, 1.0, 5.0],
    })


@pytest.fixture
def catalog(sample_movies, sample_users):
    return Catalog(movies=sample_movies, users=sample_users)
