from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Literal, Optional, Tuple

from src.engine.partition import validate_chunk_size
from src.engine.pipeline import FILTER_STAGES
from src.engine.selector import validate_top_n
from src.errors import InvalidConfiguration
from src.models.filters import (
    AgeRangeFilter,
    GenderFilter,
    GenreFilter,
    NoFilter,
    RatingFilter,
)

DEFAULT_CHUNK_SIZE = 10_000
DEFAULT_TOP_N = 10
OUTPUT_FORMATS = ("csv", "txt")
DATA_DIR_ENV = "MOVIELENS_DATA_DIR"


@dataclass(frozen=True, kw_only=True)
class ReportSpec:
    name: str
    header: str
    file_name: str
    rating_filter: RatingFilter
    n: int = DEFAULT_TOP_N

    def __post_init__(self) -> None:
        validate_top_n(self.n)


def default_reports(n: int = DEFAULT_TOP_N) -> Tuple[ReportSpec, ...]:
    """The ten fixed reports: general, both genders, four genres, three age brackets."""
    layout = [
        ("general", "Movies (General)", "Top10General", NoFilter()),
        ("male", "Movies (Male Viewers)", "Top10Male", GenderFilter("M")),
        ("female", "Movies (Female Viewers)", "Top10Female", GenderFilter("F")),
    ]
    for genre in ("Action", "Drama", "Comedy", "Fantasy"):
        layout.append((genre.lower(), f"{genre} Movies", f"Top10{genre}", GenreFilter(genre)))
    layout.extend([
        ("age_below_18", "Movies (Age Below 18)", "Top10AgeBelow18", AgeRangeFilter(0, 18)),
        ("age_18_to_30", "Movies (Age 18 to 30)", "Top10Age18to30", AgeRangeFilter(18, 30)),
        ("age_above_30", "Movies (Age 30 and Above)", "Top10AgeAbove30", AgeRangeFilter(30, None)),
    ])
    return tuple(
        ReportSpec(
            name=name,
            header=f"Top {n} {label}",
            file_name=file_name,
            rating_filter=rating_filter,
            n=n,
        )
        for name, label, file_name, rating_filter in layout
    )


def select_reports(names: Iterable[str], reports: Iterable[ReportSpec]) -> Tuple[ReportSpec, ...]:
    by_name = {spec.name: spec for spec in reports}
    selected = []
    for name in names:
        if name not in by_name:
            raise InvalidConfiguration(
                f"Unknown report {name!r}; expected one of {sorted(by_name)}"
            )
        selected.append(by_name[name])
    return tuple(selected)


@dataclass(frozen=True, kw_only=True)
class EngineConfig:
    data_dir: Path
    output_dir: Path = Path("output")
    dataset_format: Optional[str] = None
    chunk_size: int = DEFAULT_CHUNK_SIZE
    max_workers: Optional[int] = None
    reports: Tuple[ReportSpec, ...] = field(default_factory=default_reports)
    output_format: Literal["csv", "txt"] = "csv"
    filter_stage: Literal["partition", "chunk"] = "partition"

    def __post_init__(self) -> None:
        object.__setattr__(self, "data_dir", Path(self.data_dir))
        object.__setattr__(self, "output_dir", Path(self.output_dir))
        object.__setattr__(self, "reports", tuple(self.reports))

        validate_chunk_size(self.chunk_size)
        if self.max_workers is not None and self.max_workers <= 0:
            raise InvalidConfiguration(
                f"max_workers must be positive, got {self.max_workers}"
            )
        if not self.reports:
            raise InvalidConfiguration("At least one report must be configured")
        names = [spec.name for spec in self.reports]
        if len(set(names)) != len(names):
            raise InvalidConfiguration(f"Duplicate report names: {names}")
        if self.output_format not in OUTPUT_FORMATS:
            raise InvalidConfiguration(f"Unknown output format: {self.output_format!r}")
        if self.filter_stage not in FILTER_STAGES:
            raise InvalidConfiguration(f"Unknown filter stage: {self.filter_stage!r}")
