from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import List, Tuple

import pandas as pd
from tqdm import tqdm

from src.config import EngineConfig, ReportSpec
from src.engine.pipeline import aggregate_ratings
from src.engine.selector import select_top_n
from src.models.base import Catalog, TopEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class ReportResult:
    spec: ReportSpec
    rows: Tuple[TopEntry, ...]
    n_ratings: int

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def header(self) -> str:
        return self.spec.header

    def rendered_rows(self) -> List[Tuple[str, str, int]]:
        """Rows as (label, average with two decimals, count)."""
        return [(row.title, row.formatted_average, row.count) for row in self.rows]


@dataclass(frozen=True, kw_only=True)
class RunResult:
    parallel: bool
    reports: Tuple[ReportResult, ...]
    elapsed: float

    @property
    def mode(self) -> str:
        return "parallel" if self.parallel else "sequential"

    @property
    def folder_name(self) -> str:
        return "withmultithreading" if self.parallel else "withoutmultithreading"

    def by_name(self) -> dict:
        return {report.name: report for report in self.reports}


class ReportGenerator:
    """Run every configured report over one rating set in one execution mode."""

    def __init__(
        self,
        ratings: pd.DataFrame,
        catalog: Catalog,
        config: EngineConfig,
        show_progress: bool = False,
    ) -> None:
        self.ratings = ratings
        self.catalog = catalog
        self.config = config
        self.show_progress = show_progress

    def build_report(self, spec: ReportSpec, parallel: bool) -> ReportResult:
        table = aggregate_ratings(
            self.ratings,
            chunk_size=self.config.chunk_size,
            parallel=parallel,
            max_workers=self.config.max_workers,
            rating_filter=spec.rating_filter,
            catalog=self.catalog,
            filter_stage=self.config.filter_stage,
        )
        rows = select_top_n(table, spec.n, self.catalog)
        if not rows:
            logger.warning("Report %s is empty (%s matched no ratings)", spec.name, spec.rating_filter)
        logger.debug(
            "Report %s: %d ratings over %d movies, %d rows",
            spec.name,
            table.total_count,
            len(table),
            len(rows),
        )
        return ReportResult(spec=spec, rows=tuple(rows), n_ratings=table.total_count)

    def run(self, parallel: bool) -> RunResult:
        mode = "parallel" if parallel else "sequential"
        logger.info(
            "Generating %d reports (%s, chunk_size=%d)...",
            len(self.config.reports),
            mode,
            self.config.chunk_size,
        )

        start = time.perf_counter()
        results = [
            self.build_report(spec, parallel)
            for spec in tqdm(
                self.config.reports,
                desc=f"Reports ({mode})",
                disable=not self.show_progress,
            )
        ]
        elapsed = time.perf_counter() - start

        return RunResult(parallel=parallel, reports=tuple(results), elapsed=elapsed)
