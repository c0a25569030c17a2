import logging
from dataclasses import dataclass
from typing import Tuple

from src.reports.generator import RunResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class RunComparison:
    sequential_time: float
    parallel_time: float
    speedup: float
    identical: bool
    mismatched_reports: Tuple[str, ...]


def compare_runs(sequential: RunResult, parallel: RunResult) -> RunComparison:
    """Compare a sequential run against a parallel run of the same reports.

    Parameters
    ----------
    sequential : RunResult
        Run produced with ``parallel=False``.
    parallel : RunResult
        Run produced with ``parallel=True``.

    Returns
    -------
    RunComparison
        Wall-time speedup (sequential / parallel) and the names of reports
        whose rendered rows (label, two-decimal average, count) differ.
        ``identical`` is True when no report differs.
    """
    seq_reports = sequential.by_name()
    par_reports = parallel.by_name()

    mismatched = []
    for name in seq_reports.keys() | par_reports.keys():
        seq = seq_reports.get(name)
        par = par_reports.get(name)
        if seq is None or par is None or seq.rendered_rows() != par.rendered_rows():
            mismatched.append(name)
    mismatched.sort()

    if parallel.elapsed == 0:
        logger.warning("Parallel time is zero, cannot calculate speedup")
        speedup = float("inf")
    else:
        speedup = sequential.elapsed / parallel.elapsed

    if mismatched:
        logger.warning(
            "Sequential and parallel output differ for %d/%d reports: %s",
            len(mismatched),
            len(seq_reports),
            ", ".join(mismatched),
        )

    return RunComparison(
        sequential_time=sequential.elapsed,
        parallel_time=parallel.elapsed,
        speedup=speedup,
        identical=not mismatched,
        mismatched_reports=tuple(mismatched),
    )
