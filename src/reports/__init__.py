from src.reports.generator import ReportGenerator, ReportResult, RunResult
from src.reports.writer import render_csv, render_txt, write_reports

__all__ = [
    "ReportGenerator",
    "ReportResult",
    "RunResult",
    "render_csv",
    "render_txt",
    "write_reports",
]
