from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from src.errors import InvalidConfiguration
from src.reports.generator import ReportResult, RunResult

logger = logging.getLogger(__name__)

CSV_HEADER = "Movie,AverageRating,RatingCount"
TXT_RULE = "=========================="


def _quote(label: str) -> str:
    return '"' + label.replace('"', '""') + '"'


def render_csv(report: ReportResult) -> List[str]:
    lines = [CSV_HEADER]
    for label, average, count in report.rendered_rows():
        lines.append(f"{_quote(label)},{average},{count}")
    return lines


def render_txt(report: ReportResult) -> List[str]:
    lines = [report.header, TXT_RULE]
    for label, average, _ in report.rendered_rows():
        lines.append(f"{label} :: {average}")
    return lines


RENDERERS = {
    "csv": render_csv,
    "txt": render_txt,
}


def write_reports(run: RunResult, output_dir: Path, output_format: str = "csv") -> List[Path]:
    """Write every report of a finished run under ``output_dir/<mode folder>/``.

    All files are rendered before the first one is written.

    Returns
    -------
    list[Path]
        Paths of the written files, in report order.
    """
    if output_format not in RENDERERS:
        raise InvalidConfiguration(f"Unknown output format: {output_format!r}")
    render = RENDERERS[output_format]

    folder = Path(output_dir) / run.folder_name
    rendered = [
        (folder / f"{report.spec.file_name}.{output_format}", render(report))
        for report in run.reports
    ]

    folder.mkdir(parents=True, exist_ok=True)
    paths = []
    for path, lines in rendered:
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        paths.append(path)

    logger.info("Wrote %d %s reports to %s", len(paths), output_format, folder)
    return paths
