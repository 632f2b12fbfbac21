"""Report rendering - Markdown and CSV projections of scored targets.

The Markdown report carries a human-maintained Status column. Regenerating
a report keeps DONE/SKIP marks by re-reading the previous file and matching
rows on `path#name`.
"""

import csv
import io
from pathlib import Path
from typing import Optional, Union

from .schema import Priority, ReportStatus, ScoredTarget
from .utils import target_key

REPORT_COLUMNS = [
    "Status", "Score", "Priority", "Name", "Type", "Layer", "Path",
    "Coverage", "CS", "BC", "CC", "ER", "Testability", "DepCount",
]

CSV_COLUMNS = [
    "status", "score", "priority", "name", "path", "type", "layer", "layerName",
    "coveragePct", "coverageScore", "BC", "CC", "ER", "testability", "dependencyCount",
]

NOT_AVAILABLE = "N/A"


def sort_by_score(results: list[ScoredTarget]) -> list[ScoredTarget]:
    """Highest score first; ties keep a stable `path#name` order."""
    return sorted(results, key=lambda r: (-r.score, r.key))


def summarize(results: list[ScoredTarget]) -> dict[str, int]:
    """Number of targets per priority bucket."""
    counts = {p.value: 0 for p in Priority}
    for result in results:
        counts[Priority(result.priority).value] += 1
    return counts


def _format_coverage(result: ScoredTarget) -> str:
    if result.coverage_pct is None:
        return NOT_AVAILABLE
    return f"{result.coverage_pct:.1f}%"


def _format_optional(value: Optional[object]) -> str:
    return NOT_AVAILABLE if value is None else str(value)


def _status(result: ScoredTarget, status_map: dict[str, str]) -> str:
    return status_map.get(result.key, ReportStatus.TODO.value)


def render_markdown(results: list[ScoredTarget], status_map: Optional[dict[str, str]] = None) -> str:
    """Render the Markdown priority report.

    Args:
        results: Scored targets, in any order.
        status_map: Previous `{path#name: status}` marks to carry over.

    Returns:
        Markdown document: a table sorted by score and a priority summary.
    """
    status_map = status_map or {}
    lines = [
        "<!-- Test Priority Scoring Report -->",
        "<!-- Status can be TODO | DONE | SKIP; DONE and SKIP survive regeneration -->",
        "",
        "| " + " | ".join(REPORT_COLUMNS) + " |",
        "|" + "|".join("-" * (len(col) + 2) for col in REPORT_COLUMNS) + "|",
    ]

    for r in sort_by_score(results):
        cells = [
            _status(r, status_map),
            str(r.score),
            Priority(r.priority).value,
            r.name,
            r.type,
            r.layer_name or r.layer,
            r.path,
            _format_coverage(r),
            _format_optional(r.coverage_score),
            str(r.bc),
            str(r.cc),
            str(r.er),
            str(r.testability),
            str(r.dependency_count),
        ]
        lines.append("| " + " | ".join(cells) + " |")

    counts = summarize(results)
    lines += [
        "",
        "---",
        "",
        "## Summary",
        "",
        f"- **Total Targets**: {len(results)}",
    ]
    for priority in Priority:
        lines.append(f"- **{priority.value} ({priority.label})**: {counts[priority.value]}")

    return "\n".join(lines) + "\n"


def render_csv(results: list[ScoredTarget], status_map: Optional[dict[str, str]] = None) -> str:
    """Render the same rows as CSV."""
    status_map = status_map or {}
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=CSV_COLUMNS, lineterminator="\n")
    writer.writeheader()

    for r in sort_by_score(results):
        writer.writerow({
            "status": _status(r, status_map),
            "score": r.score,
            "priority": Priority(r.priority).value,
            "name": r.name,
            "path": r.path,
            "type": r.type,
            "layer": r.layer,
            "layerName": r.layer_name or NOT_AVAILABLE,
            "coveragePct": _format_coverage(r),
            "coverageScore": _format_optional(r.coverage_score),
            "BC": r.bc,
            "CC": r.cc,
            "ER": r.er,
            "testability": r.testability,
            "dependencyCount": r.dependency_count,
        })

    return output.getvalue()


def read_existing_status(path: Optional[Union[str, Path]]) -> dict[str, str]:
    """Read DONE/SKIP marks from a previous Markdown report.

    Returns:
        `{path#name: status}`; empty when there is no previous report.
    """
    if path is None:
        return {}
    path = Path(path)
    if not path.exists():
        return {}

    name_idx = REPORT_COLUMNS.index("Name")
    path_idx = REPORT_COLUMNS.index("Path")
    kept = {ReportStatus.DONE.value, ReportStatus.SKIP.value}

    status_map = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        if not line.startswith("|"):
            continue
        cells = [cell.strip() for cell in line.strip().strip("|").split("|")]
        if len(cells) <= path_idx or cells[0] not in kept:
            continue
        status_map[target_key(cells[path_idx], cells[name_idx])] = cells[0]
    return status_map
