"""Run report aggregation."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from ratings_archive.common.fs import write_json
from ratings_archive.common.models import SKIPPED, WRITTEN, DocumentResult


def summarise(results: Iterable[DocumentResult]) -> dict:
    results = list(results)
    skipped = [result for result in results if result.status == SKIPPED]
    by_format: dict[str, int] = {}
    for result in results:
        if result.status == WRITTEN:
            by_format[result.fmt] = by_format.get(result.fmt, 0) + 1

    status = "success"
    if skipped:
        status = "partial"

    return {
        "status": status,
        "document_count": len(results),
        "written_count": len(results) - len(skipped),
        "skipped_count": len(skipped),
        "written_by_format": by_format,
        "skipped": [
            result.to_dict()
            for result in sorted(skipped, key=lambda item: (item.authority_id or 0, item.filename))
        ],
    }


def write_run_summary(output_dir: Path, run_id: str, results: Iterable[DocumentResult]) -> Path:
    summary_path = output_dir / "run_meta" / f"{run_id}.summary.json"
    payload = {"run_id": run_id, **summarise(results)}
    write_json(summary_path, payload)
    return summary_path
