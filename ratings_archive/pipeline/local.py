"""Re-canonicalise documents already on disk."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from ratings_archive.common.errors import PipelineError
from ratings_archive.common.fs import read_text_async, write_text_async
from ratings_archive.common.logging import get_logger, log_event
from ratings_archive.common.models import SKIPPED, WRITTEN, DocumentResult
from ratings_archive.harvest.open_data import canonicalize_document
from ratings_archive.pipeline.xml_canonical import DEFAULT_UNPAIRED_TAGS


async def canonicalize_files(
    paths: Iterable[Path],
    *,
    unpaired_tags: tuple[str, ...] = DEFAULT_UNPAIRED_TAGS,
    logger: logging.Logger | None = None,
) -> list[DocumentResult]:
    logger = logger or get_logger()
    results = []
    for path in paths:
        fmt = path.suffix.lstrip(".").lower()
        if fmt not in ("xml", "json"):
            results.append(DocumentResult(filename=str(path), fmt=fmt, status=SKIPPED, error_code="UNSUPPORTED_FORMAT"))
            continue
        try:
            text = await read_text_async(path)
            canonical = canonicalize_document(text, fmt, unpaired_tags=unpaired_tags, document=str(path))
        except PipelineError as exc:
            log_event(
                logger,
                f"left {path} unchanged: {exc}",
                level=logging.WARNING,
                stage="canonicalize",
                document=str(path),
                event="DOCUMENT_SKIPPED",
                status="error",
                error_code=exc.error_code,
            )
            results.append(
                DocumentResult(filename=str(path), fmt=fmt, status=SKIPPED, error_code=exc.error_code, message=str(exc))
            )
            continue
        if canonical != text:
            await write_text_async(path, canonical)
        results.append(DocumentResult(filename=str(path), fmt=fmt, status=WRITTEN))
    return results
