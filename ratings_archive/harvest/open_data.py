"""Per-authority establishment file retrieval."""

from __future__ import annotations

import logging
import time
from pathlib import Path, PurePosixPath
from urllib.parse import urlparse

from ratings_archive.common.constants import DEFAULT_LANGUAGE, WELSH_LANGUAGE
from ratings_archive.common.errors import PipelineError
from ratings_archive.common.fs import write_text_async
from ratings_archive.common.http import FetchExhaustedError, HttpClient
from ratings_archive.common.logging import get_logger, log_event
from ratings_archive.common.models import SKIPPED, WRITTEN, DocumentResult, DocumentTarget
from ratings_archive.pipeline.json_canonical import canonicalize_json
from ratings_archive.pipeline.xml_canonical import DEFAULT_UNPAIRED_TAGS, canonicalize_xml
from ratings_archive.schemas.authorities import Authority

DECODE_ERROR = "DECODE_ERROR"
WRITE_ERROR = "WRITE_ERROR"


def json_sibling_url(url: str) -> str | None:
    if url.endswith(".xml"):
        return url[: -len(".xml")] + ".json"
    return None


def output_filename(url: str, fmt: str) -> str:
    segment = PurePosixPath(urlparse(url).path).name
    return f"{PurePosixPath(segment).stem}.{fmt}"


def document_targets(authority: Authority) -> list[DocumentTarget]:
    sources = [(authority.FileName, DEFAULT_LANGUAGE)]
    if authority.FileNameWelsh is not None:
        sources.append((authority.FileNameWelsh, WELSH_LANGUAGE))

    targets: list[DocumentTarget] = []
    for xml_url, language in sources:
        targets.append(
            DocumentTarget(
                authority_id=authority.LocalAuthorityId,
                source_url=xml_url,
                fmt="xml",
                language=language,
                filename=output_filename(xml_url, "xml"),
            )
        )
        json_url = json_sibling_url(xml_url)
        if json_url is not None:
            targets.append(
                DocumentTarget(
                    authority_id=authority.LocalAuthorityId,
                    source_url=json_url,
                    fmt="json",
                    language=language,
                    filename=output_filename(json_url, "json"),
                )
            )
    return targets


def canonicalize_document(text: str, fmt: str, *, unpaired_tags: tuple[str, ...], document: str | None = None) -> str:
    if fmt == "xml":
        return canonicalize_xml(text, unpaired_tags=unpaired_tags, document=document)
    if fmt == "json":
        return canonicalize_json(text)
    raise ValueError(f"Unsupported format: {fmt}")


def _skipped(target: DocumentTarget, error_code: str, message: str, logger: logging.Logger) -> DocumentResult:
    log_event(
        logger,
        f"skipped {target.filename}: {message}",
        level=logging.WARNING,
        stage="establishments",
        authority=target.authority_id,
        document=target.filename,
        event="DOCUMENT_SKIPPED",
        status="error",
        error_code=error_code,
    )
    return DocumentResult(
        filename=target.filename,
        fmt=target.fmt,
        status=SKIPPED,
        authority_id=target.authority_id,
        language=target.language,
        error_code=error_code,
        message=message,
    )


async def archive_document(
    client: HttpClient,
    target: DocumentTarget,
    out_dir: Path,
    *,
    unpaired_tags: tuple[str, ...] = DEFAULT_UNPAIRED_TAGS,
    logger: logging.Logger | None = None,
) -> DocumentResult:
    logger = logger or get_logger()
    started = time.monotonic()
    try:
        text = await client.fetch_document(target.source_url, fmt=target.fmt, language=target.language)
        canonical = canonicalize_document(text, target.fmt, unpaired_tags=unpaired_tags, document=target.filename)
    except FetchExhaustedError:
        raise
    except PipelineError as exc:
        return _skipped(target, exc.error_code, str(exc), logger)
    except UnicodeError as exc:
        return _skipped(target, DECODE_ERROR, str(exc), logger)

    try:
        await write_text_async(out_dir / target.filename, canonical)
    except OSError as exc:
        return _skipped(target, WRITE_ERROR, str(exc), logger)

    log_event(
        logger,
        f"wrote {target.filename}",
        stage="establishments",
        authority=target.authority_id,
        document=target.filename,
        event="DOCUMENT_WRITTEN",
        status="ok",
        duration_ms=int((time.monotonic() - started) * 1000),
    )
    return DocumentResult(
        filename=target.filename,
        fmt=target.fmt,
        status=WRITTEN,
        authority_id=target.authority_id,
        language=target.language,
    )


async def archive_authority(
    client: HttpClient,
    authority: Authority,
    out_dir: Path,
    *,
    unpaired_tags: tuple[str, ...] = DEFAULT_UNPAIRED_TAGS,
    logger: logging.Logger | None = None,
) -> list[DocumentResult]:
    """Fetch, canonicalise and store each file of one authority in turn."""
    results = []
    for target in document_targets(authority):
        results.append(
            await archive_document(client, target, out_dir, unpaired_tags=unpaired_tags, logger=logger)
        )
    return results
