"""Reference dataset retrieval."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable

from ratings_archive.common.config_loader import ArchiveConfig
from ratings_archive.common.constants import DEFAULT_LANGUAGE
from ratings_archive.common.errors import StageError
from ratings_archive.common.fs import write_text_async
from ratings_archive.common.http import HttpClient, HttpRequestError
from ratings_archive.common.logging import get_logger, log_event

AUTHORITIES_KIND = "authorities"
AUTHORITIES_KEY = (AUTHORITIES_KIND, DEFAULT_LANGUAGE, "json")


def reference_filename(kind: str, language: str, fmt: str) -> str:
    return f"{kind}-{language}.{fmt}"


def reference_requests(config: ArchiveConfig) -> list[tuple[str, str, str]]:
    return [
        (kind, language, fmt)
        for kind in config.reference_datasets
        for language in config.languages
        for fmt in config.formats
    ]


async def fetch_reference_datasets(
    client: HttpClient,
    config: ArchiveConfig,
    api_dir: Path,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    logger: logging.Logger | None = None,
) -> dict[tuple[str, str, str], str]:
    """Fetch every dataset/language/format combination one at a time.

    Requests are separated by an awaited pause to stay under the upstream
    rate limit. Bodies are stored as received.
    """
    logger = logger or get_logger()
    fetched: dict[tuple[str, str, str], str] = {}

    for index, (kind, language, fmt) in enumerate(reference_requests(config)):
        if index:
            await sleep(config.reference_pause_seconds)
        filename = reference_filename(kind, language, fmt)
        try:
            text = await client.fetch_reference_dataset(kind, language=language, fmt=fmt)
        except HttpRequestError as exc:
            log_event(
                logger,
                f"reference dataset {filename} not fetched: {exc}",
                level=logging.ERROR,
                stage="reference",
                document=filename,
                event="FETCH_FAIL",
                status="error",
                error_code=exc.error_code,
            )
            if (kind, language, fmt) == AUTHORITIES_KEY:
                raise StageError(f"Authorities listing unavailable: {exc}") from exc
            continue

        await write_text_async(api_dir / filename, text)
        fetched[(kind, language, fmt)] = text
        log_event(
            logger,
            f"wrote {filename}",
            stage="reference",
            document=filename,
            event="DOCUMENT_WRITTEN",
            status="ok",
        )

    return fetched
