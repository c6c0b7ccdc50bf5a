"""Archive run orchestration."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Iterable

from ratings_archive.common.config_loader import ArchiveConfig
from ratings_archive.common.errors import StageError
from ratings_archive.common.fs import ensure_dir, read_text_async
from ratings_archive.common.http import HttpClient
from ratings_archive.common.logging import get_logger, log_event
from ratings_archive.common.models import DocumentResult
from ratings_archive.harvest.open_data import archive_authority
from ratings_archive.harvest.reference import AUTHORITIES_KEY, fetch_reference_datasets, reference_filename
from ratings_archive.schemas.authorities import Authority
from ratings_archive.schemas.validator import parse_authorities


def output_dirs(config: ArchiveConfig, output_dir: Path) -> tuple[Path, Path]:
    return output_dir / config.api_dir, output_dir / config.open_data_dir


async def _load_authorities(fetched: dict[tuple[str, str, str], str], api_dir: Path) -> list[Authority]:
    text = fetched.get(AUTHORITIES_KEY)
    if text is None:
        path = api_dir / reference_filename(*AUTHORITIES_KEY)
        if not path.exists():
            raise StageError(f"No authorities listing fetched or stored at {path}")
        text = await read_text_async(path)
    return parse_authorities(text)


async def archive_establishments(
    client: HttpClient,
    authorities: Iterable[Authority],
    open_data_dir: Path,
    *,
    unpaired_tags: tuple[str, ...],
    logger: logging.Logger | None = None,
) -> list[DocumentResult]:
    """Run one task per authority, all at once.

    Document-level failures come back as skipped results. Anything raised
    out of a task (retries exhausted, unexpected errors) ends the run once
    every task has settled.
    """
    outcomes = await asyncio.gather(
        *(
            archive_authority(client, authority, open_data_dir, unpaired_tags=unpaired_tags, logger=logger)
            for authority in authorities
        ),
        return_exceptions=True,
    )

    results: list[DocumentResult] = []
    failures: list[BaseException] = []
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            failures.append(outcome)
        else:
            results.extend(outcome)
    if failures:
        raise failures[0]
    return results


async def run_archive(
    config: ArchiveConfig,
    output_dir: Path,
    client: HttpClient,
    *,
    stages: Iterable[str] = ("reference", "establishments"),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    logger: logging.Logger | None = None,
    run_id: str | None = None,
) -> list[DocumentResult]:
    logger = logger or get_logger()
    stages = tuple(stages)
    api_dir, open_data_dir = output_dirs(config, output_dir)
    # Concurrent writers assume their directories already exist.
    ensure_dir(api_dir)
    ensure_dir(open_data_dir)

    fetched: dict[tuple[str, str, str], str] = {}
    if "reference" in stages:
        log_event(logger, "stage start", run_id=run_id, stage="reference", event="STAGE_START", status="ok")
        fetched = await fetch_reference_datasets(client, config, api_dir, sleep=sleep, logger=logger)
        log_event(logger, "stage end", run_id=run_id, stage="reference", event="STAGE_END", status="ok")

    results: list[DocumentResult] = []
    if "establishments" in stages:
        log_event(logger, "stage start", run_id=run_id, stage="establishments", event="STAGE_START", status="ok")
        authorities = await _load_authorities(fetched, api_dir)
        results = await archive_establishments(
            client,
            authorities,
            open_data_dir,
            unpaired_tags=config.unpaired_tags,
            logger=logger,
        )
        log_event(logger, "stage end", run_id=run_id, stage="establishments", event="STAGE_END", status="ok")

    return results
