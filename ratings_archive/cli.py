"""CLI entrypoint for the food hygiene ratings archive."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from ratings_archive.common.config_loader import ArchiveConfig, load_archive_config
from ratings_archive.common.constants import EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS, STAGES
from ratings_archive.common.errors import PipelineError
from ratings_archive.common.http import HttpClient
from ratings_archive.common.logging import build_logger, log_event
from ratings_archive.common.models import SKIPPED, DocumentResult
from ratings_archive.common.time_utils import generate_run_id
from ratings_archive.harvest.runner import run_archive
from ratings_archive.pipeline.local import canonicalize_files
from ratings_archive.pipeline.reports import write_run_summary


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=[*STAGES, "all", "canonicalize"])
    parser.add_argument("paths", nargs="*", help="files to rewrite in place (canonicalize only)")
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--output-dir", default="./public")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    parser.add_argument("--strict", action="store_true")
    return parser.parse_args(argv)


async def _archive(
    config: ArchiveConfig,
    output_dir: Path,
    stages: tuple[str, ...],
    logger: logging.Logger,
    run_id: str,
) -> list[DocumentResult]:
    async with HttpClient(
        base_url=config.base_url,
        reference_endpoints=config.reference_datasets,
        url_rewrites=config.url_rewrites,
        retry=config.retry,
        logger=logger,
    ) as client:
        return await run_archive(config, output_dir, client, stages=stages, logger=logger, run_id=run_id)


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    output_dir = Path(args.output_dir)
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None

    logger = build_logger(run_id, output_dir=output_dir, level=args.log_level)
    try:
        config = load_archive_config(Path(args.config_dir), overlay_config_dir=overlay_config_dir)
        if args.command == "canonicalize":
            results = asyncio.run(
                canonicalize_files([Path(p) for p in args.paths], unpaired_tags=config.unpaired_tags, logger=logger)
            )
        else:
            stages = STAGES if args.command == "all" else (args.command,)
            results = asyncio.run(_archive(config, output_dir, stages, logger, run_id))
    except PipelineError as exc:
        log_event(
            logger,
            f"run aborted: {exc}",
            level=logging.ERROR,
            run_id=run_id,
            event="RUN_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        return EXIT_HARD_FAIL

    write_run_summary(output_dir, run_id=run_id, results=results)
    if any(result.status == SKIPPED for result in results):
        return EXIT_HARD_FAIL if args.strict else EXIT_PARTIAL
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    try:
        return run_command(args)
    except Exception:
        logging.getLogger("ratings_archive").exception("unexpected failure")
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
