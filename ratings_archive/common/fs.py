"""Filesystem helpers."""

from __future__ import annotations

import json
from pathlib import Path

import aiofiles


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def read_yaml(path: Path):
    import yaml

    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def write_json(path: Path, payload) -> None:
    ensure_dir(path.parent)
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2, sort_keys=True)
        f.write("\n")


async def write_text_async(path: Path, text: str) -> None:
    # Parent directories are created up front, before concurrent writers start.
    async with aiofiles.open(path, "w", encoding="utf-8", newline="") as f:
        await f.write(text)


async def read_text_async(path: Path) -> str:
    async with aiofiles.open(path, "r", encoding="utf-8", newline="") as f:
        return await f.read()
