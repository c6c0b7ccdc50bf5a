"""Data models used across the pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

WRITTEN = "written"
SKIPPED = "skipped"


@dataclass(frozen=True)
class DocumentTarget:
    authority_id: int | None
    source_url: str
    fmt: str
    language: str
    filename: str


@dataclass(frozen=True)
class DocumentResult:
    filename: str
    fmt: str
    status: str
    authority_id: int | None = None
    language: str | None = None
    error_code: str | None = None
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
