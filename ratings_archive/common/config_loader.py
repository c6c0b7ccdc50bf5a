"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ratings_archive.common.errors import ConfigError
from ratings_archive.common.fs import read_yaml
from ratings_archive.common.http import RetryConfig
from ratings_archive.common.schema import validate_archive_config

CONFIG_FILENAME = "archive.yml"


@dataclass(frozen=True)
class UrlRewrite:
    from_prefix: str
    to_prefix: str


@dataclass(frozen=True)
class ArchiveConfig:
    base_url: str
    reference_datasets: dict[str, str]
    languages: tuple[str, ...]
    formats: tuple[str, ...]
    reference_pause_seconds: float
    url_rewrites: tuple[UrlRewrite, ...]
    retry: RetryConfig
    unpaired_tags: tuple[str, ...]
    api_dir: str
    open_data_dir: str


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Missing config file: {path}")
    base = read_yaml(path)
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    if overlay is None:
        return base
    if not isinstance(overlay, dict):
        raise ConfigError(f"Overlay config must be a mapping: {overlay_path}")
    return _deep_merge(base, overlay)


def build_archive_config(raw: dict) -> ArchiveConfig:
    api = raw["api"]
    retry = raw["retry"]
    return ArchiveConfig(
        base_url=str(api["base_url"]).rstrip("/"),
        reference_datasets={str(k): str(v) for k, v in api["reference_datasets"].items()},
        languages=tuple(api["languages"]),
        formats=tuple(api["formats"]),
        reference_pause_seconds=float(api["reference_pause_seconds"]),
        url_rewrites=tuple(
            UrlRewrite(from_prefix=str(item["from"]), to_prefix=str(item["to"]))
            for item in raw["open_data"]["url_rewrites"] or []
        ),
        retry=RetryConfig(
            max_attempts=int(retry["max_attempts"]),
            initial_delay=float(retry["initial_delay_seconds"]),
            attempt_timeout=float(retry["attempt_timeout_seconds"]),
        ),
        unpaired_tags=tuple(raw["xml"]["unpaired_tags"]),
        api_dir=str(raw["output"]["api_dir"]),
        open_data_dir=str(raw["output"]["open_data_dir"]),
    )


def load_archive_config(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> ArchiveConfig:
    overlay_path = overlay_config_dir / CONFIG_FILENAME if overlay_config_dir is not None else None
    raw = _load_yaml_with_overlay(config_dir / CONFIG_FILENAME, overlay_path)
    return build_archive_config(validate_archive_config(raw, allow_unknown=allow_unknown))
