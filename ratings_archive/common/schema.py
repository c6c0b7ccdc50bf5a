"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from ratings_archive.common.constants import FORMATS, LANGUAGES
from ratings_archive.common.errors import ConfigError


def _assert_mapping(obj, ctx: str) -> None:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    _assert_mapping(obj, ctx)
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_positive_number(value, ctx: str, *, allow_zero: bool = False) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{ctx} must be a number")
    if value < 0 or (value == 0 and not allow_zero):
        raise ConfigError(f"{ctx} must be {'non-negative' if allow_zero else 'positive'}")


def validate_archive_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    top_required = {"api", "open_data", "retry", "xml", "output"}
    _assert_required_keys(cfg, top_required, "archive config")
    _assert_no_unknown_keys(cfg, top_required, "archive config", allow_unknown)

    api = cfg["api"]
    _assert_required_keys(
        api,
        {"base_url", "reference_datasets", "languages", "formats", "reference_pause_seconds"},
        "api",
    )
    if not isinstance(api["reference_datasets"], dict) or not api["reference_datasets"]:
        raise ConfigError("api.reference_datasets must be a non-empty mapping")
    if "authorities" not in api["reference_datasets"]:
        raise ConfigError("api.reference_datasets must include 'authorities'")
    unknown_languages = set(api["languages"]) - set(LANGUAGES)
    if unknown_languages:
        raise ConfigError(f"Unsupported api.languages: {', '.join(sorted(unknown_languages))}")
    unknown_formats = set(api["formats"]) - set(FORMATS)
    if unknown_formats:
        raise ConfigError(f"Unsupported api.formats: {', '.join(sorted(unknown_formats))}")
    _assert_positive_number(api["reference_pause_seconds"], "api.reference_pause_seconds", allow_zero=True)

    _assert_required_keys(cfg["open_data"], {"url_rewrites"}, "open_data")
    for idx, rewrite in enumerate(cfg["open_data"]["url_rewrites"] or []):
        _assert_required_keys(rewrite, {"from", "to"}, f"open_data.url_rewrites[{idx}]")

    retry = cfg["retry"]
    _assert_required_keys(
        retry,
        {"max_attempts", "initial_delay_seconds", "attempt_timeout_seconds"},
        "retry",
    )
    if isinstance(retry["max_attempts"], bool) or not isinstance(retry["max_attempts"], int) or retry["max_attempts"] < 1:
        raise ConfigError("retry.max_attempts must be a positive integer")
    _assert_positive_number(retry["initial_delay_seconds"], "retry.initial_delay_seconds", allow_zero=True)
    _assert_positive_number(retry["attempt_timeout_seconds"], "retry.attempt_timeout_seconds")

    _assert_required_keys(cfg["xml"], {"unpaired_tags"}, "xml")
    if not isinstance(cfg["xml"]["unpaired_tags"], list):
        raise ConfigError("xml.unpaired_tags must be a list")

    _assert_required_keys(cfg["output"], {"api_dir", "open_data_dir"}, "output")

    return cfg
