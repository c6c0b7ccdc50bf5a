"""Canonical layout for JSON establishment documents."""

from __future__ import annotations

import json
from typing import Any

from ratings_archive.common.errors import DocumentParseError
from ratings_archive.pipeline.ordering import fhrsid_sort_key, stable_sorted
from ratings_archive.schemas.validator import ESTABLISHMENTS, validate

ROOT_KEY = "FHRSEstablishment"
COLLECTION_KEY = "EstablishmentCollection"

NEWLINE_BEFORE = (
    '"Header":',
    f'"{COLLECTION_KEY}":',
    '{"FHRSID":',
)
CLOSING = "]}}"


def sort_establishments(payload: dict[str, Any]) -> dict[str, Any]:
    """Order the establishment collection of ``payload`` in place and return it."""
    body = payload[ROOT_KEY]
    body[COLLECTION_KEY] = stable_sorted(
        body[COLLECTION_KEY],
        key=lambda establishment: fhrsid_sort_key(establishment.get("FHRSID")),
    )
    return payload


def _insert_newlines(text: str) -> str:
    # Escaped quotes inside string values never match these markers.
    for marker in NEWLINE_BEFORE:
        text = text.replace(marker, "\n" + marker)
    if text.endswith(CLOSING):
        text = text[: -len(CLOSING)] + "\n" + CLOSING
    return text


def canonicalize_json(raw: str) -> str:
    """Validate ``raw`` and return it with establishments ordered by FHRSID.

    Raises ``SchemaViolation`` when the document does not match the
    establishment schema. The rewrite works on the parsed input, so fields
    the schema does not name are written back unchanged.
    """
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise DocumentParseError(f"Establishment document is not valid JSON: {exc}") from exc

    validate(ESTABLISHMENTS, payload)
    sort_establishments(payload)
    text = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    return _insert_newlines(text)
