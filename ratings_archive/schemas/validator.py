"""Structural validation gate for upstream documents."""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ValidationError

from ratings_archive.common.errors import SchemaViolation, StageError
from ratings_archive.schemas.authorities import AuthoritiesListing, Authority
from ratings_archive.schemas.establishments import EstablishmentDocument

AUTHORITIES = "authorities"
ESTABLISHMENTS = "establishments"

SCHEMAS: dict[str, type[BaseModel]] = {
    AUTHORITIES: AuthoritiesListing,
    ESTABLISHMENTS: EstablishmentDocument,
}


def format_issues(exc: ValidationError) -> list[str]:
    issues = []
    for error in exc.errors():
        path = ".".join(str(part) for part in error["loc"]) or "<root>"
        issues.append(f"{path}: {error['msg']}")
    return issues


def validate(kind: str, payload: Any) -> BaseModel:
    """Check ``payload`` against the schema registered for ``kind``.

    The payload is left untouched. The returned model is a typed projection
    for inspection only; rewrites must work from the original structure.
    """
    schema = SCHEMAS.get(kind)
    if schema is None:
        raise ValueError(f"Unknown document kind: {kind}")
    try:
        return schema.model_validate(payload)
    except ValidationError as exc:
        raise SchemaViolation(kind, format_issues(exc)) from exc


def parse_authorities(text: str) -> list[Authority]:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise StageError(f"Authorities listing is not valid JSON: {exc}") from exc
    listing = validate(AUTHORITIES, payload)
    return list(listing.authorities)
