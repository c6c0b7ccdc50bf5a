"""Canonical layout for XML establishment documents.

The document is parsed, its ``EstablishmentDetail`` records are ordered by
``FHRSID`` and it is written back compactly. A final text pass puts each
structural tag on its own line so that a changed record shows up as a
one-line diff.
"""

from __future__ import annotations

import logging
import re

from lxml import etree

from ratings_archive.common.logging import get_logger, log_event
from ratings_archive.pipeline.ordering import fhrsid_sort_key, stable_sorted

COLLECTION_TAG = "EstablishmentCollection"
DETAIL_TAG = "EstablishmentDetail"
ID_TAG = "FHRSID"

# TODO: check this list against a full corpus of upstream files, including Welsh ones.
DEFAULT_UNPAIRED_TAGS = ("Scores", "Geocode")

NEWLINE_BEFORE = (
    "<Header>",
    f"<{COLLECTION_TAG}>",
    f"<{COLLECTION_TAG}/>",
    f"</{COLLECTION_TAG}>",
    f"<{DETAIL_TAG}>",
)

# Input arrives already decoded and is re-encoded as UTF-8, whatever the declaration says.
_PARSER = etree.XMLParser(encoding="utf-8", remove_blank_text=True, resolve_entities=False, no_network=True)
_DECLARATION_RE = re.compile(r"\s*(<\?xml[^>]*\?>)")
_ENCODING_RE = re.compile(r"""(encoding\s*=\s*)(["'])([^"']*)\2""")


def _local_name(element) -> str:
    tag = element.tag
    if not isinstance(tag, str):
        return ""
    return etree.QName(tag).localname


def _strip_layout_whitespace(root) -> None:
    for element in root.iter():
        # A childless collection would otherwise keep a blank line before its close tag.
        keeps_layout = len(element) or _local_name(element) == COLLECTION_TAG
        if keeps_layout and element.text is not None and not element.text.strip():
            element.text = None
        if element.tail is not None and not element.tail.strip():
            element.tail = None


def _detail_id(detail) -> str | None:
    for child in detail:
        if _local_name(child) == ID_TAG:
            return child.text
    return None


def _sort_collection(collection) -> None:
    children = list(collection)
    slots = [idx for idx, child in enumerate(children) if _local_name(child) == DETAIL_TAG]
    details = [children[idx] for idx in slots]
    ordered = stable_sorted(details, key=lambda detail: fhrsid_sort_key(_detail_id(detail)))
    for idx, detail in zip(slots, ordered):
        children[idx] = detail
    for child in children:
        # append() moves an existing child, so this rewrites the order in place.
        collection.append(child)


def _apply_empty_tag_policy(root, unpaired_tags: tuple[str, ...]) -> None:
    unpaired = set(unpaired_tags)
    for element in root.iter():
        if not isinstance(element.tag, str) or len(element):
            continue
        if element.text:
            continue
        # lxml writes <Tag/> for text=None and <Tag></Tag> for text="".
        element.text = "" if _local_name(element) in unpaired else None


def _insert_newlines(text: str) -> str:
    for marker in NEWLINE_BEFORE:
        text = text.replace(marker, "\n" + marker)
    return text


def _utf8_encoding(match) -> str:
    # Output is always written as UTF-8.
    if match.group(3).lower() in ("utf-8", "utf8"):
        return match.group(0)
    return f"{match.group(1)}{match.group(2)}utf-8{match.group(2)}"


def _declaration(raw: str) -> str:
    match = _DECLARATION_RE.match(raw)
    if not match:
        return ""
    return _ENCODING_RE.sub(_utf8_encoding, match.group(1))


def rebuild_xml(raw: str, *, unpaired_tags: tuple[str, ...] = DEFAULT_UNPAIRED_TAGS) -> str:
    """Sort and re-serialise ``raw``; raises on parse or rebuild failure."""
    source = raw.lstrip("\ufeff").lstrip()
    root = etree.fromstring(source.encode("utf-8"), parser=_PARSER)
    tree = root.getroottree()
    _strip_layout_whitespace(root)
    collections = [element for element in root.iter() if _local_name(element) == COLLECTION_TAG]
    for collection in collections:
        _sort_collection(collection)
    _apply_empty_tag_policy(root, unpaired_tags)
    body = etree.tostring(tree, encoding="unicode")
    return _insert_newlines(_declaration(source) + body)


def canonicalize_xml(
    raw: str,
    *,
    unpaired_tags: tuple[str, ...] = DEFAULT_UNPAIRED_TAGS,
    logger: logging.Logger | None = None,
    document: str | None = None,
) -> str:
    """Return the canonical form of ``raw``, or ``raw`` itself if it cannot be rebuilt."""
    try:
        return rebuild_xml(raw, unpaired_tags=unpaired_tags)
    except Exception as exc:
        log_event(
            logger or get_logger(),
            f"keeping original XML, canonicalization failed: {exc}",
            level=logging.WARNING,
            document=document,
            event="CANONICALIZE_FALLBACK",
            status="warning",
            error_code=type(exc).__name__,
        )
        return raw
