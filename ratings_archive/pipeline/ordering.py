"""Deterministic ordering of establishment records."""

from __future__ import annotations

import math
from typing import Callable, Iterable, TypeVar

T = TypeVar("T")

_UNPARSEABLE = (1, 0.0)


def fhrsid_sort_key(value: object) -> tuple[int, float]:
    """Sort key for an establishment identifier.

    Numeric identifiers order by value; anything that does not parse as a
    finite number ranks after every number and ties with its peers.
    """
    if isinstance(value, bool):
        return _UNPARSEABLE
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return _UNPARSEABLE
    else:
        return _UNPARSEABLE
    if not math.isfinite(number):
        return _UNPARSEABLE
    return (0, number)


def stable_sorted(items: Iterable[T], key: Callable[[T], object]) -> list[T]:
    # sorted() is guaranteed stable; equal keys keep their input order.
    return sorted(items, key=key)
