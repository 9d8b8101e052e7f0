"""Structural merge of PostgreSQL settings trees.

Merge policy:

- top-level keys: the override replaces the base value;
- ``options``, ``recovery`` and ``start``: merged one level deep, so
  each parameter is overridden independently;
- ``permissions``: concatenated, duplicates removed keeping the first
  occurrence.

Neither input is mutated.  Merging is total: any two mappings merge.

Usage::

    from pgcrate.settings.merge import merge_all, merge_settings

    merged = merge_settings(defaults, {"options": {"port": 5433}})
    merged = merge_all(base, distribution_defaults, user_settings)
"""

from __future__ import annotations

import copy
from functools import reduce
from typing import Any

KEYWISE_KEYS: tuple[str, ...] = ("options", "recovery", "start")
CONCAT_KEYS: tuple[str, ...] = ("permissions",)


def _record_key(record: Any) -> Any:  # noqa: ANN401
    """Hashable identity of a permission record, list and tuple alike."""
    if isinstance(record, dict):
        return ("map", tuple((str(k), _record_key(v)) for k, v in record.items()))
    if isinstance(record, (list, tuple)):
        return ("seq", tuple(_record_key(item) for item in record))
    return record


def distinct(records: list[Any]) -> list[Any]:
    """Return *records* without duplicates, first occurrence wins."""
    seen: set[Any] = set()
    result: list[Any] = []
    for record in records:
        key = _record_key(record)
        if key in seen:
            continue
        seen.add(key)
        result.append(record)
    return result


def merge_settings(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge *override* on top of *base* and return a new tree."""
    result = copy.deepcopy(dict(base))
    for key, value in override.items():
        if key in KEYWISE_KEYS or key in CONCAT_KEYS:
            continue
        result[key] = copy.deepcopy(value)

    for key in KEYWISE_KEYS:
        if key not in base and key not in override:
            continue
        merged = dict(result.get(key) or {})
        merged.update(copy.deepcopy(override.get(key) or {}))
        result[key] = merged

    for key in CONCAT_KEYS:
        if key not in base and key not in override:
            continue
        combined = list(base.get(key) or []) + list(override.get(key) or [])
        result[key] = copy.deepcopy(distinct(combined))

    return result


def merge_all(*trees: dict[str, Any]) -> dict[str, Any]:
    """Left-fold :func:`merge_settings` over *trees*."""
    return reduce(merge_settings, trees, {})
