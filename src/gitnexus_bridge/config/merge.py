"""Layering of partial config dicts (system < user < project < env)."""

from __future__ import annotations

from functools import reduce
from typing import Any


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict with override layered onto base.

    Mappings present on both sides merge key by key. Any other override
    value, lists included, replaces the base value whole. A None override
    leaves the base value in place, so a layer can name a section without
    resetting it. Neither argument is modified.
    """
    merged = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        current = merged.get(key)
        both_mappings = isinstance(current, dict) and isinstance(value, dict)
        merged[key] = deep_merge(current, value) if both_mappings else value
    return merged


def merge_configs(*configs: dict[str, Any]) -> dict[str, Any]:
    """Fold layers left to right; empty layers are skipped."""
    return reduce(deep_merge, (c for c in configs if c), {})
