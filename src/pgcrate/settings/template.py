"""Cluster-name substitution in path templates.

Global settings carry paths such as ``/var/lib/postgresql/9.0/%s``;
the ``%s`` placeholder receives the cluster name when the settings of
one cluster are resolved.
"""

from __future__ import annotations

from typing import Any

PLACEHOLDER = "%s"

# Sub-maps whose string values are templates.  ``permissions`` (addresses
# and masks) and ``clusters`` are never expanded.
TEMPLATED_MAPS: tuple[str, ...] = ("options", "recovery", "start")
UNTEMPLATED_KEYS: tuple[str, ...] = ("permissions", "clusters")


def expand(value: Any, cluster_name: str) -> Any:  # noqa: ANN401
    """Substitute *cluster_name* into *value* if it is a template string."""
    if isinstance(value, str) and PLACEHOLDER in value:
        return value.replace(PLACEHOLDER, cluster_name)
    return value


def expand_map(mapping: dict[str, Any], cluster_name: str) -> dict[str, Any]:
    return {key: expand(value, cluster_name) for key, value in mapping.items()}


def expand_tree(tree: dict[str, Any], cluster_name: str) -> dict[str, Any]:
    """Expand every templated string leaf of *tree*."""
    result: dict[str, Any] = {}
    for key, value in tree.items():
        if key in UNTEMPLATED_KEYS:
            result[key] = value
        elif key in TEMPLATED_MAPS and isinstance(value, dict):
            result[key] = expand_map(value, cluster_name)
        else:
            result[key] = expand(value, cluster_name)
    return result


def find_placeholders(tree: dict[str, Any]) -> list[str]:
    """Return the dotted key paths of string leaves still holding a placeholder."""
    found: list[str] = []
    for key, value in tree.items():
        if key in UNTEMPLATED_KEYS:
            continue
        if isinstance(value, dict):
            found.extend(
                f"{key}.{sub}"
                for sub, leaf in value.items()
                if isinstance(leaf, str) and PLACEHOLDER in leaf
            )
        elif isinstance(value, str) and PLACEHOLDER in value:
            found.append(key)
    return found
