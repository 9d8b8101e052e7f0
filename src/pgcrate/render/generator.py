"""Configuration file generation.

One driver renders all four files of a cluster.  A file is described by
where its path lives in the cluster settings, which settings hold its
records, and how each record is formatted:

============  =====================  ===============  =====================
kind          path key               records key      formatter
============  =====================  ===============  =====================
hba           options.hba_file       permissions      pg_hba.conf records
postgresql    postgresql_file        options          ``name = value``
recovery      recovery_file          recovery         ``name = value``
start         start_file             start            bare start mode
============  =====================  ===============  =====================

Generation is all-or-nothing: a missing key or an invalid record
aborts before any content is returned.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from pgcrate.core.errors import ConfigurationError
from pgcrate.core.types import MaskPolicy
from pgcrate.render.hba import hba_formatter
from pgcrate.render.parameters import format_parameter, format_start

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

log = logging.getLogger(__name__)

PREAMBLE = (
    "# This file was auto-generated by pgcrate. Do not edit it manually unless you\n"
    "# know what you are doing. If you are still using pgcrate, you probably want to\n"
    "# edit your pgcrate settings and rerun them.\n\n"
)

# Change flag set by file writers when a generated file differs from
# what was written before.  Service restarts key on it.
CONFIG_CHANGED_FLAG = "postgresql-config"


class FileKind(StrEnum):
    HBA = "hba"
    POSTGRESQL = "postgresql"
    RECOVERY = "recovery"
    START = "start"


@dataclass(frozen=True)
class GeneratedFile:
    """A rendered configuration file."""

    path: str
    content: str


def get_in(tree: Mapping[str, Any], key_path: Sequence[str]) -> Any:  # noqa: ANN401
    """Follow *key_path* through nested mappings, ``None`` if absent."""
    node: Any = tree
    for key in key_path:
        if not isinstance(node, Mapping):
            return None
        node = node.get(key)
    return node


def _render_records(records: Any, formatter: Callable[..., str]) -> str:  # noqa: ANN401
    if isinstance(records, Mapping):
        return "".join(formatter(name, value) for name, value in records.items())
    return "".join(formatter(record) for record in records)


def generate(
    path_key_path: Sequence[str],
    records_key: str,
    formatter: Callable[..., str],
    cluster_settings: Mapping[str, Any] | None,
) -> GeneratedFile:
    """Render one configuration file from *cluster_settings*.

    Parameters
    ----------
    path_key_path:
        Keys leading to the target path, e.g. ``("options", "hba_file")``.
    records_key:
        Key of the record source.  Mapping sources call *formatter*
        with ``(name, value)``; sequence sources with ``(record)``.
    formatter:
        Renders one record as one line.
    cluster_settings:
        Resolved settings of the cluster.

    Raises
    ------
    ConfigurationError
        If the cluster settings, the target path or the record source
        is missing.

    """
    if not cluster_settings:
        msg = "No cluster settings found"
        raise ConfigurationError(msg, missing=["cluster-settings"])

    missing: list[str] = []
    path = get_in(cluster_settings, path_key_path)
    if not path:
        missing.append(".".join(path_key_path))
    records = cluster_settings.get(records_key)
    if records is None:
        missing.append(records_key)
    if missing:
        msg = f"Missing keys {missing} in cluster settings"
        raise ConfigurationError(msg, missing=missing)

    content = PREAMBLE + _render_records(records, formatter)
    log.debug("Generated %s (%d bytes)", path, len(content))
    return GeneratedFile(path=str(path), content=content)


@dataclass(frozen=True)
class FileSpec:
    path_key_path: tuple[str, ...]
    records_key: str


FILE_SPECS: dict[FileKind, FileSpec] = {
    FileKind.HBA: FileSpec(("options", "hba_file"), "permissions"),
    FileKind.POSTGRESQL: FileSpec(("postgresql_file",), "options"),
    FileKind.RECOVERY: FileSpec(("recovery_file",), "recovery"),
    FileKind.START: FileSpec(("start_file",), "start"),
}


def formatter_for(kind: FileKind, mask_policy: MaskPolicy = MaskPolicy.DOTTED_QUAD) -> Callable[..., str]:
    """Return the record formatter used for *kind*."""
    if kind == FileKind.HBA:
        return hba_formatter(mask_policy)
    if kind == FileKind.START:
        return format_start
    return format_parameter


def generate_file(
    kind: FileKind | str,
    cluster_settings: Mapping[str, Any] | None,
    *,
    mask_policy: MaskPolicy = MaskPolicy.DOTTED_QUAD,
) -> GeneratedFile:
    """Render the configuration file of *kind* for one cluster."""
    kind = FileKind(kind)
    spec = FILE_SPECS[kind]
    return generate(
        spec.path_key_path,
        spec.records_key,
        formatter_for(kind, mask_policy),
        cluster_settings,
    )
