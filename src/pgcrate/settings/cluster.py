"""Per-cluster settings resolution and deployment variants.

A PostgreSQL instance may host several clusters.  The instance-level
(global) tree holds path templates; :func:`resolve_cluster` turns it
into the concrete, placeholder-free tree for one cluster:

1. ``clusters`` is dropped (no nesting in a per-cluster tree);
2. templates are expanded with the cluster name;
3. the cluster overrides are merged on top;
4. ``recovery_file`` and ``start_file`` are derived;
5. the default cluster uses the distribution's ``default-service``;
6. with ``use-port-in-pidfile`` the pid file is named after the port.

Variants (:func:`apply_variant`) then layer replication defaults
underneath the resolved values.
"""

from __future__ import annotations

import logging
import posixpath
from typing import Any

from pgcrate.core.errors import ConfigurationError
from pgcrate.core.types import Variant
from pgcrate.settings.merge import merge_settings
from pgcrate.settings.template import PLACEHOLDER, expand_tree, find_placeholders

log = logging.getLogger(__name__)

RECOVERY_FILE_NAME = "recovery.conf"
START_FILE_NAME = "start.conf"
MAIN_FILE_NAME = "postgresql.conf"
FAILOVER_TRIGGER_NAME = "pg-failover"


def recovery_file_path(data_directory: str) -> str:
    return f"{data_directory}/{RECOVERY_FILE_NAME}"


def start_file_path(postgresql_file: str) -> str:
    """Replace the file name of the main parameter file with ``start.conf``."""
    directory, name = posixpath.split(postgresql_file)
    if name == MAIN_FILE_NAME:
        return posixpath.join(directory, START_FILE_NAME)
    return postgresql_file.replace(MAIN_FILE_NAME, START_FILE_NAME)


def derived_paths(settings: dict[str, Any]) -> dict[str, str]:
    """Compute the paths that always follow from other settings."""
    derived: dict[str, str] = {}
    data_directory = (settings.get("options") or {}).get("data_directory")
    if data_directory:
        derived["recovery_file"] = recovery_file_path(data_directory)
    postgresql_file = settings.get("postgresql_file")
    if postgresql_file:
        derived["start_file"] = start_file_path(postgresql_file)
    return derived


def resolve_cluster(
    cluster_name: str,
    override_tree: dict[str, Any] | None,
    global_tree: dict[str, Any],
) -> dict[str, Any]:
    """Return the fully resolved settings of *cluster_name*.

    Parameters
    ----------
    cluster_name:
        Name of the cluster, substituted into path templates.
    override_tree:
        Cluster specific settings.  Paths must already be concrete.
    global_tree:
        Instance-level settings, as built by
        :func:`pgcrate.settings.defaults.global_settings`.

    Raises
    ------
    ConfigurationError
        If a template survives resolution (e.g. an override path still
        contains ``%s``).

    """
    defaults = {k: v for k, v in global_tree.items() if k != "clusters"}
    settings = merge_settings(expand_tree(defaults, cluster_name), override_tree or {})
    settings.update(derived_paths(settings))

    default_service = defaults.get("default-service")
    if cluster_name == defaults.get("default-cluster-name") and default_service:
        settings["service"] = default_service

    if defaults.get("use-port-in-pidfile"):
        template = (defaults.get("options") or {}).get("external_pid_file")
        port = (settings.get("options") or {}).get("port")
        if isinstance(template, str) and port is not None:
            settings["options"]["external_pid_file"] = template.replace(
                PLACEHOLDER, str(port)
            )

    _check_expanded(cluster_name, settings)
    log.debug("Resolved settings for cluster %s", cluster_name, extra={"cluster": cluster_name})
    return settings


def _check_expanded(cluster_name: str, settings: dict[str, Any]) -> None:
    leftovers = find_placeholders(settings)
    if leftovers:
        msg = (
            f"Settings for cluster '{cluster_name}' still contain the "
            f"'{PLACEHOLDER}' placeholder at: {', '.join(leftovers)}"
        )
        raise ConfigurationError(msg, missing=leftovers)


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------


def apply_hot_standby_master(settings: dict[str, Any]) -> dict[str, Any]:
    """Layer WAL shipping defaults for a hot standby master."""
    wal_directory = settings.get("wal_directory", "")
    return merge_settings(
        {
            "options": {
                "wal_level": "hot_standby",
                "max_wal_senders": 5,
                "wal_keep_segments": 32,
                "archive_mode": "on",
                "archive_command": f"cp %p {wal_directory}/%f",
            },
        },
        settings,
    )


def apply_hot_standby_replica(settings: dict[str, Any]) -> dict[str, Any]:
    """Layer standby and recovery defaults for a hot standby replica.

    The replica still needs ``primary_conninfo`` in its ``recovery``
    settings to stream from the master.
    """
    wal_directory = settings.get("wal_directory", "")
    data_directory = (settings.get("options") or {}).get("data_directory", "")
    return merge_settings(
        {
            "options": {"hot_standby": "on"},
            "recovery": {
                "standby_mode": "on",
                "trigger_file": f"{data_directory}/{FAILOVER_TRIGGER_NAME}",
                "restore_command": f'cp {wal_directory}/%f "%p"',
            },
        },
        settings,
    )


_VARIANTS = {
    Variant.HOT_STANDBY_MASTER: apply_hot_standby_master,
    Variant.HOT_STANDBY_REPLICA: apply_hot_standby_replica,
}


def apply_variant(settings: dict[str, Any], variant: str | None) -> dict[str, Any]:
    """Apply the named *variant*, or return *settings* unchanged."""
    if variant is None:
        return settings
    try:
        transform = _VARIANTS[Variant(variant)]
    except ValueError:
        msg = f"Unknown cluster variant '{variant}'. Known variants: {sorted(v.value for v in Variant)}"
        raise ConfigurationError(msg, missing=["variant"]) from None
    return transform(settings)


def cluster_settings(
    cluster_name: str,
    override_tree: dict[str, Any] | None,
    global_tree: dict[str, Any],
    *,
    variant: str | None = None,
) -> dict[str, Any]:
    """Resolve *cluster_name* and apply its optional *variant*."""
    return apply_variant(resolve_cluster(cluster_name, override_tree, global_tree), variant)
