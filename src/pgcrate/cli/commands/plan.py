"""Plan subcommand: print every provisioning step as JSON.

Runs the full provisioning sequence (install, configuration files,
service setup, initdb, restart on change) against
:class:`~pgcrate.collaborators.recording.RecordingCollaborators`, so
nothing on the host is touched.
"""

from __future__ import annotations

import json
import sys

from pgcrate.collaborators.recording import RecordingCollaborators
from pgcrate.core.result import attempt
from pgcrate.core.types import ServiceAction
from pgcrate.logging import cluster_context
from pgcrate.services.provisioning import PostgresCrate


def build_plan(config, instance: str) -> RecordingCollaborators:
    """Record the provisioning of *instance* and return the recorder."""
    registry = config.build_registry()
    recorder = RecordingCollaborators()
    render = config.settings.render
    crate = PostgresCrate(
        registry,
        files=recorder,
        packages=recorder,
        services=recorder,
        shell=recorder,
        instance=instance,
        mask_policy=render.mask_policy,
        file_mode=render.file_mode,
        directory_mode=render.directory_mode,
        target_release=config.settings.target.os_version,
    )
    crate.install()
    multicluster = bool(crate.settings().get("has-multicluster-service"))
    for cluster in registry.cluster_names(instance):
        with cluster_context(instance=instance, cluster=cluster):
            crate.initdb(cluster)
            crate.hba_conf(cluster)
            crate.postgresql_conf(cluster)
            if crate.cluster_settings(cluster).get("recovery"):
                crate.recovery_conf(cluster)
            if multicluster:
                crate.service_config(cluster)
    if not multicluster:
        # one init service per extra cluster, set up in a single pass
        with cluster_context(instance=instance):
            crate.service_config()
    crate.service(ServiceAction.RESTART, if_config_changed=True)
    return recorder


def run_plan(config, args) -> None:
    result = attempt(build_plan, config, args.instance)
    if not result.ok:
        sys.stderr.write(f"pgcrate: {result.kind}: {result.error}\n")
        sys.exit(1)
    json.dump(result.value.to_list(), sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")
