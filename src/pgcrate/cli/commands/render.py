"""Render subcommand: generate configuration files.

Files are written below ``--output`` (or ``render.output_dir``) with
:class:`~pgcrate.collaborators.local.LocalFileWriter`, or printed with
``--dry-run``.  Generation is all-or-nothing: every requested file is
rendered before the first one is written.
"""

from __future__ import annotations

import logging
import sys

from pgcrate.collaborators.local import LocalFileWriter
from pgcrate.core.errors import ConfigurationError
from pgcrate.core.result import attempt
from pgcrate.logging import cluster_context
from pgcrate.render.generator import CONFIG_CHANGED_FLAG, FileKind, generate_file

log = logging.getLogger(__name__)

_DEFAULT_KINDS = (FileKind.HBA, FileKind.POSTGRESQL, FileKind.START)


def _render_all(config, args) -> tuple[str, list]:
    registry = config.build_registry()
    cluster_name = args.cluster or registry.default_cluster_name(args.instance)
    cluster = registry.cluster(cluster_name, instance=args.instance)
    if cluster is None:
        msg = f"No settings for cluster '{cluster_name}' of instance '{args.instance}'"
        raise ConfigurationError(msg, missing=["clusters", str(cluster_name)])

    kinds = [FileKind(k) for k in args.kind] if args.kind else list(_DEFAULT_KINDS)
    mask_policy = config.settings.render.mask_policy
    files = [generate_file(kind, cluster, mask_policy=mask_policy) for kind in kinds]
    owner = (registry.settings(args.instance) or {}).get("owner")
    return owner, files


def run_render(config, args) -> None:
    """Render the requested files of one cluster."""
    with cluster_context(instance=args.instance, cluster=args.cluster):
        result = attempt(_render_all, config, args)
        if not result.ok:
            sys.stderr.write(f"pgcrate: {result.kind}: {result.error}\n")
            sys.exit(1)

        owner, files = result.value
        if args.dry_run:
            for generated in files:
                sys.stdout.write(f"==> {generated.path} <==\n{generated.content}\n")
            return

        render = config.settings.render
        writer = LocalFileWriter(args.output or render.output_dir)
        for generated in files:
            writer.write(
                generated.path,
                generated.content,
                owner=owner,
                mode=render.file_mode,
                directory_mode=render.directory_mode,
                flag=CONFIG_CHANGED_FLAG,
            )
        if writer.is_flag_set(CONFIG_CHANGED_FLAG):
            log.info("Configuration changed; the service needs a reload")
