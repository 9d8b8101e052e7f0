"""Script subcommands: print or run generated SQL.

Without ``--execute`` the SQL is printed.  With it the statement runs on
the chosen cluster through
:class:`~pgcrate.collaborators.psql.PsqlScriptRunner`; connection
credentials beyond the user come from the libpq environment
(``PGPASSWORD``, ``~/.pgpass``).
"""

from __future__ import annotations

import sys

from pgcrate.collaborators.psql import PsqlScriptRunner
from pgcrate.collaborators.recording import RecordingCollaborators
from pgcrate.core.errors import ConfigurationError
from pgcrate.core.result import attempt
from pgcrate.logging import cluster_context
from pgcrate.render.scripts import create_database_sql, create_role_sql
from pgcrate.services.provisioning import PostgresCrate


def _execute(config, args):
    registry = config.build_registry()
    cluster = registry.cluster(args.cluster, instance=args.instance)
    if cluster is None:
        msg = f"No settings for cluster '{args.cluster or '<default>'}' of instance '{args.instance}'"
        raise ConfigurationError(msg, missing=["clusters", str(args.cluster)])

    # only the SQL runner acts; the other collaborators are never called
    unused = RecordingCollaborators()
    crate = PostgresCrate(
        registry,
        files=unused,
        packages=unused,
        services=unused,
        shell=unused,
        scripts=PsqlScriptRunner.for_cluster(cluster),
        instance=args.instance,
    )
    if args.script_command == "create-database":
        return crate.create_database(args.name, args.parameters, cluster=args.cluster)
    return crate.create_role(args.name, args.parameters, cluster=args.cluster)


def _run_execute(config, args) -> None:
    with cluster_context(instance=args.instance, cluster=args.cluster):
        result = attempt(_execute, config, args)
    if not result.ok:
        sys.stderr.write(f"pgcrate: {result.kind}: {result.error}\n")
        sys.exit(1)

    script_result = result.value
    if script_result.output:
        sys.stdout.write(script_result.output + "\n")
    if not script_result.success:
        sys.stderr.write(f"pgcrate: script failed: {'; '.join(script_result.errors)}\n")
        sys.exit(1)


def run_script(config, args) -> None:
    """Handle script subcommands."""
    sub = getattr(args, "script_command", None)
    if sub not in {"create-database", "create-role"}:
        sys.exit(1)

    if args.execute:
        _run_execute(config, args)
        return

    if sub == "create-database":
        sql = create_database_sql(args.name, args.parameters)
    else:
        settings = config.build_registry().settings(args.instance)
        if settings is None:
            sys.stderr.write(f"pgcrate: no settings for instance '{args.instance}'\n")
            sys.exit(1)
        sql = create_role_sql(args.name, args.parameters, str(settings.get("version")))
    sys.stdout.write(sql + "\n")
